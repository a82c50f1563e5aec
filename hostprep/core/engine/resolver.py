"""
Fallback Resolver — try alternatives until a capability is verified.

Members run in declared priority order.  After each attempt the
chain's capability probe runs, and the first member after which the
probe passes is accepted.  The attempt's own exit status is logged but
never decides acceptance: a package manager can report success for a
plugin that still does not work.

A member that errors outright is a failed member; resolution moves on.
If the probe never passes, a required chain aborts the run.
"""

from __future__ import annotations

import logging

from hostprep.core.engine.runner import StepRunner
from hostprep.core.errors import StepFailure, VerificationFailure
from hostprep.core.models.outcome import ChainAttempt, ChainOutcome
from hostprep.core.models.step import FallbackChain
from hostprep.core.services.probes import ProbeRegistry

logger = logging.getLogger(__name__)

ALREADY_PRESENT = "already-present"


class FallbackResolver:
    """Resolves FallbackChains with a StepRunner and a ProbeRegistry."""

    def __init__(self, runner: StepRunner, probes: ProbeRegistry) -> None:
        self._runner = runner
        self._probes = probes

    def resolve(self, chain: FallbackChain) -> ChainOutcome:
        """Run the chain until its capability probe passes.

        Raises:
            StepFailure: If ``chain.required`` and no member produced the
                capability.  The ChainOutcome is attached as ``.outcome``.
        """
        run_log = self._runner.context.run_log

        if chain.probe_first:
            current = self._probes.probe(chain.capability)
            if current.present:
                run_log.ok(f"{chain.name} ... already satisfied ({current.describe()})")
                return ChainOutcome(
                    chain=chain.name,
                    capability=chain.capability,
                    ok=True,
                    method_used=ALREADY_PRESENT,
                    result=current,
                )

        attempts: list[ChainAttempt] = []
        total = len(chain.members)

        for index, member in enumerate(chain.members, start=1):
            outcome = self._runner.execute(member)
            result = self._probes.probe(chain.capability)
            attempts.append(ChainAttempt(member=member.name, outcome=outcome, probe=result))

            if result.present:
                run_log.ok(f"{chain.name} ... using {member.name} ({result.describe()})")
                return ChainOutcome(
                    chain=chain.name,
                    capability=chain.capability,
                    ok=True,
                    method_used=member.name,
                    attempts=attempts,
                    result=result,
                )

            status = "reported success" if outcome.ok else f"failed: {outcome.error}"
            if index < total:
                run_log.info(
                    f"{chain.name}: {member.name} {status} but {chain.capability} "
                    f"is still unavailable; falling back ({index}/{total})"
                )
            else:
                run_log.info(
                    f"{chain.name}: {member.name} {status} but {chain.capability} "
                    f"is still unavailable; no alternatives left"
                )

        chain_outcome = ChainOutcome(
            chain=chain.name,
            capability=chain.capability,
            ok=False,
            attempts=attempts,
            result=attempts[-1].probe if attempts else None,
        )

        failure = VerificationFailure(
            chain.capability, f"all {total} method(s) tried",
        )
        if not chain.required:
            run_log.info(f"{chain.name} ... unavailable, continuing ({failure})")
            return chain_outcome

        run_log.fail(f"{chain.name} ... FAILED: {failure} (see {run_log.path})")
        raise StepFailure(
            chain.name,
            str(failure),
            run_log.path,
            attempt=attempts[-1].member if attempts else None,
            outcome=chain_outcome,
        ) from failure
