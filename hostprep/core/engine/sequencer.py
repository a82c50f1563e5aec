"""
Sequencer — the central provisioning loop.

Takes a Profile, runs its entries strictly in order (plain steps through
the Step Runner, fallback chains through the Fallback Resolver), then
runs the final verification phase over every registered probe.

Flow:
    profile → steps / chains (stop at first abort) → readiness probes → report
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hostprep.core.context import RunContext
from hostprep.core.engine.resolver import FallbackResolver
from hostprep.core.engine.runner import StepRunner
from hostprep.core.errors import StepFailure, VerificationFailure
from hostprep.core.models.outcome import ChainOutcome, Outcome, ReadinessReport
from hostprep.core.models.step import FallbackChain, Profile
from hostprep.core.services.probes import ProbeRegistry

logger = logging.getLogger(__name__)


@dataclass
class SequenceReport:
    """Result of running a profile."""

    profile: str = ""
    log_path: Path | None = None
    outcomes: list[Outcome] = field(default_factory=list)
    chains: list[ChainOutcome] = field(default_factory=list)
    readiness: ReadinessReport | None = None
    aborted_at: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.aborted_at or self.error:
            return False
        return self.readiness is None or self.readiness.ready

    @property
    def status(self) -> str:
        if self.aborted_at:
            return "aborted"
        return "ok" if self.ok else "not-ready"

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile,
            "status": self.status,
            "log_path": str(self.log_path) if self.log_path else None,
            "aborted_at": self.aborted_at,
            "error": self.error,
            "steps": [o.model_dump(mode="json") for o in self.outcomes],
            "chains": [c.model_dump(mode="json") for c in self.chains],
            "readiness": self.readiness.to_dict() if self.readiness else None,
        }


class Sequencer:
    """Runs profiles against one RunContext."""

    def __init__(self, context: RunContext, probes: ProbeRegistry) -> None:
        self._context = context
        self._probes = probes
        self._runner = StepRunner(context)
        self._resolver = FallbackResolver(self._runner, probes)

    def run(self, profile: Profile, *, install: bool = True) -> SequenceReport:
        """Run every entry of ``profile``, then verify readiness.

        Never raises StepFailure: an abort is recorded on the report and
        the remaining entries and the verification phase are skipped.
        """
        run_log = self._context.run_log
        report = SequenceReport(profile=profile.name, log_path=run_log.path)

        if install:
            try:
                for entry in profile.entries:
                    if isinstance(entry, FallbackChain):
                        report.chains.append(self._resolver.resolve(entry))
                    else:
                        report.outcomes.append(self._runner.run(entry))
            except StepFailure as exc:
                report.aborted_at = exc.step
                report.error = str(exc)
                if isinstance(exc.outcome, ChainOutcome):
                    report.chains.append(exc.outcome)
                elif isinstance(exc.outcome, Outcome):
                    report.outcomes.append(exc.outcome)
                logger.debug("Sequence aborted at %s", exc.step)
                return report

        report.readiness = self.verify(profile.required_probes, profile.optional_probes)
        if not report.readiness.ready:
            failure = VerificationFailure(", ".join(report.readiness.missing))
            report.error = f"{failure} (see {run_log.path})"
        return report

    def verify(self, required: list[str], optional: list[str] | None = None) -> ReadinessReport:
        """Final end-to-end verification: probe the profile's tools, log a summary.

        Only the probes registered for this run (the profile's required
        and optional ones) are called.  Tools a profile does not install
        are left out of its readiness report.
        """
        run_log = self._context.run_log
        run_log.info("Verifying installed tools...")

        readiness = self._probes.readiness(required, optional or ())
        for result in readiness.results:
            if result.present:
                run_log.ok(f"{result.describe()} ... ready")
            elif result.tool in readiness.required:
                run_log.fail(f"{result.tool} ... NOT AVAILABLE")
            else:
                run_log.info(f"{result.tool} ... not available (optional)")

        if readiness.ready:
            ready = ", ".join(r.tool for r in readiness.results if r.present)
            run_log.ok(f"Ready: {ready}")
        else:
            run_log.fail(
                f"Not ready, missing: {', '.join(readiness.missing)} (see {run_log.path})"
            )
        return readiness
