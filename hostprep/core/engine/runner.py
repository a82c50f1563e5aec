"""
Step Runner — executes one step and applies its failure policy.

    run(step)      execute, log, and raise StepFailure for abort-class steps
    execute(step)  execute and log only; used by the Fallback Resolver,
                   which judges members by probe instead of exit status

Every call appends at least one record to the RunLog before returning.
"""

from __future__ import annotations

import logging

from hostprep.core.context import RunContext
from hostprep.core.errors import StepFailure
from hostprep.core.models.outcome import Outcome
from hostprep.core.models.step import OnFailure, Step

logger = logging.getLogger(__name__)


class StepRunner:
    """Runs steps against a RunContext."""

    def __init__(self, context: RunContext) -> None:
        self._context = context

    @property
    def context(self) -> RunContext:
        return self._context

    def execute(self, step: Step) -> Outcome:
        """Run the step's action and log the result. Never raises for action errors."""
        run_log = self._context.run_log
        run_log.info(f"{step.name}...")

        try:
            outcome = step.action(self._context)
        except Exception as e:
            # Actions report failure through Outcome; anything raised is a bug
            # in the action, recorded as a failed attempt.
            logger.exception("Step '%s' raised", step.name)
            outcome = Outcome.failure(f"{type(e).__name__}: {e}")

        if not isinstance(outcome, Outcome):
            outcome = Outcome.failure(
                f"Step action returned {type(outcome).__name__}, expected Outcome"
            )

        outcome = outcome.model_copy(update={
            "step": step.name,
            "log_ref": step.log_ref or str(run_log.path),
        })

        if outcome.detail:
            logger.debug("Step '%s' diagnostics:\n%s", step.name, outcome.detail)

        if outcome.skipped:
            run_log.ok(f"{step.name} ... already satisfied ({outcome.message})")
        elif outcome.ok:
            suffix = f" ({outcome.message})" if outcome.message else ""
            run_log.ok(f"{step.name} ... SUCCESS{suffix}")
        elif step.on_failure is OnFailure.CONTINUE:
            run_log.info(f"{step.name} ... failed, continuing: {outcome.error}")
        else:
            run_log.info(f"{step.name} ... failed: {outcome.error}")

        return outcome

    def run(self, step: Step) -> Outcome:
        """Execute a step and enforce its ``on_failure`` policy.

        Raises:
            StepFailure: If the step failed and ``on_failure`` is ABORT.
        """
        outcome = self.execute(step)
        if outcome.ok or step.on_failure is OnFailure.CONTINUE:
            return outcome

        run_log = self._context.run_log
        run_log.fail(f"{step.name} ... FAILED (see {run_log.path})")
        raise StepFailure(
            step.name,
            outcome.error or "unknown error",
            run_log.path,
            outcome=outcome,
        )
