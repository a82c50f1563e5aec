"""
Error taxonomy — the exceptions a provisioning run can end with.

Adapters never raise for a failed command; they return a
``CommandResult``.  These exceptions are reserved for conditions that
change the control flow of the whole run:

    PrivilegeError       not running as root, nothing was attempted
    RunLogError          the run log could not be created, nothing was attempted
    StepFailure          a required step or chain failed, the run aborts
    VerificationFailure  a capability probe did not pass after all attempts
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class HostprepError(Exception):
    """Base class for every error raised by hostprep."""


class PrivilegeError(HostprepError):
    """Raised when the process lacks the elevation it needs."""


class RunLogError(HostprepError):
    """Raised when the log file for a run cannot be created."""


class VerificationFailure(HostprepError):
    """Raised when a capability is still absent after every attempt."""

    def __init__(self, tool: str, detail: str = "") -> None:
        self.tool = tool
        self.detail = detail
        message = f"{tool} is not available"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StepFailure(HostprepError):
    """Raised when an abort-class step fails.

    Carries the step name, the underlying error and the run log
    location so the caller can point the operator at the diagnostics.
    """

    def __init__(
        self,
        step: str,
        error: str,
        log_path: Path | None = None,
        *,
        attempt: str | None = None,
        outcome: Any = None,
    ) -> None:
        self.step = step
        self.error = error
        self.log_path = log_path
        self.attempt = attempt
        self.outcome = outcome
        super().__init__(self._format())

    def _format(self) -> str:
        where = self.step if not self.attempt else f"{self.step} [{self.attempt}]"
        message = f"{where} failed: {self.error}"
        if self.log_path is not None:
            message = f"{message} (see {self.log_path})"
        return message
