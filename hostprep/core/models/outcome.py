"""
Outcome models — what steps, chains and probes report back.

Every action returns an ``Outcome``; the Step Runner inspects it and
decides whether the run continues.  Probes return a
``VerificationResult`` and never touch host state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Outcome(BaseModel):
    """Result of executing one step action.

    Actions NEVER raise for expected failures — a failed command or
    download is captured here with ``ok=False``.
    """

    ok: bool
    message: str = ""
    error: str | None = None
    step: str = ""
    log_ref: str = ""
    skipped: bool = False
    detail: str = ""                 # tail of captured stderr, if any
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: str = "", **kwargs: Any) -> Outcome:
        """Create a success outcome."""
        return cls(ok=True, message=message, **kwargs)

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> Outcome:
        """Create a failure outcome."""
        return cls(ok=False, error=error, **kwargs)

    @classmethod
    def skip(cls, reason: str, **kwargs: Any) -> Outcome:
        """Create an outcome for a step whose end-state already holds."""
        return cls(ok=True, message=reason, skipped=True, **kwargs)


class VerificationResult(BaseModel):
    """Read-only answer to "is this capability present and working"."""

    tool: str
    present: bool
    version_string: str | None = None
    surface: str | None = None       # command that answered, e.g. "docker compose"
    checked_at: str = Field(default_factory=_now_iso)

    def describe(self) -> str:
        if not self.present:
            return f"{self.tool}: not available"
        version = self.version_string or "unknown version"
        via = f" via {self.surface}" if self.surface and self.surface != self.tool else ""
        return f"{self.tool}: {version}{via}"


class ChainAttempt(BaseModel):
    """One member attempt inside a fallback chain."""

    member: str
    outcome: Outcome
    probe: VerificationResult


class ChainOutcome(BaseModel):
    """Result of resolving a fallback chain."""

    chain: str
    capability: str
    ok: bool
    method_used: str | None = None
    attempts: list[ChainAttempt] = Field(default_factory=list)
    result: VerificationResult | None = None


class ReadinessReport(BaseModel):
    """Aggregate of every probe run in the final verification phase."""

    results: list[VerificationResult] = Field(default_factory=list)
    required: list[str] = Field(default_factory=list)

    @property
    def missing(self) -> list[str]:
        present = {r.tool for r in self.results if r.present}
        return [tool for tool in self.required if tool not in present]

    @property
    def ready(self) -> bool:
        return not self.missing

    def to_dict(self) -> dict[str, Any]:
        return {
            "ready": self.ready,
            "missing": self.missing,
            "results": [
                {
                    **r.model_dump(mode="json", exclude={"checked_at"}),
                    "required": r.tool in self.required,
                }
                for r in self.results
            ],
        }


class RunRecord(BaseModel):
    """One line of the run log."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(default_factory=_now_iso)
    level: Literal["info", "ok", "warn", "fail"] = "info"
    message: str
