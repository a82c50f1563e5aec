"""
Step models — the static description of a provisioning run.

A ``Profile`` is an ordered list of entries.  Each entry is either a
plain ``Step`` or a ``FallbackChain`` of steps that all aim at the
same end-state.  Profiles are built once, before the run starts, and
are never modified while it executes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, model_validator

# An action receives the RunContext and returns an Outcome.
Action = Callable[[Any], Any]


class OnFailure(str, Enum):
    """What the Step Runner does when a step's action fails."""

    ABORT = "abort"
    CONTINUE = "continue"


class Step(BaseModel):
    """One unit of provisioning work.

    Invariant: ``action`` is idempotent or safe to re-run.  Running it
    a second time on a host that already reached the end-state must
    either no-op or re-assert the same state.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    action: Action
    on_failure: OnFailure = OnFailure.ABORT
    log_ref: str = ""

    @property
    def best_effort(self) -> bool:
        return self.on_failure is OnFailure.CONTINUE


class FallbackChain(BaseModel):
    """Ordered alternatives that achieve the same capability.

    The chain succeeds as soon as the ``capability`` probe passes after
    one of the members ran.  Members are tried strictly in order.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    capability: str
    members: list[Step]
    required: bool = True
    probe_first: bool = True         # accept an already-present capability
    log_ref: str = ""

    @model_validator(mode="after")
    def _has_members(self) -> FallbackChain:
        if not self.members:
            raise ValueError(f"Fallback chain '{self.name}' has no members")
        return self


class Profile(BaseModel):
    """A complete provisioning sequence for one kind of host."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    log_prefix: str = "install"
    entries: list[Step | FallbackChain] = Field(default_factory=list)
    required_probes: list[str] = Field(default_factory=list)
    optional_probes: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    @property
    def step_names(self) -> list[str]:
        return [entry.name for entry in self.entries]
