"""
Domain models — Pydantic types for the provisioning sequencer.

All models are re-exported here for convenient access:

    from hostprep.core.models import Step, FallbackChain, Outcome
"""

from hostprep.core.models.outcome import (
    ChainAttempt,
    ChainOutcome,
    Outcome,
    ReadinessReport,
    RunRecord,
    VerificationResult,
)
from hostprep.core.models.step import Action, FallbackChain, OnFailure, Profile, Step

__all__ = [
    # step.py
    "Action",
    # outcome.py
    "ChainAttempt",
    "ChainOutcome",
    "FallbackChain",
    "OnFailure",
    "Outcome",
    "Profile",
    "ReadinessReport",
    "RunRecord",
    "Step",
    "VerificationResult",
]
