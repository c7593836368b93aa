"""Narrative consequence ledger for serialized, choice-driven stories."""

from .errors import (
    AlreadyResolvedError,
    ConsequenceNotFoundError,
    InvalidInputError,
    InvalidStateError,
    LedgerError,
)
from .models import Consequence, ConsequenceBet, ConsequenceStatus, House, ImpactVector
from .orchestrator import LivingStoryOrchestrator

__all__ = [
    "AlreadyResolvedError",
    "Consequence",
    "ConsequenceBet",
    "ConsequenceNotFoundError",
    "ConsequenceStatus",
    "House",
    "ImpactVector",
    "InvalidInputError",
    "InvalidStateError",
    "LedgerError",
    "LivingStoryOrchestrator",
]
