"""Exceptions raised by the consequence ledger."""
from __future__ import annotations


class LedgerError(RuntimeError):
    """Base class for ledger failures surfaced to the orchestrating layer."""


class ConsequenceNotFoundError(LedgerError, KeyError):
    """Raised when a consequence or market id is unknown."""

    def __init__(self, consequence_id: str) -> None:
        super().__init__(f"Consequence {consequence_id} not found")
        self.consequence_id = consequence_id

    def __str__(self) -> str:
        return f"Consequence {self.consequence_id} not found"


class InvalidStateError(LedgerError):
    """Raised when an operation does not apply to the consequence's status."""


class AlreadyResolvedError(InvalidStateError):
    """Raised when a resolved consequence is escalated, resolved or bet on."""

    def __init__(self, consequence_id: str) -> None:
        super().__init__(f"Consequence {consequence_id} is already resolved")
        self.consequence_id = consequence_id


class InvalidInputError(LedgerError, ValueError):
    """Raised for malformed bets or chapter ordering."""


__all__ = [
    "AlreadyResolvedError",
    "ConsequenceNotFoundError",
    "InvalidInputError",
    "InvalidStateError",
    "LedgerError",
]
