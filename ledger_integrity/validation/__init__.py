"""Invariant validation package."""

from ledger_integrity.validation.validator import (
    InvariantViolationError,
    TransactionValidator,
)

__all__ = ["InvariantViolationError", "TransactionValidator"]
