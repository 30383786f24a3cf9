"""Audit logging package."""

from ledger_integrity.audit.logger import (
    TransactionAuditLogger,
    detect_changes,
    serialize_value,
)

__all__ = ["TransactionAuditLogger", "detect_changes", "serialize_value"]
