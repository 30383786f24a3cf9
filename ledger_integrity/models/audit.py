"""
Audit Models for the Ledger Integrity Engine

Every accepted mutation of a transaction is explained by change log
entries: one row per field that changed, with the old and new value
serialized to text and the kind of actor that caused it.

DESIGN DECISION: Change logs are append-only. Individual entries are
never modified or deleted; the only removal is the bulk retention prune
that keeps the most recent N entries per transaction.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ledger_integrity.models.transaction import now_ms


class ChangeSource(str, Enum):
    """What kind of actor caused a mutation."""
    USER_EDIT = "USER_EDIT"                       # User manually edited transaction
    AUTO_CLASSIFICATION = "AUTO_CLASSIFICATION"   # Automatic in-app classification
    BULK_UPDATE = "BULK_UPDATE"                   # Bulk operation
    MIGRATION = "MIGRATION"                       # Database migration
    PARSER_UPDATE = "PARSER_UPDATE"               # Parser (re-)processed transaction
    SYSTEM_CORRECTION = "SYSTEM_CORRECTION"       # System fixed invalid data


# Fields compared when diffing two transaction states, in logging order.
# Extending this list changes what the audit trail means.
TRACKED_FIELDS: tuple[str, ...] = (
    "amount",
    "merchant",
    "category",
    "transaction_type",
    "payment_mode",
    "status",
    "is_approved",
    "notes",
    "confidence_score",
)


class FieldChange(BaseModel):
    """One field whose value differs between two transaction states."""
    model_config = ConfigDict(frozen=True)

    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


class ChangeLogEntry(BaseModel):
    """
    A single persisted field mutation.

    References the transaction by id; it doesn't own it.
    """

    entry_id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry identifier"
    )
    transaction_id: int = Field(..., description="Transaction this change belongs to")
    field: str = Field(..., min_length=1, description="Name of the changed field")
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: int = Field(
        default_factory=now_ms,
        description="When the change was recorded (epoch ms)"
    )
    source: ChangeSource

    @classmethod
    def from_change(
        cls,
        transaction_id: int,
        change: FieldChange,
        source: ChangeSource,
        changed_at: Optional[int] = None,
    ) -> "ChangeLogEntry":
        return cls(
            transaction_id=transaction_id,
            field=change.field,
            old_value=change.old_value,
            new_value=change.new_value,
            changed_at=changed_at if changed_at is not None else now_ms(),
            source=source,
        )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "entry_id": str(self.entry_id),
            "transaction_id": self.transaction_id,
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "changed_at": self.changed_at,
            "source": self.source.value,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [entry_id, transaction_id, field, old_value, new_value, changed_at, source]
        """
        return [
            str(self.entry_id),
            str(self.transaction_id),
            self.field,
            self.old_value if self.old_value is not None else "",
            self.new_value if self.new_value is not None else "",
            str(self.changed_at),
            self.source.value,
        ]
