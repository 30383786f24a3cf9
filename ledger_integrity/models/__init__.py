"""
Data Models Package

This package contains all Pydantic models used by the Ledger Integrity Engine.
All data flowing through the engine must conform to these schemas.
"""

from ledger_integrity.models.transaction import (
    Category,
    CategoryReference,
    CategorySemantic,
    EntryType,
    IntegrityReport,
    LegacyCategory,
    MerchantAlias,
    PaymentMode,
    QuarantinedCandidate,
    SourceType,
    Transaction,
    TransactionStatus,
    TransactionType,
    UnknownVariant,
    ValidationResult,
    VersionedCategory,
    enum_text,
    fingerprint_key,
    now_ms,
    parse_enum,
)
from ledger_integrity.models.audit import (
    TRACKED_FIELDS,
    ChangeLogEntry,
    ChangeSource,
    FieldChange,
)

__all__ = [
    # Transaction models
    "Category",
    "CategoryReference",
    "CategorySemantic",
    "EntryType",
    "IntegrityReport",
    "LegacyCategory",
    "MerchantAlias",
    "PaymentMode",
    "QuarantinedCandidate",
    "SourceType",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "UnknownVariant",
    "ValidationResult",
    "VersionedCategory",
    "enum_text",
    "fingerprint_key",
    "now_ms",
    "parse_enum",
    # Audit models
    "TRACKED_FIELDS",
    "ChangeLogEntry",
    "ChangeSource",
    "FieldChange",
]
