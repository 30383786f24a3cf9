"""
Core Data Models for the Ledger Integrity Engine

These models define the shape of every record flowing through the engine.
They are designed to:
1. Carry persisted text faithfully (including values we don't recognise)
2. Be serializable for storage and logging
3. Leave consistency rules to the validator

DESIGN DECISION: The Transaction model enforces field TYPES only.
Ranges and cross-field rules (non-negative amount, score bounds,
approval/status consistency) belong to TransactionValidator, so a bad
record can still be loaded, inspected and reported instead of crashing
the read path.
"""

import time
from enum import Enum
from functools import partial
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def fingerprint_key(fingerprint: Optional[str]) -> Optional[str]:
    """
    The fingerprint as a lookup key, or None when absent.

    Whitespace-only text counts as absent: such records carry no
    fingerprint and can never collide.
    """
    if fingerprint is None or not fingerprint.strip():
        return None
    return fingerprint


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money movement."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class PaymentMode(str, Enum):
    """Instrument the payment went through."""
    UPI = "UPI"
    CARD = "CARD"
    CASH = "CASH"
    BANK = "BANK"


class SourceType(str, Enum):
    """Channel the transaction was captured from."""
    SMS = "SMS"
    NOTIFICATION = "NOTIFICATION"
    MANUAL = "MANUAL"
    EMAIL = "EMAIL"


class EntryType(str, Enum):
    """How the record came to exist."""
    AUTO_CAPTURED = "AUTO_CAPTURED"
    USER_ENTERED = "USER_ENTERED"
    USER_MODIFIED = "USER_MODIFIED"


class TransactionStatus(str, Enum):
    """
    Review status of a transaction.

    IGNORED is the soft-delete path. Records are never hard-deleted.
    """
    DETECTED = "DETECTED"    # Auto-captured but not reviewed
    CONFIRMED = "CONFIRMED"  # User accepted
    MODIFIED = "MODIFIED"    # User edited
    IGNORED = "IGNORED"      # Hidden from totals


class CategorySemantic(str, Enum):
    """
    Meaning of a category, driving downstream behavior.

    IGNORE categories are excluded from analytics.
    """
    PERSONAL = "PERSONAL"
    SHARED = "SHARED"
    SAVINGS = "SAVINGS"
    BUSINESS = "BUSINESS"
    IGNORE = "IGNORE"


# =============================================================================
# FALLIBLE ENUM PARSING
# =============================================================================

class UnknownVariant(BaseModel):
    """
    A persisted enum value that is not one of the declared variants.

    Enum columns are stored as text. When the text doesn't match,
    we keep it here instead of raising, and the validator reports it.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown_variant"] = "unknown_variant"
    enum_name: str = Field(..., description="Name of the expected enum")
    raw: str = Field(..., description="The unrecognised stored text")

    def __str__(self) -> str:
        return self.raw


def parse_enum(enum_cls: type[Enum], value: Any) -> Union[Enum, UnknownVariant]:
    """
    Parse stored text into a member of `enum_cls`.

    Never raises: unrecognised values come back as UnknownVariant.
    """
    if isinstance(value, (enum_cls, UnknownVariant)):
        return value
    if isinstance(value, dict) and value.get("kind") == "unknown_variant":
        return UnknownVariant.model_validate(value)
    raw = value.value if isinstance(value, Enum) else value
    try:
        return enum_cls(raw)
    except ValueError:
        return UnknownVariant(enum_name=enum_cls.__name__, raw=str(raw))


def enum_text(value: Union[Enum, UnknownVariant, None]) -> Optional[str]:
    """Persisted text for an enum field (or the raw text if unrecognised)."""
    if value is None:
        return None
    if isinstance(value, UnknownVariant):
        return value.raw
    return value.value


def _enum_field(enum_cls: type[Enum]):
    return Annotated[
        Union[enum_cls, UnknownVariant],
        BeforeValidator(partial(parse_enum, enum_cls)),
    ]


TransactionTypeField = _enum_field(TransactionType)
PaymentModeField = _enum_field(PaymentMode)
SourceTypeField = _enum_field(SourceType)
EntryTypeField = _enum_field(EntryType)
TransactionStatusField = _enum_field(TransactionStatus)


# =============================================================================
# CATEGORY MODELS
# =============================================================================

class Category(BaseModel):
    """
    A versioned category label.

    The id is stable and opaque: it never changes and is never reused,
    even when the category is renamed or deactivated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Stable category identifier"
    )
    name: str = Field(..., min_length=1, description="Current display name")
    semantic: CategorySemantic = CategorySemantic.PERSONAL
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    is_active: bool = True

    @classmethod
    def create(
        cls,
        name: str,
        semantic: CategorySemantic = CategorySemantic.PERSONAL,
    ) -> "Category":
        now = now_ms()
        return cls(
            name=name.strip(),
            semantic=semantic,
            created_at=now,
            updated_at=now,
        )

    def rename(self, name: str) -> "Category":
        """Return a copy with a new name. The id is preserved."""
        return self.model_copy(update={"name": name.strip(), "updated_at": now_ms()})


class LegacyCategory(BaseModel):
    """Free-text category from before categories were versioned."""
    kind: Literal["legacy"] = "legacy"
    name: str

    @property
    def display_name(self) -> str:
        return self.name


class VersionedCategory(BaseModel):
    """Reference to a Category plus the name it had when assigned."""
    kind: Literal["versioned"] = "versioned"
    category_id: Optional[str] = None
    name_snapshot: str

    @property
    def display_name(self) -> str:
        return self.name_snapshot


CategoryReference = Annotated[
    Union[LegacyCategory, VersionedCategory],
    Field(discriminator="kind"),
]


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    The canonical transaction record.

    A candidate has id == 0. The record store assigns the id on insert.
    """

    # Identity
    id: int = Field(default=0, description="Assigned on first persistence")
    timestamp: int = Field(..., description="When the transaction happened (epoch ms)")

    # Money
    amount: float = Field(..., description="Transaction amount")
    transaction_type: TransactionTypeField = TransactionType.DEBIT
    payment_mode: PaymentModeField = PaymentMode.UPI

    # Merchant
    merchant: str = Field(default="", description="Parser-assigned merchant")
    merchant_override: Optional[str] = Field(
        default=None,
        description="User-assigned name, takes precedence over merchant"
    )

    # Category (legacy text and versioned reference coexist)
    category: Optional[str] = None
    category_id: Optional[str] = None
    category_name_snapshot: Optional[str] = None

    account_type: Optional[str] = None

    # Provenance
    raw_text_hash: Optional[str] = Field(
        default=None,
        description="Fingerprint of the raw source text, used for deduplication"
    )
    source_type: SourceTypeField = SourceType.SMS
    entry_type: EntryTypeField = EntryType.AUTO_CAPTURED
    confidence_score: float = Field(default=1.0, description="Parser certainty (0-1)")
    sender_id: Optional[str] = None
    sender_trust_score: Optional[float] = None
    schema_version: int = 1
    parser_version: int = 1

    # Review state
    status: TransactionStatusField = TransactionStatus.DETECTED
    is_approved: bool = False

    # Extras
    is_recurring: bool = False
    project_id: Optional[str] = None
    notes: Optional[str] = None
    trip_id: Optional[int] = None

    # Timestamps
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)

    @property
    def is_persisted(self) -> bool:
        return self.id > 0

    @property
    def category_reference(self) -> Optional[Union[LegacyCategory, VersionedCategory]]:
        """
        Which category representation is authoritative.

        A name snapshot wins over the legacy text when both are present.
        """
        if self.category_name_snapshot and self.category_name_snapshot.strip():
            return VersionedCategory(
                category_id=self.category_id,
                name_snapshot=self.category_name_snapshot,
            )
        if self.category and self.category.strip():
            return LegacyCategory(name=self.category)
        return None

    @property
    def display_category(self) -> Optional[str]:
        reference = self.category_reference
        return reference.display_name if reference else None

    def with_category(self, category: Category) -> "Transaction":
        """Assign a versioned category, snapshotting its current name."""
        return self.model_copy(update={
            "category_id": category.id,
            "category_name_snapshot": category.name,
            "category": category.name,
        })


# =============================================================================
# MERCHANT DIRECTORY AND QUARANTINE MODELS
# =============================================================================

class MerchantAlias(BaseModel):
    """
    A managed merchant name.

    Maps the raw parsed merchant string to the name users want to see.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    original_name: str = Field(..., description="Raw merchant as parsed")
    display_name: str = Field(..., min_length=1, description="User-defined friendly name")
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)


class QuarantinedCandidate(BaseModel):
    """A low-confidence candidate held for manual review instead of the ledger."""

    id: int = 0
    raw_text_hash: Optional[str] = None
    parsed_amount: Optional[float] = None
    parsed_merchant: Optional[str] = None
    confidence_score: float
    sender_id: Optional[str] = None
    sender_trust_score: Optional[float] = None
    timestamp: int
    created_at: int = Field(default_factory=now_ms)

    @classmethod
    def from_candidate(cls, candidate: Transaction) -> "QuarantinedCandidate":
        return cls(
            raw_text_hash=candidate.raw_text_hash,
            parsed_amount=candidate.amount,
            parsed_merchant=candidate.merchant,
            confidence_score=candidate.confidence_score,
            sender_id=candidate.sender_id,
            sender_trust_score=candidate.sender_trust_score,
            timestamp=candidate.timestamp,
            created_at=candidate.created_at,
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationResult(BaseModel):
    """
    Result of checking one transaction (or a batch) against the invariants.

    Errors mean the record must not be trusted.
    Warnings are hints and never block acceptance.
    """

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class IntegrityReport(BaseModel):
    """Structured pass/fail summary of a full-ledger integrity check."""

    context: str = Field(..., description="What triggered the check (e.g. 'migration')")
    passed: bool
    total_count: int = Field(ge=0)
    invalid_count: int = Field(ge=0)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    checked_at: int = Field(default_factory=now_ms)

    def to_log_dict(self) -> dict:
        return {
            "context": self.context,
            "passed": self.passed,
            "total_count": self.total_count,
            "invalid_count": self.invalid_count,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
        }
