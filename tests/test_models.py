"""
Tests for the Ledger Integrity Engine models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests (use fakes)
"""

import pytest

from ledger_integrity.models import (
    TRACKED_FIELDS,
    Category,
    ChangeLogEntry,
    ChangeSource,
    FieldChange,
    IntegrityReport,
    LegacyCategory,
    PaymentMode,
    QuarantinedCandidate,
    Transaction,
    TransactionStatus,
    TransactionType,
    UnknownVariant,
    ValidationResult,
    VersionedCategory,
    enum_text,
    fingerprint_key,
    parse_enum,
)


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_defaults(self):
        """Test a minimal transaction gets the pending defaults."""
        transaction = Transaction(timestamp=1000, amount=10.0)
        assert transaction.id == 0
        assert transaction.is_persisted is False
        assert transaction.status == TransactionStatus.DETECTED
        assert transaction.is_approved is False
        assert transaction.transaction_type == TransactionType.DEBIT
        assert transaction.schema_version == 1

    def test_enum_fields_parse_stored_text(self):
        """Test enum columns accept their persisted text form."""
        transaction = Transaction(
            timestamp=1000,
            amount=10.0,
            transaction_type="CREDIT",
            payment_mode="CARD",
            status="CONFIRMED",
        )
        assert transaction.transaction_type == TransactionType.CREDIT
        assert transaction.payment_mode == PaymentMode.CARD
        assert transaction.status == TransactionStatus.CONFIRMED

    def test_unknown_enum_text_is_kept(self):
        """Test an undeclared value loads as UnknownVariant instead of raising."""
        transaction = Transaction(timestamp=1000, amount=10.0, payment_mode="CRYPTO")
        assert isinstance(transaction.payment_mode, UnknownVariant)
        assert transaction.payment_mode.raw == "CRYPTO"
        assert transaction.payment_mode.enum_name == "PaymentMode"
        assert str(transaction.payment_mode) == "CRYPTO"

    def test_model_does_not_enforce_ranges(self):
        """Test out-of-range values load so the validator can report them."""
        transaction = Transaction(timestamp=-1, amount=-5.0, confidence_score=2.0)
        assert transaction.amount == -5.0
        assert transaction.confidence_score == 2.0

    def test_snapshot_wins_over_legacy_category(self):
        """Test the versioned name snapshot takes precedence."""
        transaction = Transaction(
            timestamp=1000,
            amount=10.0,
            category="Food",
            category_id="cat-1",
            category_name_snapshot="Dining",
        )
        reference = transaction.category_reference
        assert isinstance(reference, VersionedCategory)
        assert reference.category_id == "cat-1"
        assert transaction.display_category == "Dining"

    def test_legacy_category_used_without_snapshot(self):
        """Test free-text category is used when no snapshot exists."""
        transaction = Transaction(timestamp=1000, amount=10.0, category="Food")
        assert isinstance(transaction.category_reference, LegacyCategory)
        assert transaction.display_category == "Food"

    def test_blank_category_means_none(self):
        """Test whitespace-only category text counts as absent."""
        transaction = Transaction(timestamp=1000, amount=10.0, category="   ")
        assert transaction.category_reference is None
        assert transaction.display_category is None

    def test_with_category_snapshots_name(self):
        """Test assigning a Category stores its id and current name."""
        category = Category.create("Groceries")
        transaction = Transaction(timestamp=1000, amount=10.0).with_category(category)
        assert transaction.category_id == category.id
        assert transaction.category_name_snapshot == "Groceries"

        # Renaming the category later doesn't rewrite the snapshot
        renamed = category.rename("Food & Groceries")
        assert renamed.id == category.id
        assert transaction.display_category == "Groceries"


class TestEnumParsing:
    """Tests for fallible enum parsing."""

    def test_parse_known_value(self):
        """Test a declared value parses to the member."""
        assert parse_enum(TransactionType, "DEBIT") is TransactionType.DEBIT

    def test_parse_unknown_value(self):
        """Test an undeclared value never raises."""
        parsed = parse_enum(TransactionType, "REFUND")
        assert isinstance(parsed, UnknownVariant)
        assert parsed.raw == "REFUND"

    def test_enum_text(self):
        """Test persisted text for members, unknown values and None."""
        assert enum_text(TransactionStatus.IGNORED) == "IGNORED"
        assert enum_text(UnknownVariant(enum_name="TransactionStatus", raw="ARCHIVED")) == "ARCHIVED"
        assert enum_text(None) is None

    def test_unknown_variant_survives_round_trip(self):
        """Test a dumped UnknownVariant validates back unchanged."""
        transaction = Transaction(timestamp=1000, amount=10.0, status="ARCHIVED")
        restored = Transaction.model_validate(transaction.model_dump())
        assert restored.status == transaction.status


class TestFingerprintKey:
    """Tests for the fingerprint lookup key."""

    def test_absent_and_blank(self):
        """Test None and whitespace-only fingerprints have no key."""
        assert fingerprint_key(None) is None
        assert fingerprint_key("") is None
        assert fingerprint_key(" \t ") is None

    def test_present(self):
        """Test a real fingerprint is its own key."""
        assert fingerprint_key("abc") == "abc"


class TestCategoryModel:
    """Tests for the Category model."""

    def test_category_ids_are_unique(self):
        """Test every category gets its own stable id."""
        first = Category.create("Travel")
        second = Category.create("Travel")
        assert first.id != second.id

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        category = Category(name="  Rent  ")
        assert category.name == "Rent"

    def test_category_rejects_empty_name(self):
        """Test that an empty name is rejected."""
        with pytest.raises(ValueError):
            Category(name="")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_tracked_fields(self):
        """Test the diffed field set."""
        assert TRACKED_FIELDS == (
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

    def test_change_log_entry_from_change(self):
        """Test building an entry from a FieldChange."""
        change = FieldChange(field="amount", old_value="100.0", new_value="120.0")
        entry = ChangeLogEntry.from_change(7, change, ChangeSource.USER_EDIT, changed_at=5000)
        assert entry.transaction_id == 7
        assert entry.field == "amount"
        assert entry.old_value == "100.0"
        assert entry.new_value == "120.0"
        assert entry.changed_at == 5000

    def test_change_log_entry_to_log_dict(self):
        """Test conversion to log dictionary."""
        entry = ChangeLogEntry(
            transaction_id=3,
            field="status",
            old_value="DETECTED",
            new_value="CONFIRMED",
            source=ChangeSource.USER_EDIT,
        )
        log_dict = entry.to_log_dict()
        assert "entry_id" in log_dict
        assert log_dict["source"] == "USER_EDIT"
        assert log_dict["transaction_id"] == 3

    def test_change_log_entry_to_sheets_row(self):
        """Test conversion to sheets row."""
        entry = ChangeLogEntry(
            transaction_id=3,
            field="notes",
            old_value=None,
            new_value="dinner",
            changed_at=42,
            source=ChangeSource.PARSER_UPDATE,
        )
        row = entry.to_sheets_row()
        assert len(row) == 7  # Expected number of columns
        assert row[1] == "3"
        assert row[3] == ""  # None serializes as empty cell
        assert row[5] == "42"
        assert row[6] == "PARSER_UPDATE"

    def test_change_sources(self):
        """Test all change sources exist."""
        expected = [
            "USER_EDIT", "AUTO_CLASSIFICATION", "BULK_UPDATE",
            "MIGRATION", "PARSER_UPDATE", "SYSTEM_CORRECTION",
        ]
        for source in expected:
            assert ChangeSource(source) is not None


class TestResultModels:
    """Tests for ValidationResult, IntegrityReport and QuarantinedCandidate."""

    def test_validation_result_error_count(self):
        """Test error_count property."""
        result = ValidationResult(is_valid=False, errors=["a", "b"], warnings=["c"])
        assert result.error_count == 2

    def test_integrity_report_log_dict(self):
        """Test the report summary for structured logging."""
        report = IntegrityReport(
            context="migration",
            passed=False,
            total_count=10,
            invalid_count=3,
            errors=["x"] * 4,
            warnings=["y"],
        )
        log_dict = report.to_log_dict()
        assert log_dict["context"] == "migration"
        assert log_dict["invalid_count"] == 3
        assert log_dict["error_count"] == 4
        assert log_dict["warning_count"] == 1

    def test_quarantined_candidate_from_candidate(self):
        """Test a candidate is copied into the quarantine shape."""
        candidate = Transaction(
            timestamp=1000,
            amount=99.0,
            merchant="AMZN",
            raw_text_hash="abc",
            confidence_score=0.4,
            sender_id="VM-HDFCBK",
        )
        quarantined = QuarantinedCandidate.from_candidate(candidate)
        assert quarantined.parsed_amount == 99.0
        assert quarantined.parsed_merchant == "AMZN"
        assert quarantined.raw_text_hash == "abc"
        assert quarantined.confidence_score == 0.4
        assert quarantined.sender_id == "VM-HDFCBK"


class TestPackageMetadata:
    """Tests for the package attributes."""

    def test_version_only(self):
        """Test the package exposes its version and no author line."""
        import ledger_integrity

        assert ledger_integrity.__version__ == "1.0.0"
        assert not hasattr(ledger_integrity, "__author__")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
