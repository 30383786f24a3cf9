"""
Tests for TransactionValidator

Covers the hard invariants (errors), the policy hints (warnings),
batch aggregation and the integrity check report.
"""

import math

import pytest

from ledger_integrity.models import TransactionStatus, UnknownVariant
from ledger_integrity.validation import InvariantViolationError, TransactionValidator

YEAR_MS = 365 * 24 * 60 * 60 * 1000


@pytest.fixture
def validator(ledger_settings) -> TransactionValidator:
    return TransactionValidator(ledger_settings)


class TestHardInvariants:
    """Errors: the record must not be trusted."""

    def test_valid_transaction(self, validator, make_transaction, now):
        """Test a well-formed pending transaction passes cleanly."""
        result = validator.validate(make_transaction(), now)
        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_negative_amount(self, validator, make_transaction, now):
        """Test a negative amount is an error."""
        result = validator.validate(make_transaction(amount=-10.0), now)
        assert result.is_valid is False
        assert "Transaction has negative amount: -10.0" in result.errors

    def test_zero_amount_is_valid(self, validator, make_transaction, now):
        """Test zero is allowed."""
        assert validator.validate(make_transaction(amount=0.0), now).is_valid

    @pytest.mark.parametrize("amount", [math.inf, math.nan])
    def test_non_finite_amount(self, validator, make_transaction, now, amount):
        """Test infinite and NaN amounts are errors."""
        result = validator.validate(make_transaction(amount=amount), now)
        assert result.is_valid is False
        assert any("not finite" in error for error in result.errors)

    @pytest.mark.parametrize("timestamp", [0, -1])
    def test_non_positive_timestamp(self, validator, make_transaction, now, timestamp):
        """Test a non-positive timestamp is an error with no window warnings."""
        result = validator.validate(make_transaction(timestamp=timestamp), now)
        assert result.is_valid is False
        assert f"Transaction has invalid timestamp: {timestamp}" in result.errors
        assert result.warnings == []

    def test_unknown_enum_value(self, validator, make_transaction, now):
        """Test an undeclared enum value is reported, not coerced."""
        transaction = make_transaction(payment_mode="CRYPTO")
        assert isinstance(transaction.payment_mode, UnknownVariant)

        result = validator.validate(transaction, now)
        assert result.is_valid is False
        assert "Transaction has invalid payment mode: CRYPTO" in result.errors

    def test_every_enum_field_is_checked(self, validator, make_transaction, now):
        """Test all five enum fields are covered."""
        transaction = make_transaction(
            transaction_type="REFUND",
            payment_mode="CRYPTO",
            source_type="FAX",
            entry_type="IMPORTED",
            status="ARCHIVED",
        )
        result = validator.validate(transaction, now)
        assert len([e for e in result.errors if e.startswith("Transaction has invalid ")]) == 5

    @pytest.mark.parametrize("score", [-0.1, 1.1, math.nan])
    def test_confidence_out_of_range(self, validator, make_transaction, now, score):
        """Test confidence outside [0, 1] (or NaN) is an error."""
        result = validator.validate(make_transaction(confidence_score=score), now)
        assert result.is_valid is False
        assert any("confidence score out of range" in error for error in result.errors)

    @pytest.mark.parametrize("score", [0.0, 1.0])
    def test_confidence_bounds_inclusive(self, validator, make_transaction, now, score):
        """Test 0 and 1 are both allowed."""
        assert validator.validate(make_transaction(confidence_score=score), now).is_valid

    def test_sender_trust_out_of_range(self, validator, make_transaction, now):
        """Test sender trust score outside [0, 1] is an error."""
        result = validator.validate(make_transaction(sender_trust_score=1.5), now)
        assert result.is_valid is False
        assert any("sender trust score out of range" in error for error in result.errors)

    def test_absent_sender_trust_is_valid(self, validator, make_transaction, now):
        """Test a missing sender trust score is fine."""
        assert validator.validate(make_transaction(sender_trust_score=None), now).is_valid

    def test_unapproved_and_confirmed(self, validator, make_transaction, now):
        """Test is_approved=False with status CONFIRMED is a contradiction."""
        result = validator.validate(
            make_transaction(is_approved=False, status=TransactionStatus.CONFIRMED),
            now,
        )
        assert result.is_valid is False
        assert any("simultaneously" in error for error in result.errors)

    def test_approved_and_confirmed(self, validator, make_transaction, now):
        """Test the consistent approved state."""
        result = validator.validate(
            make_transaction(
                is_approved=True,
                status=TransactionStatus.CONFIRMED,
                category="Food",
            ),
            now,
        )
        assert result.is_valid is True
        assert result.warnings == []

    @pytest.mark.parametrize("field", ["schema_version", "parser_version"])
    def test_version_below_one(self, validator, make_transaction, now, field):
        """Test schema and parser versions must be at least 1."""
        result = validator.validate(make_transaction(**{field: 0}), now)
        assert result.is_valid is False
        assert any(field.replace("_", " ") in error for error in result.errors)

    def test_created_after_updated(self, validator, make_transaction, now):
        """Test created_at may not be after updated_at."""
        result = validator.validate(
            make_transaction(created_at=now, updated_at=now - 1),
            now,
        )
        assert result.is_valid is False
        assert any("is after updated_at" in error for error in result.errors)


class TestPolicyWarnings:
    """Warnings: hints that never flip is_valid."""

    def test_future_timestamp(self, validator, make_transaction, now):
        """Test a timestamp beyond the tolerance warns."""
        result = validator.validate(make_transaction(timestamp=now + 2 * 60 * 60 * 1000), now)
        assert result.is_valid is True
        assert any("in the future" in warning for warning in result.warnings)

    def test_future_within_tolerance(self, validator, make_transaction, now):
        """Test a timestamp inside the tolerance doesn't warn."""
        result = validator.validate(make_transaction(timestamp=now + 30 * 60 * 1000), now)
        assert result.warnings == []

    def test_very_old_timestamp(self, validator, make_transaction, now):
        """Test a timestamp older than the max age warns."""
        result = validator.validate(make_transaction(timestamp=now - 11 * YEAR_MS), now)
        assert result.is_valid is True
        assert any("more than 10 years old" in warning for warning in result.warnings)

    def test_blank_merchant(self, validator, make_transaction, now):
        """Test a blank merchant warns on a non-ignored transaction."""
        result = validator.validate(make_transaction(merchant="   "), now)
        assert result.is_valid is True
        assert "Transaction has empty merchant name but is not ignored" in result.warnings

    def test_blank_merchant_in_ignore_category(self, validator, make_transaction, now):
        """Test the Ignore category suppresses the blank merchant warning."""
        result = validator.validate(make_transaction(merchant="", category="Ignore"), now)
        assert result.warnings == []

    def test_ignore_check_uses_snapshot(self, validator, make_transaction, now):
        """Test the snapshot name is what decides the Ignore category."""
        transaction = make_transaction(
            merchant="",
            category="Food",
            category_name_snapshot="Ignore",
        )
        assert validator.validate(transaction, now).warnings == []

    def test_approved_without_category(self, validator, make_transaction, now):
        """Test an approved transaction without a category warns."""
        result = validator.validate(
            make_transaction(is_approved=True, status=TransactionStatus.CONFIRMED),
            now,
        )
        assert result.is_valid is True
        assert "Approved transaction has no category assigned" in result.warnings


class TestValidatorProperties:
    """Determinism and idempotence."""

    def test_validation_is_idempotent(self, validator, make_transaction, now):
        """Test validating twice gives identical results."""
        transaction = make_transaction(amount=-1.0, merchant="")
        assert validator.validate(transaction, now) == validator.validate(transaction, now)

    def test_validation_does_not_modify_input(self, validator, make_transaction, now):
        """Test the validator never repairs the record."""
        transaction = make_transaction(amount=-1.0, confidence_score=3.0)
        before = transaction.model_dump()
        validator.validate(transaction, now)
        assert transaction.model_dump() == before


class TestBatchValidation:
    """Tests for validate_all and run_integrity_check."""

    def _batch(self, make_transaction, invalid_ids=(3, 5, 8)):
        return [
            make_transaction(id=i, amount=-1.0 if i in invalid_ids else 10.0)
            for i in range(1, 11)
        ]

    def test_validate_all_summary(self, validator, make_transaction, now):
        """Test 3 invalid of 10 gives the summary line first."""
        result = validator.validate_all(self._batch(make_transaction), now)
        assert result.is_valid is False
        assert result.errors[0] == "Found 3 invalid transactions out of 10 total"
        assert len(result.errors) == 4
        assert result.errors[1].startswith("Transaction ID 3: ")
        assert result.errors[2].startswith("Transaction ID 5: ")
        assert result.errors[3].startswith("Transaction ID 8: ")

    def test_validate_all_warnings_prefixed(self, validator, make_transaction, now):
        """Test warnings carry the transaction id prefix."""
        result = validator.validate_all([make_transaction(id=9, merchant="")], now)
        assert result.is_valid is True
        assert result.warnings == [
            "Transaction ID 9: Transaction has empty merchant name but is not ignored"
        ]

    def test_validate_all_empty(self, validator, now):
        """Test an empty batch is valid."""
        result = validator.validate_all([], now)
        assert result.is_valid is True
        assert result.errors == []

    def test_integrity_check_failed(self, validator, make_transaction, now):
        """Test the report counts invalid records."""
        report = validator.run_integrity_check(
            self._batch(make_transaction), context="migration", now_ms_value=now
        )
        assert report.passed is False
        assert report.context == "migration"
        assert report.total_count == 10
        assert report.invalid_count == 3

    def test_integrity_check_passed(self, validator, make_transaction, now):
        """Test a clean ledger passes."""
        report = validator.run_integrity_check(
            self._batch(make_transaction, invalid_ids=()), now_ms_value=now
        )
        assert report.passed is True
        assert report.invalid_count == 0
        assert report.context == "unknown"

    def test_summary_text(self, validator, make_transaction, now):
        """Test the operator summary mentions the counts."""
        report = validator.run_integrity_check(
            self._batch(make_transaction), context="import", now_ms_value=now
        )
        summary = validator.get_summary(report)
        assert "FAILED (import)" in summary
        assert "3 of 10" in summary

    def test_integrity_check_does_not_modify_records(self, validator, make_transaction, now):
        """Test the check reports only."""
        batch = self._batch(make_transaction)
        before = [t.model_dump() for t in batch]
        validator.run_integrity_check(batch, now_ms_value=now)
        assert [t.model_dump() for t in batch] == before


class TestInvariantViolationError:
    """Tests for the raised error on the mutation path."""

    def test_error_carries_result(self, validator, make_transaction, now):
        """Test the exception exposes the failed result."""
        result = validator.validate(make_transaction(amount=-1.0), now)
        error = InvariantViolationError(result, transaction_id=4)
        assert error.result is result
        assert error.transaction_id == 4
        assert "negative amount" in str(error)
