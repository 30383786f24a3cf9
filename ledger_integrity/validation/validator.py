"""
Transaction Invariant Validation

DESIGN DECISION: Validation is a fixed rule set with two outcomes:

ERRORS - the record must not be trusted:
- Negative or non-finite amount
- Non-positive timestamp
- Enum fields holding an undeclared value
- Confidence / sender trust score outside [0, 1]
- Unapproved and CONFIRMED at the same time
- Schema or parser version below 1
- created_at after updated_at

WARNINGS - policy hints that never block acceptance:
- Timestamp far in the future or far in the past
- Blank merchant on a transaction that isn't ignored
- Approved transaction with no category

The validator is pure: no I/O, no shared mutable state. The same rule
set runs inline on the write path and again as a batch integrity check
after imports and migrations, and must give identical answers in both.

IMPORTANT: Validation NEVER silently fixes issues. It only reports them.
"""

import math
from enum import Enum
from typing import Iterable, Optional

import structlog

from ledger_integrity.config import LedgerSettings, get_settings
from ledger_integrity.models.transaction import (
    EntryType,
    IntegrityReport,
    PaymentMode,
    SourceType,
    Transaction,
    TransactionStatus,
    TransactionType,
    ValidationResult,
    now_ms,
)


class InvariantViolationError(Exception):
    """A mutation would store a transaction that breaks a hard invariant."""

    def __init__(self, result: ValidationResult, transaction_id: Optional[int] = None):
        self.result = result
        self.transaction_id = transaction_id
        details = "; ".join(result.errors)
        super().__init__(f"Transaction {transaction_id} violates invariants: {details}")


_ENUM_CHECKS: tuple[tuple[str, type[Enum], str], ...] = (
    ("transaction_type", TransactionType, "transaction type"),
    ("payment_mode", PaymentMode, "payment mode"),
    ("source_type", SourceType, "source type"),
    ("entry_type", EntryType, "entry type"),
    ("status", TransactionStatus, "status"),
)


def _in_unit_range(score: float) -> bool:
    # Written this way so NaN fails too
    return 0.0 <= score <= 1.0


class TransactionValidator:
    """
    Checks transactions against the ledger invariants.

    Holds only configuration thresholds, so one instance can be shared
    across any number of concurrent tasks.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger
        self._logger = structlog.get_logger()

    def validate(
        self,
        transaction: Transaction,
        now_ms_value: Optional[int] = None,
    ) -> ValidationResult:
        """
        Validate a single transaction against all invariants.

        Args:
            transaction: The record to check
            now_ms_value: Reference "now" for the timestamp window checks.
                          Defaults to the current time.
        """
        errors: list[str] = []
        warnings: list[str] = []
        now = now_ms_value if now_ms_value is not None else now_ms()

        # Amount
        if transaction.amount < 0:
            errors.append(f"Transaction has negative amount: {transaction.amount}")
        if not math.isfinite(transaction.amount):
            errors.append(f"Transaction amount is not finite: {transaction.amount}")

        # Timestamp
        if transaction.timestamp <= 0:
            errors.append(f"Transaction has invalid timestamp: {transaction.timestamp}")
        else:
            if transaction.timestamp > now + self._settings.future_tolerance_ms:
                hours = self._settings.future_tolerance_ms / (60 * 60 * 1000)
                warnings.append(
                    f"Transaction timestamp is more than {hours:g} hour(s) in the future"
                )
            if transaction.timestamp < now - self._settings.max_age_ms:
                warnings.append(
                    f"Transaction timestamp is more than "
                    f"{self._settings.max_age_years} years old"
                )

        # Enum fields
        for field_name, enum_cls, label in _ENUM_CHECKS:
            value = getattr(transaction, field_name)
            if not isinstance(value, enum_cls):
                errors.append(f"Transaction has invalid {label}: {value}")

        # Scores
        if not _in_unit_range(transaction.confidence_score):
            errors.append(
                f"Transaction confidence score out of range [0.0, 1.0]: "
                f"{transaction.confidence_score}"
            )
        if transaction.sender_trust_score is not None and not _in_unit_range(
            transaction.sender_trust_score
        ):
            errors.append(
                f"Transaction sender trust score out of range [0.0, 1.0]: "
                f"{transaction.sender_trust_score}"
            )

        # Approval vs status
        if not transaction.is_approved and transaction.status == TransactionStatus.CONFIRMED:
            errors.append(
                "Transaction cannot be unapproved (is_approved=False) and "
                "confirmed (status=CONFIRMED) simultaneously"
            )

        # Merchant and category policy
        category = transaction.display_category
        if not transaction.merchant.strip() and category != self._settings.ignore_category_name:
            warnings.append("Transaction has empty merchant name but is not ignored")
        if transaction.is_approved and not category:
            warnings.append("Approved transaction has no category assigned")

        # Versions
        if transaction.schema_version < 1:
            errors.append(
                f"Transaction has invalid schema version: {transaction.schema_version}"
            )
        if transaction.parser_version < 1:
            errors.append(
                f"Transaction has invalid parser version: {transaction.parser_version}"
            )

        # Record timestamps
        if transaction.created_at > transaction.updated_at:
            errors.append(
                f"Transaction created_at ({transaction.created_at}) is after "
                f"updated_at ({transaction.updated_at})"
            )

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
        )

    def validate_all(
        self,
        transactions: Iterable[Transaction],
        now_ms_value: Optional[int] = None,
    ) -> ValidationResult:
        """
        Validate many transactions and return the aggregate result.

        Every message is prefixed with the originating transaction id.
        When any record is invalid, a summary line comes first.
        """
        result, _, _ = self._validate_batch(transactions, now_ms_value)
        return result

    def _validate_batch(
        self,
        transactions: Iterable[Transaction],
        now_ms_value: Optional[int],
    ) -> tuple[ValidationResult, int, int]:
        """Returns (aggregate result, invalid count, total count)."""
        now = now_ms_value if now_ms_value is not None else now_ms()
        all_errors: list[str] = []
        all_warnings: list[str] = []
        invalid_count = 0
        total = 0

        for transaction in transactions:
            total += 1
            result = self.validate(transaction, now)
            prefix = f"Transaction ID {transaction.id}: "
            if not result.is_valid:
                invalid_count += 1
                all_errors.extend(prefix + error for error in result.errors)
            all_warnings.extend(prefix + warning for warning in result.warnings)

        if invalid_count > 0:
            all_errors.insert(
                0,
                f"Found {invalid_count} invalid transactions out of {total} total",
            )

        aggregate = ValidationResult(
            is_valid=invalid_count == 0,
            errors=all_errors,
            warnings=all_warnings,
        )
        return aggregate, invalid_count, total

    def run_integrity_check(
        self,
        transactions: Iterable[Transaction],
        context: str = "unknown",
        now_ms_value: Optional[int] = None,
    ) -> IntegrityReport:
        """
        Validate a full record set and log the verdict.

        Should be called after migrations, bulk edits and app upgrades.
        Reports only. It never repairs data.
        """
        result, invalid_count, total = self._validate_batch(transactions, now_ms_value)

        report = IntegrityReport(
            context=context,
            passed=result.is_valid,
            total_count=total,
            invalid_count=invalid_count,
            errors=result.errors,
            warnings=result.warnings,
        )

        if report.passed:
            if report.warnings:
                self._logger.warning(
                    "integrity_check_passed_with_warnings",
                    warnings=report.warnings,
                    **report.to_log_dict(),
                )
            else:
                self._logger.info("integrity_check_passed", **report.to_log_dict())
        else:
            self._logger.error(
                "integrity_check_failed",
                errors=report.errors,
                warnings=report.warnings,
                **report.to_log_dict(),
            )

        return report

    def get_summary(self, report: IntegrityReport) -> str:
        """
        Human-readable summary of an integrity report for operators.
        """
        if report.passed and not report.warnings:
            return (
                f"Integrity check passed ({report.context}): "
                f"all {report.total_count} transactions are valid"
            )

        lines = []
        if report.passed:
            lines.append(
                f"Integrity check passed ({report.context}) with "
                f"{len(report.warnings)} warnings:"
            )
        else:
            lines.append(
                f"Integrity check FAILED ({report.context}): "
                f"{report.invalid_count} of {report.total_count} transactions invalid"
            )
            for error in report.errors:
                lines.append(f"  - {error}")
            if report.warnings:
                lines.append(f"Also found {len(report.warnings)} warnings:")

        for warning in report.warnings:
            lines.append(f"  - {warning}")

        return "\n".join(lines)
