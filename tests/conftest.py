"""Shared fixtures for the Ledger Integrity Engine tests."""

import pytest

from ledger_integrity.config import LedgerSettings
from ledger_integrity.models import Transaction

# 2024-06-01T00:00:00Z
NOW_MS = 1_717_200_000_000


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    """Default thresholds, independent of the environment."""
    return LedgerSettings(
        future_tolerance_ms=60 * 60 * 1000,
        max_age_years=10,
        ignore_category_name="Ignore",
        audit_keep_count=100,
        audit_queue_size=1000,
        quarantine_threshold=0.0,
    )


@pytest.fixture
def make_transaction():
    """Factory for valid transactions; override any field by keyword."""
    def _make(**overrides) -> Transaction:
        fields = {
            "timestamp": NOW_MS - 60_000,
            "amount": 250.0,
            "merchant": "SWIGGY",
            "created_at": NOW_MS - 30_000,
            "updated_at": NOW_MS - 30_000,
        }
        fields.update(overrides)
        return Transaction(**fields)
    return _make


@pytest.fixture
def now() -> int:
    """Fixed reference time for timestamp window checks."""
    return NOW_MS
