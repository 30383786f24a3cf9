"""Duplicate detection package."""

from ledger_integrity.duplicates.detector import DuplicateDetector
from ledger_integrity.duplicates.fingerprint import (
    compute_fingerprint,
    normalize_for_hash,
)

__all__ = ["DuplicateDetector", "compute_fingerprint", "normalize_for_hash"]
