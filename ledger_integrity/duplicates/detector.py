"""
Duplicate Detector

Answers one question: has a transaction with this content fingerprint
already been accepted? A "yes" is not an error. Overlapping capture
sources make duplicates an expected, frequent outcome, and the caller
simply discards the candidate.

The detector also knows about fingerprints the user explicitly
dismissed, so an ignored message never comes back.

Neither check has side effects. Atomicity of check-then-insert is the
orchestrator's job (see IntegrityOrchestrator).
"""

from typing import Optional

from ledger_integrity.models.transaction import fingerprint_key
from ledger_integrity.services.storage import (
    IgnoredFingerprintStoreInterface,
    RecordStoreInterface,
)


class DuplicateDetector:
    """Fingerprint lookups against the record store and the ignored set."""

    def __init__(
        self,
        record_store: RecordStoreInterface,
        ignored_store: Optional[IgnoredFingerprintStoreInterface] = None,
    ):
        self._record_store = record_store
        self._ignored_store = ignored_store

    async def is_duplicate(self, fingerprint: Optional[str]) -> bool:
        """
        True if a stored transaction already carries this fingerprint.

        An absent fingerprint is never a duplicate.
        """
        if fingerprint_key(fingerprint) is None:
            return False
        return await self._record_store.exists_by_fingerprint(fingerprint)

    async def is_ignored(self, fingerprint: Optional[str]) -> bool:
        """True if the user previously dismissed a transaction with this fingerprint."""
        if fingerprint_key(fingerprint) is None or self._ignored_store is None:
            return False
        return await self._ignored_store.contains(fingerprint)

    async def remember_ignored(self, fingerprint: Optional[str]) -> None:
        if fingerprint_key(fingerprint) is None or self._ignored_store is None:
            return
        await self._ignored_store.add(fingerprint)
