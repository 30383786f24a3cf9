"""
In-Memory Storage Implementation

Process-local implementations of the storage interfaces. Used by the
test suite and by embedders that persist elsewhere.

Each store guards its state with an asyncio.Lock so concurrent tasks
see whole operations, never half-applied ones. The record store also
enforces fingerprint uniqueness, the same way a unique index would.
"""

import asyncio
from typing import Iterable, Optional

from ledger_integrity.models.audit import ChangeLogEntry
from ledger_integrity.models.transaction import (
    MerchantAlias,
    QuarantinedCandidate,
    Transaction,
    fingerprint_key,
)
from ledger_integrity.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    IgnoredFingerprintStoreInterface,
    MerchantDirectoryInterface,
    NotFoundError,
    QuarantineStoreInterface,
    RecordStoreInterface,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Transaction records keyed by id, with a unique fingerprint index."""

    def __init__(self):
        self._records: dict[int, Transaction] = {}
        self._by_fingerprint: dict[str, int] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def insert(self, transaction: Transaction) -> int:
        async with self._lock:
            fingerprint = fingerprint_key(transaction.raw_text_hash)
            if fingerprint is not None and fingerprint in self._by_fingerprint:
                raise DuplicateError(
                    f"Fingerprint already stored for transaction "
                    f"{self._by_fingerprint[fingerprint]}"
                )
            transaction_id = self._next_id
            self._next_id += 1
            self._records[transaction_id] = transaction.model_copy(
                update={"id": transaction_id}
            )
            if fingerprint is not None:
                self._by_fingerprint[fingerprint] = transaction_id
            return transaction_id

    async def update(self, transaction: Transaction) -> None:
        async with self._lock:
            previous = self._records.get(transaction.id)
            if previous is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            fingerprint = fingerprint_key(transaction.raw_text_hash)
            owner = self._by_fingerprint.get(fingerprint) if fingerprint is not None else None
            if owner is not None and owner != transaction.id:
                raise DuplicateError(
                    f"Fingerprint already stored for transaction {owner}"
                )
            previous_fingerprint = fingerprint_key(previous.raw_text_hash)
            if previous_fingerprint is not None and previous_fingerprint != fingerprint:
                self._by_fingerprint.pop(previous_fingerprint, None)
            if fingerprint is not None:
                self._by_fingerprint[fingerprint] = transaction.id
            self._records[transaction.id] = transaction

    async def get(self, transaction_id: int) -> Optional[Transaction]:
        return self._records.get(transaction_id)

    async def exists_by_fingerprint(self, fingerprint: str) -> bool:
        key = fingerprint_key(fingerprint)
        return key is not None and key in self._by_fingerprint

    async def list_all(self) -> list[Transaction]:
        return [self._records[key] for key in sorted(self._records)]


class InMemoryAuditStorage(AuditStorageInterface):
    """Change log entries in insertion order."""

    def __init__(self):
        self._entries: list[ChangeLogEntry] = []
        self._lock = asyncio.Lock()

    @property
    def entries(self) -> list[ChangeLogEntry]:
        return list(self._entries)

    async def append_changes(self, entries: list[ChangeLogEntry]) -> None:
        async with self._lock:
            self._entries.extend(entries)

    async def prune(self, transaction_id: int, keep_count: int) -> int:
        async with self._lock:
            # Stable sort keeps insertion order for entries with equal timestamps
            owned = sorted(
                (
                    (position, entry)
                    for position, entry in enumerate(self._entries)
                    if entry.transaction_id == transaction_id
                ),
                key=lambda item: (item[1].changed_at, item[0]),
            )
            excess = len(owned) - keep_count
            if excess <= 0:
                return 0
            doomed = {position for position, _ in owned[:excess]}
            self._entries = [
                entry for position, entry in enumerate(self._entries)
                if position not in doomed
            ]
            return excess

    async def get_changes(
        self,
        transaction_id: int,
        limit: int = 100,
    ) -> list[ChangeLogEntry]:
        owned = [
            (position, entry)
            for position, entry in enumerate(self._entries)
            if entry.transaction_id == transaction_id
        ]
        owned.sort(key=lambda item: (item[1].changed_at, item[0]), reverse=True)
        return [entry for _, entry in owned[:limit]]


class InMemoryMerchantDirectory(MerchantDirectoryInterface):
    """Merchant aliases keyed by original name."""

    def __init__(self, aliases: Iterable[MerchantAlias] = ()):
        self._aliases: dict[str, MerchantAlias] = {
            alias.original_name: alias for alias in aliases
        }

    def put(self, alias: MerchantAlias) -> None:
        self._aliases[alias.original_name] = alias

    def remove(self, original_name: str) -> None:
        self._aliases.pop(original_name, None)

    async def lookup(self, original_name: str) -> Optional[str]:
        alias = self._aliases.get(original_name)
        return alias.display_name if alias else None

    async def list_all(self) -> list[MerchantAlias]:
        return sorted(self._aliases.values(), key=lambda a: a.display_name)


class InMemoryIgnoredFingerprintStore(IgnoredFingerprintStoreInterface):

    def __init__(self):
        self._fingerprints: set[str] = set()

    async def add(self, fingerprint: str) -> None:
        if fingerprint_key(fingerprint) is None:
            return
        self._fingerprints.add(fingerprint)

    async def contains(self, fingerprint: str) -> bool:
        if fingerprint_key(fingerprint) is None:
            return False
        return fingerprint in self._fingerprints


class InMemoryQuarantineStore(QuarantineStoreInterface):

    def __init__(self):
        self._candidates: list[QuarantinedCandidate] = []
        self._lock = asyncio.Lock()

    async def add(self, candidate: QuarantinedCandidate) -> int:
        async with self._lock:
            quarantine_id = len(self._candidates) + 1
            self._candidates.append(candidate.model_copy(update={"id": quarantine_id}))
            return quarantine_id

    async def list_all(self) -> list[QuarantinedCandidate]:
        return list(self._candidates)
