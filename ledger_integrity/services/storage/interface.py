"""
Abstract Storage Interface

DESIGN DECISION: The engine never talks to a database directly.
It depends on these interfaces, which lets us:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep integrity logic decoupled from physical layout and migrations

The interfaces are intentionally small - just the operations the
integrity engine needs.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ledger_integrity.models.audit import ChangeLogEntry
from ledger_integrity.models.transaction import (
    MerchantAlias,
    QuarantinedCandidate,
    Transaction,
)


class RecordStoreInterface(ABC):
    """
    Abstract interface for transaction record storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def insert(self, transaction: Transaction) -> int:
        """
        Persist a new transaction.

        Args:
            transaction: The candidate to store (id is ignored)

        Returns:
            The id assigned to the stored record

        Raises:
            DuplicateError: If the store enforces fingerprint uniqueness
                            and a record with the same fingerprint exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, transaction: Transaction) -> None:
        """
        Replace the stored state of an existing transaction.

        Raises:
            NotFoundError: If no record has this id
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, transaction_id: int) -> Optional[Transaction]:
        """
        Retrieve a transaction by id.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def exists_by_fingerprint(self, fingerprint: str) -> bool:
        """
        Check whether a transaction with this content fingerprint exists.
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[Transaction]:
        """
        Return every stored transaction, in id order.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for change log storage.

    Entries are append-only. The only deletion is the per-transaction
    retention prune.
    """

    @abstractmethod
    async def append_changes(self, entries: list[ChangeLogEntry]) -> None:
        """
        Append change entries to the log.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def prune(self, transaction_id: int, keep_count: int) -> int:
        """
        Keep only the most recent `keep_count` entries for one transaction.

        Entries of other transactions must never be touched.

        Returns:
            Number of entries removed
        """
        pass

    @abstractmethod
    async def get_changes(
        self,
        transaction_id: int,
        limit: int = 100,
    ) -> list[ChangeLogEntry]:
        """
        Get the most recent change entries for a transaction (newest first).
        """
        pass


class MerchantDirectoryInterface(ABC):
    """
    Abstract interface for the managed merchant directory.

    Read-only from the engine's point of view.
    """

    @abstractmethod
    async def lookup(self, original_name: str) -> Optional[str]:
        """
        Get the managed display name for a raw merchant string, if any.
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[MerchantAlias]:
        """
        Get every (original_name, display_name) entry.
        """
        pass


class IgnoredFingerprintStoreInterface(ABC):
    """Fingerprints of transactions the user dismissed and never wants to see again."""

    @abstractmethod
    async def add(self, fingerprint: str) -> None:
        pass

    @abstractmethod
    async def contains(self, fingerprint: str) -> bool:
        pass


class QuarantineStoreInterface(ABC):
    """Holding area for low-confidence candidates awaiting review."""

    @abstractmethod
    async def add(self, candidate: QuarantinedCandidate) -> int:
        """
        Store a quarantined candidate.

        Returns:
            The id assigned to the quarantine entry
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[QuarantinedCandidate]:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
