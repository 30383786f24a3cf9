"""
Transaction Audit Logger

DESIGN DECISION: Every accepted mutation is explained by field-level
change entries. This provides:
1. Complete traceability of who/what changed a transaction
2. Debugging capability after bulk operations and parser re-runs
3. A bounded history per transaction (retention prune)

The audit logger:
- Computes diffs synchronously (pure, in-memory)
- Hands persistence to a single background worker through a queue,
  so the triggering write never waits on the audit store
- Gracefully handles failures: a failed append or prune is logged
  and counted, never raised to the caller
"""

import asyncio
import contextlib
from enum import Enum
from typing import Any, Optional

import structlog

from ledger_integrity.config import get_settings
from ledger_integrity.models.audit import (
    TRACKED_FIELDS,
    ChangeLogEntry,
    ChangeSource,
    FieldChange,
)
from ledger_integrity.models.transaction import (
    Transaction,
    UnknownVariant,
    enum_text,
    now_ms,
)
from ledger_integrity.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def serialize_value(value: Any) -> Optional[str]:
    """Text form of a tracked field value as stored in the change log."""
    if value is None:
        return None
    if isinstance(value, (Enum, UnknownVariant)):
        return enum_text(value)
    return str(value)


def _tracked_value(transaction: Transaction, field: str) -> Any:
    if field == "category":
        return transaction.display_category
    return getattr(transaction, field)


def detect_changes(
    old: Optional[Transaction],
    new: Transaction,
) -> list[FieldChange]:
    """
    Detect all tracked-field changes between two transaction states.

    With no old state, every tracked field that has a value is reported
    as a creation (old value None).
    """
    changes = []
    for field in TRACKED_FIELDS:
        new_value = _tracked_value(new, field)
        if old is None:
            if new_value is not None:
                changes.append(FieldChange(
                    field=field,
                    old_value=None,
                    new_value=serialize_value(new_value),
                ))
            continue

        old_value = _tracked_value(old, field)
        if old_value != new_value:
            changes.append(FieldChange(
                field=field,
                old_value=serialize_value(old_value),
                new_value=serialize_value(new_value),
            ))
    return changes


class TransactionAuditLogger:
    """
    Central change-log service.

    Logs change entries both to:
    1. Structured local log (for debugging)
    2. The audit store (for persistence), followed by a retention prune

    Producers call log_changes / log_field_change, which only enqueue.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        keep_count: Optional[int] = None,
        queue_size: Optional[int] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            keep_count: Entries kept per transaction after each write.
            queue_size: Maximum pending batches (0 = unbounded).
        """
        settings = get_settings().ledger
        self._storage = storage
        self._keep_count = keep_count if keep_count is not None else settings.audit_keep_count
        self._queue_size = queue_size if queue_size is not None else settings.audit_queue_size
        self._logger = structlog.get_logger()

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._failed_batches = 0
        self._dropped_batches = 0
        self._persisted_entries = 0

    @property
    def keep_count(self) -> int:
        return self._keep_count

    @property
    def failed_batches(self) -> int:
        """Batches whose append or prune raised."""
        return self._failed_batches

    @property
    def dropped_batches(self) -> int:
        """Batches refused because the queue was full."""
        return self._dropped_batches

    @property
    def persisted_entries(self) -> int:
        return self._persisted_entries

    def start(self) -> None:
        """
        Start the background worker on the running event loop.

        Called automatically on first use. Safe to call repeatedly.
        """
        loop = asyncio.get_running_loop()
        if self._worker is not None and not self._worker.done() and self._loop is loop:
            return
        self._loop = loop
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._worker = loop.create_task(self._run())

    async def drain(self) -> None:
        """Wait until every queued batch has been processed."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        """Drain pending work, then stop the worker."""
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

    def log_changes(
        self,
        old: Optional[Transaction],
        new: Transaction,
        source: ChangeSource,
    ) -> int:
        """
        Record the diff between two transaction states.

        Must be called after the new state has been persisted.
        Returns the number of entries queued (0 means nothing is written).
        """
        changes = detect_changes(old, new)
        if not changes:
            return 0

        changed_at = now_ms()
        entries = [
            ChangeLogEntry.from_change(new.id, change, source, changed_at)
            for change in changes
        ]
        return len(entries) if self._enqueue(entries) else 0

    def log_field_change(
        self,
        transaction_id: int,
        field: str,
        old_value: Optional[str],
        new_value: Optional[str],
        source: ChangeSource,
    ) -> bool:
        """Record a single known field change without diffing."""
        entry = ChangeLogEntry(
            transaction_id=transaction_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
            source=source,
        )
        return self._enqueue([entry])

    async def get_history(
        self,
        transaction_id: int,
        limit: int = 100,
    ) -> list[ChangeLogEntry]:
        """Change entries for a transaction, newest first."""
        if self._storage is None:
            return []
        return await self._storage.get_changes(transaction_id, limit)

    def _enqueue(self, entries: list[ChangeLogEntry]) -> bool:
        self.start()
        try:
            self._queue.put_nowait(entries)
        except asyncio.QueueFull:
            self._dropped_batches += 1
            self._logger.error(
                "audit_queue_full",
                transaction_id=entries[0].transaction_id,
                entry_count=len(entries),
            )
            return False
        return True

    async def _run(self) -> None:
        while True:
            entries = await self._queue.get()
            try:
                await self._persist(entries)
            finally:
                self._queue.task_done()

    async def _persist(self, entries: list[ChangeLogEntry]) -> None:
        # Always log locally
        for entry in entries:
            self._logger.info("transaction_change", **entry.to_log_dict())

        if self._storage is None:
            return

        transaction_ids = sorted({entry.transaction_id for entry in entries})
        try:
            await self._storage.append_changes(entries)
            self._persisted_entries += len(entries)
            for transaction_id in transaction_ids:
                await self._storage.prune(transaction_id, self._keep_count)
        except Exception as e:
            # Log failure but don't raise
            self._failed_batches += 1
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                transaction_ids=transaction_ids,
                entry_count=len(entries),
            )
