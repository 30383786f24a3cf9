"""
Integrity Orchestrator for the Ledger Integrity Engine

This module ties the components together and defines the workflows for:
1. Accepting a candidate (duplicate check → validate → persist → audit)
2. Mutating a stored transaction (validate → persist → audit)
3. Maintenance (full-ledger integrity check after bulk operations)

DESIGN DECISION: The orchestrator enforces ordering, not rules:
- The duplicate check always precedes persistence
- Audit logging always follows persistence, so the logged state is
  the stored state
- Concurrent candidates sharing a fingerprint are serialized, so at
  most one of them is ever accepted

It adds no invariants of its own.
"""

import asyncio
import contextlib
from enum import Enum
from typing import Iterable, Optional

import structlog
from pydantic import BaseModel

from ledger_integrity.audit import TransactionAuditLogger
from ledger_integrity.config import LedgerSettings, get_settings, validate_all_settings
from ledger_integrity.duplicates import DuplicateDetector
from ledger_integrity.models.audit import ChangeSource
from ledger_integrity.models.transaction import (
    EntryType,
    IntegrityReport,
    QuarantinedCandidate,
    Transaction,
    TransactionStatus,
    ValidationResult,
    fingerprint_key,
    now_ms,
)
from ledger_integrity.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIgnoredFingerprintStore,
    GoogleSheetsMerchantDirectory,
    GoogleSheetsQuarantineStore,
    GoogleSheetsRecordStore,
    IgnoredFingerprintStoreInterface,
    InMemoryAuditStorage,
    InMemoryIgnoredFingerprintStore,
    InMemoryMerchantDirectory,
    InMemoryQuarantineStore,
    InMemoryRecordStore,
    MerchantDirectoryInterface,
    NotFoundError,
    QuarantineStoreInterface,
    RecordStoreInterface,
)
from ledger_integrity.validation import InvariantViolationError, TransactionValidator


class AcceptanceOutcome(str, Enum):
    """What happened to a submitted candidate."""
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"          # Fingerprint already stored
    IGNORED = "ignored"              # User dismissed this fingerprint before
    REJECTED = "rejected"            # Failed a hard invariant
    QUARANTINED = "quarantined"      # Confidence below threshold, held for review


class AcceptanceResult(BaseModel):
    """Result of accept_candidate."""

    outcome: AcceptanceOutcome
    transaction: Optional[Transaction] = None
    validation: Optional[ValidationResult] = None
    quarantine_id: Optional[int] = None

    @property
    def accepted(self) -> bool:
        return self.outcome == AcceptanceOutcome.ACCEPTED


class IntegrityOrchestrator:
    """
    Sequences duplicate detection, validation, persistence and auditing.

    Flow for a new candidate:
    1. Lock the candidate's fingerprint
    2. Discard if already stored or previously ignored
    3. Prepare as pending (unapproved, DETECTED)
    4. Validate → drop silently on hard errors
    5. Quarantine if confidence is below threshold
    6. Insert → assigned id
    7. Queue the creation diff for auditing
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_logger: TransactionAuditLogger,
        validator: Optional[TransactionValidator] = None,
        duplicate_detector: Optional[DuplicateDetector] = None,
        ignored_store: Optional[IgnoredFingerprintStoreInterface] = None,
        quarantine_store: Optional[QuarantineStoreInterface] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._record_store = record_store
        self._audit_logger = audit_logger
        self._validator = validator or TransactionValidator(self._settings)
        self._detector = duplicate_detector or DuplicateDetector(record_store, ignored_store)
        self._quarantine_store = quarantine_store
        self._logger = structlog.get_logger()

        self._fingerprint_locks: dict[str, asyncio.Lock] = {}
        self._lock_waiters: dict[str, int] = {}

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    @property
    def audit_logger(self) -> TransactionAuditLogger:
        return self._audit_logger

    @contextlib.asynccontextmanager
    async def _fingerprint_lock(self, fingerprint: Optional[str]):
        """Serialize check-then-insert for candidates sharing a fingerprint."""
        fingerprint = fingerprint_key(fingerprint)
        if fingerprint is None:
            yield
            return

        lock = self._fingerprint_locks.setdefault(fingerprint, asyncio.Lock())
        self._lock_waiters[fingerprint] = self._lock_waiters.get(fingerprint, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_waiters[fingerprint] -= 1
            if self._lock_waiters[fingerprint] == 0:
                del self._lock_waiters[fingerprint]
                del self._fingerprint_locks[fingerprint]

    @staticmethod
    def _creation_source(transaction: Transaction) -> ChangeSource:
        if transaction.entry_type == EntryType.USER_ENTERED:
            return ChangeSource.USER_EDIT
        return ChangeSource.PARSER_UPDATE

    @staticmethod
    def _prepare_pending(candidate: Transaction) -> Transaction:
        """
        The state a candidate is stored in: unpersisted, unapproved, DETECTED.

        An unrecognised status is kept as-is so validation rejects it.
        """
        update = {"id": 0, "is_approved": False}
        if isinstance(candidate.status, TransactionStatus):
            update["status"] = TransactionStatus.DETECTED
        return candidate.model_copy(update=update)

    async def accept_candidate(
        self,
        candidate: Transaction,
        source: Optional[ChangeSource] = None,
    ) -> AcceptanceResult:
        """
        Run a candidate through the acceptance workflow.

        Duplicates, ignored fingerprints and invalid candidates are
        discarded silently: they come back as a result, never as an
        exception. Storage failures propagate.
        """
        fingerprint = candidate.raw_text_hash

        async with self._fingerprint_lock(fingerprint):
            if await self._detector.is_duplicate(fingerprint):
                self._logger.info("candidate_duplicate", fingerprint=fingerprint)
                return AcceptanceResult(outcome=AcceptanceOutcome.DUPLICATE)

            if await self._detector.is_ignored(fingerprint):
                self._logger.info("candidate_ignored", fingerprint=fingerprint)
                return AcceptanceResult(outcome=AcceptanceOutcome.IGNORED)

            pending = self._prepare_pending(candidate)
            validation = self._validator.validate(pending)
            if not validation.is_valid:
                self._logger.info(
                    "candidate_rejected",
                    fingerprint=fingerprint,
                    errors=validation.errors,
                )
                return AcceptanceResult(
                    outcome=AcceptanceOutcome.REJECTED,
                    validation=validation,
                )

            if (
                self._quarantine_store is not None
                and pending.confidence_score < self._settings.quarantine_threshold
            ):
                quarantine_id = await self._quarantine_store.add(
                    QuarantinedCandidate.from_candidate(pending)
                )
                self._logger.info(
                    "candidate_quarantined",
                    quarantine_id=quarantine_id,
                    confidence=pending.confidence_score,
                )
                return AcceptanceResult(
                    outcome=AcceptanceOutcome.QUARANTINED,
                    validation=validation,
                    quarantine_id=quarantine_id,
                )

            try:
                transaction_id = await self._record_store.insert(pending)
            except DuplicateError:
                # Unique-constraint conflict: another writer got there first
                self._logger.info("candidate_duplicate", fingerprint=fingerprint)
                return AcceptanceResult(outcome=AcceptanceOutcome.DUPLICATE)

        stored = pending.model_copy(update={"id": transaction_id})
        self._audit_logger.log_changes(
            None, stored, source or self._creation_source(stored)
        )
        self._logger.info(
            "candidate_accepted",
            transaction_id=transaction_id,
            confidence=stored.confidence_score,
            warnings=validation.warnings,
        )
        return AcceptanceResult(
            outcome=AcceptanceOutcome.ACCEPTED,
            transaction=stored,
            validation=validation,
        )

    async def accept_candidates(
        self,
        candidates: Iterable[Transaction],
        source: Optional[ChangeSource] = None,
    ) -> list[AcceptanceResult]:
        """
        Accept many candidates concurrently.

        One rejected candidate never blocks the others. Results are in
        input order.
        """
        return list(await asyncio.gather(
            *(self.accept_candidate(candidate, source) for candidate in candidates)
        ))

    async def update_transaction(
        self,
        updated: Transaction,
        source: ChangeSource,
    ) -> Transaction:
        """
        Persist a new state for a stored transaction and audit the diff.

        Raises:
            NotFoundError: If the transaction doesn't exist
            InvariantViolationError: If the new state breaks a hard invariant
        """
        previous = await self._record_store.get(updated.id)
        if previous is None:
            raise NotFoundError(f"Transaction not found: {updated.id}")

        stamped = updated.model_copy(update={"updated_at": now_ms()})
        validation = self._validator.validate(stamped)
        if not validation.is_valid:
            self._logger.warning(
                "update_rejected",
                transaction_id=updated.id,
                errors=validation.errors,
            )
            raise InvariantViolationError(validation, updated.id)

        await self._record_store.update(stamped)
        self._audit_logger.log_changes(previous, stamped, source)
        return stamped

    async def confirm_transaction(
        self,
        transaction_id: int,
        source: ChangeSource = ChangeSource.USER_EDIT,
    ) -> Transaction:
        """Approve a pending transaction (is_approved=True, status CONFIRMED)."""
        current = await self._require(transaction_id)
        return await self.update_transaction(
            current.model_copy(update={
                "is_approved": True,
                "status": TransactionStatus.CONFIRMED,
            }),
            source,
        )

    async def ignore_transaction(
        self,
        transaction_id: int,
        source: ChangeSource = ChangeSource.USER_EDIT,
    ) -> Transaction:
        """
        Soft-delete a transaction (status IGNORED).

        Its fingerprint is remembered so the same message is never
        accepted again.
        """
        current = await self._require(transaction_id)
        ignored = await self.update_transaction(
            current.model_copy(update={"status": TransactionStatus.IGNORED}),
            source,
        )
        await self._detector.remember_ignored(current.raw_text_hash)
        return ignored

    async def run_integrity_check(self, context: str = "unknown") -> IntegrityReport:
        """
        Validate every stored transaction and report pass/fail.

        Call after imports, schema migrations and app upgrades.
        """
        transactions = await self._record_store.list_all()
        return self._validator.run_integrity_check(transactions, context)

    async def _require(self, transaction_id: int) -> Transaction:
        transaction = await self._record_store.get(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction


def create_engine(
    use_sheets: bool = False,
) -> tuple[IntegrityOrchestrator, MerchantDirectoryInterface]:
    """
    Factory function to create the engine with its storage.

    Args:
        use_sheets: Whether to use Google Sheets storage.
                    Falls back to in-memory storage if it isn't configured.

    Returns:
        (orchestrator, merchant_directory)
    """
    logger = structlog.get_logger()

    # Startup check: fail fast on bad engine settings, degrade on storage
    status = validate_all_settings()
    if not status["ledger"]:
        raise ValueError(f"Invalid ledger settings: {status['ledger_error']}")
    settings = get_settings().ledger

    record_store = None
    if use_sheets and not status["google_sheets"]:
        logger.warning(
            "storage_not_configured",
            error=status["google_sheets_error"],
        )
    elif use_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            record_store = GoogleSheetsRecordStore(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
            directory = GoogleSheetsMerchantDirectory(sheets_client)
            ignored_store = GoogleSheetsIgnoredFingerprintStore(sheets_client)
            quarantine_store = GoogleSheetsQuarantineStore(sheets_client)
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            record_store = None

    if record_store is None:
        record_store = InMemoryRecordStore()
        audit_storage = InMemoryAuditStorage()
        directory = InMemoryMerchantDirectory()
        ignored_store = InMemoryIgnoredFingerprintStore()
        quarantine_store = InMemoryQuarantineStore()

    logger.info(
        "engine_created",
        environment=settings.app_environment,
        storage=type(record_store).__name__,
    )
    orchestrator = IntegrityOrchestrator(
        record_store=record_store,
        audit_logger=TransactionAuditLogger(audit_storage),
        ignored_store=ignored_store,
        quarantine_store=quarantine_store,
        settings=settings,
    )
    return orchestrator, directory
