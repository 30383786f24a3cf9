"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a Google Sheets backend; both are swappable.
"""

from ledger_integrity.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IgnoredFingerprintStoreInterface,
    MerchantDirectoryInterface,
    NotFoundError,
    QuarantineStoreInterface,
    RecordStoreInterface,
    StorageError,
)
from ledger_integrity.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryIgnoredFingerprintStore,
    InMemoryMerchantDirectory,
    InMemoryQuarantineStore,
    InMemoryRecordStore,
)
from ledger_integrity.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIgnoredFingerprintStore,
    GoogleSheetsMerchantDirectory,
    GoogleSheetsQuarantineStore,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "IgnoredFingerprintStoreInterface",
    "MerchantDirectoryInterface",
    "QuarantineStoreInterface",
    "RecordStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryIgnoredFingerprintStore",
    "InMemoryMerchantDirectory",
    "InMemoryQuarantineStore",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsIgnoredFingerprintStore",
    "GoogleSheetsMerchantDirectory",
    "GoogleSheetsQuarantineStore",
    "GoogleSheetsRecordStore",
]
