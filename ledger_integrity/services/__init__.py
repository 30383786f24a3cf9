"""Services package."""

from ledger_integrity.services.storage import (
    AuditStorageInterface,
    ConnectionError,
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
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsIgnoredFingerprintStore",
    "GoogleSheetsMerchantDirectory",
    "GoogleSheetsQuarantineStore",
    "GoogleSheetsRecordStore",
    "IgnoredFingerprintStoreInterface",
    "InMemoryAuditStorage",
    "InMemoryIgnoredFingerprintStore",
    "InMemoryMerchantDirectory",
    "InMemoryQuarantineStore",
    "InMemoryRecordStore",
    "MerchantDirectoryInterface",
    "NotFoundError",
    "QuarantineStoreInterface",
    "RecordStoreInterface",
    "StorageError",
]
