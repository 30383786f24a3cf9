"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the bundled durable backend because:
1. Users can inspect their ledger and its audit trail directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- No transactions or unique indexes. Check-then-insert on fingerprints
  is serialized by the orchestrator's per-fingerprint locks instead.
- Limited query capabilities (we filter in Python)
- Enum columns are plain text, so unknown values must be tolerated on read

The implementation follows the abstract interfaces, so we can swap
to PostgreSQL/SQLite later without changing integrity logic.
"""

from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_integrity.config import get_settings
from ledger_integrity.models.audit import ChangeLogEntry, ChangeSource
from ledger_integrity.models.transaction import (
    MerchantAlias,
    QuarantinedCandidate,
    Transaction,
    enum_text,
    fingerprint_key,
)
from ledger_integrity.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    IgnoredFingerprintStoreInterface,
    MerchantDirectoryInterface,
    NotFoundError,
    QuarantineStoreInterface,
    RecordStoreInterface,
    StorageError,
)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "timestamp",
    "amount",
    "merchant",
    "merchant_override",
    "category",
    "category_id",
    "category_name_snapshot",
    "account_type",
    "transaction_type",
    "payment_mode",
    "raw_text_hash",
    "source_type",
    "entry_type",
    "confidence_score",
    "is_recurring",
    "project_id",
    "notes",
    "status",
    "schema_version",
    "parser_version",
    "sender_id",
    "sender_trust_score",
    "created_at",
    "updated_at",
    "is_approved",
    "trip_id",
]

# Column mappings for ChangeLog sheet
CHANGE_LOG_COLUMNS = [
    "entry_id",
    "transaction_id",
    "field",
    "old_value",
    "new_value",
    "changed_at",
    "source",
]

MERCHANT_COLUMNS = ["original_name", "display_name", "created_at", "updated_at"]

IGNORED_COLUMNS = ["fingerprint"]

QUARANTINE_COLUMNS = [
    "id",
    "raw_text_hash",
    "parsed_amount",
    "parsed_merchant",
    "confidence_score",
    "sender_id",
    "sender_trust_score",
    "timestamp",
    "created_at",
]

TRANSACTION_ENUM_COLUMNS = {
    "transaction_type",
    "payment_mode",
    "source_type",
    "entry_type",
    "status",
}
TRANSACTION_BOOL_COLUMNS = {"is_recurring", "is_approved"}


def _optional(text: str) -> Optional[str]:
    return text if text != "" else None


def _optional_float(text: str) -> Optional[float]:
    return float(text) if text != "" else None


def _optional_int(text: str) -> Optional[int]:
    return int(text) if text != "" else None


def _cell(value) -> str:
    if value is None:
        return ""
    return str(value)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
def _read_all(sheet: gspread.Worksheet) -> list[list]:
    """
    Read every row of a sheet, header included.

    Only reads are retried. Appends are not idempotent: a retried append
    whose first response was lost would write the row twice.
    """
    return sheet.get_all_values()


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def get_change_log_sheet(self) -> gspread.Worksheet:
        # More rows for the change log
        return self._get_or_create_sheet(
            self._settings.change_log_sheet_name, CHANGE_LOG_COLUMNS, rows=5000
        )

    def get_merchants_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.merchants_sheet_name, MERCHANT_COLUMNS
        )

    def get_ignored_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.ignored_sheet_name, IGNORED_COLUMNS
        )

    def get_quarantine_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.quarantine_sheet_name, QUARANTINE_COLUMNS
        )


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the transaction record store.

    One transaction per row. Ids are assigned as max(id) + 1.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        data = transaction.model_dump()
        row = []
        for column in TRANSACTION_COLUMNS:
            value = getattr(transaction, column)
            if column in TRANSACTION_ENUM_COLUMNS:
                row.append(enum_text(value))
            else:
                row.append(_cell(data[column]))
        return row

    def _row_to_transaction(self, row: list) -> Transaction:
        """
        Convert a spreadsheet row to a Transaction.

        Enum columns go through the model's fallible parse, so an
        unrecognised value becomes an UnknownVariant instead of an error.
        """
        # Handle missing columns gracefully
        def safe_get(index: int) -> str:
            try:
                return row[index]
            except IndexError:
                return ""

        values = {
            column: safe_get(index)
            for index, column in enumerate(TRANSACTION_COLUMNS)
        }

        return Transaction(
            id=int(values["id"]),
            timestamp=int(values["timestamp"]),
            amount=float(values["amount"]),
            merchant=values["merchant"],
            merchant_override=_optional(values["merchant_override"]),
            category=_optional(values["category"]),
            category_id=_optional(values["category_id"]),
            category_name_snapshot=_optional(values["category_name_snapshot"]),
            account_type=_optional(values["account_type"]),
            transaction_type=values["transaction_type"],
            payment_mode=values["payment_mode"],
            raw_text_hash=_optional(values["raw_text_hash"]),
            source_type=values["source_type"],
            entry_type=values["entry_type"],
            confidence_score=float(values["confidence_score"] or 0),
            is_recurring=values["is_recurring"].lower() == "true",
            project_id=_optional(values["project_id"]),
            notes=_optional(values["notes"]),
            status=values["status"],
            schema_version=int(values["schema_version"] or 0),
            parser_version=int(values["parser_version"] or 0),
            sender_id=_optional(values["sender_id"]),
            sender_trust_score=_optional_float(values["sender_trust_score"]),
            created_at=int(values["created_at"] or 0),
            updated_at=int(values["updated_at"] or 0),
            is_approved=values["is_approved"].lower() == "true",
            trip_id=_optional_int(values["trip_id"]),
        )

    def _data_rows(self, sheet: gspread.Worksheet) -> list[list]:
        return [row for row in _read_all(sheet)[1:] if row and row[0]]

    async def insert(self, transaction: Transaction) -> int:
        """Append a new transaction row and return its assigned id."""
        try:
            sheet = self._client.get_transactions_sheet()
            existing_ids = [int(row[0]) for row in self._data_rows(sheet)]
            transaction_id = max(existing_ids, default=0) + 1
            row = self._transaction_to_row(
                transaction.model_copy(update={"id": transaction_id})
            )
            sheet.append_row(row, value_input_option="RAW")
            return transaction_id
        except Exception as e:
            raise StorageError(f"Failed to insert transaction: {e}")

    async def update(self, transaction: Transaction) -> None:
        """Rewrite the row holding this transaction."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = _read_all(sheet)

            # Start from 2 (row 1 is header)
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(transaction.id):
                    sheet.update(
                        [self._transaction_to_row(transaction)],
                        f"A{idx}",
                        value_input_option="RAW",
                    )
                    return

            raise NotFoundError(f"Transaction not found: {transaction.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def get(self, transaction_id: int) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            for row in self._data_rows(sheet):
                if row[0] == str(transaction_id):
                    return self._row_to_transaction(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def exists_by_fingerprint(self, fingerprint: str) -> bool:
        if fingerprint_key(fingerprint) is None:
            return False
        column = TRANSACTION_COLUMNS.index("raw_text_hash")
        try:
            sheet = self._client.get_transactions_sheet()
            return any(
                len(row) > column and row[column] == fingerprint
                for row in self._data_rows(sheet)
            )
        except Exception as e:
            raise StorageError(f"Failed to query fingerprint: {e}")

    async def list_all(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            transactions = [self._row_to_transaction(row) for row in self._data_rows(sheet)]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")
        transactions.sort(key=lambda t: t.id)
        return transactions


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of change log storage.

    Entries are appended; the prune deletes the oldest rows of one
    transaction only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_entry(self, row: list) -> ChangeLogEntry:
        """Convert a spreadsheet row to a ChangeLogEntry."""
        def safe_get(index: int) -> str:
            try:
                return row[index]
            except IndexError:
                return ""

        return ChangeLogEntry(
            entry_id=safe_get(0),
            transaction_id=int(safe_get(1)),
            field=safe_get(2),
            old_value=_optional(safe_get(3)),
            new_value=_optional(safe_get(4)),
            changed_at=int(safe_get(5)),
            source=ChangeSource(safe_get(6)),
        )

    def _rows_for(self, all_rows: list[list], transaction_id: int) -> list[tuple[int, list]]:
        """(sheet row number, row) pairs for one transaction, oldest first."""
        owned = [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)
            if len(row) > 5 and row[1] == str(transaction_id)
        ]
        owned.sort(key=lambda item: (int(item[1][5]), item[0]))
        return owned

    async def append_changes(self, entries: list[ChangeLogEntry]) -> None:
        if not entries:
            return
        try:
            sheet = self._client.get_change_log_sheet()
            sheet.append_rows(
                [entry.to_sheets_row() for entry in entries],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to append change log entries: {e}")

    async def prune(self, transaction_id: int, keep_count: int) -> int:
        try:
            sheet = self._client.get_change_log_sheet()
            owned = self._rows_for(_read_all(sheet), transaction_id)
            excess = len(owned) - keep_count
            if excess <= 0:
                return 0
            # Delete bottom-up so earlier row numbers stay valid
            for idx in sorted((idx for idx, _ in owned[:excess]), reverse=True):
                sheet.delete_rows(idx)
            return excess
        except Exception as e:
            raise StorageError(f"Failed to prune change log: {e}")

    async def get_changes(
        self,
        transaction_id: int,
        limit: int = 100,
    ) -> list[ChangeLogEntry]:
        try:
            sheet = self._client.get_change_log_sheet()
            owned = self._rows_for(_read_all(sheet), transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to get change log entries: {e}")
        newest_first = list(reversed(owned))[:limit]
        return [self._row_to_entry(row) for _, row in newest_first]


class GoogleSheetsMerchantDirectory(MerchantDirectoryInterface):
    """Merchant directory stored as (original_name, display_name) rows."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_alias(self, row: list) -> MerchantAlias:
        return MerchantAlias(
            original_name=row[0],
            display_name=row[1],
            created_at=int(row[2]) if len(row) > 2 and row[2] else 0,
            updated_at=int(row[3]) if len(row) > 3 and row[3] else 0,
        )

    async def lookup(self, original_name: str) -> Optional[str]:
        try:
            sheet = self._client.get_merchants_sheet()
            for row in _read_all(sheet)[1:]:
                if len(row) > 1 and row[0] == original_name and row[1]:
                    return row[1]
            return None
        except Exception as e:
            raise StorageError(f"Failed to look up merchant: {e}")

    async def list_all(self) -> list[MerchantAlias]:
        try:
            sheet = self._client.get_merchants_sheet()
            aliases = [
                self._row_to_alias(row)
                for row in _read_all(sheet)[1:]
                if len(row) > 1 and row[0] and row[1]
            ]
        except Exception as e:
            raise StorageError(f"Failed to list merchants: {e}")
        aliases.sort(key=lambda a: a.display_name)
        return aliases


class GoogleSheetsIgnoredFingerprintStore(IgnoredFingerprintStoreInterface):

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def add(self, fingerprint: str) -> None:
        if fingerprint_key(fingerprint) is None:
            return
        if await self.contains(fingerprint):
            return
        try:
            sheet = self._client.get_ignored_sheet()
            sheet.append_row([fingerprint], value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to store ignored fingerprint: {e}")

    async def contains(self, fingerprint: str) -> bool:
        if fingerprint_key(fingerprint) is None:
            return False
        try:
            sheet = self._client.get_ignored_sheet()
            return any(row and row[0] == fingerprint for row in _read_all(sheet)[1:])
        except Exception as e:
            raise StorageError(f"Failed to query ignored fingerprints: {e}")


class GoogleSheetsQuarantineStore(QuarantineStoreInterface):

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def add(self, candidate: QuarantinedCandidate) -> int:
        try:
            sheet = self._client.get_quarantine_sheet()
            rows = [row for row in _read_all(sheet)[1:] if row and row[0]]
            quarantine_id = max((int(row[0]) for row in rows), default=0) + 1
            data = candidate.model_copy(update={"id": quarantine_id}).model_dump()
            sheet.append_row(
                [_cell(data[column]) for column in QUARANTINE_COLUMNS],
                value_input_option="RAW",
            )
            return quarantine_id
        except Exception as e:
            raise StorageError(f"Failed to quarantine candidate: {e}")

    async def list_all(self) -> list[QuarantinedCandidate]:
        try:
            sheet = self._client.get_quarantine_sheet()
            rows = [row for row in _read_all(sheet)[1:] if row and row[0]]
            return [
                QuarantinedCandidate(
                    id=int(row[0]),
                    raw_text_hash=_optional(row[1]),
                    parsed_amount=_optional_float(row[2]),
                    parsed_merchant=_optional(row[3]),
                    confidence_score=float(row[4]),
                    sender_id=_optional(row[5]),
                    sender_trust_score=_optional_float(row[6]),
                    timestamp=int(row[7]),
                    created_at=int(row[8]),
                )
                for row in rows
            ]
        except Exception as e:
            raise StorageError(f"Failed to list quarantine: {e}")
