"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the durable backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (bulk replace is delete-then-insert, not atomic)
- Limited query capabilities (we filter by owner in Python)

gspread is synchronous; every sheet call runs in a worker thread
so the event loop stays free while a request is in flight.

All sessions in the process share the same worksheets, so every
read-then-write runs under one lock, and a row is re-read and checked
against its id and owner before it is deleted.
"""

import asyncio
import json
import threading
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_assistant.config import GoogleSheetsSettings, get_settings
from ledger_assistant.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger_assistant.models.session import UserSettings
from ledger_assistant.models.transaction import Transaction, TransactionType, utc_now
from ledger_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    SettingsStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "date",
    "description",
    "amount",
    "category",
    "type",
]

# Column mappings for Settings sheet
SETTINGS_COLUMNS = [
    "owner_id",
    "persona_text",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Sheet rows are 1-indexed and row 1 holds the headers
FIRST_DATA_ROW = 2

# Re-reads allowed when rows move between a read and a delete
MAX_ROW_REREADS = 3

_SHEET_WRITE_LOCK = threading.Lock()


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
        rows: int,
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
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_settings_sheet(self) -> gspread.Worksheet:
        """Get or create the Settings worksheet."""
        return self._get_or_create_sheet(
            self._settings.settings_sheet_name,
            SETTINGS_COLUMNS,
            rows=100,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Transactions are stored one per row, tagged with their owner.
    Every read and delete filters on the owner column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, owner_id: str, transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            owner_id,
            transaction.date.isoformat(),
            transaction.description,
            str(transaction.amount),
            transaction.category,
            transaction.type.value,
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        return Transaction(
            id=_safe_get(row, 0),
            owner_id=_safe_get(row, 1) or None,
            date=datetime.fromisoformat(_safe_get(row, 2)),
            description=_safe_get(row, 3, "General"),
            amount=Decimal(_safe_get(row, 4, "0")),
            category=_safe_get(row, 5, "General"),
            type=TransactionType(_safe_get(row, 6)),
        )

    def _owner_row_indexes(self, all_rows: list[list], owner_id: str) -> list[tuple[int, list]]:
        """(sheet row number, row) pairs belonging to an owner."""
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=FIRST_DATA_ROW)
            if len(row) > 1 and row[1] == owner_id
        ]

    def _list_sync(self, owner_id: str) -> list[Transaction]:
        sheet = self._client.get_transactions_sheet()
        transactions = []
        for _, row in self._owner_row_indexes(sheet.get_all_values(), owner_id):
            if not row[0]:  # Skip empty rows
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except Exception as e:
                logger.warning(
                    "malformed_transaction_row",
                    owner_id=owner_id,
                    row_id=row[0],
                    error=str(e),
                )
        return transactions

    def _insert_sync(self, owner_id: str, transaction: Transaction) -> None:
        sheet = self._client.get_transactions_sheet()
        with _SHEET_WRITE_LOCK:
            owned = self._owner_row_indexes(sheet.get_all_values(), owner_id)
            if any(row[0] == transaction.id for _, row in owned):
                return
            sheet.append_row(
                self._transaction_to_row(owner_id, transaction),
                value_input_option="RAW",
            )

    def _insert_many_sync(self, owner_id: str, transactions: list[Transaction]) -> None:
        sheet = self._client.get_transactions_sheet()
        rows = [self._transaction_to_row(owner_id, t) for t in transactions]
        with _SHEET_WRITE_LOCK:
            sheet.append_rows(rows, value_input_option="RAW")

    def _row_matches(
        self,
        sheet: gspread.Worksheet,
        idx: int,
        owner_id: str,
        transaction_id: str,
    ) -> bool:
        current = sheet.row_values(idx)
        return (
            len(current) > 1
            and current[0] == transaction_id
            and current[1] == owner_id
        )

    def _delete_sync(self, owner_id: str, transaction_id: str) -> None:
        sheet = self._client.get_transactions_sheet()
        with _SHEET_WRITE_LOCK:
            for _ in range(MAX_ROW_REREADS):
                owned = self._owner_row_indexes(sheet.get_all_values(), owner_id)
                target = next(
                    (idx for idx, row in owned if row[0] == transaction_id),
                    None,
                )
                if target is None:
                    return
                if self._row_matches(sheet, target, owner_id, transaction_id):
                    sheet.delete_rows(target)
                    return
                logger.warning(
                    "sheet_rows_moved",
                    owner_id=owner_id,
                    transaction_id=transaction_id,
                )
        raise StorageError(f"Rows kept moving while deleting {transaction_id}")

    def _delete_all_sync(self, owner_id: str) -> None:
        sheet = self._client.get_transactions_sheet()
        with _SHEET_WRITE_LOCK:
            for _ in range(MAX_ROW_REREADS):
                owned = self._owner_row_indexes(sheet.get_all_values(), owner_id)
                moved = False
                # Bottom-up so earlier row numbers stay valid
                for idx, row in reversed(owned):
                    if not self._row_matches(sheet, idx, owner_id, row[0]):
                        moved = True
                        break
                    sheet.delete_rows(idx)
                if not moved:
                    return
                logger.warning("sheet_rows_moved", owner_id=owner_id)
        raise StorageError(f"Rows kept moving while deleting rows of {owner_id}")

    async def list_transactions(self, owner_id: str) -> list[Transaction]:
        """List an owner's transactions in sheet order."""
        try:
            return await asyncio.to_thread(self._list_sync, owner_id)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_transaction(self, owner_id: str, transaction: Transaction) -> None:
        """Append one transaction row unless the id is already stored."""
        try:
            await asyncio.to_thread(self._insert_sync, owner_id, transaction)
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_transactions(
        self,
        owner_id: str,
        transactions: Iterable[Transaction],
    ) -> None:
        """Append many transaction rows in one request."""
        batch = list(transactions)
        if not batch:
            return
        try:
            await asyncio.to_thread(self._insert_many_sync, owner_id, batch)
        except Exception as e:
            raise StorageError(f"Failed to save transactions: {e}")

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> None:
        """Delete the row matching both id and owner."""
        try:
            await asyncio.to_thread(self._delete_sync, owner_id, transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def delete_all_for_owner(self, owner_id: str) -> None:
        """Delete every row of an owner."""
        try:
            await asyncio.to_thread(self._delete_all_sync, owner_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")


class GoogleSheetsSettingsStorage(SettingsStorageInterface):
    """One settings row per owner, upserted in place."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, sheet: gspread.Worksheet, owner_id: str) -> Optional[tuple[int, list]]:
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=FIRST_DATA_ROW):
            if row and row[0] == owner_id:
                return idx, row
        return None

    def _get_sync(self, owner_id: str) -> UserSettings:
        sheet = self._client.get_settings_sheet()
        found = self._find_row(sheet, owner_id)
        if found is None:
            return UserSettings()
        _, row = found
        return UserSettings(persona_text=_safe_get(row, 1))

    def _put_sync(self, owner_id: str, settings: UserSettings) -> None:
        sheet = self._client.get_settings_sheet()
        new_row = [owner_id, settings.persona_text, utc_now().isoformat()]
        with _SHEET_WRITE_LOCK:
            found = self._find_row(sheet, owner_id)
            if found is None:
                sheet.append_row(new_row, value_input_option="RAW")
                return
            idx, _ = found
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)

    async def get_settings(self, owner_id: str) -> UserSettings:
        """Load an owner's settings, defaults if none are stored."""
        try:
            return await asyncio.to_thread(self._get_sync, owner_id)
        except Exception as e:
            raise StorageError(f"Failed to load settings: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def put_settings(self, owner_id: str, settings: UserSettings) -> None:
        """Create or overwrite an owner's settings row."""
        try:
            await asyncio.to_thread(self._put_sync, owner_id, settings)
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            owner_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _append_sync(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    def _recent_sync(self, owner_id: str, limit: int) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or _safe_get(row, 4) != owner_id:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("malformed_audit_row", row_id=row[0], error=str(e))
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append_sync, event)
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_recent_events(
        self,
        owner_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get an owner's recent events, newest first."""
        try:
            return await asyncio.to_thread(self._recent_sync, owner_id, limit)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
