"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted data store because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions (a group is written as one row, then a batch of rows)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the expansion logic.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_engine.config import get_settings
from ledger_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger_engine.models.entry import (
    EntryKind,
    InstallmentPlan,
    LedgerEntry,
    RecurrenceRule,
)
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerGateway,
    NotFoundError,
    StorageError,
)


# Column mappings for Entries sheet
ENTRY_COLUMNS = [
    "id",
    "parent_ref",
    "created_at",
    "updated_at",
    "description",
    "amount",
    "kind",
    "date",
    "category_ref",
    "payment_method",
    "observations",
    "tags_json",
    "installment_count",
    "installment_index",
    "recurrence_rule_json",
    "is_recurring",
    "recurrence_generated",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]


def entry_to_row(entry: LedgerEntry) -> list:
    """Convert a LedgerEntry to a spreadsheet row."""
    plan = entry.installment_plan
    return [
        str(entry.id) if entry.id else "",
        str(entry.parent_ref) if entry.parent_ref else "",
        entry.created_at.isoformat(),
        entry.updated_at.isoformat(),
        entry.description,
        str(entry.amount),
        entry.kind.value,
        entry.date.isoformat(),
        entry.category_ref or "",
        entry.payment_method or "",
        entry.observations or "",
        json.dumps(entry.tags),
        str(plan.count) if plan else "",
        str(plan.index) if plan else "",
        entry.recurrence_rule.model_dump_json() if entry.recurrence_rule else "",
        str(entry.is_recurring),
        str(entry.recurrence_generated),
    ]


def row_to_entry(row: list) -> LedgerEntry:
    """Convert a spreadsheet row to a LedgerEntry."""
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    plan = None
    if safe_get(12) and safe_get(13):
        plan = InstallmentPlan(count=int(safe_get(12)), index=int(safe_get(13)))

    rule = None
    if safe_get(14):
        rule = RecurrenceRule.model_validate_json(safe_get(14))

    return LedgerEntry(
        id=UUID(safe_get(0)) if safe_get(0) else None,
        parent_ref=UUID(safe_get(1)) if safe_get(1) else None,
        created_at=datetime.fromisoformat(safe_get(2)),
        updated_at=datetime.fromisoformat(safe_get(3)),
        description=safe_get(4),
        amount=Decimal(safe_get(5)),
        kind=EntryKind(safe_get(6)),
        date=date.fromisoformat(safe_get(7)),
        category_ref=safe_get(8) or None,
        payment_method=safe_get(9) or None,
        observations=safe_get(10) or None,
        tags=json.loads(safe_get(11)) if safe_get(11) else [],
        installment_plan=plan,
        recurrence_rule=rule,
        is_recurring=safe_get(15).lower() == "true",
        recurrence_generated=safe_get(16).lower() == "true",
    )


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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
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

    def get_entries_sheet(self) -> gspread.Worksheet:
        """Get or create the Entries worksheet."""
        return self._get_or_create(self._settings.entries_sheet_name, ENTRY_COLUMNS, 1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class GoogleSheetsLedgerGateway(LedgerGateway):
    """
    Google Sheets implementation of the ledger gateway.

    One entry per row. IDs are assigned here, before the row is sent,
    so a batch write is a single append_rows call.

    gspread is blocking, so every sheet call runs in a worker thread.
    The event loop stays free and a caller's timeout can fire while a
    request is still in flight.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _all_rows(self) -> list[list]:
        return self._client.get_entries_sheet().get_all_values()

    async def _data_rows(self) -> list[list]:
        rows = await asyncio.to_thread(self._all_rows)
        return rows[1:]  # Skip header

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_one(self, entry: LedgerEntry) -> LedgerEntry:
        """Append one entry row."""
        persisted = entry.model_copy(update={"id": entry.id or uuid4()})

        def append():
            sheet = self._client.get_entries_sheet()
            sheet.append_row(entry_to_row(persisted), value_input_option="RAW")

        try:
            await asyncio.to_thread(append)
            return persisted
        except Exception as e:
            raise StorageError(f"Failed to insert entry: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_many(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        """Append a batch of entry rows in one request."""
        persisted = [e.model_copy(update={"id": e.id or uuid4()}) for e in entries]
        if not persisted:
            return []

        def append():
            sheet = self._client.get_entries_sheet()
            sheet.append_rows(
                [entry_to_row(e) for e in persisted],
                value_input_option="RAW",
            )

        try:
            await asyncio.to_thread(append)
            return persisted
        except Exception as e:
            raise StorageError(f"Failed to insert {len(persisted)} entries: {e}")

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        """Retrieve an entry by its ID."""
        try:
            for row in await self._data_rows():
                if row and row[0] == str(entry_id):
                    return row_to_entry(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """Rewrite the row of an existing entry."""

        def rewrite() -> bool:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == str(entry.id):
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[entry_to_row(entry)],
                        value_input_option="RAW",
                    )
                    return True
            return False

        try:
            found = await asyncio.to_thread(rewrite)
        except Exception as e:
            raise StorageError(f"Failed to update entry: {e}")

        if not found:
            raise NotFoundError(f"Entry not found: {entry.id}")
        return entry

    async def delete_entry(self, entry_id: UUID) -> bool:
        """Delete an entry row by ID."""

        def delete() -> bool:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(entry_id):
                    sheet.delete_rows(idx)
                    return True
            return False

        try:
            return await asyncio.to_thread(delete)
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}")

    async def find_by_group(self, group_id: UUID) -> list[LedgerEntry]:
        """Entries whose id or parent_ref column equals the group id."""
        key = str(group_id)
        try:
            entries = []
            for row in await self._data_rows():
                if not row or not row[0]:  # Skip empty rows
                    continue
                if row[0] == key or (len(row) > 1 and row[1] == key):
                    entries.append(row_to_entry(row))
            return entries
        except Exception as e:
            raise StorageError(f"Failed to find group {group_id}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_code=safe_get(9) or None,
            error_message=safe_get(10) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""

        def append():
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

        try:
            await asyncio.to_thread(append)
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            all_rows = await asyncio.to_thread(
                lambda: self._client.get_audit_sheet().get_all_values()
            )

            events = []
            for row in all_rows[1:]:
                if row and len(row) > 6 and row[6] == str(correlation_id):
                    events.append(self._row_to_event(row))

            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
