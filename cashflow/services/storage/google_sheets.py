"""
Transaction store backed by a Google Sheets spreadsheet.

Each collection ({namespace}/{principal_id}/{kind}s) is its own worksheet,
one transaction per row, so users can open and export their data in
Sheets directly.

Sheets cannot push changes. Live subscriptions re-read the worksheet on an
interval and deliver a snapshot only when the rows differ from the last
read. Each mutation is a single row operation. Rows that no longer parse,
e.g. after a hand edit, are logged and left out of snapshots.
"""

import asyncio
import concurrent.futures
from typing import Optional, Union
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cashflow.config import GoogleSheetsSettings, get_settings
from cashflow.models.transaction import (
    Expense,
    Income,
    TransactionKind,
    parse_transaction,
)
from cashflow.services.storage.interface import (
    ConnectionError,
    ErrorCallback,
    NotFoundError,
    Snapshot,
    SnapshotCallback,
    StoreError,
    Subscription,
    TransactionStoreInterface,
)


# Column order for every collection worksheet
TRANSACTION_COLUMNS = [
    "id",
    "amount",
    "date",
    "category",
    "reason",
    "source",
]

logger = structlog.get_logger(__name__)


class GoogleSheetsClient:
    """
    Authenticated access to the configured spreadsheet.

    Worksheets are cached by title. Only connect() is retried; row reads
    and writes fail on the first error.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize with the service account key, once per client."""
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
        """Open the spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID."""
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

    def get_collection_sheet(self, path: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        if path not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(path)
            except gspread.WorksheetNotFound:
                # First write to this collection
                sheet = spreadsheet.add_worksheet(
                    title=path,
                    rows=self._settings.worksheet_rows,
                    cols=len(TRANSACTION_COLUMNS),
                )
                sheet.append_row(TRANSACTION_COLUMNS)
            self._worksheets[path] = sheet
        return self._worksheets[path]


class GoogleSheetsTransactionStore(TransactionStoreInterface):
    """
    Google Sheets implementation of the transaction store.

    Subscriptions run as polling tasks on `loop` (the running loop when
    none is given). A mutation made through this store wakes the
    pollers of its collection immediately.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        namespace: Optional[str] = None,
        poll_interval: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        app_settings = get_settings().app if namespace is None or poll_interval is None else None
        super().__init__(namespace or app_settings.namespace)
        self._client = client or GoogleSheetsClient()
        self._poll_interval = poll_interval or app_settings.poll_interval_seconds
        self._loop = loop
        self._pollers: dict[int, concurrent.futures.Future] = {}
        self._wakeups: dict[str, set[asyncio.Event]] = {}

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _record_to_row(self, record_id: str, record: Union[Expense, Income]) -> list:
        """Convert a transaction to a spreadsheet row."""
        if isinstance(record, Expense):
            return [
                record_id,
                str(record.amount),
                record.date.isoformat(),
                record.category,
                record.reason or "",
                "",
            ]
        if isinstance(record, Income):
            return [
                record_id,
                str(record.amount),
                record.date.isoformat(),
                "",
                "",
                record.source,
            ]
        raise TypeError(f"Not a transaction: {type(record).__name__}")

    def _row_to_record(self, row: list, kind: TransactionKind) -> Union[Expense, Income]:
        """Convert a spreadsheet row to a transaction."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        data = {
            "kind": kind.value,
            "id": safe_get(0),
            "amount": safe_get(1),
            "date": safe_get(2),
        }
        if kind == TransactionKind.EXPENSE:
            data["category"] = safe_get(3)
            data["reason"] = safe_get(4) or None
        else:
            data["source"] = safe_get(5)
        return parse_transaction(data)

    def _rows_to_snapshot(self, rows: list[list], kind: TransactionKind) -> Snapshot:
        snapshot = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                snapshot.append(self._row_to_record(row, kind))
            except Exception as e:
                logger.warning("row_skipped", kind=kind.value, row_id=row[0], error=str(e))
        return snapshot

    def _read_rows(self, path: str) -> list[list]:
        sheet = self._client.get_collection_sheet(path)
        return sheet.get_all_values()[1:]  # Skip header

    def _find_row_index(self, sheet: gspread.Worksheet, record_id: str) -> Optional[int]:
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if row and row[0] == record_id:
                return idx
        return None

    # ------------------------------------------------------------------
    # Live subscriptions
    # ------------------------------------------------------------------

    def _wake(self, path: str) -> None:
        loop = self._loop
        for event in list(self._wakeups.get(path, ())):
            if loop is not None:
                loop.call_soon_threadsafe(event.set)
            else:
                event.set()

    async def _poll(self, subscription: Subscription, kind: TransactionKind) -> None:
        wakeup = asyncio.Event()
        self._wakeups.setdefault(subscription.path, set()).add(wakeup)
        last_rows = None
        try:
            while subscription.active:
                try:
                    rows = await asyncio.to_thread(self._read_rows, subscription.path)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("subscription_read_failed", path=subscription.path, error=str(e))
                    subscription.fail(StoreError(f"Failed to load {kind.collection_name}: {e}"))
                    return

                if rows != last_rows:
                    last_rows = rows
                    subscription.deliver(self._rows_to_snapshot(rows, kind))

                try:
                    await asyncio.wait_for(wakeup.wait(), timeout=self._poll_interval)
                except asyncio.TimeoutError:
                    pass
                wakeup.clear()
        finally:
            self._wakeups.get(subscription.path, set()).discard(wakeup)

    def _cancel_poller(self, subscription: Subscription) -> None:
        poller = self._pollers.pop(id(subscription), None)
        if poller is not None:
            poller.cancel()

    def subscribe(
        self,
        principal_id: str,
        kind: TransactionKind,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        kind = TransactionKind(kind)
        subscription = Subscription(
            path=self.path_for(principal_id, kind),
            on_change=on_change,
            on_error=on_error,
            on_cancel=self._cancel_poller,
        )
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._pollers[id(subscription)] = asyncio.run_coroutine_threadsafe(
            self._poll(subscription, kind), loop
        )
        return subscription

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        principal_id: str,
        record: Union[Expense, Income],
    ) -> str:
        """Append a transaction row."""
        path = self.path_for(principal_id, record.transaction_kind)
        record_id = uuid4().hex
        try:
            sheet = await asyncio.to_thread(self._client.get_collection_sheet, path)
            row = self._record_to_row(record_id, record)
            await asyncio.to_thread(sheet.append_row, row, value_input_option="RAW")
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to add {record.kind}: {e}")
        self._wake(path)
        return record_id

    def _update_sync(self, path: str, record: Union[Expense, Income]) -> None:
        sheet = self._client.get_collection_sheet(path)
        idx = self._find_row_index(sheet, record.id)
        if idx is None:
            raise NotFoundError(f"Transaction not found: {record.id}")
        sheet.update(
            range_name=f"A{idx}:F{idx}",
            values=[self._record_to_row(record.id, record)],
            value_input_option="RAW",
        )

    async def update(
        self,
        principal_id: str,
        record: Union[Expense, Income],
    ) -> None:
        """Overwrite an existing transaction row."""
        if not record.id:
            raise NotFoundError("Cannot update a transaction without an id")
        path = self.path_for(principal_id, record.transaction_kind)
        try:
            await asyncio.to_thread(self._update_sync, path, record)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update {record.kind}: {e}")
        self._wake(path)

    def _delete_sync(self, path: str, record_id: str) -> None:
        sheet = self._client.get_collection_sheet(path)
        idx = self._find_row_index(sheet, record_id)
        if idx is None:
            raise NotFoundError(f"Transaction not found: {record_id}")
        sheet.delete_rows(idx)

    async def delete(
        self,
        principal_id: str,
        kind: TransactionKind,
        record_id: str,
    ) -> None:
        """Delete a transaction row."""
        path = self.path_for(principal_id, kind)
        try:
            await asyncio.to_thread(self._delete_sync, path, record_id)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete {TransactionKind(kind).value}: {e}")
        self._wake(path)

    async def close(self) -> None:
        for poller in list(self._pollers.values()):
            poller.cancel()
        self._pollers.clear()
