"""
Google Sheets Document Store

DESIGN DECISION: the ledger lives in one spreadsheet the partners already
share, so the raw documents stay readable (and exportable) without a
database.

Every document is one row: collection, id, version, data_json, updated_at.
Deleted documents stay as tombstone rows (empty data_json) so their
version keeps counting up.

TRADEOFFS:
- Every read loads the whole sheet; fine for one company's ledger
- A transaction is committed with a single batch_update call; the version
  check before it is serialized with an in-process lock only, so two
  separate processes writing the same sheet can still race
- Queries are equality filters applied after the load
"""

import asyncio
import json
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shipyard_ledger.config import get_settings
from shipyard_ledger.config.settings import GoogleSheetsSettings
from shipyard_ledger.models.ledger import utc_now
from shipyard_ledger.services.storage.interface import (
    Document,
    DocumentStore,
    StorageUnavailableError,
    Transaction,
    TransactionConflictError,
)


DOCUMENT_COLUMNS = [
    "collection",
    "id",
    "version",
    "data_json",
    "updated_at",
]

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

_retry_unavailable = retry(
    retry=retry_if_exception_type(StorageUnavailableError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """Service-account access to the ledger spreadsheet, with retried connect."""

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    def connect(self) -> gspread.Client:
        """
        Authorize once with the service account key file.

        A missing or unreadable key file fails at once; only the
        authorization itself is retried.
        """
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
            except FileNotFoundError as e:
                raise StorageUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except (ValueError, KeyError) as e:
                raise StorageUnavailableError(f"Invalid Google credentials file: {e}") from e
            self._client = self._authorize(credentials)

        return self._client

    @retry(
        retry=retry_if_exception_type(StorageUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _authorize(self, credentials: Credentials) -> gspread.Client:
        try:
            return gspread.authorize(credentials)
        except Exception as e:
            raise StorageUnavailableError(f"Failed to connect to Google Sheets: {e}") from e

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Open the ledger spreadsheet by id."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise StorageUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_documents_sheet(self) -> gspread.Worksheet:
        """Get or create the Documents worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.documents_sheet_name)
        except gspread.WorksheetNotFound:
            # first run: header row only
            sheet = spreadsheet.add_worksheet(
                title=self._settings.documents_sheet_name,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class _SheetRow:
    """A parsed document row and its 1-based sheet row number."""

    __slots__ = ("row_number", "collection", "doc_id", "version", "data")

    def __init__(self, row_number: int, row: list):
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        self.row_number = row_number
        self.collection = safe_get(0)
        self.doc_id = safe_get(1)
        self.version = int(safe_get(2, "0"))
        data_json = safe_get(3)
        self.data: Optional[Document] = json.loads(data_json) if data_json else None


class _SheetsTransaction(Transaction):
    def __init__(self, store: "GoogleSheetsDocumentStore"):
        super().__init__()
        self._store = store
        self._snapshot: Optional[dict[tuple[str, str], _SheetRow]] = None

    async def _rows(self) -> dict[tuple[str, str], _SheetRow]:
        # one read of the sheet per transaction
        if self._snapshot is None:
            self._snapshot = await self._store._load_rows()
        return self._snapshot

    async def _fetch(self, collection: str, doc_id: str) -> tuple[Optional[Document], int]:
        row = (await self._rows()).get((collection, doc_id))
        if row is None:
            return None, 0
        return row.data, row.version

    async def _fetch_collection(self, collection: str) -> list[tuple[str, Document, int]]:
        return [
            (row.doc_id, row.data, row.version)
            for (coll, _), row in (await self._rows()).items()
            if coll == collection and row.data is not None
        ]


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Documents are JSON-serialized into a single worksheet.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        worksheet: Any = None,
    ):
        """
        Args:
            client: Sheets client used to open the documents worksheet
            worksheet: An already opened worksheet (takes precedence over client)
        """
        self._client = client
        self._worksheet = worksheet
        self._commit_lock = asyncio.Lock()

    async def _sheet(self):
        if self._worksheet is None:
            client = self._client or GoogleSheetsClient()
            self._worksheet = await asyncio.to_thread(client.get_documents_sheet)
        return self._worksheet

    async def _load_rows(self) -> dict[tuple[str, str], _SheetRow]:
        return await self._read_rows(await self._sheet())

    # gspread is blocking; its calls run in worker threads
    @_retry_unavailable
    async def _read_rows(self, sheet) -> dict[tuple[str, str], _SheetRow]:
        try:
            all_rows = await asyncio.to_thread(sheet.get_all_values)
        except gspread.exceptions.APIError as e:
            raise StorageUnavailableError(f"Failed to read documents: {e}")

        rows = {}
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if not row or not row[0]:
                continue
            parsed = _SheetRow(idx, row)
            rows[(parsed.collection, parsed.doc_id)] = parsed
        return rows

    def _begin(self) -> Transaction:
        return _SheetsTransaction(self)

    async def _commit(self, txn: Transaction) -> None:
        async with self._commit_lock:
            current = await self._load_rows()
            for key, seen in txn.read_versions.items():
                row = current.get(key)
                if (row.version if row else 0) != seen:
                    raise TransactionConflictError(
                        f"Document {key[0]}/{key[1]} changed during transaction"
                    )

            sheet = await self._sheet()
            next_row = max((r.row_number for r in current.values()), default=1) + 1
            now = utc_now().isoformat()
            updates = []
            for (collection, doc_id), doc in txn.pending_writes.items():
                existing = current.get((collection, doc_id))
                if existing is not None:
                    row_number, version = existing.row_number, existing.version + 1
                else:
                    row_number, version = next_row, 1
                    next_row += 1
                values = [
                    collection,
                    doc_id,
                    str(version),
                    json.dumps(doc) if doc is not None else "",
                    now,
                ]
                updates.append({
                    "range": f"A{row_number}:E{row_number}",
                    "values": [values],
                })

            await self._write(sheet, updates, next_row - 1)

    @_retry_unavailable
    async def _write(self, sheet, updates: list[dict], last_row: int) -> None:
        try:
            if last_row > sheet.row_count:
                await asyncio.to_thread(sheet.add_rows, last_row - sheet.row_count)
            await asyncio.to_thread(sheet.batch_update, updates, value_input_option="RAW")
        except gspread.exceptions.APIError as e:
            raise StorageUnavailableError(f"Failed to write documents: {e}")
