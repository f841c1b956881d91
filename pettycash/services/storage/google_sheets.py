"""
Google Sheets Remote Ledger

DESIGN DECISION: Google Sheets acts as the remote relational store.
Each worksheet is a table:
- books:        id, user_id, name, created_at
- transactions: id, book_id, date, description, amount, type, category, attachments

TRADEOFFS:
- No server-side cascade (the reconciliation layer deletes children itself)
- No transactions (every call is a single row operation)
- Limited query capabilities (we filter in Python)

gspread is synchronous, so every sheet call runs in a worker thread
via asyncio.to_thread and the event loop stays responsive.
"""

import asyncio
import json
from decimal import Decimal, InvalidOperation
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from pettycash.audit import get_logger
from pettycash.config import get_settings
from pettycash.models.ledger import Book, Transaction, TransactionType
from pettycash.services.storage.interface import (
    ConnectionError,
    RemoteLedgerInterface,
    StorageError,
)


# Column mappings for the books sheet
BOOK_COLUMNS = [
    "id",
    "user_id",
    "name",
    "created_at",
]

# Column mappings for the transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "book_id",
    "date",
    "description",
    "amount",
    "type",
    "category",
    "attachments",
]

logger = get_logger(__name__)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation. Only the connection
    step is retried; row operations are not.
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
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_books_sheet(self) -> gspread.Worksheet:
        """Get or create the books worksheet."""
        return self._get_or_create(self._settings.books_sheet_name, BOOK_COLUMNS, 200)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the transactions worksheet."""
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 5000
        )


def _records(sheet) -> list[dict[str, str]]:
    """Read a worksheet as dicts keyed by its header row."""
    rows = sheet.get_all_values()
    if not rows:
        return []
    header = rows[0]
    return [
        dict(zip(header, row))
        for row in rows[1:]
        if row and row[0]
    ]


def _find_rows(sheet, record_id: str) -> list[int]:
    """1-based row indexes of a record id in column A."""
    ids = sheet.col_values(1)
    # Row 1 is the header
    return [idx for idx, value in enumerate(ids[1:], start=2) if value == record_id]


def _upsert_row(sheet, record_id: str, row: list) -> None:
    """Write one row per id; duplicate rows left by older writes are removed."""
    rows = _find_rows(sheet, record_id)
    if not rows:
        sheet.append_row(row, value_input_option="RAW")
        return
    sheet.update(range_name=f"A{rows[0]}", values=[row], value_input_option="RAW")
    for idx in reversed(rows[1:]):
        sheet.delete_rows(idx)


def _delete_row(sheet, record_id: str) -> bool:
    """Delete every row carrying the id. Bottom-up so indexes stay valid."""
    rows = _find_rows(sheet, record_id)
    for idx in reversed(rows):
        sheet.delete_rows(idx)
    return bool(rows)


class GoogleSheetsLedgerStorage(RemoteLedgerInterface):
    """
    Google Sheets implementation of the remote ledger.

    Complex fields (attachments) are JSON-serialized; amounts are stored
    as decimal text and parsed back to Decimal.

    CONCURRENCY: an upsert is a read of column A followed by a write.
    Every write to a worksheet holds that worksheet's lock for the whole
    read-then-write, so two saves of the same id never both append.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _lock(self, table: str) -> asyncio.Lock:
        """Per-worksheet lock, bound to the running event loop."""
        loop = asyncio.get_running_loop()
        if loop is not self._lock_loop:
            self._locks = {}
            self._lock_loop = loop
        if table not in self._locks:
            self._locks[table] = asyncio.Lock()
        return self._locks[table]

    # -- mapping -------------------------------------------------------------

    @staticmethod
    def book_to_row(book: Book, identity: str) -> list:
        """Convert a Book to a spreadsheet row."""
        return [book.id, identity, book.name, book.created_at]

    @staticmethod
    def row_to_book(record: dict[str, str]) -> Book:
        """Convert a spreadsheet record to a Book."""
        return Book(
            id=record["id"],
            name=record["name"],
            # Older sheets used a camelCase column
            created_at=record.get("created_at") or record.get("createdAt") or "",
        )

    @staticmethod
    def transaction_to_row(transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            transaction.book_id,
            transaction.date,
            transaction.description,
            str(transaction.amount),
            transaction.type.value,
            transaction.category,
            json.dumps(transaction.attachments),
        ]

    @staticmethod
    def row_to_transaction(record: dict[str, str]) -> Transaction:
        """Convert a spreadsheet record to a Transaction."""
        try:
            amount = Decimal(record.get("amount") or "0")
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {record.get('amount')!r}")

        attachments_json = record.get("attachments") or ""
        attachments = json.loads(attachments_json) if attachments_json else []

        return Transaction(
            id=record["id"],
            book_id=record["book_id"],
            date=record.get("date", ""),
            description=record.get("description", ""),
            amount=amount,
            type=TransactionType(record["type"]),
            category=record.get("category", ""),
            attachments=attachments,
        )

    # -- books ---------------------------------------------------------------

    async def fetch_books(self, identity: str) -> list[Book]:
        """
        Fetch all books owned by an identity.

        If an id appears on several rows, the last row wins.
        """
        try:
            sheet = await asyncio.to_thread(self._client.get_books_sheet)
            records = await asyncio.to_thread(_records, sheet)
        except Exception as e:
            raise StorageError(f"Failed to fetch books: {e}")

        books: dict[str, Book] = {}
        for record in records:
            if record.get("user_id") != identity:
                continue
            try:
                book = self.row_to_book(record)
            except Exception as e:
                logger.warning("skipping_malformed_row", table="books", error=str(e))
                continue
            books[book.id] = book
        return list(books.values())

    async def upsert_book(self, identity: str, book: Book) -> None:
        try:
            async with self._lock("books"):
                sheet = await asyncio.to_thread(self._client.get_books_sheet)
                row = self.book_to_row(book, identity)
                await asyncio.to_thread(_upsert_row, sheet, book.id, row)
        except Exception as e:
            raise StorageError(f"Failed to save book: {e}")

    async def delete_book(self, book_id: str) -> bool:
        try:
            async with self._lock("books"):
                sheet = await asyncio.to_thread(self._client.get_books_sheet)
                return await asyncio.to_thread(_delete_row, sheet, book_id)
        except Exception as e:
            raise StorageError(f"Failed to delete book: {e}")

    # -- transactions --------------------------------------------------------

    async def fetch_transactions(self, book_id: str) -> list[Transaction]:
        """
        Fetch all transactions of a book.

        If an id appears on several rows, the last row wins.
        """
        try:
            sheet = await asyncio.to_thread(self._client.get_transactions_sheet)
            records = await asyncio.to_thread(_records, sheet)
        except Exception as e:
            raise StorageError(f"Failed to fetch transactions: {e}")

        transactions: dict[str, Transaction] = {}
        for record in records:
            if record.get("book_id") != book_id:
                continue
            try:
                transaction = self.row_to_transaction(record)
            except Exception as e:
                logger.warning("skipping_malformed_row", table="transactions", error=str(e))
                continue
            transactions[transaction.id] = transaction
        return list(transactions.values())

    async def upsert_transaction(self, transaction: Transaction) -> None:
        try:
            async with self._lock("transactions"):
                sheet = await asyncio.to_thread(self._client.get_transactions_sheet)
                row = self.transaction_to_row(transaction)
                await asyncio.to_thread(_upsert_row, sheet, transaction.id, row)
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            async with self._lock("transactions"):
                sheet = await asyncio.to_thread(self._client.get_transactions_sheet)
                return await asyncio.to_thread(_delete_row, sheet, transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")
