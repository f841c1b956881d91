"""
Main Orchestrator for Petty Cash Ledger

This module ties together all the components and defines the
reconciliation rules between the local cache and the remote store:

1. Save/delete: write local FIRST, then best-effort remote in the background
2. Session start: show local immediately, then pull remote books
3. Book switch: pull that book's transactions and overwrite the local copy
4. Logout: clear local state, never touch remote

DESIGN DECISION: All application state is owned by one LedgerCoordinator.
Handlers are single synchronous state transitions (pure functions from
pettycash.sync) followed by a detached asyncio task for the remote call.
A failed remote call is logged and NEVER rolls local state back.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel, Field

from pettycash.agents import REPORT_NO_KEY, CategoryAgent, ReportAgent
from pettycash.audit import AuditLogger, get_logger
from pettycash.models.ledger import (
    FALLBACK_CATEGORY,
    Book,
    CategoryTotal,
    SpendingSummary,
    StatementRow,
    Transaction,
    TransactionType,
    generate_id,
    utc_now_iso,
)
from pettycash.queries import (
    build_statement,
    compute_category_breakdown,
    compute_summary,
    filter_by_book,
)
from pettycash.services.image import (
    AttachmentUploadError,
    CloudinaryAttachmentStorage,
    prepare_attachment,
)
from pettycash.services.storage import (
    AttachmentStorageInterface,
    GoogleSheetsLedgerStorage,
    LocalCacheStore,
    RemoteLedgerInterface,
)
from pettycash.session import SessionGate
from pettycash.sync import merge_collection, remove_by_book, remove_by_id, upsert_by_id
from pettycash.validation import LedgerValidator, ValidationError, ValidationIssue


logger = get_logger(__name__)


class LedgerState(BaseModel):
    """The in-memory working set shown to the UI."""

    books: list[Book] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    current_book_id: Optional[str] = None


class LedgerCoordinator:
    """
    Owns the ledger state and applies the reconciliation rules.

    Flow for every mutation:
    1. Validate (reject before any change)
    2. Apply the pure transition to in-memory state
    3. Persist the full collection to the local cache
    4. If signed in, spawn the remote write (not awaited)

    Remote writes for different records may finish in any order;
    for one record the local write always happens first.
    """

    def __init__(
        self,
        local_store: Optional[LocalCacheStore] = None,
        remote: Optional[RemoteLedgerInterface] = None,
        attachments: Optional[AttachmentStorageInterface] = None,
        session: Optional[SessionGate] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        category_agent: Optional[CategoryAgent] = None,
        report_agent: Optional[ReportAgent] = None,
    ):
        self._audit_logger = audit_logger or AuditLogger()
        self._local = local_store or LocalCacheStore(audit_logger=self._audit_logger)
        self._remote = remote
        self._attachments = attachments
        self._session = session or SessionGate()
        self._validator = validator or LedgerValidator()
        self._category_agent = category_agent
        self._report_agent = report_agent

        self.state = LedgerState()
        self._loaded = False
        # Bumped on session change so late sync results can be dropped
        self._epoch = 0
        self._pending: set[asyncio.Task] = set()

    # =========================================================================
    # Session
    # =========================================================================

    @property
    def session(self) -> SessionGate:
        return self._session

    @property
    def identity(self) -> Optional[str]:
        return self._session.identity

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def remote_enabled(self) -> bool:
        """Remote calls happen only with an identity AND a configured remote."""
        return self._session.is_authenticated and self._remote is not None

    async def start_session(self, identity: str) -> None:
        """
        Establish a signed-in session.

        Local data is shown first; remote books and the current book's
        transactions are pulled afterwards.
        """
        self._session.sign_in(identity)
        self._epoch += 1
        self._audit_logger.log_session_started(self._session.identity)

        self.load_local()
        await self.sync_books()
        if self.state.current_book_id:
            await self.sync_transactions(self.state.current_book_id)

    def logout(self) -> None:
        """Clear the identity, the local cache and the in-memory state."""
        self._session.sign_out()
        self._epoch += 1
        self._local.clear()
        self.state = LedgerState()
        self._loaded = False
        self._audit_logger.log_session_ended()

    # =========================================================================
    # Background remote writes
    # =========================================================================

    def _spawn(
        self,
        operation: str,
        entity_id: str,
        action: Callable[[], Awaitable[None]],
    ) -> asyncio.Task:
        """Run a remote call detached from the caller; failures are logged."""

        async def runner():
            try:
                await action()
            except Exception as e:
                self._audit_logger.log_remote_write_failed(operation, entity_id, str(e))
            else:
                self._audit_logger.log_remote_write_completed(operation, entity_id)

        task = asyncio.create_task(runner())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every pending background remote call to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _delete_attachments(self, attachments: list[str]) -> None:
        """Delete remote attachment objects; each failure is independent."""
        if self._attachments is None:
            return
        for ref in attachments:
            if not self._attachments.is_remote_attachment(ref):
                continue
            try:
                await self._attachments.delete_attachment(ref)
            except Exception as e:
                self._audit_logger.log_attachment_delete_failed(ref, str(e))
            else:
                self._audit_logger.log_attachment_deleted(ref)

    # =========================================================================
    # Local load
    # =========================================================================

    def load_local(self) -> LedgerState:
        """Read the local cache into memory and pick the current book."""
        books = self._local.load_books()
        transactions = self._local.load_transactions()
        saved_id = self._local.load_selected_book_id()

        if saved_id and any(b.id == saved_id for b in books):
            current = saved_id
        else:
            current = books[0].id if books else None

        self.state = LedgerState(
            books=books,
            transactions=transactions,
            current_book_id=current,
        )
        self._loaded = True
        return self.state

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load_local()

    def _reject(self, entity_type: str, error: ValidationError) -> None:
        self._audit_logger.log_validation_failed(
            entity_type, [issue.model_dump() for issue in error.issues]
        )
        raise error

    # =========================================================================
    # Transactions
    # =========================================================================

    async def save_transaction(self, transaction: Transaction) -> Optional[asyncio.Task]:
        """
        Create or replace a transaction (matched by id).

        Returns the background remote task, or None when offline.
        """
        self._ensure_loaded()
        try:
            self._validator.validate_transaction(transaction, self.state.books)
        except ValidationError as e:
            self._reject("transaction", e)

        self.state.transactions = upsert_by_id(
            self.state.transactions, transaction, prepend=True
        )
        self._local.save_transactions(self.state.transactions)

        remote = self.remote_enabled
        self._audit_logger.log_record_saved("transaction", transaction.id, remote)
        if not remote:
            return None
        return self._spawn(
            "upsert_transaction",
            transaction.id,
            lambda: self._remote.upsert_transaction(transaction),
        )

    async def create_transaction(
        self,
        description: str,
        amount,
        type: Union[TransactionType, str],
        category: Optional[str] = None,
        date: Optional[str] = None,
        attachments: Optional[list[str]] = None,
    ) -> Transaction:
        """Build a new transaction in the current book and save it."""
        self._ensure_loaded()
        issues = self._validator.check_transaction_fields(description, amount)
        if self.state.current_book_id is None:
            issues.append(ValidationIssue(
                field="bookId",
                issue_type="missing",
                message="Select a book first",
            ))
        if issues:
            self._reject("transaction", ValidationError(issues))

        transaction = Transaction(
            id=generate_id(),
            book_id=self.state.current_book_id,
            date=date or utc_now_iso(),
            description=description,
            amount=amount,
            type=TransactionType(type),
            category=category or FALLBACK_CATEGORY,
            attachments=attachments or [],
        )
        await self.save_transaction(transaction)
        return transaction

    async def delete_transaction(self, transaction_id: str) -> Optional[asyncio.Task]:
        """
        Delete a transaction locally, then its remote row and attachments.

        Attachment delete failures never block the record delete.
        """
        self._ensure_loaded()
        existing = next(
            (t for t in self.state.transactions if t.id == transaction_id), None
        )
        attachments = list(existing.attachments) if existing else []

        self.state.transactions = remove_by_id(self.state.transactions, transaction_id)
        self._local.save_transactions(self.state.transactions)

        remote = self.remote_enabled
        self._audit_logger.log_record_deleted("transaction", transaction_id, remote)
        if not remote:
            return None

        async def remote_delete():
            await self._delete_attachments(attachments)
            await self._remote.delete_transaction(transaction_id)

        return self._spawn("delete_transaction", transaction_id, remote_delete)

    # =========================================================================
    # Books
    # =========================================================================

    async def save_book(self, book: Book) -> Optional[asyncio.Task]:
        """
        Create or replace a book (matched by id).

        A newly created book becomes the current book.
        """
        self._ensure_loaded()
        try:
            self._validator.validate_book(book)
        except ValidationError as e:
            self._reject("book", e)

        is_new = not any(b.id == book.id for b in self.state.books)
        self.state.books = upsert_by_id(self.state.books, book)
        self._local.save_books(self.state.books)
        if is_new:
            self.state.current_book_id = book.id
            self._local.save_selected_book_id(book.id)

        remote = self.remote_enabled
        self._audit_logger.log_record_saved("book", book.id, remote)
        if not remote:
            return None
        identity = self._session.identity
        return self._spawn(
            "upsert_book",
            book.id,
            lambda: self._remote.upsert_book(identity, book),
        )

    async def create_book(self, name: str) -> Book:
        """Create a new, empty book and make it current."""
        issues = self._validator.check_book_name(name)
        if issues:
            self._reject("book", ValidationError(issues))

        book = Book(id=generate_id(), name=name, created_at=utc_now_iso())
        await self.save_book(book)
        return book

    async def rename_book(self, book_id: str, name: str) -> Book:
        """Replace a book record with a new name."""
        self._ensure_loaded()
        issues = self._validator.check_book_name(name)
        existing = next((b for b in self.state.books if b.id == book_id), None)
        if existing is None:
            issues.append(ValidationIssue(
                field="book",
                issue_type="unknown_book",
                message=f"Book {book_id!r} does not exist",
            ))
        if issues:
            self._reject("book", ValidationError(issues))

        book = existing.model_copy(update={"name": name.strip()})
        await self.save_book(book)
        return book

    async def delete_book(self, book_id: str) -> Optional[asyncio.Task]:
        """
        Delete a book and cascade to its transactions.

        Raises:
            LastBookError: If it is the only remaining book
        """
        self._ensure_loaded()
        try:
            self._validator.validate_book_deletion(self.state.books, book_id)
        except ValidationError as e:
            self._reject("book", e)

        cascaded = filter_by_book(self.state.transactions, book_id)
        switched = False
        if self.state.current_book_id == book_id:
            other = next(b for b in self.state.books if b.id != book_id)
            self.state.current_book_id = other.id
            self._local.save_selected_book_id(other.id)
            switched = True

        self.state.books = remove_by_id(self.state.books, book_id)
        self.state.transactions = remove_by_book(self.state.transactions, book_id)
        self._local.save_books(self.state.books)
        self._local.save_transactions(self.state.transactions)

        remote = self.remote_enabled
        self._audit_logger.log_record_deleted("book", book_id, remote, cascaded=len(cascaded))
        if not remote:
            return None

        async def remote_delete():
            for transaction in cascaded:
                await self._delete_attachments(transaction.attachments)
                try:
                    await self._remote.delete_transaction(transaction.id)
                except Exception as e:
                    self._audit_logger.log_remote_write_failed(
                        "delete_transaction", transaction.id, str(e)
                    )
            await self._remote.delete_book(book_id)

        task = self._spawn("delete_book", book_id, remote_delete)
        if switched:
            current = self.state.current_book_id
            self._spawn_sync(current)
        return task

    def _spawn_sync(self, book_id: str) -> asyncio.Task:
        task = asyncio.create_task(self.sync_transactions(book_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def select_book(self, book_id: str) -> Optional[list[Transaction]]:
        """
        Switch the current book and, if signed in, pull its transactions.

        Returns the fetched transactions, or None if no fetch happened
        or it failed.
        """
        self._ensure_loaded()
        if not any(b.id == book_id for b in self.state.books):
            self._reject("book", ValidationError([ValidationIssue(
                field="book",
                issue_type="unknown_book",
                message=f"Book {book_id!r} does not exist",
            )]))

        self.state.current_book_id = book_id
        self._local.save_selected_book_id(book_id)
        return await self.sync_transactions(book_id)

    # =========================================================================
    # Remote pulls
    # =========================================================================

    async def sync_books(self) -> list[Book]:
        """
        Pull books from remote.

        - Remote non-empty: remote replaces the local books
        - Remote empty: local books are uploaded, local stays authoritative
        - Fetch failed: local books are kept
        """
        self._ensure_loaded()
        if not self.remote_enabled:
            return self.state.books

        identity = self._session.identity
        epoch = self._epoch
        try:
            remote_books = await self._remote.fetch_books(identity)
        except Exception as e:
            self._audit_logger.log_remote_sync_failed("books", str(e))
            return self.state.books

        if epoch != self._epoch:
            logger.info("stale_sync_dropped", scope="books")
            return self.state.books

        uploaded = 0
        if remote_books:
            books = list(remote_books)
            self._local.save_books(books)
        else:
            books = list(self.state.books)
            for book in books:
                try:
                    await self._remote.upsert_book(identity, book)
                    uploaded += 1
                except Exception as e:
                    self._audit_logger.log_remote_write_failed("upsert_book", book.id, str(e))

        self.state.books = books
        if not any(b.id == self.state.current_book_id for b in books):
            self.state.current_book_id = books[0].id if books else None
            if self.state.current_book_id:
                self._local.save_selected_book_id(self.state.current_book_id)

        self._audit_logger.log_remote_sync_completed(
            "books", len(remote_books), uploaded=uploaded
        )
        return books

    async def sync_transactions(self, book_id: str) -> Optional[list[Transaction]]:
        """
        Pull one book's transactions and overwrite the local copy of that book.

        Transactions of other books are untouched. Returns None if no
        fetch happened or it failed.
        """
        self._ensure_loaded()
        if not self.remote_enabled:
            return None

        epoch = self._epoch
        try:
            fetched = await self._remote.fetch_transactions(book_id)
        except Exception as e:
            self._audit_logger.log_remote_sync_failed("transactions", str(e), book_id)
            return None

        if fetched is None:
            return None
        if epoch != self._epoch:
            logger.info("stale_sync_dropped", scope="transactions", book_id=book_id)
            return None

        self.state.transactions = merge_collection(
            self.state.transactions, fetched, book_id
        )
        self._local.save_transactions(self.state.transactions)
        self._audit_logger.log_remote_sync_completed(
            "transactions", len(fetched), book_id=book_id
        )
        return list(fetched)

    # =========================================================================
    # Attachments & AI
    # =========================================================================

    async def upload_attachment(self, source: Union[bytes, str]) -> str:
        """
        Prepare an image and upload it, returning its URL.

        This is user-initiated and needs a success signal, so failures
        are raised rather than swallowed.

        Raises:
            IdentityRequiredError: If not signed in
            AttachmentUploadError: If storage is missing or the upload fails
            InvalidAttachmentError: If the source is not a readable image
        """
        identity = self._session.require()
        if self._attachments is None:
            raise AttachmentUploadError("Attachment storage is not configured")

        blob = await asyncio.to_thread(prepare_attachment, source)
        try:
            url = await self._attachments.upload_attachment(blob, identity)
        except AttachmentUploadError as e:
            self._audit_logger.log_attachment_upload_failed(str(e))
            raise
        except Exception as e:
            self._audit_logger.log_attachment_upload_failed(str(e))
            raise AttachmentUploadError(f"Failed to upload attachment: {e}") from e
        self._audit_logger.log_attachment_uploaded(url)
        return url

    async def suggest_category(self, description: str) -> Optional[str]:
        """AI category suggestion; None when unavailable."""
        if self._category_agent is None:
            return None
        return await self._category_agent.suggest_category(description)

    async def generate_report(self) -> str:
        """AI spending report over the current book."""
        if self._report_agent is None:
            return REPORT_NO_KEY
        return await self._report_agent.generate_report(self.current_transactions)

    # =========================================================================
    # Derived views
    # =========================================================================

    @property
    def current_book(self) -> Optional[Book]:
        return next(
            (b for b in self.state.books if b.id == self.state.current_book_id), None
        )

    @property
    def current_transactions(self) -> list[Transaction]:
        if self.state.current_book_id is None:
            return []
        return filter_by_book(self.state.transactions, self.state.current_book_id)

    @property
    def summary(self) -> SpendingSummary:
        return compute_summary(self.current_transactions)

    @property
    def category_breakdown(self) -> list[CategoryTotal]:
        return compute_category_breakdown(self.current_transactions)

    def statement(self) -> list[StatementRow]:
        """Statement rows for the PDF export of the current book."""
        return build_statement(self.current_transactions)


def create_app_components(
    use_remote: bool = True,
    local_store: Optional[LocalCacheStore] = None,
) -> LedgerCoordinator:
    """
    Factory function to create a fully wired coordinator.

    Args:
        use_remote: Whether to initialize Google Sheets and Cloudinary.
                    Falls back to local-only mode if they are not configured.
        local_store: Override the local cache (defaults to JSON files).
    """
    audit_logger = AuditLogger()
    remote = None
    attachments = None

    if use_remote:
        try:
            remote = GoogleSheetsLedgerStorage()
        except Exception as e:
            logger.warning("remote_ledger_not_configured", error=str(e))
        try:
            attachments = CloudinaryAttachmentStorage()
        except Exception as e:
            logger.warning("attachment_storage_not_configured", error=str(e))

    return LedgerCoordinator(
        local_store=local_store or LocalCacheStore(audit_logger=audit_logger),
        remote=remote,
        attachments=attachments,
        audit_logger=audit_logger,
        category_agent=CategoryAgent(),
        report_agent=ReportAgent(),
    )
