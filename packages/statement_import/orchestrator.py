"""Statement extraction session: an explicit state machine around one file.

Lifecycle
---------
``select_file`` -> ``extract`` -> (``needs_password`` -> ``set_password`` ->
``extract``) -> ``ready`` -> edits -> ``commit`` -> ``done``.

The session is synchronous and single-threaded. Each :meth:`extract` call
captures a run token; a :meth:`reset` or :meth:`select_file` issued while the
collaborator call is in flight (from a callback, another thread, or a signal
handler) bumps the token, and the stale result is discarded without touching
state.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum
from typing import Any, Protocol, TypeAlias

from .decryption import DocumentDecryptor, PdfDecryptor
from .errors import (
    CommitError,
    DecryptionError,
    InvalidTransitionError,
    PasswordRequiredError,
    StatementImportError,
    ValidationError,
)
from .extraction import extract_transactions
from .extractors.base import ExtractionRequest, StatementExtractor
from .logging_setup import get_logger
from .models import (
    CategoryRef,
    CommitResult,
    ExtractionResult,
    FileKind,
    ParsedTransaction,
    SourceTag,
    StatementSource,
    coerce_categories,
)
from .reconciliation import TransactionStore
from .reconciliation import commit as commit_batch
from .recovery import KeyValueStore, RecoverySlot

NO_FILE_MESSAGE = "No file selected"
PASSWORD_MISSING_MESSAGE = "PDF is password protected"
PASSWORD_INCORRECT_MESSAGE = "Incorrect password"
RESTORE_FAILED_MESSAGE = "Failed to load saved import"

_logger = get_logger("statement_import.orchestrator")


class ImportStatus(StrEnum):
    IDLE = "idle"
    READING = "reading"
    NEEDS_PASSWORD = "needs_password"
    PARSING = "parsing"
    READY = "ready"
    IMPORTING = "importing"
    DONE = "done"
    ERROR = "error"


# ``idle`` is reachable from every state through reset/select_file and is
# handled separately.
_TRANSITIONS: dict[ImportStatus, frozenset[ImportStatus]] = {
    ImportStatus.IDLE: frozenset({ImportStatus.READING, ImportStatus.PARSING, ImportStatus.READY}),
    ImportStatus.READING: frozenset({ImportStatus.PARSING, ImportStatus.ERROR}),
    ImportStatus.NEEDS_PASSWORD: frozenset({ImportStatus.PARSING}),
    ImportStatus.PARSING: frozenset(
        {ImportStatus.NEEDS_PASSWORD, ImportStatus.READY, ImportStatus.ERROR}
    ),
    ImportStatus.READY: frozenset({ImportStatus.IMPORTING}),
    ImportStatus.IMPORTING: frozenset({ImportStatus.DONE, ImportStatus.ERROR}),
    ImportStatus.DONE: frozenset(),
    ImportStatus.ERROR: frozenset({ImportStatus.PARSING, ImportStatus.READY}),
}


def can_transition(src: ImportStatus, dst: ImportStatus) -> bool:
    return dst is ImportStatus.IDLE or dst in _TRANSITIONS[src]


class CategoryLookup(Protocol):
    def list_categories(self) -> Sequence[CategoryRef]: ...


CategorySource: TypeAlias = CategoryLookup | Iterable[CategoryRef | Any]


class StatementImportSession:
    """Drive one statement from file selection to commit.

    Parameters
    ----------
    extractor:
        The extraction collaborator; only :meth:`extract` needs one.
    categories:
        A :class:`CategoryLookup` (queried on every extraction) or a fixed
        collection of category entities.
    decryptor:
        Used for PDF sources; defaults to :class:`PdfDecryptor`.
    storage:
        Backing store for the recovery slot; defaults to the file-backed store.
    store:
        Default transaction store for :meth:`commit`.
    clock:
        Millisecond clock passed through to the commit.
    """

    def __init__(
        self,
        extractor: StatementExtractor | None = None,
        *,
        categories: CategorySource = (),
        decryptor: DocumentDecryptor | None = None,
        storage: KeyValueStore | None = None,
        store: TransactionStore | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._extractor = extractor
        self._categories = categories
        self._decryptor: DocumentDecryptor = decryptor if decryptor is not None else PdfDecryptor()
        self._recovery = RecoverySlot(storage)
        self._store = store
        self._clock = clock

        self._status = ImportStatus.IDLE
        self._file: StatementSource | None = None
        self._password = ""
        self._transactions: list[ParsedTransaction] = []
        self._error: str | None = None
        self._error_code: str | None = None
        self._last_result: ExtractionResult | None = None
        self._run_token = 0

    # ---- Snapshot accessors ------------------------------------------------

    @property
    def status(self) -> ImportStatus:
        return self._status

    @property
    def file(self) -> StatementSource | None:
        return self._file

    @property
    def file_kind(self) -> FileKind | None:
        return self._file.kind if self._file is not None else None

    @property
    def transactions(self) -> list[ParsedTransaction]:
        return list(self._transactions)

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def error_code(self) -> str | None:
        return self._error_code

    @property
    def last_result(self) -> ExtractionResult | None:
        return self._last_result

    @property
    def has_last_import(self) -> bool:
        return self._recovery.exists()

    # ---- Internal helpers --------------------------------------------------

    def _transition(self, dst: ImportStatus) -> None:
        if not can_transition(self._status, dst):
            raise InvalidTransitionError(f"Cannot move from {self._status} to {dst}")
        _logger.debug("session:transition from=%s to=%s", self._status, dst)
        self._status = dst

    def _set_error(self, message: str | None, code: str | None = None) -> None:
        self._error = message
        self._error_code = code

    def _require_ready(self, action: str) -> None:
        if self._status is not ImportStatus.READY:
            raise InvalidTransitionError(f"{action} is only allowed in ready, not {self._status}")

    def _resolve_categories(self) -> list[CategoryRef]:
        src = self._categories
        list_categories = getattr(src, "list_categories", None)
        if callable(list_categories):
            return coerce_categories(list_categories())
        return coerce_categories(list(src))  # type: ignore[arg-type]

    def _prepare_payload(self, source: StatementSource, password: str) -> bytes:
        if not source.is_pdf:
            return source.content
        probe = self._decryptor.probe(source.content)
        if not probe.encrypted:
            return source.content
        if not password:
            raise PasswordRequiredError(PASSWORD_MISSING_MESSAGE)
        try:
            return self._decryptor.decrypt(source.content, password)
        except DecryptionError as e:
            raise PasswordRequiredError(PASSWORD_INCORRECT_MESSAGE) from e

    # ---- Operations --------------------------------------------------------

    def select_file(self, source: StatementSource) -> None:
        """Make ``source`` the current file and drop all downstream state."""

        self.reset()
        self._file = source
        _logger.info(
            "session:file_selected file=%s media_type=%s kind=%s bytes=%d",
            source.filename,
            source.media_type,
            source.kind,
            len(source.content),
        )

    def set_password(self, password: str) -> None:
        self._password = password

    def extract(self) -> ImportStatus:
        """Run one extraction attempt and return the resulting status.

        Extraction failures do not raise; they land in ``error`` or
        ``needs_password`` with :attr:`error` (and :attr:`error_code`) set.
        Calling it from ``ready``, ``importing`` or ``done`` raises
        :class:`InvalidTransitionError`.
        """

        if self._file is None:
            self._set_error(NO_FILE_MESSAGE)
            return self._status

        if self._extractor is None:
            raise ValueError("extract needs an extraction collaborator")
        self._transition(ImportStatus.PARSING)
        self._run_token += 1
        token = self._run_token
        source = self._file
        extractor = self._extractor
        _logger.info("extract:parsing file=%s media_type=%s", source.filename, source.media_type)

        t0 = time.perf_counter()
        try:
            data = self._prepare_payload(source, self._password)
            categories = self._resolve_categories()
            request = ExtractionRequest.from_source(
                source, data=data, categories=categories, password=self._password or None
            )
            raw_text = extractor.extract(request)
            result = extract_transactions(raw_text, categories=categories)
        except PasswordRequiredError as e:
            if token != self._run_token:
                _logger.info("extract:stale_result_discarded file=%s", source.filename)
                return self._status
            _logger.info("extract:password_required file=%s", source.filename)
            self._set_error(str(e), e.code)
            self._transition(ImportStatus.NEEDS_PASSWORD)
            return self._status
        except Exception as e:  # noqa: BLE001 - every failure lands in the error state
            if token != self._run_token:
                _logger.info("extract:stale_result_discarded file=%s", source.filename)
                return self._status
            if isinstance(e, StatementImportError):
                _logger.warning("extract:failed file=%s error=%s", source.filename, e)
            else:
                _logger.exception("extract:unexpected_failure file=%s", source.filename)
            self._set_error(str(e) or "Failed to parse statement")
            self._last_result = None
            self._transition(ImportStatus.ERROR)
            return self._status

        if token != self._run_token:
            _logger.info("extract:stale_result_discarded file=%s", source.filename)
            return self._status

        self._transactions = list(result.transactions)
        self._last_result = result
        self._set_error(None)
        self._transition(ImportStatus.READY)
        _logger.info(
            "extract:done file=%s count=%d dropped=%d unparsed_dates=%d latency_ms=%.2f",
            source.filename,
            len(result.transactions),
            result.dropped_rows,
            len(result.unparsed_dates),
            (time.perf_counter() - t0) * 1000.0,
        )
        try:
            self._recovery.save(self._transactions)
        except OSError as e:
            # The parsed batch is still usable; only resumability is lost.
            _logger.warning("recovery:save_failed error=%s", e)
        return self._status

    def update_transaction(
        self,
        index: int,
        *,
        description: str | None = None,
        category: str | None = None,
        clear_category: bool = False,
    ) -> ParsedTransaction:
        """Edit one held transaction in place.

        ``category=None`` leaves the category alone; pass
        ``clear_category=True`` to remove it.
        """

        self._require_ready("update_transaction")
        tx = self._transactions[index]
        if description is not None:
            tx.description = description
        if clear_category:
            tx.category = None
        elif category is not None:
            tx.category = category
        return tx

    def delete_transactions(self, indices: Iterable[int]) -> int:
        self._require_ready("delete_transactions")
        drop = set(indices)
        before = len(self._transactions)
        self._transactions = [tx for i, tx in enumerate(self._transactions) if i not in drop]
        return before - len(self._transactions)

    def assign_category(self, indices: Iterable[int], category_id: str | None) -> None:
        self._require_ready("assign_category")
        for i in indices:
            self._transactions[i].category = category_id

    def restore_last_session(self) -> bool:
        """Load the recovery slot into ``ready``. Only valid from ``idle``."""

        if self._status is not ImportStatus.IDLE:
            raise InvalidTransitionError(f"Cannot restore from {self._status}")
        try:
            saved = self._recovery.load()
        except (ValueError, OSError) as e:
            _logger.warning("recovery:load_failed error=%s", e)
            self._set_error(RESTORE_FAILED_MESSAGE)
            return False
        if not saved:
            return False
        self._transactions = saved
        self._set_error(None)
        self._transition(ImportStatus.READY)
        _logger.info("recovery:restored count=%d", len(saved))
        return True

    def commit(
        self, account_id: str, *, store: TransactionStore | None = None
    ) -> CommitResult | None:
        """Commit the held batch; ``None`` when the commit failed.

        On failure the session is in ``error`` with the message in
        :attr:`error`; :meth:`return_to_review` goes back to ``ready``.
        """

        target = store if store is not None else self._store
        if target is None:
            raise ValueError("commit needs a transaction store")
        self._transition(ImportStatus.IMPORTING)
        self._set_error(None)
        try:
            result = commit_batch(
                self._transactions,
                account_id,
                SourceTag.LLM_IMPORT,
                target,
                clock=self._clock,
            )
        except (ValidationError, CommitError) as e:
            self._set_error(str(e))
            self._transition(ImportStatus.ERROR)
            return None
        self._transition(ImportStatus.DONE)
        try:
            self._recovery.clear()
        except OSError as e:
            _logger.warning("recovery:clear_failed error=%s", e)
        return result

    def return_to_review(self) -> None:
        if self._status is not ImportStatus.ERROR or not self._transactions:
            raise InvalidTransitionError(
                "return_to_review needs the error state with transactions still held"
            )
        self._set_error(None)
        self._transition(ImportStatus.READY)

    def reset(self) -> None:
        self._run_token += 1
        self._status = ImportStatus.IDLE
        self._file = None
        self._password = ""
        self._transactions = []
        self._last_result = None
        self._set_error(None)


__all__ = [
    "ImportStatus",
    "CategoryLookup",
    "StatementImportSession",
    "can_transition",
]
