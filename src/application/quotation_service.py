"""Quotation editing session.

A session owns one live document together with its undo history, its saved
versions and its autosave writer. Every committed edit is a single call that
builds the new document, recalculates prices, replaces the live document,
records a history snapshot and schedules an autosave, so nothing can observe
a document that was changed but not yet recorded.
"""

import threading
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Final

from ..config import settings
from ..domain.calculations import (
    CalculatedTotals,
    calculate_all_totals,
    count_items,
    recalculate_section,
)
from ..domain.entities import (
    BankAccount,
    Client,
    Document,
    QuotationMeta,
    QuotationSettings,
    Row,
    Section,
    Version,
    VersionDiff,
    generate_id,
    parse_section,
)
from ..domain.exceptions import ValidationError
from ..logging_config import get_logger
from ..logging_utils import log_validation_error
from .history_service import HistoryStack
from .persistence import DebouncedWriter, QuotationStorage
from .version_service import VersionStore

logger: Final = get_logger(__name__)

_EDITABLE_SETTINGS: Final = frozenset(
    {
        "gst_enabled",
        "gst_rate",
        "discount_type",
        "discount_value",
        "paid_amount",
        "selected_bank",
    }
)
_MOVE_DIRECTIONS: Final = {"up": -1, "down": 1}


def _replace_checked(obj: Any, what: str, **changes: Any) -> Any:
    """dataclasses.replace that reports unknown fields as validation errors."""
    try:
        return replace(obj, **changes)
    except TypeError as e:
        raise ValidationError(f"Unknown {what} field: {e}") from e


class QuotationSession:
    """Editing session for a single quotation."""

    def __init__(
        self,
        quote_number: str | None = None,
        storage: QuotationStorage | None = None,
        *,
        document: Document | None = None,
        history_size: int | None = None,
        autosave_delay: float | None = None,
    ):
        if document is None:
            meta = QuotationMeta(number=quote_number) if quote_number else None
            document = Document(meta=meta or QuotationMeta())
        if autosave_delay is None:
            autosave_delay = settings.autosave_delay_seconds

        self.quote_number = quote_number or document.meta.number
        self.storage = storage
        self.history = HistoryStack(history_size or settings.max_history_size)
        self.version_store = VersionStore()
        self._document = document.snapshot()
        self._autosave: DebouncedWriter[Document] = DebouncedWriter(
            autosave_delay,
            self.snapshot,
            self._save_document,
            name=f"autosave:{self.quote_number}",
        )
        self.history.push(self._document)

    # --- State -----------------------------------------------------------

    @property
    def document(self) -> Document:
        return self._document.snapshot()

    def snapshot(self) -> Document:
        return self._document.snapshot()

    def totals(self) -> CalculatedTotals:
        return calculate_all_totals(self._document)

    def item_count(self) -> int:
        return count_items(self._document)

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    def _commit(self, document: Document, action: str, **context: Any) -> None:
        self._document = document
        self.history.push(document)
        if self.storage is not None:
            self._autosave.schedule()
        logger.debug(
            "Edit committed",
            action=action,
            quote_number=self.quote_number,
            history_index=self.history.index,
            **context,
        )

    def _with_section(self, section: Section, rows: list[Row]) -> Document:
        return self._document.with_rows(section, recalculate_section(rows))

    # --- Client and meta -------------------------------------------------

    def set_client(self, **fields: Any) -> Client:
        client = _replace_checked(self._document.client, "client", **fields)
        document = self._document.snapshot()
        document.client = client
        self._commit(document, "set_client", fields=sorted(fields))
        return client

    def set_meta(self, **fields: Any) -> QuotationMeta:
        meta = _replace_checked(self._document.meta, "quotation meta", **fields)
        document = self._document.snapshot()
        document.meta = meta
        self._commit(document, "set_meta", fields=sorted(fields))
        return meta

    # --- Rows ------------------------------------------------------------

    def _locate(self, row_id: str) -> tuple[Section, int] | None:
        location = self._document.find_row(row_id)
        if location is None:
            logger.debug("Row not found", row_id=row_id, quote_number=self.quote_number)
        return location

    def add_item(
        self,
        section: Section | str = Section.MAIN,
        after_id: str | None = None,
        **fields: Any,
    ) -> Row | None:
        """Add an item row at the end of a section, or right after ``after_id``.

        Returns None when ``after_id`` is not in the document.
        """
        try:
            row = Row.item(**fields)
        except TypeError as e:
            raise ValidationError(f"Unknown row field: {e}") from e
        target = parse_section(section)

        if after_id is not None:
            location = self._locate(after_id)
            if location is None:
                return None
            target, index = location
            rows = list(self._document.rows(target))
            rows.insert(index + 1, row)
            position = index + 1
        else:
            rows = list(self._document.rows(target))
            rows.append(row)
            position = len(rows) - 1

        document = self._with_section(target, rows)
        self._commit(document, "add_item", row_id=row.id, section=target.value)
        return document.rows(target)[position]

    def _add_group(self, row: Row, section: Section | str) -> Row:
        target = parse_section(section)
        rows = list(self._document.rows(target))
        rows.append(row)
        document = self._with_section(target, rows)
        self._commit(document, f"add_{row.kind.value}", row_id=row.id)
        return document.rows(target)[-1]

    def add_floor(self, name: str, section: Section | str = Section.MAIN) -> Row:
        return self._add_group(Row.floor(name), section)

    def add_room(self, name: str, section: Section | str = Section.MAIN) -> Row:
        return self._add_group(Row.room(name), section)

    def update_item(self, row_id: str, **changes: Any) -> Row | None:
        """Apply field changes to a row and reprice its section.

        Returns the updated row, or None when the id is unknown.
        """
        location = self._locate(row_id)
        if location is None:
            return None

        section, index = location
        rows = list(self._document.rows(section))
        try:
            rows[index] = rows[index].with_updates(**changes)
        except TypeError as e:
            raise ValidationError(f"Unknown row field: {e}") from e

        document = self._with_section(section, rows)
        self._commit(document, "update_item", row_id=row_id, fields=sorted(changes))
        return document.rows(section)[index]

    def delete_item(self, row_id: str) -> bool:
        location = self._locate(row_id)
        if location is None:
            return False

        section, index = location
        rows = list(self._document.rows(section))
        del rows[index]
        self._commit(self._with_section(section, rows), "delete_item", row_id=row_id)
        return True

    def move_item(self, row_id: str, direction: str) -> bool:
        """Swap a row with its neighbour. Moving past either end is a no-op."""
        if direction not in _MOVE_DIRECTIONS:
            log_validation_error("direction", direction, "must be 'up' or 'down'")
            raise ValidationError("Direction must be 'up' or 'down'")

        location = self._locate(row_id)
        if location is None:
            return False

        section, index = location
        rows = list(self._document.rows(section))
        new_index = index + _MOVE_DIRECTIONS[direction]
        if not 0 <= new_index < len(rows):
            return False

        rows[index], rows[new_index] = rows[new_index], rows[index]
        self._commit(
            self._with_section(section, rows),
            "move_item",
            row_id=row_id,
            direction=direction,
        )
        return True

    def clear_all_items(self) -> None:
        document = self._document.snapshot()
        document.main_items = []
        document.additional_items = []
        self._commit(document, "clear_all_items")

    # --- Settings --------------------------------------------------------

    def _commit_settings(self, new_settings: QuotationSettings, action: str) -> None:
        document = self._document.snapshot()
        document.settings = new_settings
        self._commit(document, action)

    def update_settings(self, **changes: Any) -> QuotationSettings:
        unknown = set(changes) - _EDITABLE_SETTINGS
        if unknown:
            names = ", ".join(sorted(unknown))
            raise ValidationError(f"Unknown settings field: {names}")

        try:
            new_settings = self._document.settings.with_updates(**changes)
        except ValidationError as e:
            for name, value in changes.items():
                log_validation_error(name, value, str(e))
            raise

        self._commit_settings(new_settings, "update_settings")
        return new_settings

    def set_contact_info(self, **fields: Any) -> QuotationSettings:
        current = self._document.settings
        contact_info = _replace_checked(current.contact_info, "contact", **fields)
        new_settings = current.with_updates(contact_info=contact_info)
        self._commit_settings(new_settings, "set_contact_info")
        return new_settings

    def add_bank_account(self, name: str, **fields: Any) -> BankAccount:
        try:
            account = BankAccount(id=generate_id("bank"), name=name, **fields)
        except TypeError as e:
            raise ValidationError(f"Unknown bank account field: {e}") from e

        current = self._document.settings
        self._commit_settings(
            current.with_updates(bank_accounts=current.bank_accounts + (account,)),
            "add_bank_account",
        )
        return account

    def update_bank_account(
        self, account_id: str, **changes: Any
    ) -> BankAccount | None:
        current = self._document.settings
        accounts = list(current.bank_accounts)
        for index, account in enumerate(accounts):
            if account.id == account_id:
                accounts[index] = _replace_checked(account, "bank account", **changes)
                self._commit_settings(
                    current.with_updates(bank_accounts=tuple(accounts)),
                    "update_bank_account",
                )
                return accounts[index]
        return None

    def delete_bank_account(self, account_id: str) -> bool:
        current = self._document.settings
        accounts = tuple(a for a in current.bank_accounts if a.id != account_id)
        if len(accounts) == len(current.bank_accounts):
            return False

        self._commit_settings(
            current.with_updates(
                bank_accounts=accounts,
                selected_bank=max(0, current.selected_bank - 1),
            ),
            "delete_bank_account",
        )
        return True

    def reset(self) -> None:
        """Start a fresh quotation under the same quote number."""
        self._document = Document(meta=QuotationMeta(number=self.quote_number))
        self._restart_history()
        if self.storage is not None:
            self._autosave.schedule()

    # --- Undo / redo -----------------------------------------------------

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def undo(self) -> bool:
        entry = self.history.undo()
        if entry is None:
            return False
        self._document = entry.document.snapshot()
        if self.storage is not None:
            self._autosave.schedule()
        return True

    def redo(self) -> bool:
        entry = self.history.redo()
        if entry is None:
            return False
        self._document = entry.document.snapshot()
        if self.storage is not None:
            self._autosave.schedule()
        return True

    def _restart_history(self) -> None:
        self.history.clear()
        self.history.push(self._document)

    # --- Versions --------------------------------------------------------

    @property
    def versions(self) -> list[Version]:
        return self.version_store.versions

    def get_version(self, version_id: str) -> Version | None:
        return self.version_store.get(version_id)

    def save_version(self, note: str | None = None) -> Version:
        version = self.version_store.save_version(
            self._document,
            grand_total=self.totals().grand_total,
            item_count=self.item_count(),
            note=note,
        )
        self._save_versions()
        return version

    def load_version(self, version_id: str) -> bool:
        """Make a stored version the live document and a new undo baseline."""
        version = self.version_store.get(version_id)
        if version is None:
            return False

        self._document = version.document.snapshot()
        self._restart_history()
        if self.storage is not None:
            self._autosave.schedule()
        logger.info(
            "Version loaded",
            quote_number=self.quote_number,
            version=version.version,
        )
        return True

    def delete_version(self, version_id: str) -> bool:
        if not self.version_store.delete_version(version_id):
            return False
        self._save_versions()
        return True

    def compare_versions(self, from_id: str, to_id: str) -> VersionDiff | None:
        return self.version_store.compare_versions(from_id, to_id)

    # --- Persistence -----------------------------------------------------

    def load(self) -> bool:
        """Replace the live document and versions with the stored ones."""
        if self.storage is None:
            return False

        try:
            document = self.storage.load()
            versions, last_number = self.storage.load_versions()
        except Exception as e:
            logger.error(
                "Failed to load quotation", quote_number=self.quote_number, error=str(e)
            )
            return False

        self.version_store = VersionStore(versions, last_number)
        if document is None:
            return False

        self._document = document.snapshot()
        self._autosave.cancel()
        self._restart_history()
        logger.info(
            "Quotation loaded",
            quote_number=self.quote_number,
            versions=len(versions),
        )
        return True

    def flush(self) -> bool | None:
        return self._autosave.flush()

    def close(self) -> None:
        self.flush()

    def _save_document(self, document: Document) -> bool:
        if self.storage is None:
            return False
        return self.storage.save(document)

    def _save_versions(self) -> bool:
        if self.storage is None:
            return True
        try:
            return self.storage.save_versions(
                self.version_store.versions, self.version_store.last_number
            )
        except Exception as e:
            logger.error(
                "Failed to save versions", quote_number=self.quote_number, error=str(e)
            )
            return False


class SessionRegistry:
    """Live editing sessions keyed by quote number."""

    def __init__(
        self,
        storage_factory: Callable[[str], QuotationStorage] | None = None,
        *,
        history_size: int | None = None,
        autosave_delay: float | None = None,
    ):
        self._storage_factory = storage_factory
        self._history_size = history_size
        self._autosave_delay = autosave_delay
        self._sessions: dict[str, QuotationSession] = {}
        self._lock = threading.Lock()

    def __contains__(self, quote_number: object) -> bool:
        return quote_number in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, quote_number: str) -> QuotationSession:
        """Return the session for a quote number, loading it on first use.

        Concurrent callers asking for the same number get the same session.
        """
        with self._lock:
            session = self._sessions.get(quote_number)
            if session is None:
                session = self._open(quote_number)
                self._sessions[quote_number] = session
        return session

    def _open(self, quote_number: str) -> QuotationSession:
        storage = self._storage_factory(quote_number) if self._storage_factory else None
        session = QuotationSession(
            quote_number,
            storage,
            history_size=self._history_size,
            autosave_delay=self._autosave_delay,
        )
        session.load()
        logger.debug("Session opened", quote_number=quote_number)
        return session

    def discard(self, quote_number: str) -> None:
        with self._lock:
            session = self._sessions.pop(quote_number, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
