"""Storage boundary and debounced autosave.

Edits are written after a quiet period rather than on every mutation. There
is at most one pending write; rescheduling replaces it, and the state written
is read when the timer fires, not when it was scheduled.
"""

import asyncio
from collections.abc import Callable
from typing import Final, Generic, Protocol, TypeVar

from ..domain.entities import Document, Version
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

T = TypeVar("T")


class QuotationStorage(Protocol):
    """Load/save collaborator for one quotation.

    Implementations report failures through their return values.
    """

    def load(self) -> Document | None: ...

    def save(self, document: Document) -> bool: ...

    def load_versions(self) -> tuple[list[Version], int]: ...

    def save_versions(self, versions: list[Version], last_number: int) -> bool: ...


class DebouncedWriter(Generic[T]):
    """Single-slot deferred write.

    With a running asyncio loop the write fires via ``loop.call_later``.
    Without one it stays pending until ``flush()``. A delay of zero writes
    immediately.
    """

    def __init__(
        self,
        delay: float,
        read_state: Callable[[], T],
        write: Callable[[T], bool],
        name: str = "autosave",
    ):
        self.delay = delay
        self._read_state = read_state
        self._write = write
        self._name = name
        self._handle: asyncio.TimerHandle | None = None
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def schedule(self) -> None:
        self._cancel_timer()
        self._pending = True

        if self.delay <= 0:
            self._fire()
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def flush(self) -> bool | None:
        """Write now if a write is pending. Returns None when nothing was due."""
        if not self._pending:
            return None
        self._cancel_timer()
        return self._fire()

    def cancel(self) -> None:
        """Drop the pending write without writing."""
        if self._pending:
            logger.debug("Pending write cancelled", writer=self._name)
        self._cancel_timer()
        self._pending = False

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> bool:
        self._handle = None
        self._pending = False
        try:
            ok = bool(self._write(self._read_state()))
        except Exception as e:
            logger.error("Deferred write failed", writer=self._name, error=str(e))
            return False

        if not ok:
            logger.warning("Deferred write was not saved", writer=self._name)
        return ok
