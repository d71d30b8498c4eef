"""Bounded undo/redo history of document snapshots.

Each committed edit pushes a full snapshot. A cursor marks the current entry;
entries after it are the redo-able future and are discarded by the next push.
Out-of-range undo or redo requests are no-ops, never errors.
Callers always receive detached copies, so stored snapshots stay unchanged.
"""

from typing import Final

from ..domain.constants import MAX_HISTORY_SIZE
from ..domain.entities import Document, HistoryEntry
from ..logging_config import get_logger

logger: Final = get_logger(__name__)


class HistoryStack:
    """Linear undo/redo buffer capped at ``max_size`` entries."""

    def __init__(self, max_size: int = MAX_HISTORY_SIZE):
        if max_size < 1:
            raise ValueError("History size must be at least 1")
        self.max_size = max_size
        self._entries: list[HistoryEntry] = []
        self._index = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        """Cursor position, -1 when the history is empty."""
        return self._index

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(entry.detached() for entry in self._entries)

    @property
    def current(self) -> HistoryEntry | None:
        if self._index < 0:
            return None
        return self._entries[self._index].detached()

    def push(self, document: Document) -> HistoryEntry:
        entry = HistoryEntry(document=document.snapshot())

        discarded = len(self._entries) - (self._index + 1)
        del self._entries[self._index + 1 :]
        self._entries.append(entry)

        evicted = 0
        while len(self._entries) > self.max_size:
            self._entries.pop(0)
            evicted += 1
        self._index = len(self._entries) - 1

        if discarded or evicted:
            logger.debug(
                "History trimmed",
                redo_discarded=discarded,
                evicted=evicted,
                size=len(self._entries),
            )
        return entry.detached()

    def undo(self) -> HistoryEntry | None:
        if not self.can_undo():
            return None
        self._index -= 1
        return self._entries[self._index].detached()

    def redo(self) -> HistoryEntry | None:
        if not self.can_redo():
            return None
        self._index += 1
        return self._entries[self._index].detached()

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def clear(self) -> None:
        self._entries.clear()
        self._index = -1
