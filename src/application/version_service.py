"""Append-only store of named document versions.

Version numbers come from a high-water mark that never goes down, so a
number is never handed out twice even after the newest version is deleted.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Final

from ..domain.diff import compare_versions, summarize_changes
from ..domain.entities import Document, Number, Version, VersionDiff, generate_id
from ..logging_config import get_logger

logger: Final = get_logger(__name__)


class VersionStore:
    """Versions of one quotation, kept in ascending version order."""

    def __init__(self, versions: Iterable[Version] = (), last_number: int = 0):
        self._versions = sorted(versions, key=lambda v: v.version)
        highest = self._versions[-1].version if self._versions else 0
        self._last_number = max(last_number, highest)

    def __len__(self) -> int:
        return len(self._versions)

    @property
    def versions(self) -> list[Version]:
        return [version.detached() for version in self._versions]

    @property
    def latest(self) -> Version | None:
        return self._versions[-1].detached() if self._versions else None

    @property
    def last_number(self) -> int:
        """Highest version number ever assigned."""
        return self._last_number

    def get(self, version_id: str) -> Version | None:
        version = self._find(version_id)
        return version.detached() if version is not None else None

    def _find(self, version_id: str) -> Version | None:
        for version in self._versions:
            if version.id == version_id:
                return version
        return None

    def save_version(
        self,
        document: Document,
        grand_total: Number,
        item_count: int,
        note: str | None = None,
        now: datetime | None = None,
    ) -> Version:
        """Append a snapshot of ``document`` as the next version."""
        now = now or datetime.now()
        previous = self._versions[-1] if self._versions else None
        changes = (
            summarize_changes(previous, document, grand_total, item_count)
            if previous
            else []
        )

        self._last_number += 1
        version = Version(
            id=generate_id("ver"),
            version=self._last_number,
            date=now.date().isoformat(),
            timestamp=now,
            document=document.snapshot(),
            grand_total=grand_total,
            item_count=item_count,
            note=note or None,
            changes=tuple(changes),
        )
        self._versions.append(version)

        logger.info(
            "Version saved",
            version=version.version,
            version_id=version.id,
            grand_total=grand_total,
            item_count=item_count,
            changes=len(changes),
        )
        return version.detached()

    def delete_version(self, version_id: str) -> bool:
        version = self._find(version_id)
        if version is None:
            logger.warning("Cannot delete version - not found", version_id=version_id)
            return False

        self._versions.remove(version)
        logger.info(
            "Version deleted", version=version.version, version_id=version_id
        )
        return True

    def compare_versions(self, from_id: str, to_id: str) -> VersionDiff | None:
        """Diff two stored versions; None if either is unknown."""
        old = self.get(from_id)
        new = self.get(to_id)
        if old is None or new is None:
            logger.warning(
                "Cannot compare versions - not found", from_id=from_id, to_id=to_id
            )
            return None
        return compare_versions(old, new)
