"""Read-only summary view over a version diff, for badges and headings."""

from dataclasses import dataclass
from typing import Any

from .calculations import round_half_up
from .entities import Number, SettingsChange, VersionDiff


def format_indian_number(value: Number) -> str:
    """Group digits the Indian way: 1,50,000 rather than 150,000."""
    rounded = round_half_up(abs(value))
    digits = str(rounded)
    if len(digits) <= 3:
        return digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency_change(value: Number, symbol: str = "Rs.") -> str:
    """Format a signed currency delta, e.g. +Rs.1,50,000 or -Rs.5,000."""
    prefix = "+" if value >= 0 else "-"
    return f"{prefix}{symbol}{format_indian_number(value)}"


def format_setting_value(
    change: SettingsChange, value: Any, symbol: str = "Rs."
) -> str:
    """Display text for one side of a settings change."""
    if change.field == "gst_enabled":
        return "Enabled" if value else "Disabled"
    if change.field == "gst_rate":
        return f"{value or 0}%"
    if change.field == "discount_type":
        return "Percentage" if value == "percent" else "Amount"
    if change.field == "discount_value":
        return str(value or 0)
    if change.field == "paid_amount":
        return f"{symbol}{format_indian_number(value or 0)}"
    return value or "-"


@dataclass(frozen=True)
class DiffSummary:
    added: int
    deleted: int
    modified: int
    settings: int
    total_change: Number
    item_count_change: int

    @classmethod
    def from_diff(cls, diff: VersionDiff) -> "DiffSummary":
        return cls(
            added=len(diff.added_items),
            deleted=len(diff.deleted_items),
            modified=len(diff.modified_items),
            settings=len(diff.settings_changes),
            total_change=diff.total_change,
            item_count_change=diff.item_count_change,
        )

    @property
    def has_changes(self) -> bool:
        return any((self.added, self.deleted, self.modified, self.settings))

    @property
    def badges(self) -> dict[str, int]:
        """Non-zero counts keyed by change type."""
        counts = {
            "added": self.added,
            "deleted": self.deleted,
            "modified": self.modified,
            "settings": self.settings,
        }
        return {name: count for name, count in counts.items() if count}

    @property
    def text(self) -> str:
        parts = [
            f"{count} {name}"
            for name, count in self.badges.items()
            if name != "settings"
        ]
        return ", ".join(parts) if parts else "No changes"

    def total_change_text(self, symbol: str = "Rs.") -> str:
        return format_currency_change(self.total_change, symbol)
