"""Version diff engine.

Compares two document snapshots and classifies every row as added, deleted
or modified, with field-level detail, plus changed settings. Rows are matched
by id within each section independently, so a row moved from the main to the
additional section shows up as a deletion in one and an addition in the other.

The engine is pure and never raises: missing row lists or settings are
treated as empty.
"""

import math
from typing import Any

from .constants import (
    CLIENT_FIELD_LABELS,
    GROUP_FIELD_LABELS,
    ITEM_FIELD_LABELS,
    SETTINGS_FIELD_LABELS,
)
from .entities import (
    ChangeType,
    Client,
    Document,
    FieldChange,
    ItemChange,
    QuotationSettings,
    Row,
    RowKind,
    Section,
    SettingsChange,
    Version,
    VersionChange,
    VersionDiff,
)


def values_differ(old: Any, new: Any) -> bool:
    """Strict inequality where None is never equal to 0 or "".

    Numbers compare by value (80000 == 80000.0) and two NaNs count as equal.
    """
    if old is None or new is None:
        return old is not new
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is not type(new) or old != new
    if isinstance(old, int | float) and isinstance(new, int | float):
        if isinstance(old, float) and isinstance(new, float):
            if math.isnan(old) and math.isnan(new):
                return False
        return old != new
    return type(old) is not type(new) or old != new


def _compared_fields(old: Row, new: Row) -> dict[str, str]:
    if old.is_item or new.is_item:
        return ITEM_FIELD_LABELS
    return GROUP_FIELD_LABELS


def field_changes(old: Row, new: Row) -> tuple[FieldChange, ...]:
    """List exactly the compared fields that differ between two rows."""
    changes = []
    for key, label in _compared_fields(old, new).items():
        old_value = getattr(old, key, None)
        new_value = getattr(new, key, None)
        if values_differ(old_value, new_value):
            changes.append(FieldChange(key, label, old_value, new_value))
    return tuple(changes)


def build_locations(rows: list[Row]) -> dict[str, str | None]:
    """Map each row id to its "Floor > Room" breadcrumb.

    The breadcrumb is derived from position: the nearest preceding floor and
    the nearest room after that floor.
    """
    locations: dict[str, str | None] = {}
    current_floor = ""
    current_room = ""

    for row in rows:
        if row.kind is RowKind.FLOOR:
            locations[row.id] = None
            current_floor = row.name
            current_room = ""
        elif row.kind is RowKind.ROOM:
            locations[row.id] = current_floor or None
            current_room = row.name
        else:
            parts = [part for part in (current_floor, current_room) if part]
            locations[row.id] = " > ".join(parts) or None

    return locations


def compare_rows(
    old_rows: list[Row] | None,
    new_rows: list[Row] | None,
    section: Section,
) -> tuple[list[ItemChange], list[ItemChange], list[ItemChange]]:
    """Diff one section. Returns (added, deleted, modified)."""
    old_rows = old_rows or []
    new_rows = new_rows or []

    old_by_id = {row.id: row for row in old_rows}
    new_by_id = {row.id: row for row in new_rows}
    old_locations = build_locations(old_rows)
    new_locations = build_locations(new_rows)

    added: list[ItemChange] = []
    deleted: list[ItemChange] = []
    modified: list[ItemChange] = []

    for row_id, new_row in new_by_id.items():
        old_row = old_by_id.get(row_id)
        location = new_locations.get(row_id)

        if old_row is None:
            added.append(
                ItemChange(
                    type=ChangeType.ADDED,
                    item=new_row,
                    section=section,
                    location=location,
                )
            )
            continue

        changes = field_changes(old_row, new_row)
        if changes:
            modified.append(
                ItemChange(
                    type=ChangeType.MODIFIED,
                    item=new_row,
                    old_item=old_row,
                    section=section,
                    location=location,
                    field_changes=changes,
                )
            )

    for row_id, old_row in old_by_id.items():
        if row_id not in new_by_id:
            deleted.append(
                ItemChange(
                    type=ChangeType.DELETED,
                    item=old_row,
                    section=section,
                    location=old_locations.get(row_id),
                )
            )

    return added, deleted, modified


def compare_settings(
    old_settings: QuotationSettings | None,
    new_settings: QuotationSettings | None,
    old_client: Client | None = None,
    new_client: Client | None = None,
) -> list[SettingsChange]:
    old_settings = old_settings or QuotationSettings()
    new_settings = new_settings or QuotationSettings()
    old_client = old_client or Client()
    new_client = new_client or Client()

    changes = []
    for key, label in SETTINGS_FIELD_LABELS.items():
        old_value = getattr(old_settings, key)
        new_value = getattr(new_settings, key)
        if values_differ(old_value, new_value):
            changes.append(SettingsChange(key, label, old_value, new_value))

    for key, label in CLIENT_FIELD_LABELS.items():
        old_value = getattr(old_client, key)
        new_value = getattr(new_client, key)
        if values_differ(old_value, new_value):
            changes.append(
                SettingsChange(f"client_{key}", label, old_value, new_value)
            )

    return changes


def diff_documents(
    old: Document | None, new: Document | None
) -> tuple[
    list[ItemChange], list[ItemChange], list[ItemChange], list[SettingsChange]
]:
    """Diff two documents. Returns (added, deleted, modified, settings_changes)."""
    old = old or Document()
    new = new or Document()

    added: list[ItemChange] = []
    deleted: list[ItemChange] = []
    modified: list[ItemChange] = []

    for section in Section:
        section_added, section_deleted, section_modified = compare_rows(
            old.rows(section), new.rows(section), section
        )
        added.extend(section_added)
        deleted.extend(section_deleted)
        modified.extend(section_modified)

    settings_changes = compare_settings(
        old.settings, new.settings, old.client, new.client
    )
    return added, deleted, modified, settings_changes


def compare_versions(old: Version, new: Version) -> VersionDiff:
    """Compute the full structural diff from one version to another.

    Aggregate changes come from the grand total and item count stored with
    each version rather than being recalculated.
    """
    added, deleted, modified, settings_changes = diff_documents(
        old.document, new.document
    )
    return VersionDiff(
        from_version=old.version,
        to_version=new.version,
        from_date=old.date,
        to_date=new.date,
        total_change=(new.grand_total or 0) - (old.grand_total or 0),
        item_count_change=(new.item_count or 0) - (old.item_count or 0),
        added_items=added,
        deleted_items=deleted,
        modified_items=modified,
        settings_changes=settings_changes,
    )


def summarize_changes(
    previous: Version,
    document: Document,
    grand_total: float,
    item_count: int,
) -> list[VersionChange]:
    """Cheap "what changed" summary of a new snapshot against the last version."""
    changes = []
    if values_differ(previous.grand_total, grand_total):
        changes.append(VersionChange("Grand Total", previous.grand_total, grand_total))

    if values_differ(previous.item_count, item_count):
        changes.append(VersionChange("Item Count", previous.item_count, item_count))

    old_name = previous.document.client.name
    new_name = document.client.name
    if old_name != new_name:
        changes.append(
            VersionChange("Client Name", old_name or "(empty)", new_name or "(empty)")
        )

    old_settings = previous.document.settings
    if values_differ(old_settings.discount_value, document.settings.discount_value):
        changes.append(
            VersionChange(
                "Discount",
                old_settings.discount_value,
                document.settings.discount_value,
            )
        )

    if old_settings.gst_enabled != document.settings.gst_enabled:
        changes.append(
            VersionChange(
                "GST Enabled",
                "Yes" if old_settings.gst_enabled else "No",
                "Yes" if document.settings.gst_enabled else "No",
            )
        )

    return changes
