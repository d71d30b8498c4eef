from datetime import datetime

from src.application.version_service import VersionStore
from src.domain.entities import Client, Document, QuotationSettings
from tests.factories import make_version, tv_unit_document


def test_version_numbers_increase_by_one():
    store = VersionStore()

    numbers = [
        store.save_version(Document(), grand_total=0, item_count=0).version
        for _ in range(3)
    ]

    assert numbers == [1, 2, 3]
    assert store.last_number == 3


def test_numbers_not_reused_after_deleting_newest():
    store = VersionStore()
    store.save_version(Document(), 0, 0)
    newest = store.save_version(Document(), 0, 0)

    assert store.delete_version(newest.id)
    assert store.save_version(Document(), 0, 0).version == 3


def test_high_water_mark_restored_from_storage():
    store = VersionStore([make_version(Document(), 2)], last_number=5)

    assert store.last_number == 5
    assert store.save_version(Document(), 0, 0).version == 6


def test_versions_sorted_on_load():
    store = VersionStore([make_version(Document(), 3), make_version(Document(), 1)])
    assert [v.version for v in store.versions] == [1, 3]
    assert store.last_number == 3


def test_saved_version_is_a_snapshot():
    document = tv_unit_document()
    store = VersionStore()
    version = store.save_version(document, 80000, 1, note="first draft")

    document.main_items.clear()

    assert len(version.document.main_items) == 1
    assert version.note == "first draft"


def test_returned_versions_cannot_change_stored_ones():
    store = VersionStore()
    saved = store.save_version(tv_unit_document(), 80000, 1)

    saved.document.main_items.clear()
    fetched = store.get(saved.id)
    assert fetched is not None
    fetched.document.main_items.clear()
    store.versions[0].document.main_items.clear()

    stored = store.get(saved.id)
    assert stored is not None
    assert [row.name for row in stored.document.main_items] == ["TV Unit"]


def test_save_version_records_date_and_timestamp():
    now = datetime(2025, 3, 1, 9, 30)
    version = VersionStore().save_version(Document(), 0, 0, now=now)

    assert version.date == "2025-03-01"
    assert version.timestamp == now
    assert version.changes == ()


def test_changes_summarized_against_previous_version():
    store = VersionStore()
    store.save_version(tv_unit_document(), grand_total=80000, item_count=1)

    document = tv_unit_document(85000, 85000)
    document.client = Client(name="Mrs. Iyer")
    document.settings = QuotationSettings(gst_enabled=True, discount_value=2000)
    version = store.save_version(document, grand_total=97940, item_count=1)

    assert [(c.field, c.old_value, c.new_value) for c in version.changes] == [
        ("Grand Total", 80000, 97940),
        ("Client Name", "(empty)", "Mrs. Iyer"),
        ("Discount", 0, 2000),
        ("GST Enabled", "No", "Yes"),
    ]


def test_delete_unknown_version():
    store = VersionStore()
    assert store.delete_version("missing") is False


def test_compare_versions():
    store = VersionStore()
    v1 = store.save_version(tv_unit_document(), 80000, 1)
    v2 = store.save_version(tv_unit_document(85000, 85000), 85000, 1)

    diff = store.compare_versions(v1.id, v2.id)

    assert diff is not None
    assert diff.total_change == 5000
    assert store.compare_versions(v1.id, "missing") is None
