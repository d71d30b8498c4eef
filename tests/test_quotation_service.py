import threading
import time

import pytest

from src.application.quotation_service import QuotationSession, SessionRegistry
from src.domain.entities import Client, Document, RowKind
from src.domain.exceptions import ValidationError
from tests.factories import make_item


class MemoryStorage:
    """In-memory storage collaborator that records every write."""

    def __init__(self, document: Document | None = None):
        self.document = document
        self.saved: list[Document] = []
        self.versions: list = []
        self.last_number = 0
        self.fail = False

    def load(self):
        return self.document

    def save(self, document):
        if self.fail:
            return False
        self.saved.append(document)
        self.document = document
        return True

    def load_versions(self):
        return list(self.versions), self.last_number

    def save_versions(self, versions, last_number):
        self.versions = list(versions)
        self.last_number = last_number
        return True


@pytest.fixture(name="quotation")
def quotation_fixture():
    return QuotationSession("QT-2025-101", autosave_delay=0)


def test_new_session_has_baseline_history(quotation: QuotationSession):
    assert quotation.document.meta.number == "QT-2025-101"
    assert len(quotation.history) == 1
    assert not quotation.can_undo()
    assert not quotation.can_redo()


def test_add_item_prices_row(quotation: QuotationSession):
    row = quotation.add_item(name="Wardrobe", height=7, width=5, rate=1500)

    assert row is not None
    assert row.sqft == 35
    assert row.total == 52500
    assert quotation.totals().grand_total == 52500
    assert quotation.item_count() == 1
    assert quotation.can_undo()


def test_add_item_after_existing_row(quotation: QuotationSession):
    first = quotation.add_item(name="First")
    quotation.add_item(name="Last")
    assert first is not None

    middle = quotation.add_item(after_id=first.id, name="Middle")

    assert middle is not None
    assert [row.name for row in quotation.document.main_items] == [
        "First",
        "Middle",
        "Last",
    ]
    assert quotation.add_item(after_id="missing", name="x") is None


def test_add_item_to_additional_section(quotation: QuotationSession):
    quotation.add_item("additional", name="Painting", amount=20000)

    assert quotation.document.main_items == []
    assert quotation.totals().additional_total == 20000


def test_unknown_row_field_rejected(quotation: QuotationSession):
    with pytest.raises(ValidationError, match="Unknown row field"):
        quotation.add_item(name="Sofa", colour="red")


def test_update_item_recalculates_group_totals(quotation: QuotationSession):
    floor = quotation.add_floor("Ground Floor")
    row = quotation.add_item(name="TV Unit", rate=80000)
    assert row is not None

    updated = quotation.update_item(row.id, rate=85000)

    assert updated is not None
    assert updated.total == 85000
    assert quotation.document.main_items[0].id == floor.id
    assert quotation.document.main_items[0].total == 85000
    assert quotation.update_item("missing", rate=1) is None


def test_undo_redo_symmetry(quotation: QuotationSession):
    row = quotation.add_item(name="Sofa", rate=100)
    assert row is not None
    quotation.update_item(row.id, rate=200)
    before_undo = quotation.document

    assert quotation.undo()
    assert quotation.document.main_items[0].rate == 100
    assert quotation.redo()
    assert quotation.document == before_undo


def test_many_undos_then_redos_restore_final_state(quotation: QuotationSession):
    row = quotation.add_item(name="Sofa", rate=100)
    assert row is not None
    quotation.update_item(row.id, rate=200, qty=2)
    quotation.add_floor("Ground Floor")
    quotation.set_client(name="Mr. Sharma")
    quotation.update_settings(gst_enabled=True, discount_value=50)
    quotation.add_item("additional", name="Painting", amount=20000)
    edits = 6
    final = quotation.document
    final_totals = quotation.totals()

    for _ in range(edits):
        assert quotation.undo()
    assert not quotation.can_undo()
    assert quotation.item_count() == 0

    for _ in range(edits):
        assert quotation.redo()
    assert not quotation.can_redo()

    restored = quotation.document
    assert restored.client == final.client
    assert restored.meta == final.meta
    assert restored.settings == final.settings
    assert restored.main_items == final.main_items
    assert restored.additional_items == final.additional_items
    assert quotation.totals() == final_totals


def test_undo_at_start_is_noop(quotation: QuotationSession):
    assert quotation.undo() is False
    assert quotation.redo() is False


def test_edit_after_undo_drops_redo(quotation: QuotationSession):
    quotation.add_item(name="A")
    quotation.undo()
    quotation.add_item(name="B")

    assert not quotation.can_redo()
    assert [row.name for row in quotation.document.main_items] == ["B"]


def test_move_item(quotation: QuotationSession):
    a = quotation.add_item(name="A")
    b = quotation.add_item(name="B")
    assert a is not None and b is not None

    assert quotation.move_item(b.id, "up")
    assert [row.name for row in quotation.document.main_items] == ["B", "A"]
    assert not quotation.move_item(b.id, "up")
    assert not quotation.move_item("missing", "down")

    with pytest.raises(ValidationError, match="Direction"):
        quotation.move_item(a.id, "sideways")


def test_delete_and_clear(quotation: QuotationSession):
    a = quotation.add_item(name="A")
    quotation.add_item("additional", name="B")
    assert a is not None

    assert quotation.delete_item(a.id)
    assert not quotation.delete_item(a.id)
    assert quotation.item_count() == 1

    quotation.clear_all_items()
    assert quotation.item_count() == 0
    assert quotation.undo()
    assert quotation.item_count() == 1


def test_floor_and_room_rows(quotation: QuotationSession):
    floor = quotation.add_floor("First Floor")
    room = quotation.add_room("Master Bedroom")

    assert floor.kind is RowKind.FLOOR
    assert room.kind is RowKind.ROOM
    assert quotation.item_count() == 0


def test_update_settings(quotation: QuotationSession):
    quotation.add_item(name="Kitchen", amount=100000)
    settings = quotation.update_settings(gst_enabled=True, discount_value=10000)

    assert settings.gst_enabled
    assert quotation.totals().grand_total == 106200

    with pytest.raises(ValidationError, match="GST rate"):
        quotation.update_settings(gst_rate=3)
    with pytest.raises(ValidationError, match="Unknown settings field"):
        quotation.update_settings(colour="red")
    assert quotation.document.settings.gst_rate == 18


def test_client_and_meta(quotation: QuotationSession):
    quotation.set_client(name="Mr. Sharma", contact="98450 12345")
    quotation.set_meta(date="2025-02-01")

    document = quotation.document
    assert document.client == Client(name="Mr. Sharma", contact="98450 12345")
    assert document.meta.date == "2025-02-01"

    with pytest.raises(ValidationError):
        quotation.set_client(age=40)


def test_bank_accounts(quotation: QuotationSession):
    account = quotation.add_bank_account("Main", bank="SBI", ifsc="SBIN0001")
    updated = quotation.update_bank_account(account.id, upi="shop@sbi")

    assert updated is not None
    assert updated.upi == "shop@sbi"
    assert quotation.update_bank_account("missing", upi="x") is None
    assert quotation.delete_bank_account(account.id)
    assert not quotation.delete_bank_account(account.id)
    assert quotation.document.settings.bank_accounts == ()


def test_contact_info(quotation: QuotationSession):
    settings = quotation.set_contact_info(phone="080 1234", location="Bengaluru")
    assert settings.contact_info.location == "Bengaluru"


def test_save_and_compare_versions(quotation: QuotationSession):
    row = quotation.add_item(name="TV Unit", rate=80000)
    assert row is not None
    v1 = quotation.save_version("first")
    quotation.update_item(row.id, rate=85000)
    v2 = quotation.save_version()

    diff = quotation.compare_versions(v1.id, v2.id)

    assert diff is not None
    assert diff.total_change == 5000
    assert diff.item_count_change == 0
    assert {c.field for c in diff.modified_items[0].field_changes} == {
        "rate",
        "amount",
        "total",
    }
    assert [v.version for v in quotation.versions] == [1, 2]


def test_load_version_restarts_history(quotation: QuotationSession):
    quotation.add_item(name="A")
    version = quotation.save_version()
    quotation.add_item(name="B")

    assert quotation.load_version(version.id)
    assert [row.name for row in quotation.document.main_items] == ["A"]
    assert not quotation.can_undo()
    assert not quotation.load_version("missing")


def test_fetched_version_is_a_copy(quotation: QuotationSession):
    quotation.add_item(name="A")
    version = quotation.save_version()

    fetched = quotation.get_version(version.id)
    assert fetched is not None
    fetched.document.main_items.clear()
    quotation.versions[0].document.main_items.clear()

    stored = quotation.get_version(version.id)
    assert stored is not None
    assert [row.name for row in stored.document.main_items] == ["A"]


def test_version_unaffected_by_later_edits(quotation: QuotationSession):
    row = quotation.add_item(name="A", rate=10)
    assert row is not None
    version = quotation.save_version()

    quotation.update_item(row.id, rate=20)

    stored = quotation.get_version(version.id)
    assert stored is not None
    assert stored.document.main_items[0].rate == 10


def test_reset_starts_fresh(quotation: QuotationSession):
    quotation.add_item(name="A")
    quotation.reset()

    assert quotation.item_count() == 0
    assert quotation.document.meta.number == "QT-2025-101"
    assert not quotation.can_undo()


def test_edits_are_autosaved():
    storage = MemoryStorage()
    quotation = QuotationSession("QT-1", storage, autosave_delay=0)

    quotation.add_item(name="Sofa", amount=1000)

    assert len(storage.saved) == 1
    assert storage.saved[0].main_items[0].name == "Sofa"


def test_autosave_waits_for_flush_without_loop():
    storage = MemoryStorage()
    quotation = QuotationSession("QT-1", storage, autosave_delay=5)

    quotation.add_item(name="A")
    quotation.add_item(name="B")
    assert quotation.autosave_pending
    assert storage.saved == []

    assert quotation.flush() is True
    assert [row.name for row in storage.saved[0].main_items] == ["A", "B"]


def test_failed_autosave_does_not_break_editing():
    storage = MemoryStorage()
    storage.fail = True
    quotation = QuotationSession("QT-1", storage, autosave_delay=0)

    row = quotation.add_item(name="Sofa")

    assert row is not None
    assert quotation.item_count() == 1


def test_load_restores_document_and_versions():
    stored = Document(main_items=[make_item("r1", "Bed", amount=5000, total=5000)])
    storage = MemoryStorage(stored)

    quotation = QuotationSession("QT-1", storage, autosave_delay=0)
    quotation.save_version()
    assert quotation.load()

    assert quotation.document.main_items[0].name == "Bed"
    assert [v.version for v in quotation.versions] == [1]
    assert storage.last_number == 1


def test_load_without_stored_document():
    quotation = QuotationSession("QT-1", MemoryStorage(), autosave_delay=0)
    assert quotation.load() is False


def test_registry_reuses_sessions():
    storages: dict[str, MemoryStorage] = {}

    def factory(quote_number: str) -> MemoryStorage:
        storages[quote_number] = MemoryStorage()
        return storages[quote_number]

    registry = SessionRegistry(factory, autosave_delay=5)
    first = registry.get("QT-1")

    assert registry.get("QT-1") is first
    assert "QT-1" in registry
    assert len(registry) == 1

    first.add_item(name="Desk")
    registry.close_all()

    assert len(registry) == 0
    assert storages["QT-1"].saved[0].main_items[0].name == "Desk"


def test_registry_opens_one_session_under_concurrent_requests():
    class SlowStorage(MemoryStorage):
        def load(self):
            time.sleep(0.2)
            return super().load()

    registry = SessionRegistry(lambda _: SlowStorage(), autosave_delay=5)
    results: list[QuotationSession] = []

    def open_session():
        results.append(registry.get("QT-1"))

    threads = [threading.Thread(target=open_session) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 2
    assert results[0] is results[1]
    assert len(registry) == 1


def test_history_size_setting():
    quotation = QuotationSession("QT-1", history_size=3)
    for number in range(5):
        quotation.add_item(name=str(number))

    assert len(quotation.history) == 3
