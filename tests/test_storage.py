"""Tests for serialization and the SQL-backed quotation storage."""

from datetime import datetime

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from src.application.quotation_service import QuotationSession
from src.domain.entities import (
    Client,
    Document,
    QuotationSettings,
    RowKind,
)
from src.infrastructure.database.repositories import (
    QuotationRepository,
    SqlQuotationStorage,
)
from src.infrastructure.database.serialization import (
    document_from_dict,
    document_to_dict,
    rows_from_list,
    settings_from_dict,
    to_number,
    version_from_dict,
)
from tests.factories import make_floor, make_item, make_version


def test_to_number_sanitizes_legacy_values():
    assert to_number("80000") == 80000
    assert to_number("1,50,000") == 150000
    assert to_number("12.5") == 12.5
    assert to_number("") is None
    assert to_number("abc") is None
    assert to_number(None) is None
    assert to_number(0) == 0
    assert to_number(float("nan")) is None
    assert to_number(True) is None


def test_document_round_trip_keeps_none_and_zero_apart():
    document = Document(
        client=Client(name="Mr. Rao"),
        main_items=[
            make_floor("f1", "Ground Floor", total=0),
            make_item("r1", "TV Unit", rate=0, amount=None, qty=1, total=0),
        ],
        settings=QuotationSettings(gst_enabled=True, gst_rate=12),
    )

    loaded = document_from_dict(document_to_dict(document))

    assert loaded == document
    assert loaded.main_items[1].rate == 0
    assert loaded.main_items[1].amount is None


def test_legacy_flat_layout_loads():
    legacy = {
        "clientName": "Mrs. Iyer",
        "quoteDate": "2024-11-02",
        "quoteNumber": "QT-2024-555",
        "mainItems": [
            {"id": "f1", "type": "floor", "name": "Ground"},
            {"id": "r1", "type": "item", "name": "Sofa", "rate": "45000", "qty": "2"},
        ],
        "gstEnabled": True,
        "gstRate": "28",
        "discountType": "percent",
        "discountValue": "5",
        "bankAccounts": [{"id": "b1", "name": "Main", "accNo": "1234"}],
    }

    document = document_from_dict(legacy)

    assert document.client.name == "Mrs. Iyer"
    assert document.meta.number == "QT-2024-555"
    assert document.main_items[0].kind is RowKind.FLOOR
    assert document.main_items[1].rate == 45000
    assert document.main_items[1].qty == 2
    assert document.settings.gst_rate == 28
    assert document.settings.discount_type == "percent"
    assert document.settings.bank_accounts[0].acc_no == "1234"


def test_invalid_settings_fall_back_to_defaults():
    settings = settings_from_dict({"gst_rate": 7, "discount_type": "coupon"})
    assert settings.gst_rate == 18
    assert settings.discount_type == "amount"


def test_invalid_rows_are_skipped():
    rows = rows_from_list(
        [
            {"id": "ok", "kind": "item", "name": "Sofa"},
            {"id": "bad", "kind": "cellar", "name": "?"},
            "not a row",
        ]
    )
    assert [row.id for row in rows] == ["ok"]


def test_legacy_version_timestamp_in_milliseconds():
    version = version_from_dict(
        {
            "id": "v1",
            "version": "3",
            "date": "2024-11-02",
            "timestamp": 1730540000000,
            "grandTotal": "90000",
            "itemCount": 2,
            "mainItems": [],
        }
    )
    assert version.version == 3
    assert version.grand_total == 90000
    assert version.timestamp == datetime.fromtimestamp(1730540000)


def test_repository_saves_document_and_versions(session: Session):
    repository = QuotationRepository(session)
    document = Document(
        client=Client(name="Mr. Rao"),
        main_items=[make_item("r1", "Bed", amount=5000, qty=1, total=5000)],
    )

    record = repository.save_document("QT-1", document)
    repository.save_versions("QT-1", [make_version(document, 1, 5000, 1)], 4)

    assert record.client_name == "Mr. Rao"
    assert record.grand_total == 5000
    assert repository.load_document("QT-1") == document

    versions, last_number = repository.load_versions("QT-1")
    assert [v.version for v in versions] == [1]
    assert last_number == 4


def test_repository_list_and_delete(session: Session):
    repository = QuotationRepository(session)
    repository.save_document("QT-1", Document())
    repository.save_document("QT-2", Document())

    assert {r.quote_number for r in repository.list_saved()} == {"QT-1", "QT-2"}
    assert repository.delete("QT-1")
    assert not repository.delete("QT-1")
    assert repository.find("QT-1") is None


def test_unknown_quotation_loads_nothing(session: Session):
    repository = QuotationRepository(session)
    assert repository.load_document("missing") is None
    assert repository.load_versions("missing") == ([], 0)


def test_session_persists_through_sql_storage(engine):
    storage = SqlQuotationStorage(engine, "QT-7")
    quotation = QuotationSession("QT-7", storage, autosave_delay=0)
    quotation.add_item(name="Wardrobe", amount=60000)
    quotation.save_version("draft")

    reopened = QuotationSession("QT-7", SqlQuotationStorage(engine, "QT-7"))

    assert reopened.load()
    assert reopened.document.main_items[0].name == "Wardrobe"
    assert [v.note for v in reopened.versions] == ["draft"]
    assert reopened.version_store.last_number == 1


def test_storage_reports_database_failures(engine, monkeypatch):
    storage = SqlQuotationStorage(engine, "QT-9")

    def broken(*_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(QuotationRepository, "save_document", broken)
    monkeypatch.setattr(QuotationRepository, "load_document", broken)
    monkeypatch.setattr(QuotationRepository, "save_versions", broken)
    monkeypatch.setattr(QuotationRepository, "load_versions", broken)

    assert storage.save(Document()) is False
    assert storage.load() is None
    assert storage.save_versions([], 0) is False
    assert storage.load_versions() == ([], 0)
