"""JSON-safe conversion of documents and versions.

Loading is lenient: legacy records store numbers as strings and use camelCase
keys. Numbers are sanitized here so the rest of the system only ever sees
numeric values, and an absent value stays None instead of becoming zero.
"""

import math
from dataclasses import asdict
from datetime import datetime
from typing import Any, Final

from ...domain.constants import (
    DEFAULT_GST_RATE,
    DISCOUNT_TYPES,
    GST_RATES,
    MAX_NAME_LENGTH,
)
from ...domain.entities import (
    BankAccount,
    Client,
    ContactInfo,
    Document,
    Number,
    QuotationMeta,
    QuotationSettings,
    Row,
    RowKind,
    Version,
    VersionChange,
    today_iso,
)
from ...domain.exceptions import ValidationError
from ...logging_config import get_logger

logger: Final = get_logger(__name__)

_NUMERIC_ROW_FIELDS: Final = (
    "height",
    "width",
    "sqft",
    "rate",
    "amount",
    "qty",
    "total",
)
_CLIENT_FIELDS: Final = ("name", "address", "contact", "email")


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins, so snake_case and legacy camelCase both load."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def to_number(value: Any, field: str = "value") -> Number | None:
    """Coerce a stored value to a number, keeping None for "not set"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("₹", "").strip()
        if not cleaned:
            return None
        try:
            return int(cleaned)
        except ValueError:
            pass
        try:
            number = float(cleaned)
        except ValueError:
            logger.warning("Dropping unparsable number", field=field, value=value[:50])
            return None
        return None if math.isnan(number) else number

    logger.warning("Dropping non-numeric value", field=field, type=type(value).__name__)
    return None


# --- Rows ----------------------------------------------------------------


def row_to_dict(row: Row) -> dict[str, Any]:
    data = asdict(row)
    data["kind"] = row.kind.value
    return data


def _clean_text(value: Any) -> str:
    """Stored labels may contain line breaks; rows only accept single lines."""
    text = str(value or "")
    return "".join(" " if ord(c) < 32 or ord(c) == 127 else c for c in text)


def row_from_dict(data: dict[str, Any]) -> Row:
    kind = _pick(data, "kind", "type", default=RowKind.ITEM.value)
    note = data.get("note")
    return Row(
        id=str(data.get("id") or ""),
        kind=kind,
        name=_clean_text(data.get("name"))[:MAX_NAME_LENGTH],
        note=str(note) if note is not None else None,
        highlighted=bool(data.get("highlighted", False)),
        **{name: to_number(data.get(name), name) for name in _NUMERIC_ROW_FIELDS},
    )


def rows_from_list(items: Any) -> list[Row]:
    if not isinstance(items, list):
        return []

    rows = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            rows.append(row_from_dict(item))
        except ValidationError as e:
            logger.warning(
                "Skipping invalid stored row", row_id=item.get("id"), error=str(e)
            )
    return rows


# --- Settings ------------------------------------------------------------


def settings_to_dict(settings: QuotationSettings) -> dict[str, Any]:
    return asdict(settings)


def settings_from_dict(data: dict[str, Any] | None) -> QuotationSettings:
    data = data or {}

    gst_rate = to_number(_pick(data, "gst_rate", "gstRate"), "gst_rate")
    if gst_rate not in GST_RATES:
        gst_rate = DEFAULT_GST_RATE

    discount_type = _pick(data, "discount_type", "discountType", default="amount")
    if discount_type not in DISCOUNT_TYPES:
        discount_type = "amount"

    accounts = _pick(data, "bank_accounts", "bankAccounts", default=[])
    contact = _pick(data, "contact_info", "contactInfo", default={})

    return QuotationSettings(
        gst_enabled=bool(_pick(data, "gst_enabled", "gstEnabled", default=False)),
        gst_rate=int(gst_rate),
        discount_type=discount_type,
        discount_value=to_number(
            _pick(data, "discount_value", "discountValue"), "discount_value"
        )
        or 0,
        paid_amount=to_number(_pick(data, "paid_amount", "paidAmount"), "paid_amount")
        or 0,
        selected_bank=int(
            to_number(_pick(data, "selected_bank", "selectedBank"), "selected_bank")
            or 0
        ),
        bank_accounts=tuple(
            BankAccount(
                id=str(account.get("id") or ""),
                name=str(account.get("name") or ""),
                bank=str(account.get("bank") or ""),
                acc_no=str(_pick(account, "acc_no", "accNo", default="")),
                ifsc=str(account.get("ifsc") or ""),
                upi=str(account.get("upi") or ""),
                qr_code=_pick(account, "qr_code", "qrCode"),
            )
            for account in accounts
            if isinstance(account, dict)
        ),
        contact_info=ContactInfo(
            phone=str(contact.get("phone") or ""),
            email=str(contact.get("email") or ""),
            location=str(contact.get("location") or ""),
        ),
    )


# --- Documents -----------------------------------------------------------


def document_to_dict(document: Document) -> dict[str, Any]:
    return {
        "client": asdict(document.client),
        "meta": asdict(document.meta),
        "main_items": [row_to_dict(row) for row in document.main_items],
        "additional_items": [row_to_dict(row) for row in document.additional_items],
        "settings": settings_to_dict(document.settings),
    }


def document_from_dict(data: dict[str, Any]) -> Document:
    """Build a document from stored JSON, including the legacy flat layout."""
    client = data.get("client")
    if not isinstance(client, dict):
        client = {
            "name": data.get("clientName"),
            "address": data.get("clientAddress"),
            "contact": data.get("clientContact"),
            "email": data.get("clientEmail"),
        }

    meta = data.get("meta") or data.get("quotationMeta")
    if not isinstance(meta, dict):
        meta = {"date": data.get("quoteDate"), "number": data.get("quoteNumber")}

    settings = data.get("settings")
    if not isinstance(settings, dict):
        # Legacy records keep settings at the top level
        settings = data

    meta_fields = {
        "date": str(meta.get("date") or today_iso()),
    }
    if meta.get("number"):
        meta_fields["number"] = str(meta["number"])

    return Document(
        client=Client(
            **{key: str(client.get(key) or "") for key in _CLIENT_FIELDS}
        ),
        meta=QuotationMeta(**meta_fields),
        main_items=rows_from_list(_pick(data, "main_items", "mainItems", default=[])),
        additional_items=rows_from_list(
            _pick(data, "additional_items", "additionalItems", default=[])
        ),
        settings=settings_from_dict(settings),
    )


# --- Versions ------------------------------------------------------------


def version_to_dict(version: Version) -> dict[str, Any]:
    return {
        "id": version.id,
        "version": version.version,
        "date": version.date,
        "timestamp": version.timestamp.isoformat(),
        "document": document_to_dict(version.document),
        "grand_total": version.grand_total,
        "item_count": version.item_count,
        "note": version.note,
        "changes": [asdict(change) for change in version.changes],
    }


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, int | float):
        # Legacy timestamps are epoch milliseconds
        return datetime.fromtimestamp(value / 1000)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now()


def version_from_dict(data: dict[str, Any]) -> Version:
    document_data = data.get("document")
    document = document_from_dict(
        document_data if isinstance(document_data, dict) else data
    )
    changes = data.get("changes") or []
    return Version(
        id=str(data.get("id") or ""),
        version=int(to_number(data.get("version"), "version") or 0),
        date=str(data.get("date") or ""),
        timestamp=_parse_timestamp(data.get("timestamp")),
        document=document,
        grand_total=to_number(_pick(data, "grand_total", "grandTotal"), "grand_total")
        or 0,
        item_count=int(
            to_number(_pick(data, "item_count", "itemCount"), "item_count") or 0
        ),
        note=data.get("note"),
        changes=tuple(
            VersionChange(
                field=str(change.get("field") or ""),
                old_value=_pick(change, "old_value", "oldValue"),
                new_value=_pick(change, "new_value", "newValue"),
            )
            for change in changes
            if isinstance(change, dict)
        ),
    )
