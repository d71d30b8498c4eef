"""Builders for rows, documents and versions used across the tests."""

from datetime import datetime

from src.domain.entities import Document, Row, RowKind, Version


def make_item(row_id: str, name: str = "", **fields) -> Row:
    return Row(id=row_id, kind=RowKind.ITEM, name=name, **fields)


def make_floor(row_id: str, name: str, **fields) -> Row:
    return Row(id=row_id, kind=RowKind.FLOOR, name=name, **fields)


def make_room(row_id: str, name: str, **fields) -> Row:
    return Row(id=row_id, kind=RowKind.ROOM, name=name, **fields)


def make_version(
    document: Document,
    number: int,
    grand_total: float = 0,
    item_count: int = 0,
) -> Version:
    return Version(
        id=f"v{number}",
        version=number,
        date="2025-01-15",
        timestamp=datetime(2025, 1, 15, 10, number),
        document=document,
        grand_total=grand_total,
        item_count=item_count,
    )


def tv_unit_document(rate: float = 80000, total: float = 80000) -> Document:
    """One-item quotation: a TV unit priced by flat rate."""
    return Document(
        main_items=[make_item("r1", "TV Unit", rate=rate, qty=1, total=total)]
    )
