"""Pure domain entities without infrastructure dependencies."""

import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from .constants import (
    DEFAULT_GST_RATE,
    DISCOUNT_TYPES,
    GST_RATES,
    MAX_NAME_LENGTH,
    QUOTE_PREFIX,
)
from .exceptions import ValidationError

Number = int | float


class RowKind(StrEnum):
    FLOOR = "floor"
    ROOM = "room"
    ITEM = "item"


class Section(StrEnum):
    MAIN = "main"
    ADDITIONAL = "additional"


class ChangeType(StrEnum):
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"


def generate_id(prefix: str = "qq") -> str:
    """Generate an opaque identifier that is never reused."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def today_iso() -> str:
    return date.today().isoformat()


def generate_quote_number() -> str:
    return f"{QUOTE_PREFIX}-{date.today().year}-{random.randint(100, 999)}"


def parse_section(section: "Section | str") -> "Section":
    """Convert a section name into a Section.

    Raises:
        ValidationError: If the name is not a known section
    """
    try:
        return Section(section)
    except ValueError as e:
        raise ValidationError(f"Unknown section: {section!r}") from e


def validate_row_name(name: str) -> None:
    """Validate a row label according to domain business rules.

    Empty names are allowed because new item rows start blank.

    Args:
        name: The label to validate

    Raises:
        ValidationError: If name is too long or contains control characters
    """
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Row name cannot be longer than {MAX_NAME_LENGTH} characters"
        )

    for char in name:
        if (ord(char) < 32 and char != " ") or ord(char) == 127:
            raise ValidationError(
                "Row name cannot contain newlines, tabs, or other control characters"
            )


@dataclass(frozen=True)
class Row:
    """One line of a quotation: a floor header, a room header or a priced item.

    Numeric fields use None for "not set", which is distinct from zero.
    sqft, amount and total are derived by the pricing engine.
    """

    id: str
    kind: RowKind
    name: str = ""
    height: Number | None = None
    width: Number | None = None
    sqft: Number | None = None
    rate: Number | None = None
    amount: Number | None = None
    qty: Number | None = None
    total: Number | None = None
    note: str | None = None
    highlighted: bool = False

    def __post_init__(self):
        if not isinstance(self.kind, RowKind):
            try:
                object.__setattr__(self, "kind", RowKind(self.kind))
            except ValueError as e:
                raise ValidationError(f"Unknown row kind: {self.kind!r}") from e
        validate_row_name(self.name)

    @classmethod
    def item(cls, name: str = "", **fields: Any) -> "Row":
        """Create a new item row with a fresh id and a default quantity of 1."""
        fields.setdefault("qty", 1)
        if fields["qty"] is None:
            fields["qty"] = 1
        return cls(id=generate_id("item"), kind=RowKind.ITEM, name=name, **fields)

    @classmethod
    def floor(cls, name: str) -> "Row":
        return cls(id=generate_id("floor"), kind=RowKind.FLOOR, name=name)

    @classmethod
    def room(cls, name: str) -> "Row":
        return cls(id=generate_id("room"), kind=RowKind.ROOM, name=name)

    @property
    def is_item(self) -> bool:
        return self.kind is RowKind.ITEM

    def with_updates(self, **changes: Any) -> "Row":
        """Return a copy of this row with the given fields replaced."""
        if "id" in changes or "kind" in changes:
            raise ValidationError("Row id and kind cannot be changed")
        return replace(self, **changes)


@dataclass(frozen=True)
class Client:
    name: str = ""
    address: str = ""
    contact: str = ""
    email: str = ""


@dataclass(frozen=True)
class QuotationMeta:
    date: str = field(default_factory=today_iso)
    number: str = field(default_factory=generate_quote_number)


@dataclass(frozen=True)
class ContactInfo:
    phone: str = ""
    email: str = ""
    location: str = ""


@dataclass(frozen=True)
class BankAccount:
    id: str
    name: str
    bank: str = ""
    acc_no: str = ""
    ifsc: str = ""
    upi: str = ""
    qr_code: str | None = None


@dataclass(frozen=True)
class QuotationSettings:
    """Pricing and payment settings of a quotation."""

    gst_enabled: bool = False
    gst_rate: int = DEFAULT_GST_RATE
    discount_type: str = "amount"
    discount_value: Number = 0
    paid_amount: Number = 0
    selected_bank: int = 0
    bank_accounts: tuple[BankAccount, ...] = ()
    contact_info: ContactInfo = field(default_factory=ContactInfo)

    def __post_init__(self):
        if not isinstance(self.bank_accounts, tuple):
            object.__setattr__(self, "bank_accounts", tuple(self.bank_accounts))
        self.validate()

    def validate(self) -> None:
        if self.discount_type not in DISCOUNT_TYPES:
            raise ValidationError(
                f"Discount type must be one of {', '.join(DISCOUNT_TYPES)}"
            )
        if self.gst_rate not in GST_RATES:
            raise ValidationError(
                f"GST rate must be one of {', '.join(str(r) for r in GST_RATES)}"
            )

    def with_updates(self, **changes: Any) -> "QuotationSettings":
        return replace(self, **changes)


@dataclass
class Document:
    """The editable quotation state at one point in time.

    Rows and settings are immutable, so a snapshot only needs fresh row
    lists to be structurally independent of the live document.
    """

    client: Client = field(default_factory=Client)
    meta: QuotationMeta = field(default_factory=QuotationMeta)
    main_items: list[Row] = field(default_factory=list)
    additional_items: list[Row] = field(default_factory=list)
    settings: QuotationSettings = field(default_factory=QuotationSettings)

    def snapshot(self) -> "Document":
        return Document(
            client=self.client,
            meta=self.meta,
            main_items=list(self.main_items or []),
            additional_items=list(self.additional_items or []),
            settings=self.settings,
        )

    def rows(self, section: Section | str) -> list[Row]:
        if parse_section(section) is Section.MAIN:
            return self.main_items or []
        return self.additional_items or []

    def with_rows(self, section: Section | str, rows: list[Row]) -> "Document":
        """Return a snapshot with one section's rows replaced."""
        copy = self.snapshot()
        if parse_section(section) is Section.MAIN:
            copy.main_items = list(rows)
        else:
            copy.additional_items = list(rows)
        return copy

    def find_row(self, row_id: str) -> tuple[Section, int] | None:
        """Locate a row by id, searching the main section first."""
        for section in Section:
            for index, row in enumerate(self.rows(section)):
                if row.id == row_id:
                    return section, index
        return None


@dataclass(frozen=True)
class HistoryEntry:
    """An undo/redo snapshot of a document."""

    document: Document
    timestamp: datetime = field(default_factory=datetime.now)

    def detached(self) -> "HistoryEntry":
        """Copy whose row lists can be changed without touching this entry."""
        return replace(self, document=self.document.snapshot())


@dataclass(frozen=True)
class VersionChange:
    """One line of the inline "what changed" summary stored with a version."""

    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class Version:
    """A named, durable snapshot of a document."""

    id: str
    version: int
    date: str
    timestamp: datetime
    document: Document
    grand_total: Number = 0
    item_count: int = 0
    note: str | None = None
    changes: tuple[VersionChange, ...] = ()

    @property
    def client(self) -> Client:
        return self.document.client

    def detached(self) -> "Version":
        return replace(self, document=self.document.snapshot())


@dataclass(frozen=True)
class FieldChange:
    field: str
    label: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class ItemChange:
    type: ChangeType
    item: Row
    section: Section
    old_item: Row | None = None
    location: str | None = None
    field_changes: tuple[FieldChange, ...] = ()


@dataclass(frozen=True)
class SettingsChange:
    field: str
    label: str
    old_value: Any
    new_value: Any


@dataclass
class VersionDiff:
    """Structural difference between two versions."""

    from_version: int
    to_version: int
    from_date: str
    to_date: str
    total_change: Number = 0
    item_count_change: int = 0
    added_items: list[ItemChange] = field(default_factory=list)
    deleted_items: list[ItemChange] = field(default_factory=list)
    modified_items: list[ItemChange] = field(default_factory=list)
    settings_changes: list[SettingsChange] = field(default_factory=list)
