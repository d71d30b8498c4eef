"""Pricing engine for quotation rows.

Pure functions only. Row totals roll up into floor and room totals, then into
section totals, discount, GST and the grand total that versions record.
"""

import math
from dataclasses import dataclass, field

from .constants import PAYMENT_STAGE_PERCENTAGES
from .entities import Document, Number, QuotationSettings, Row, RowKind


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class PaymentStages:
    booking: int = 0
    production: int = 0
    factory: int = 0
    handover: int = 0


@dataclass(frozen=True)
class CalculatedTotals:
    main_total: Number = 0
    additional_total: Number = 0
    subtotal: Number = 0
    discount_amount: int = 0
    after_discount: int = 0
    gst_amount: int = 0
    grand_total: int = 0
    balance_amount: Number = 0
    payment_stages: PaymentStages = field(default_factory=PaymentStages)


def calculate_item_row(row: Row) -> tuple[Number, int, int]:
    """Calculate (sqft, amount, total) for a single item row.

    Dimensions win over a direct amount, which wins over a flat rate.
    """
    if not row.is_item:
        return 0, 0, 0

    height = row.height or 0
    width = row.width or 0
    rate = row.rate or 0
    qty = row.qty or 1
    direct_amount = row.amount or 0

    sqft: float = 0
    amount: float = 0
    total: float = 0

    if height > 0 and width > 0:
        sqft = height * width
        amount = sqft * rate
        total = amount * qty
    elif direct_amount > 0:
        amount = direct_amount
        total = amount * qty
    elif rate > 0:
        amount = rate
        total = amount * qty

    return (
        round(sqft, 2) if sqft else 0,
        round_half_up(amount) if amount else 0,
        round_half_up(total) if total else 0,
    )


def recalculate_all_items(rows: list[Row]) -> list[Row]:
    result = []
    for row in rows:
        if row.is_item:
            sqft, amount, total = calculate_item_row(row)
            row = row.with_updates(sqft=sqft, amount=amount, total=total)
        result.append(row)
    return result


def _roll_up_totals(rows: list[Row], kind: RowKind) -> list[Row]:
    """Set each floor (or room) row's total to the sum of the items under it.

    A room's scope ends at the next room or floor; a floor's at the next floor.
    """
    result = list(rows)
    current_index = -1
    running_total: Number = 0

    def close_group() -> None:
        if current_index >= 0:
            result[current_index] = result[current_index].with_updates(
                total=running_total
            )

    for index, row in enumerate(result):
        if row.kind is kind:
            close_group()
            current_index = index
            running_total = 0
        elif row.kind is RowKind.FLOOR:
            close_group()
            current_index = -1
            running_total = 0
        elif row.is_item:
            running_total += row.total or 0

    close_group()
    return result


def calculate_floor_totals(rows: list[Row]) -> list[Row]:
    return _roll_up_totals(rows, RowKind.FLOOR)


def calculate_room_totals(rows: list[Row]) -> list[Row]:
    return _roll_up_totals(rows, RowKind.ROOM)


def recalculate_section(rows: list[Row]) -> list[Row]:
    """Full recalculation of items plus floor and room totals."""
    result = recalculate_all_items(rows)
    result = calculate_floor_totals(result)
    return calculate_room_totals(result)


def calculate_section_total(rows: list[Row]) -> Number:
    return sum((row.total or 0) for row in rows if row.is_item)


def calculate_discount(
    subtotal: Number, discount_type: str, discount_value: Number
) -> Number:
    if discount_value <= 0:
        return 0
    if discount_type == "percent":
        return subtotal * discount_value / 100
    return discount_value


def calculate_gst(after_discount: Number, gst_enabled: bool, gst_rate: int) -> Number:
    if not gst_enabled or gst_rate <= 0:
        return 0
    return after_discount * gst_rate / 100


def calculate_payment_stages(grand_total: Number) -> PaymentStages:
    return PaymentStages(
        **{
            stage: round_half_up(grand_total * percent / 100)
            for stage, percent in PAYMENT_STAGE_PERCENTAGES.items()
        }
    )


def calculate_totals(
    main_items: list[Row],
    additional_items: list[Row],
    settings: QuotationSettings,
) -> CalculatedTotals:
    main_total = calculate_section_total(main_items)
    additional_total = calculate_section_total(additional_items)
    subtotal = main_total + additional_total

    discount_amount = calculate_discount(
        subtotal, settings.discount_type, settings.discount_value
    )
    after_discount = subtotal - discount_amount
    gst_amount = calculate_gst(after_discount, settings.gst_enabled, settings.gst_rate)
    grand_total = round_half_up(after_discount + gst_amount)

    return CalculatedTotals(
        main_total=main_total,
        additional_total=additional_total,
        subtotal=subtotal,
        discount_amount=round_half_up(discount_amount),
        after_discount=round_half_up(after_discount),
        gst_amount=round_half_up(gst_amount),
        grand_total=grand_total,
        balance_amount=max(0, grand_total - settings.paid_amount),
        payment_stages=calculate_payment_stages(grand_total),
    )


def calculate_all_totals(document: Document) -> CalculatedTotals:
    return calculate_totals(
        document.main_items or [],
        document.additional_items or [],
        document.settings,
    )


def count_items(document: Document) -> int:
    """Number of priced item rows across both sections."""
    rows = (document.main_items or []) + (document.additional_items or [])
    return sum(1 for row in rows if row.is_item)


def find_incomplete_items(rows: list[Row]) -> list[tuple[int, Row, list[str]]]:
    """Find item rows missing a description or any pricing input."""
    incomplete = []
    for index, row in enumerate(rows):
        if not row.is_item:
            continue

        issues = []
        if not row.name.strip():
            issues.append("Missing description")

        has_amount = (row.amount or 0) > 0
        has_rate = (row.rate or 0) > 0
        if not has_amount and not has_rate:
            issues.append("Missing rate or amount")

        if issues:
            incomplete.append((index, row, issues))
    return incomplete


def validate_quotation(document: Document) -> list[str]:
    """Return the reasons a quotation is not ready for export; empty if valid."""
    errors = []
    if not document.client.name.strip():
        errors.append("Client name is required")

    main_incomplete = find_incomplete_items(document.main_items or [])
    if main_incomplete:
        errors.append(f"{len(main_incomplete)} incomplete item(s) in Main Work")

    additional_incomplete = find_incomplete_items(document.additional_items or [])
    if additional_incomplete:
        errors.append(
            f"{len(additional_incomplete)} incomplete item(s) in Additional Work"
        )

    return errors
