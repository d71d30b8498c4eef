"""Domain business rules and constants."""

from typing import Final

# History
MAX_HISTORY_SIZE: Final = 50

# Tax and discount rules
GST_RATES: Final = (5, 12, 18, 28)
DEFAULT_GST_RATE: Final = 18
DISCOUNT_TYPES: Final = ("amount", "percent")

# Payment schedule, percent of grand total
PAYMENT_STAGE_PERCENTAGES: Final = {
    "booking": 5,
    "production": 45,
    "factory": 45,
    "handover": 5,
}

QUOTE_PREFIX: Final = "QT"
MAX_NAME_LENGTH: Final = 200

# Fields compared when diffing item rows, in display order
ITEM_FIELD_LABELS: Final = {
    "name": "Description",
    "height": "Height",
    "width": "Width",
    "rate": "Rate",
    "amount": "Amount",
    "qty": "Qty",
    "total": "Total",
    "note": "Note",
    "highlighted": "Highlighted",
}

# Floor and room rows only carry a label and a rolled-up total
GROUP_FIELD_LABELS: Final = {
    "name": "Name",
    "total": "Total",
}

SETTINGS_FIELD_LABELS: Final = {
    "gst_enabled": "GST",
    "gst_rate": "GST Rate",
    "discount_type": "Discount Type",
    "discount_value": "Discount",
    "paid_amount": "Paid Amount",
}

CLIENT_FIELD_LABELS: Final = {
    "name": "Client Name",
    "contact": "Contact",
    "address": "Address",
}
