from datetime import datetime
from typing import Any

from sqlmodel import JSON, Column, Field, SQLModel


class QuotationRecord(SQLModel, table=True):  # type: ignore[call-arg]
    """A saved quotation: the latest document plus its version history."""

    __tablename__: str = "quotations"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    quote_number: str = Field(index=True, unique=True, min_length=1, max_length=64)
    client_name: str = Field(default="", index=True)
    grand_total: float = 0

    # Serialized Document, see serialization.document_to_dict
    document: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # Serialized versions in ascending version order
    versions: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON)
    )
    # Highest version number ever assigned; survives deletion of versions
    last_version_number: int = 0

    saved_at: datetime = Field(default_factory=datetime.now, index=True)
