from datetime import datetime
from typing import Any, Final

from fastapi import APIRouter, Depends, Path, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from ..application.quotation_service import QuotationSession, SessionRegistry
from ..config import settings
from ..domain.calculations import validate_quotation
from ..domain.constants import MAX_NAME_LENGTH
from ..domain.entities import ChangeType, RowKind, Section, Version, VersionDiff
from ..domain.exceptions import (
    QuotationNotFoundError,
    RowNotFoundError,
    VersionNotFoundError,
)
from ..domain.summary import DiffSummary
from ..infrastructure.database.database import get_main_engine, get_session
from ..infrastructure.database.repositories import (
    QuotationRepository,
    SqlQuotationStorage,
)
from ..logging_utils import log_quotation_action

api_router: Final = APIRouter(
    prefix="/api/v1",
    tags=["quotations"],
    responses={
        400: {"description": "Bad Request - Invalid input data"},
        404: {"description": "Not Found - Resource does not exist"},
    },
)

Numeric = int | float


# Request Models
class ClientUpdate(BaseModel):
    """Client fields to change; omitted fields are left as they are."""

    name: str | None = Field(None, max_length=MAX_NAME_LENGTH, examples=["Mr. Sharma"])
    address: str | None = Field(None, max_length=500)
    contact: str | None = Field(None, max_length=100, examples=["+91 98765 43210"])
    email: str | None = Field(None, max_length=200)


class MetaUpdate(BaseModel):
    date: str | None = Field(None, description="Quotation date (YYYY-MM-DD)")
    number: str | None = Field(None, max_length=64, description="Display number")


class SettingsUpdate(BaseModel):
    """Pricing settings to change."""

    gst_enabled: bool | None = None
    gst_rate: int | None = Field(None, examples=[18])
    discount_type: str | None = Field(None, examples=["amount", "percent"])
    discount_value: Numeric | None = Field(None, ge=0)
    paid_amount: Numeric | None = Field(None, ge=0)
    selected_bank: int | None = Field(None, ge=0)


class ItemFields(BaseModel):
    name: str | None = Field(None, max_length=MAX_NAME_LENGTH, examples=["TV Unit"])
    height: Numeric | None = Field(None, ge=0, description="Height in feet")
    width: Numeric | None = Field(None, ge=0, description="Width in feet")
    rate: Numeric | None = Field(None, ge=0, description="Rate per sqft or unit")
    amount: Numeric | None = Field(None, ge=0, description="Direct amount")
    qty: Numeric | None = Field(None, ge=0)
    note: str | None = Field(None, max_length=1000)
    highlighted: bool | None = None


class ItemCreate(ItemFields):
    section: str = Field("main", description="Either 'main' or 'additional'")
    after_id: str | None = Field(
        None, description="Insert right after this row instead of at the end"
    )


class GroupCreate(BaseModel):
    """Request model for floor and room header rows."""

    name: str = Field(..., max_length=MAX_NAME_LENGTH, examples=["Ground Floor"])
    section: str = Field("main", description="Either 'main' or 'additional'")


class MoveRequest(BaseModel):
    direction: str = Field(..., description="Either 'up' or 'down'")


class VersionCreate(BaseModel):
    note: str | None = Field(None, max_length=500, examples=["Sent to client"])


# Response Models
class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class RowResponse(_FromAttributes):
    id: str
    kind: RowKind
    name: str
    height: Numeric | None
    width: Numeric | None
    sqft: Numeric | None
    rate: Numeric | None
    amount: Numeric | None
    qty: Numeric | None
    total: Numeric | None
    note: str | None
    highlighted: bool


class ClientResponse(_FromAttributes):
    name: str
    address: str
    contact: str
    email: str


class MetaResponse(_FromAttributes):
    date: str
    number: str


class BankAccountResponse(_FromAttributes):
    id: str
    name: str
    bank: str
    acc_no: str
    ifsc: str
    upi: str
    qr_code: str | None


class ContactInfoResponse(_FromAttributes):
    phone: str
    email: str
    location: str


class SettingsResponse(_FromAttributes):
    gst_enabled: bool
    gst_rate: int
    discount_type: str
    discount_value: Numeric
    paid_amount: Numeric
    selected_bank: int
    bank_accounts: list[BankAccountResponse]
    contact_info: ContactInfoResponse


class DocumentResponse(_FromAttributes):
    client: ClientResponse
    meta: MetaResponse
    main_items: list[RowResponse]
    additional_items: list[RowResponse]
    settings: SettingsResponse


class PaymentStagesResponse(_FromAttributes):
    booking: int
    production: int
    factory: int
    handover: int


class TotalsResponse(_FromAttributes):
    main_total: Numeric
    additional_total: Numeric
    subtotal: Numeric
    discount_amount: int
    after_discount: int
    gst_amount: int
    grand_total: int
    balance_amount: Numeric
    payment_stages: PaymentStagesResponse


class HistoryResponse(BaseModel):
    """Undo/redo position of an editing session."""

    index: int = Field(description="Cursor into the history, -1 when empty")
    size: int = Field(description="Number of stored snapshots")
    can_undo: bool
    can_redo: bool


class QuotationResponse(BaseModel):
    """Live document of an editing session with its derived totals."""

    quote_number: str
    document: DocumentResponse
    totals: TotalsResponse
    item_count: int
    history: HistoryResponse
    autosave_pending: bool
    issues: list[str] = Field(
        description="Reasons the quotation is not ready to send; empty when complete"
    )


class RowActionResponse(BaseModel):
    row: RowResponse
    quotation: QuotationResponse


class HistoryActionResponse(BaseModel):
    applied: bool = Field(description="False when there was nothing to undo/redo")
    quotation: QuotationResponse


class ActionResponse(BaseModel):
    success: bool = Field(description="Whether the operation succeeded")
    message: str = Field(description="Result message")


class SavedQuotationResponse(_FromAttributes):
    quote_number: str
    client_name: str
    grand_total: float
    last_version_number: int
    saved_at: datetime


class VersionChangeResponse(_FromAttributes):
    field: str
    old_value: Any
    new_value: Any


class VersionSummaryResponse(BaseModel):
    id: str
    version: int
    date: str
    timestamp: datetime
    client_name: str
    grand_total: Numeric
    item_count: int
    note: str | None
    changes: list[VersionChangeResponse]


class VersionDetailResponse(VersionSummaryResponse):
    document: DocumentResponse


class FieldChangeResponse(_FromAttributes):
    field: str
    label: str
    old_value: Any
    new_value: Any


class ItemChangeResponse(_FromAttributes):
    type: ChangeType
    item: RowResponse
    section: Section
    old_item: RowResponse | None
    location: str | None
    field_changes: list[FieldChangeResponse]


class DiffSummaryResponse(BaseModel):
    added: int
    deleted: int
    modified: int
    settings: int
    has_changes: bool
    badges: dict[str, int]
    text: str
    total_change_text: str


class VersionDiffResponse(_FromAttributes):
    from_version: int
    to_version: int
    from_date: str
    to_date: str
    total_change: Numeric
    item_count_change: int
    added_items: list[ItemChangeResponse]
    deleted_items: list[ItemChangeResponse]
    modified_items: list[ItemChangeResponse]
    settings_changes: list[FieldChangeResponse]
    summary: DiffSummaryResponse


# Dependencies
async def get_registry(request: Request) -> SessionRegistry:
    """Session registry stored on the application, created on first use."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        registry = SessionRegistry(
            lambda quote_number: SqlQuotationStorage(get_main_engine(), quote_number)
        )
        request.app.state.registry = registry
    return registry


async def get_quotation(
    quote_number: str = Path(
        min_length=1, max_length=64, description="Quotation number, e.g. QT-2025-101"
    ),
    registry: SessionRegistry = Depends(get_registry),
) -> QuotationSession:
    return registry.get(quote_number)


# Converters
def _history(quotation: QuotationSession) -> HistoryResponse:
    return HistoryResponse(
        index=quotation.history.index,
        size=len(quotation.history),
        can_undo=quotation.can_undo(),
        can_redo=quotation.can_redo(),
    )


def _quotation_response(quotation: QuotationSession) -> QuotationResponse:
    document = quotation.snapshot()
    return QuotationResponse(
        quote_number=quotation.quote_number,
        document=DocumentResponse.model_validate(document),
        totals=TotalsResponse.model_validate(quotation.totals()),
        item_count=quotation.item_count(),
        history=_history(quotation),
        autosave_pending=quotation.autosave_pending,
        issues=validate_quotation(document),
    )


def _version_fields(version: Version) -> dict[str, Any]:
    return {
        "id": version.id,
        "version": version.version,
        "date": version.date,
        "timestamp": version.timestamp,
        "client_name": version.client.name,
        "grand_total": version.grand_total,
        "item_count": version.item_count,
        "note": version.note,
        "changes": [
            VersionChangeResponse.model_validate(change) for change in version.changes
        ],
    }


def _diff_response(diff: VersionDiff) -> VersionDiffResponse:
    summary = DiffSummary.from_diff(diff)
    return VersionDiffResponse(
        from_version=diff.from_version,
        to_version=diff.to_version,
        from_date=diff.from_date,
        to_date=diff.to_date,
        total_change=diff.total_change,
        item_count_change=diff.item_count_change,
        added_items=[ItemChangeResponse.model_validate(c) for c in diff.added_items],
        deleted_items=[
            ItemChangeResponse.model_validate(c) for c in diff.deleted_items
        ],
        modified_items=[
            ItemChangeResponse.model_validate(c) for c in diff.modified_items
        ],
        settings_changes=[
            FieldChangeResponse.model_validate(c) for c in diff.settings_changes
        ],
        summary=DiffSummaryResponse(
            added=summary.added,
            deleted=summary.deleted,
            modified=summary.modified,
            settings=summary.settings,
            has_changes=summary.has_changes,
            badges=summary.badges,
            text=summary.text,
            total_change_text=summary.total_change_text(settings.currency_symbol),
        ),
    )


def _require_row(quotation: QuotationSession, row_id: str) -> None:
    if quotation.snapshot().find_row(row_id) is None:
        raise RowNotFoundError(f'Row "{row_id}" not found', row_id)


def _require_version(quotation: QuotationSession, version_id: str) -> Version:
    version = quotation.get_version(version_id)
    if version is None:
        raise VersionNotFoundError(f'Version "{version_id}" not found', version_id)
    return version


# Saved quotations
@api_router.get(
    "/quotations",
    response_model=list[SavedQuotationResponse],
    summary="List saved quotations",
    description="All stored quotations, most recently saved first.",
)
async def api_list_quotations(
    *, session: Session = Depends(get_session)
) -> list[SavedQuotationResponse]:
    records = QuotationRepository(session).list_saved()
    return [SavedQuotationResponse.model_validate(record) for record in records]


@api_router.get(
    "/quotations/{quote_number}",
    response_model=QuotationResponse,
    summary="Open a quotation",
    description="""
    Return the live document of a quotation together with its totals and
    undo/redo state.

    Opening an unknown quote number starts a new, empty quotation under that
    number. Nothing is stored until the first edit.
    """,
)
async def api_get_quotation(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> QuotationResponse:
    return _quotation_response(quotation)


@api_router.delete(
    "/quotations/{quote_number}",
    response_model=ActionResponse,
    summary="Delete a saved quotation",
    responses={404: {"description": "No saved quotation with that number"}},
)
async def api_delete_quotation(
    *,
    quote_number: str = Path(min_length=1, max_length=64),
    session: Session = Depends(get_session),
    registry: SessionRegistry = Depends(get_registry),
) -> ActionResponse:
    registry.discard(quote_number)
    if not QuotationRepository(session).delete(quote_number):
        raise QuotationNotFoundError(
            f'Quotation "{quote_number}" not found', quote_number
        )
    log_quotation_action("delete_quotation", quote_number)
    return ActionResponse(success=True, message="Quotation deleted")


@api_router.post(
    "/quotations/{quote_number}/save",
    response_model=ActionResponse,
    summary="Save pending changes now",
    description="Write a pending autosave immediately instead of waiting.",
)
async def api_save_quotation(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> ActionResponse:
    result = quotation.flush()
    if result is None:
        return ActionResponse(success=True, message="No pending changes")
    log_quotation_action("save", quotation.quote_number, success=result)
    if not result:
        return ActionResponse(success=False, message="Saving failed")
    return ActionResponse(success=True, message="Quotation saved")


# Client, meta and settings
@api_router.put(
    "/quotations/{quote_number}/client",
    response_model=QuotationResponse,
    summary="Update client details",
)
async def api_update_client(
    *, quotation: QuotationSession = Depends(get_quotation), body: ClientUpdate
) -> QuotationResponse:
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    quotation.set_client(**fields)
    log_quotation_action("update_client", quotation.quote_number, fields=sorted(fields))
    return _quotation_response(quotation)


@api_router.put(
    "/quotations/{quote_number}/meta",
    response_model=QuotationResponse,
    summary="Update quotation date and number",
)
async def api_update_meta(
    *, quotation: QuotationSession = Depends(get_quotation), body: MetaUpdate
) -> QuotationResponse:
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    quotation.set_meta(**fields)
    log_quotation_action("update_meta", quotation.quote_number, fields=sorted(fields))
    return _quotation_response(quotation)


@api_router.put(
    "/quotations/{quote_number}/settings",
    response_model=QuotationResponse,
    summary="Update pricing settings",
    description="""
    Change GST, discount, paid amount or the selected bank account.

    **GST rate** must be one of 5, 12, 18 or 28. **Discount type** is either
    `amount` (flat) or `percent`.
    """,
)
async def api_update_settings(
    *, quotation: QuotationSession = Depends(get_quotation), body: SettingsUpdate
) -> QuotationResponse:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    quotation.update_settings(**changes)
    log_quotation_action(
        "update_settings", quotation.quote_number, fields=sorted(changes)
    )
    return _quotation_response(quotation)


# Rows
@api_router.post(
    "/quotations/{quote_number}/items",
    response_model=RowActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an item row",
    description="""
    Add a priced item at the end of a section, or directly after an existing
    row when `after_id` is given. The row is priced immediately:
    height x width x rate when dimensions are set, otherwise the direct amount,
    otherwise the rate, each multiplied by the quantity.
    """,
    responses={404: {"description": "The after_id row does not exist"}},
)
async def api_add_item(
    *, quotation: QuotationSession = Depends(get_quotation), body: ItemCreate
) -> RowActionResponse:
    fields = body.model_dump(exclude_unset=True, exclude={"section", "after_id"})
    fields = {key: value for key, value in fields.items() if value is not None}
    row = quotation.add_item(body.section, after_id=body.after_id, **fields)
    if row is None:
        raise RowNotFoundError(f'Row "{body.after_id}" not found', body.after_id)

    log_quotation_action("add_item", quotation.quote_number, row_id=row.id)
    return RowActionResponse(
        row=RowResponse.model_validate(row), quotation=_quotation_response(quotation)
    )


@api_router.patch(
    "/quotations/{quote_number}/items/{row_id}",
    response_model=RowActionResponse,
    summary="Update a row",
    description="Set fields of a row. Sending `null` clears a numeric field.",
    responses={404: {"description": "Row not found"}},
)
async def api_update_item(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    row_id: str = Path(description="Row identifier"),
    body: ItemFields,
) -> RowActionResponse:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    if changes.get("highlighted") is None:
        changes.pop("highlighted", None)

    row = quotation.update_item(row_id, **changes)
    if row is None:
        raise RowNotFoundError(f'Row "{row_id}" not found', row_id)

    log_quotation_action(
        "update_item", quotation.quote_number, row_id=row_id, fields=sorted(changes)
    )
    return RowActionResponse(
        row=RowResponse.model_validate(row), quotation=_quotation_response(quotation)
    )


@api_router.delete(
    "/quotations/{quote_number}/items/{row_id}",
    response_model=QuotationResponse,
    summary="Delete a row",
    responses={404: {"description": "Row not found"}},
)
async def api_delete_item(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    row_id: str = Path(description="Row identifier"),
) -> QuotationResponse:
    if not quotation.delete_item(row_id):
        raise RowNotFoundError(f'Row "{row_id}" not found', row_id)
    log_quotation_action("delete_item", quotation.quote_number, row_id=row_id)
    return _quotation_response(quotation)


@api_router.delete(
    "/quotations/{quote_number}/items",
    response_model=QuotationResponse,
    summary="Remove all rows",
    description="Clear both sections. The change can be undone.",
)
async def api_clear_items(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> QuotationResponse:
    quotation.clear_all_items()
    log_quotation_action("clear_all_items", quotation.quote_number)
    return _quotation_response(quotation)


@api_router.post(
    "/quotations/{quote_number}/items/{row_id}/move",
    response_model=HistoryActionResponse,
    summary="Move a row up or down",
    description="Moving the first row up or the last row down changes nothing.",
    responses={404: {"description": "Row not found"}},
)
async def api_move_item(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    row_id: str = Path(description="Row identifier"),
    body: MoveRequest,
) -> HistoryActionResponse:
    _require_row(quotation, row_id)
    moved = quotation.move_item(row_id, body.direction)
    if moved:
        log_quotation_action(
            "move_item", quotation.quote_number, row_id=row_id, direction=body.direction
        )
    return HistoryActionResponse(
        applied=moved, quotation=_quotation_response(quotation)
    )


@api_router.post(
    "/quotations/{quote_number}/floors",
    response_model=RowActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a floor header",
)
async def api_add_floor(
    *, quotation: QuotationSession = Depends(get_quotation), body: GroupCreate
) -> RowActionResponse:
    row = quotation.add_floor(body.name, body.section)
    log_quotation_action("add_floor", quotation.quote_number, row_id=row.id)
    return RowActionResponse(
        row=RowResponse.model_validate(row), quotation=_quotation_response(quotation)
    )


@api_router.post(
    "/quotations/{quote_number}/rooms",
    response_model=RowActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a room header",
)
async def api_add_room(
    *, quotation: QuotationSession = Depends(get_quotation), body: GroupCreate
) -> RowActionResponse:
    row = quotation.add_room(body.name, body.section)
    log_quotation_action("add_room", quotation.quote_number, row_id=row.id)
    return RowActionResponse(
        row=RowResponse.model_validate(row), quotation=_quotation_response(quotation)
    )


# History
@api_router.get(
    "/quotations/{quote_number}/history",
    response_model=HistoryResponse,
    summary="Undo/redo state",
)
async def api_get_history(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> HistoryResponse:
    return _history(quotation)


@api_router.post(
    "/quotations/{quote_number}/undo",
    response_model=HistoryActionResponse,
    summary="Undo the last edit",
    description="Undo at the start of the history is a no-op with `applied=false`.",
)
async def api_undo(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> HistoryActionResponse:
    applied = quotation.undo()
    if applied:
        log_quotation_action("undo", quotation.quote_number)
    return HistoryActionResponse(
        applied=applied, quotation=_quotation_response(quotation)
    )


@api_router.post(
    "/quotations/{quote_number}/redo",
    response_model=HistoryActionResponse,
    summary="Redo the last undone edit",
)
async def api_redo(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> HistoryActionResponse:
    applied = quotation.redo()
    if applied:
        log_quotation_action("redo", quotation.quote_number)
    return HistoryActionResponse(
        applied=applied, quotation=_quotation_response(quotation)
    )


# Versions
@api_router.get(
    "/quotations/{quote_number}/versions",
    response_model=list[VersionSummaryResponse],
    tags=["versions"],
    summary="List saved versions",
    description="Versions in ascending version-number order.",
)
async def api_list_versions(
    *, quotation: QuotationSession = Depends(get_quotation)
) -> list[VersionSummaryResponse]:
    return [
        VersionSummaryResponse(**_version_fields(version))
        for version in quotation.versions
    ]


@api_router.post(
    "/quotations/{quote_number}/versions",
    response_model=VersionSummaryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["versions"],
    summary="Save the current document as a new version",
    description="""
    Freeze the live document as the next version. Version numbers only ever
    grow: deleting the newest version does not free its number.

    The response lists what changed since the previous version (grand total,
    item count, client name, discount and GST).
    """,
)
async def api_save_version(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    body: VersionCreate | None = None,
) -> VersionSummaryResponse:
    version = quotation.save_version(body.note if body else None)
    log_quotation_action(
        "save_version",
        quotation.quote_number,
        version=version.version,
        grand_total=version.grand_total,
    )
    return VersionSummaryResponse(**_version_fields(version))


@api_router.get(
    "/quotations/{quote_number}/versions/compare",
    response_model=VersionDiffResponse,
    tags=["versions"],
    summary="Compare two versions",
    description="""
    Diff two saved versions. Rows are matched by id within each section;
    a row moved between sections shows up as deleted and added. Each entry
    carries the field-level changes and the Floor > Room location of the row.
    """,
    responses={404: {"description": "One of the versions does not exist"}},
)
async def api_compare_versions(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    from_id: str = Query(description="Older version id"),
    to_id: str = Query(description="Newer version id"),
) -> VersionDiffResponse:
    _require_version(quotation, from_id)
    _require_version(quotation, to_id)
    diff = quotation.compare_versions(from_id, to_id)
    if diff is None:
        raise VersionNotFoundError("Version not found", from_id)
    return _diff_response(diff)


@api_router.get(
    "/quotations/{quote_number}/versions/{version_id}",
    response_model=VersionDetailResponse,
    tags=["versions"],
    summary="Get one version with its document",
    responses={404: {"description": "Version not found"}},
)
async def api_get_version(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    version_id: str = Path(description="Version identifier"),
) -> VersionDetailResponse:
    version = _require_version(quotation, version_id)
    return VersionDetailResponse(
        **_version_fields(version),
        document=DocumentResponse.model_validate(version.document),
    )


@api_router.post(
    "/quotations/{quote_number}/versions/{version_id}/load",
    response_model=QuotationResponse,
    tags=["versions"],
    summary="Restore a version",
    description="Replace the live document with a saved version and restart undo.",
    responses={404: {"description": "Version not found"}},
)
async def api_load_version(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    version_id: str = Path(description="Version identifier"),
) -> QuotationResponse:
    version = _require_version(quotation, version_id)
    quotation.load_version(version_id)
    log_quotation_action(
        "load_version", quotation.quote_number, version=version.version
    )
    return _quotation_response(quotation)


@api_router.delete(
    "/quotations/{quote_number}/versions/{version_id}",
    response_model=ActionResponse,
    tags=["versions"],
    summary="Delete a version",
    responses={404: {"description": "Version not found"}},
)
async def api_delete_version(
    *,
    quotation: QuotationSession = Depends(get_quotation),
    version_id: str = Path(description="Version identifier"),
) -> ActionResponse:
    version = _require_version(quotation, version_id)
    quotation.delete_version(version_id)
    log_quotation_action(
        "delete_version", quotation.quote_number, version=version.version
    )
    return ActionResponse(success=True, message=f"Version {version.version} deleted")
