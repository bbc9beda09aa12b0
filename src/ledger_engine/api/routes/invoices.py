"""Invoice API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from ledger_engine.api.dependencies import Config, DbSession, Gate, Tenant
from ledger_engine.api.schemas import (
    CancelRequest,
    ErrorResponse,
    InvoiceActionResponse,
    InvoiceCreate,
    InvoiceResponse,
    InvoiceStatsResponse,
    MarkPaidRequest,
)
from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.types import InvoiceInput, LineItemInput

router = APIRouter(prefix="/invoices", tags=["invoices"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=InvoiceActionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**ERRORS, 402: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def create_invoice(
    db: DbSession,
    ctx: Tenant,
    gate: Gate,
    config: Config,
    payload: InvoiceCreate,
) -> InvoiceActionResponse:
    """Create a draft invoice, or create and issue it with `issue=true`."""
    data = InvoiceInput(
        customer_name=payload.customer_name,
        customer_id=payload.customer_id,
        customer_gstin=payload.customer_gstin,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        invoice_number=payload.invoice_number,
        discount_amount=payload.discount_amount,
        notes=payload.notes,
        items=[
            LineItemInput(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
                product_id=item.product_id,
            )
            for item in payload.items
        ],
    )
    result = InvoiceService(db, gate=gate, config=config).create_invoice(
        ctx, data, issue=payload.issue
    )
    return InvoiceActionResponse.model_validate(result)


@router.get("", response_model=list[InvoiceResponse])
def list_invoices(
    db: DbSession,
    ctx: Tenant,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    draft_state: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[InvoiceResponse]:
    """List invoices with optional status filters."""
    invoices = InvoiceService(db).list_invoices(
        ctx, status=status_filter, draft_state=draft_state, limit=limit, offset=offset
    )
    return [InvoiceResponse.model_validate(inv) for inv in invoices]


@router.get("/incomplete", response_model=list[InvoiceResponse])
def list_incomplete_drafts(db: DbSession, ctx: Tenant) -> list[InvoiceResponse]:
    """Drafts whose issue step did not complete."""
    return [
        InvoiceResponse.model_validate(inv)
        for inv in InvoiceService(db).list_incomplete_drafts(ctx)
    ]


@router.get("/stats", response_model=InvoiceStatsResponse)
def get_invoice_stats(db: DbSession, ctx: Tenant) -> InvoiceStatsResponse:
    return InvoiceStatsResponse.model_validate(InvoiceService(db).get_invoice_stats(ctx))


@router.get("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS)
def get_invoice(
    db: DbSession,
    ctx: Tenant,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    return InvoiceResponse.model_validate(InvoiceService(db).get_invoice(ctx, invoice_id))


@router.post("/{invoice_id}/issue", response_model=InvoiceActionResponse, responses=ERRORS)
def issue_invoice(
    db: DbSession,
    ctx: Tenant,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceActionResponse:
    """Issue a draft; also resumes an incomplete draft."""
    return InvoiceActionResponse.model_validate(InvoiceService(db).issue_invoice(ctx, invoice_id))


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceActionResponse, responses=ERRORS)
def mark_paid(
    db: DbSession,
    ctx: Tenant,
    config: Config,
    invoice_id: Annotated[UUID, Path()],
    payload: MarkPaidRequest,
) -> InvoiceActionResponse:
    result = InvoiceService(db, config=config).mark_paid(
        ctx,
        invoice_id,
        amount=payload.amount,
        payment_date=payload.payment_date,
        method=payload.method,
    )
    return InvoiceActionResponse.model_validate(result)


@router.post("/{invoice_id}/cancel", response_model=InvoiceActionResponse, responses=ERRORS)
def cancel_invoice(
    db: DbSession,
    ctx: Tenant,
    invoice_id: Annotated[UUID, Path()],
    payload: CancelRequest,
) -> InvoiceActionResponse:
    result = InvoiceService(db).cancel_invoice(ctx, invoice_id, payload.reason)
    return InvoiceActionResponse.model_validate(result)


@router.post(
    "/{invoice_id}/duplicate",
    response_model=InvoiceActionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**ERRORS, 402: {"model": ErrorResponse}},
)
def duplicate_invoice(
    db: DbSession,
    ctx: Tenant,
    gate: Gate,
    config: Config,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceActionResponse:
    result = InvoiceService(db, gate=gate, config=config).duplicate_invoice(ctx, invoice_id)
    return InvoiceActionResponse.model_validate(result)


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERRORS,
)
def delete_draft(
    db: DbSession,
    ctx: Tenant,
    invoice_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a draft invoice and its line items."""
    InvoiceService(db).delete_draft(ctx, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
