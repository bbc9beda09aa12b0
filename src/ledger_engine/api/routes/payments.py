"""Payment API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from ledger_engine.api.dependencies import Config, DbSession, Tenant
from ledger_engine.api.schemas import (
    ErrorResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentStatsResponse,
)
from ledger_engine.services.payment_service import PaymentService
from ledger_engine.services.types import PaymentInput

router = APIRouter(prefix="/payments", tags=["payments"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
def record_payment(
    db: DbSession,
    ctx: Tenant,
    config: Config,
    payload: PaymentCreate,
) -> PaymentResponse:
    """Record a payment; completed payments post immediately."""
    service = PaymentService(db, config=config)
    payment_id = service.record_payment(ctx, PaymentInput(**payload.model_dump()))
    return PaymentResponse.model_validate(service.get_payment(ctx, payment_id))


@router.get("", response_model=list[PaymentResponse])
def list_payments(
    db: DbSession,
    ctx: Tenant,
    payment_type: str | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    start: date | None = None,
    end: date | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[PaymentResponse]:
    payments = PaymentService(db).list_payments(
        ctx,
        payment_type=payment_type,
        status=status_filter,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get("/stats", response_model=PaymentStatsResponse)
def get_payment_stats(db: DbSession, ctx: Tenant) -> PaymentStatsResponse:
    return PaymentStatsResponse.model_validate(PaymentService(db).get_payment_stats(ctx))


@router.post("/{payment_id}/complete", response_model=PaymentResponse, responses=ERRORS)
def complete_payment(
    db: DbSession,
    ctx: Tenant,
    config: Config,
    payment_id: Annotated[UUID, Path()],
) -> PaymentResponse:
    payment = PaymentService(db, config=config).complete_payment(ctx, payment_id)
    return PaymentResponse.model_validate(payment)


@router.post("/{payment_id}/fail", response_model=PaymentResponse, responses=ERRORS)
def fail_payment(
    db: DbSession,
    ctx: Tenant,
    payment_id: Annotated[UUID, Path()],
) -> PaymentResponse:
    return PaymentResponse.model_validate(PaymentService(db).fail_payment(ctx, payment_id))


@router.post("/{payment_id}/cancel", response_model=PaymentResponse, responses=ERRORS)
def cancel_payment(
    db: DbSession,
    ctx: Tenant,
    payment_id: Annotated[UUID, Path()],
) -> PaymentResponse:
    return PaymentResponse.model_validate(PaymentService(db).cancel_payment(ctx, payment_id))
