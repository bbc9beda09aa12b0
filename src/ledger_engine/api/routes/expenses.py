"""Expense API endpoints."""

from datetime import date

from fastapi import APIRouter, status

from ledger_engine.api.dependencies import Config, DbSession, Tenant
from ledger_engine.api.schemas import ErrorResponse, ExpenseCreate, ExpenseResponse
from ledger_engine.services.expense_service import ExpenseService
from ledger_engine.services.types import ExpenseInput

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post(
    "",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def record_expense(
    db: DbSession,
    ctx: Tenant,
    config: Config,
    payload: ExpenseCreate,
) -> ExpenseResponse:
    service = ExpenseService(db, config=config)
    expense_id = service.record_expense(ctx, ExpenseInput(**payload.model_dump()))
    return ExpenseResponse.model_validate(service.get_expense(ctx, expense_id))


@router.get("", response_model=list[ExpenseResponse])
def list_expenses(
    db: DbSession,
    ctx: Tenant,
    start: date | None = None,
    end: date | None = None,
    category: str | None = None,
    source: str | None = None,
) -> list[ExpenseResponse]:
    expenses = ExpenseService(db).list_expenses(
        ctx, start=start, end=end, category=category, source=source
    )
    return [ExpenseResponse.model_validate(e) for e in expenses]
