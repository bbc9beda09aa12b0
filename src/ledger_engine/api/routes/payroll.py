"""Payroll API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from ledger_engine.api.dependencies import DbSession, Tenant
from ledger_engine.api.schemas import (
    EmployeeCreate,
    EmployeeResponse,
    ErrorResponse,
    MarkRunPaidRequest,
    PayrollResultResponse,
    PayrollRunCreate,
    PayrollRunResponse,
    PayslipResponse,
)
from ledger_engine.services.payroll_service import PayrollService

router = APIRouter(tags=["payroll"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "/employees",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
def add_employee(db: DbSession, ctx: Tenant, payload: EmployeeCreate) -> EmployeeResponse:
    employee = PayrollService(db).add_employee(ctx, **payload.model_dump())
    return EmployeeResponse.model_validate(employee)


@router.post(
    "/payroll-runs",
    response_model=PayrollResultResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**ERRORS, 500: {"model": ErrorResponse}},
)
def run_payroll(db: DbSession, ctx: Tenant, payload: PayrollRunCreate) -> PayrollResultResponse:
    """Run payroll for a month; re-posting a failed run resumes it."""
    result = PayrollService(db).run_payroll(
        ctx, payload.month, payload.year, run_date=payload.run_date
    )
    return PayrollResultResponse.model_validate(result)


@router.get("/payroll-runs", response_model=list[PayrollRunResponse])
def list_runs(db: DbSession, ctx: Tenant) -> list[PayrollRunResponse]:
    return [PayrollRunResponse.model_validate(run) for run in PayrollService(db).list_runs(ctx)]


@router.get("/payroll-runs/{run_id}", response_model=PayrollRunResponse, responses=ERRORS)
def get_run(
    db: DbSession,
    ctx: Tenant,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    return PayrollRunResponse.model_validate(PayrollService(db).get_run(ctx, run_id))


@router.get(
    "/payroll-runs/{run_id}/payslips",
    response_model=list[PayslipResponse],
    responses=ERRORS,
)
def list_payslips(
    db: DbSession,
    ctx: Tenant,
    run_id: Annotated[UUID, Path()],
) -> list[PayslipResponse]:
    return [
        PayslipResponse.model_validate(p) for p in PayrollService(db).list_payslips(ctx, run_id)
    ]


@router.post("/payroll-runs/{run_id}/lock", response_model=PayrollRunResponse, responses=ERRORS)
def lock_run(
    db: DbSession,
    ctx: Tenant,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    return PayrollRunResponse.model_validate(PayrollService(db).lock_run(ctx, run_id))


@router.post("/payroll-runs/{run_id}/pay", response_model=PayrollRunResponse, responses=ERRORS)
def mark_run_paid(
    db: DbSession,
    ctx: Tenant,
    run_id: Annotated[UUID, Path()],
    payload: MarkRunPaidRequest,
) -> PayrollRunResponse:
    run = PayrollService(db).mark_run_paid(ctx, run_id, payment_date=payload.payment_date)
    return PayrollRunResponse.model_validate(run)
