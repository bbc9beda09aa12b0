"""Reporting API endpoints: dashboard, P&L, balances, integrity."""

from datetime import date

from fastapi import APIRouter

from ledger_engine.api.dependencies import DbSession, Tenant
from ledger_engine.api.schemas import (
    AccountBalanceResponse,
    DashboardResponse,
    IntegrityCheckResponse,
    IntegrityReportResponse,
    ProfitAndLossLineResponse,
)
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.reporting import ReportingService
from ledger_engine.services.tenant import Permission

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(db: DbSession, ctx: Tenant) -> DashboardResponse:
    return DashboardResponse.model_validate(ReportingService(db).get_dashboard_metrics(ctx))


@router.get("/profit-and-loss", response_model=list[ProfitAndLossLineResponse])
def get_profit_and_loss(
    db: DbSession,
    ctx: Tenant,
    start: date | None = None,
    end: date | None = None,
) -> list[ProfitAndLossLineResponse]:
    lines = ReportingService(db).get_profit_and_loss(ctx, start=start, end=end)
    return [
        ProfitAndLossLineResponse(
            account_name=line.account_name,
            account_class=line.account_class.value,
            amount=line.amount,
        )
        for line in lines
    ]


@router.get("/balances", response_model=list[AccountBalanceResponse])
def get_account_balances(
    db: DbSession,
    ctx: Tenant,
    start: date | None = None,
    end: date | None = None,
) -> list[AccountBalanceResponse]:
    ctx.require_permission(Permission.VIEW_REPORTS)
    balances = LedgerService(db).get_account_balances(
        business_id=ctx.business_id, start=start, end=end
    )
    return [AccountBalanceResponse.model_validate(b) for b in balances]


@router.get("/integrity", response_model=IntegrityReportResponse)
def run_integrity_checks(db: DbSession, ctx: Tenant) -> IntegrityReportResponse:
    report = ReportingService(db).run_integrity_checks(ctx)
    return IntegrityReportResponse(
        passed=report.passed,
        checks=[IntegrityCheckResponse.model_validate(check) for check in report.checks],
    )
