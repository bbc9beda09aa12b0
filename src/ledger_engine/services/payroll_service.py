"""Payroll run engine.

A run covers one calendar month. Each employee is accrued in its own unit
of work (expense, payslip and posting together), so a failure partway leaves
the employees already processed committed and the run marked `failed`.
Running the same period again resumes a failed run and skips employees that
already have a payslip.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from ledger_engine.database import unit_of_work
from ledger_engine.errors import ConflictError, PartialFailureError, ValidationError
from ledger_engine.models import Employee, Expense, PayrollRun, Payslip
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.state_machine import PayrollRunStateMachine, PayrollRunStatus
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import ZERO, Account, PostingLine, to_money

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


@dataclass(frozen=True)
class PayrollResult:
    """Outcome of a payroll run."""

    run_id: UUID
    status: str
    employee_count: int
    total_amount: Decimal
    processed: int


def period_end(month: int, year: int) -> date:
    """Last day of the payroll month."""
    return date(year, month, calendar.monthrange(year, month)[1])


def validate_period(month: int, year: int) -> None:
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12", field="month")
    if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}", field="year")


class PayrollService:
    """Creates, locks and pays monthly payroll runs."""

    def __init__(self, db: Session, ledger: LedgerService | None = None):
        self.db = db
        self.ledger = ledger or LedgerService(db)

    def add_employee(
        self,
        ctx: TenantContext,
        *,
        first_name: str,
        salary_amount: Decimal,
        last_name: str = "",
        designation: str | None = None,
        joined_on: date | None = None,
    ) -> Employee:
        """Register an active employee on the payroll."""
        ctx.require_permission(Permission.RUN_PAYROLL)
        if not first_name or not first_name.strip():
            raise ValidationError("First name is required", field="first_name")
        salary = to_money(salary_amount)
        if salary < 0:
            raise ValidationError("Salary must be >= 0", field="salary_amount")

        with unit_of_work(self.db):
            employee = Employee(
                business_id=ctx.business_id,
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                designation=designation,
                salary_amount=salary,
                status="active",
                joined_on=joined_on,
            )
            self.db.add(employee)
        logger.info("Employee %s added", employee.employee_id)
        return employee

    def run_payroll(
        self,
        ctx: TenantContext,
        month: int,
        year: int,
        *,
        run_date: date | None = None,
    ) -> PayrollResult:
        """Run payroll for a month.

        Raises:
            ValidationError: Bad period or no payable employees
            ConflictError: A draft, locked or paid run already exists
            PartialFailureError: Some employees failed; the run is `failed`
        """
        ctx.require_permission(Permission.RUN_PAYROLL)
        validate_period(month, year)
        run_date = run_date or period_end(month, year)

        employees = self._payable_employees(ctx.business_id, run_date)
        if not employees:
            raise ValidationError("No active employees found to generate payroll.")

        run = self._start_run(ctx, month, year)

        already_paid = self._employees_with_payslips(ctx.business_id, month, year)
        pending = [e for e in employees if e.employee_id not in already_paid]
        processed = 0

        for employee in pending:
            try:
                self._accrue(ctx, run, employee, run_date)
            except ConflictError:
                logger.warning(
                    "Employee %s already accrued for %02d/%d by another run; skipping",
                    employee.employee_id, month, year,
                )
                continue
            except Exception as exc:
                logger.exception(
                    "Payroll %02d/%d failed for employee %s", month, year, employee.employee_id
                )
                self._mark_failed(run, f"Employee {employee.employee_id}: {exc}")
                raise PartialFailureError(
                    f"Payroll for {month:02d}/{year} stopped after {processed} of "
                    f"{len(pending)} employees; run again to resume",
                    entity_type="payroll_run",
                    entity_id=run.payroll_run_id,
                    processed=processed,
                    remaining=len(pending) - processed,
                ) from exc
            processed += 1

        self.db.refresh(run)
        logger.info(
            "Payroll %02d/%d complete: %d processed, run total %s",
            month, year, processed, run.total_amount,
        )
        return PayrollResult(
            run_id=run.payroll_run_id,
            status=run.status,
            employee_count=run.employee_count,
            total_amount=run.total_amount,
            processed=processed,
        )

    def lock_run(self, ctx: TenantContext, run_id: UUID) -> PayrollRun:
        """Freeze a draft run for payment."""
        ctx.require_permission(Permission.RUN_PAYROLL)
        run = self.get_run(ctx, run_id)
        PayrollRunStateMachine.validate_transition(run.status, PayrollRunStatus.LOCKED)
        with unit_of_work(self.db):
            run.status = PayrollRunStatus.LOCKED.value
            run.locked_at = _now()
        logger.info("Payroll run %s locked", run.payroll_run_id)
        return run

    def mark_run_paid(
        self,
        ctx: TenantContext,
        run_id: UUID,
        *,
        payment_date: date | None = None,
    ) -> PayrollRun:
        """Pay a locked run: Dr Salaries Payable, Cr Bank for the run total."""
        ctx.require_permission(Permission.RUN_PAYROLL)
        run = self.get_run(ctx, run_id)
        PayrollRunStateMachine.validate_transition(run.status, PayrollRunStatus.PAID)

        with unit_of_work(self.db, f"Payroll run {run_id} was paid concurrently"):
            if run.total_amount > 0:
                self.ledger.post_transaction(
                    business_id=ctx.business_id,
                    source_type="payroll",
                    source_id=run.payroll_run_id,
                    event="settle",
                    lines=[
                        PostingLine.dr(Account.SALARIES_PAYABLE, run.total_amount),
                        PostingLine.cr(Account.BANK, run.total_amount),
                    ],
                    transaction_date=payment_date or date.today(),
                    description=f"Salaries paid for {run.month:02d}/{run.year}",
                )
            for payslip in run.payslips:
                payslip.status = "paid"
            run.status = PayrollRunStatus.PAID.value
            run.paid_at = _now()

        logger.info("Payroll run %s paid: %s", run.payroll_run_id, run.total_amount)
        return run

    def get_run(self, ctx: TenantContext, run_id: UUID) -> PayrollRun:
        run = self.db.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id == run_id)
            .options(selectinload(PayrollRun.payslips))
        ).scalar_one_or_none()
        return ctx.ensure_owned(run, "Payroll run", run_id)

    def list_runs(self, ctx: TenantContext) -> list[PayrollRun]:
        return list(
            self.db.execute(
                select(PayrollRun)
                .where(PayrollRun.business_id == ctx.business_id)
                .order_by(PayrollRun.year.desc(), PayrollRun.month.desc())
            ).scalars().all()
        )

    def list_payslips(self, ctx: TenantContext, run_id: UUID) -> list[Payslip]:
        run = self.get_run(ctx, run_id)
        return list(
            self.db.execute(
                select(Payslip)
                .where(
                    Payslip.business_id == ctx.business_id,
                    Payslip.payroll_run_id == run.payroll_run_id,
                )
                .options(selectinload(Payslip.employee))
                .order_by(Payslip.created_at)
            ).scalars().all()
        )

    def _start_run(self, ctx: TenantContext, month: int, year: int) -> PayrollRun:
        """Create the run for the period, or resume a failed one."""
        existing = self.db.execute(
            select(PayrollRun).where(
                PayrollRun.business_id == ctx.business_id,
                PayrollRun.month == month,
                PayrollRun.year == year,
            )
        ).scalar_one_or_none()

        if existing is not None:
            if not PayrollRunStateMachine.is_resumable(existing.status):
                raise ConflictError(
                    f"Payroll run for {month:02d}/{year} already exists ({existing.status})",
                    run_id=existing.payroll_run_id,
                )
            PayrollRunStateMachine.validate_transition(existing.status, PayrollRunStatus.DRAFT)
            with unit_of_work(self.db):
                result = self.db.execute(
                    update(PayrollRun)
                    .where(
                        PayrollRun.payroll_run_id == existing.payroll_run_id,
                        PayrollRun.business_id == ctx.business_id,
                        PayrollRun.status == PayrollRunStatus.FAILED.value,
                    )
                    .values(status=PayrollRunStatus.DRAFT.value, failure_reason=None)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConflictError(
                        f"Payroll run for {month:02d}/{year} was resumed concurrently",
                        run_id=existing.payroll_run_id,
                    )
            self.db.refresh(existing)
            logger.info("Resuming failed payroll run %s", existing.payroll_run_id)
            return existing

        with unit_of_work(self.db, f"Payroll run for {month:02d}/{year} already exists"):
            run = PayrollRun(
                business_id=ctx.business_id,
                month=month,
                year=year,
                status=PayrollRunStatus.DRAFT.value,
                total_amount=ZERO,
                employee_count=0,
            )
            self.db.add(run)
        logger.info("Payroll run %s created for %02d/%d", run.payroll_run_id, month, year)
        return run

    def _accrue(self, ctx: TenantContext, run: PayrollRun, employee: Employee, run_date: date) -> None:
        salary = to_money(employee.salary_amount)
        with unit_of_work(self.db, f"Employee {employee.employee_id} already has a payslip for this period"):
            expense = Expense(
                business_id=ctx.business_id,
                description=f"Salary {run.month:02d}/{run.year} - {employee.full_name}",
                amount=salary,
                gst_amount=ZERO,
                expense_date=run_date,
                category="Salary",
                payment_method="bank",
                source="payroll",
            )
            payslip = Payslip(
                business_id=ctx.business_id,
                payroll_run_id=run.payroll_run_id,
                employee_id=employee.employee_id,
                month=run.month,
                year=run.year,
                salary_amount=salary,
                status="pending",
            )
            self.db.add_all([expense, payslip])
            self.db.flush()

            result = self.ledger.post_transaction(
                business_id=ctx.business_id,
                source_type="payroll",
                source_id=payslip.payslip_id,
                event="accrue",
                lines=[
                    PostingLine.dr(Account.SALARY_EXPENSE, salary),
                    PostingLine.cr(Account.SALARIES_PAYABLE, salary),
                ],
                transaction_date=run_date,
                description=expense.description,
            )
            payslip.expense_id = expense.expense_id
            payslip.transaction_id = result.transaction_id
            expense.transaction_id = result.transaction_id
            self.db.execute(
                update(PayrollRun)
                .where(PayrollRun.payroll_run_id == run.payroll_run_id)
                .values(
                    total_amount=func.round(PayrollRun.total_amount + salary, 2),
                    employee_count=PayrollRun.employee_count + 1,
                )
                .execution_options(synchronize_session=False)
            )

    def _mark_failed(self, run: PayrollRun, reason: str) -> None:
        """Flip the run from draft to failed; a run already moved on is left alone."""
        with unit_of_work(self.db):
            result = self.db.execute(
                update(PayrollRun)
                .where(
                    PayrollRun.payroll_run_id == run.payroll_run_id,
                    PayrollRun.status == PayrollRunStatus.DRAFT.value,
                )
                .values(status=PayrollRunStatus.FAILED.value, failure_reason=reason[:500])
                .execution_options(synchronize_session=False)
            )
        self.db.refresh(run)
        if result.rowcount != 1:
            logger.warning(
                "Payroll run %s is %s; not marking it failed", run.payroll_run_id, run.status
            )
            return
        logger.warning("Payroll run %s marked failed: %s", run.payroll_run_id, reason)

    def _payable_employees(self, business_id: UUID, run_date: date) -> list[Employee]:
        employees = self.db.execute(
            select(Employee)
            .where(Employee.business_id == business_id, Employee.status == "active")
            .order_by(Employee.first_name, Employee.last_name)
        ).scalars().all()
        payable = []
        for employee in employees:
            if not employee.is_active_on(run_date):
                continue
            if employee.salary_amount <= 0:
                logger.info("Skipping employee %s with no salary", employee.employee_id)
                continue
            payable.append(employee)
        return payable

    def _employees_with_payslips(self, business_id: UUID, month: int, year: int) -> set[UUID]:
        return set(
            self.db.execute(
                select(Payslip.employee_id).where(
                    Payslip.business_id == business_id,
                    Payslip.month == month,
                    Payslip.year == year,
                )
            ).scalars().all()
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)
