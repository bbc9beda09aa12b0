"""Tests for the payroll run engine."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from conftest import FailingLedger
from ledger_engine.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    PartialFailureError,
    ValidationError,
)
from ledger_engine.services.expense_service import ExpenseService
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.payroll_service import PayrollService, period_end


@pytest.fixture
def staffed(session, owner):
    """Business with two salaried employees and one unpaid intern."""
    service = PayrollService(session)
    service.add_employee(owner, first_name="Asha", last_name="Rao", salary_amount=Decimal("30000"))
    service.add_employee(owner, first_name="Bala", last_name="Iyer", salary_amount=Decimal("25000"))
    service.add_employee(owner, first_name="Chitra", salary_amount=Decimal("0"))
    return service


def balance(session, business_id, account):
    return LedgerService(session).get_account_balance(business_id=business_id, account=account).balance


class TestRunPayroll:
    """Monthly runs accrue salaries."""

    def test_run_accrues_each_employee(self, session, owner, staffed):
        result = staffed.run_payroll(owner, 4, 2025)

        assert result.status == "draft"
        assert result.employee_count == 2
        assert result.processed == 2
        assert result.total_amount == Decimal("55000.00")
        assert balance(session, owner.business_id, "Salary Expense") == Decimal("55000.00")
        assert balance(session, owner.business_id, "Salaries Payable") == Decimal("55000.00")

    def test_run_creates_payroll_expenses_and_payslips(self, session, owner, staffed):
        result = staffed.run_payroll(owner, 4, 2025)

        payslips = staffed.list_payslips(owner, result.run_id)
        assert len(payslips) == 2
        assert all(p.status == "pending" and p.transaction_id for p in payslips)

        expenses = ExpenseService(session).list_expenses(owner, source="payroll")
        assert len(expenses) == 2
        assert {e.expense_date for e in expenses} == {date(2025, 4, 30)}
        assert all(e.category == "Salary" for e in expenses)

    def test_rerun_of_draft_conflicts(self, owner, staffed):
        staffed.run_payroll(owner, 4, 2025)
        with pytest.raises(ConflictError):
            staffed.run_payroll(owner, 4, 2025)

    def test_employee_not_yet_joined_is_skipped(self, session, owner, staffed):
        staffed.add_employee(
            owner, first_name="Dev", salary_amount=Decimal("10000"), joined_on=date(2025, 5, 2)
        )
        assert staffed.run_payroll(owner, 4, 2025).employee_count == 2
        assert staffed.run_payroll(owner, 5, 2025).employee_count == 3

    def test_no_payable_employees(self, session, owner):
        service = PayrollService(session)
        service.add_employee(owner, first_name="Intern", salary_amount=Decimal("0"))
        with pytest.raises(ValidationError):
            service.run_payroll(owner, 4, 2025)
        assert service.list_runs(owner) == []

    @pytest.mark.parametrize("month,year", [(0, 2025), (13, 2025), (4, 1999), (4, 2101)])
    def test_invalid_period(self, owner, staffed, month, year):
        with pytest.raises(ValidationError):
            staffed.run_payroll(owner, month, year)

    def test_staff_cannot_run_payroll(self, session, staff):
        with pytest.raises(AuthorizationError):
            PayrollService(session).run_payroll(staff, 4, 2025)

    def test_period_end(self):
        assert period_end(2, 2024) == date(2024, 2, 29)
        assert period_end(4, 2025) == date(2025, 4, 30)


class TestPartialFailure:
    """A failing employee marks the run failed; running again resumes it."""

    def test_failure_marks_run_failed(self, session, owner, staffed):
        service = PayrollService(session, ledger=FailingLedger(session, fail_on_call=2))

        with pytest.raises(PartialFailureError) as exc_info:
            service.run_payroll(owner, 4, 2025)

        assert exc_info.value.details["processed"] == 1
        run = service.get_run(owner, exc_info.value.entity_id)
        assert run.status == "failed"
        assert run.employee_count == 1
        assert run.total_amount == Decimal("30000.00")
        assert run.failure_reason

    def test_rerun_resumes_remaining_employees(self, session, owner, staffed):
        with pytest.raises(PartialFailureError) as exc_info:
            PayrollService(session, ledger=FailingLedger(session, fail_on_call=2)).run_payroll(owner, 4, 2025)

        result = staffed.run_payroll(owner, 4, 2025)

        assert result.run_id == exc_info.value.entity_id
        assert result.status == "draft"
        assert result.processed == 1
        assert result.employee_count == 2
        assert result.total_amount == Decimal("55000.00")
        assert balance(session, owner.business_id, "Salary Expense") == Decimal("55000.00")

    def test_employee_accrued_elsewhere_is_skipped(self, session, owner, staffed, monkeypatch):
        with pytest.raises(PartialFailureError):
            PayrollService(session, ledger=FailingLedger(session, fail_on_call=2)).run_payroll(owner, 4, 2025)
        # Asha's payslip exists but the resumed run does not see it up front
        monkeypatch.setattr(PayrollService, "_employees_with_payslips", lambda self, *args: set())

        result = staffed.run_payroll(owner, 4, 2025)

        assert result.status == "draft"
        assert result.processed == 1
        assert result.employee_count == 2
        assert result.total_amount == Decimal("55000.00")
        assert balance(session, owner.business_id, "Salary Expense") == Decimal("55000.00")


class TestConcurrentResume:
    """Two sessions resuming the same failed run."""

    def test_second_resume_conflicts(self, file_session_factory, owner):
        with file_session_factory() as setup:
            service = PayrollService(setup)
            service.add_employee(owner, first_name="Asha", salary_amount=Decimal("30000"))
            service.add_employee(owner, first_name="Bala", salary_amount=Decimal("25000"))
            with pytest.raises(PartialFailureError) as exc_info:
                PayrollService(setup, ledger=FailingLedger(setup, fail_on_call=2)).run_payroll(owner, 4, 2025)
            run_id = exc_info.value.entity_id

        with file_session_factory() as first, file_session_factory() as second:
            assert PayrollService(second).get_run(owner, run_id).status == "failed"

            assert PayrollService(first).run_payroll(owner, 4, 2025).processed == 1
            with pytest.raises(ConflictError):
                PayrollService(second).run_payroll(owner, 4, 2025)

        with file_session_factory() as check:
            service = PayrollService(check)
            run = service.get_run(owner, run_id)
            assert run.status == "draft"
            assert run.failure_reason is None
            assert run.employee_count == 2
            assert run.total_amount == Decimal("55000.00")
            assert len(service.list_payslips(owner, run_id)) == 2
            assert balance(check, owner.business_id, "Salary Expense") == Decimal("55000.00")


class TestLockAndPay:
    def test_lock_then_pay(self, session, owner, staffed):
        run_id = staffed.run_payroll(owner, 4, 2025).run_id

        assert staffed.lock_run(owner, run_id).status == "locked"
        run = staffed.mark_run_paid(owner, run_id, payment_date=date(2025, 5, 1))

        assert run.status == "paid"
        assert all(p.status == "paid" for p in run.payslips)
        assert balance(session, owner.business_id, "Salaries Payable") == 0
        assert balance(session, owner.business_id, "Bank") == Decimal("-55000.00")

    def test_pay_requires_lock(self, owner, staffed):
        run_id = staffed.run_payroll(owner, 4, 2025).run_id
        with pytest.raises(InvalidTransitionError):
            staffed.mark_run_paid(owner, run_id)

    def test_locked_run_blocks_rerun(self, owner, staffed):
        run_id = staffed.run_payroll(owner, 4, 2025).run_id
        staffed.lock_run(owner, run_id)
        with pytest.raises(ConflictError):
            staffed.run_payroll(owner, 4, 2025)

    def test_other_business_cannot_see_run(self, owner, other_owner, staffed):
        run_id = staffed.run_payroll(owner, 4, 2025).run_id
        with pytest.raises(AuthorizationError):
            staffed.get_run(other_owner, run_id)
        assert staffed.list_runs(other_owner) == []


class TestAddEmployee:
    def test_validation(self, session, owner):
        service = PayrollService(session)
        with pytest.raises(ValidationError):
            service.add_employee(owner, first_name=" ", salary_amount=Decimal("1"))
        with pytest.raises(ValidationError):
            service.add_employee(owner, first_name="A", salary_amount=Decimal("-1"))
