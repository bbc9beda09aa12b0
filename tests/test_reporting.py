"""Tests for dashboard, P&L and integrity reports."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import sample_invoice
from ledger_engine.database import unit_of_work
from ledger_engine.errors import AuthorizationError
from ledger_engine.models import LedgerEntry, Transaction
from ledger_engine.services.expense_service import ExpenseService
from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.payroll_service import PayrollService
from ledger_engine.services.reporting import ReportingService
from ledger_engine.services.types import AccountClass, ExpenseInput


@pytest.fixture
def books(session, owner):
    """Issued invoice (286), half-paid-in-kind expense, and one payroll accrual."""
    invoices = InvoiceService(session)
    paid = invoices.create_invoice(owner, sample_invoice(), issue=True)
    invoices.mark_paid(owner, paid.invoice_id, payment_date=date(2025, 4, 12))
    invoices.create_invoice(owner, sample_invoice(), issue=True)
    ExpenseService(session).record_expense(
        owner,
        ExpenseInput(
            description="Office rent",
            amount=Decimal("118"),
            gst_amount=Decimal("18"),
            category="Rent",
            expense_date=date(2025, 4, 1),
        ),
    )
    payroll = PayrollService(session)
    payroll.add_employee(owner, first_name="Asha", salary_amount=Decimal("100"))
    payroll.run_payroll(owner, 4, 2025)
    return session


class TestDashboard:
    def test_metrics_from_ledger(self, books, owner):
        metrics = ReportingService(books).get_dashboard_metrics(owner)

        assert metrics.revenue == Decimal("500.00")
        assert metrics.expenses == Decimal("200.00")
        assert metrics.net_profit == Decimal("300.00")
        assert metrics.receivables == Decimal("286.00")
        assert metrics.payables == Decimal("100.00")
        assert metrics.cash_balance == Decimal("168.00")
        assert metrics.gst_payable == Decimal("54.00")

    def test_staff_sees_dashboard(self, books, staff):
        assert ReportingService(books).get_dashboard_metrics(staff).revenue == Decimal("500.00")

    def test_empty_business(self, session, other_owner):
        metrics = ReportingService(session).get_dashboard_metrics(other_owner)
        assert metrics.revenue == 0
        assert metrics.cash_balance == 0


class TestProfitAndLoss:
    def test_income_first_and_no_gst(self, books, owner):
        lines = ReportingService(books).get_profit_and_loss(owner)

        names = [line.account_name for line in lines]
        assert names[0] == "Sales"
        assert "GST Input" not in names
        assert "GST Output" not in names
        amounts = {line.account_name: line.amount for line in lines}
        assert amounts["Rent Expense"] == Decimal("100.00")
        assert amounts["Salary Expense"] == Decimal("100.00")
        assert all(line.account_class in (AccountClass.INCOME, AccountClass.EXPENSE) for line in lines)

    def test_date_range(self, books, owner):
        lines = ReportingService(books).get_profit_and_loss(
            owner, start=date(2025, 4, 1), end=date(2025, 4, 1)
        )
        assert [line.account_name for line in lines] == ["Rent Expense"]

    def test_staff_cannot_view(self, books, staff):
        with pytest.raises(AuthorizationError):
            ReportingService(books).get_profit_and_loss(staff)


class TestIntegrityChecks:
    """Checks flag corruption that the posting service itself prevents."""

    def test_clean_books_pass(self, books, owner):
        report = ReportingService(books).run_integrity_checks(owner)
        assert report.passed
        assert [c.name for c in report.checks] == [
            "duplicate_source_keys",
            "unbalanced_transactions",
            "negative_asset_balances",
            "gst_in_profit_and_loss",
            "orphaned_entries",
        ]

    def test_unbalanced_transaction_flagged(self, session, owner):
        with unit_of_work(session):
            txn = Transaction(
                business_id=owner.business_id,
                source_type="expense",
                source_id=uuid4(),
                event="record",
                transaction_date=date(2025, 4, 1),
                description="hand-written",
                amount=Decimal("0"),
            )
            txn.entries.append(
                LedgerEntry(business_id=owner.business_id, account_name="Rent Expense", debit=Decimal("10"), credit=Decimal("0"))
            )
            session.add(txn)

        report = ReportingService(session).run_integrity_checks(owner)
        assert report.failed_checks == ["unbalanced_transactions"]
        assert report.checks[1].issues[0]["transaction_id"] == str(txn.transaction_id)

    def test_negative_bank_flagged(self, session, owner):
        ExpenseService(session).record_expense(
            owner, ExpenseInput(description="Rent", amount=Decimal("50"), category="Rent")
        )
        report = ReportingService(session).run_integrity_checks(owner)
        assert report.failed_checks == ["negative_asset_balances"]

    def test_unknown_account_flagged(self, session, owner):
        with unit_of_work(session):
            txn = Transaction(
                business_id=owner.business_id,
                source_type="expense",
                source_id=uuid4(),
                event="record",
                transaction_date=date(2025, 4, 1),
                amount=Decimal("0"),
            )
            txn.entries.extend([
                LedgerEntry(business_id=owner.business_id, position=0, account_name="Suspense", debit=Decimal("5"), credit=Decimal("0")),
                LedgerEntry(business_id=owner.business_id, position=1, account_name="Sales", debit=Decimal("0"), credit=Decimal("5")),
            ])
            session.add(txn)

        report = ReportingService(session).run_integrity_checks(owner)
        assert "gst_in_profit_and_loss" in report.failed_checks

    def test_requires_report_permission(self, session, staff):
        with pytest.raises(AuthorizationError):
            ReportingService(session).run_integrity_checks(staff)
