"""Tests for the ledger operations CLI."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import pytest

from conftest import sample_invoice
from ledger_engine.cli import LedgerCli
from ledger_engine.services.expense_service import ExpenseService
from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.types import ExpenseInput


@pytest.fixture
def cli(session_factory) -> LedgerCli:
    return LedgerCli(session_factory=session_factory)


class TestVerifyCommand:
    def test_clean_books_exit_zero(self, cli, session, owner, capsys):
        invoices = InvoiceService(session)
        result = invoices.create_invoice(owner, sample_invoice(), issue=True)
        invoices.mark_paid(owner, result.invoice_id)

        assert cli.run(["verify", "--business-id", str(owner.business_id)]) == 0
        assert "All checks passed." in capsys.readouterr().out

    def test_failed_check_exits_one(self, cli, session, owner, capsys):
        ExpenseService(session).record_expense(
            owner, ExpenseInput(description="Rent", amount=Decimal("10"), category="Rent")
        )

        code = cli.run(["verify", "--business-id", str(owner.business_id), "--json"])

        assert code == 1
        data = json.loads(capsys.readouterr().out)
        assert data["passed"] is False
        failed = [c["name"] for c in data["checks"] if not c["passed"]]
        assert failed == ["negative_asset_balances"]


class TestGstSummaryCommand:
    def test_json_output(self, cli, session, owner, capsys):
        InvoiceService(session).create_invoice(owner, sample_invoice(invoice_date=date(2025, 4, 10)), issue=True)

        code = cli.run([
            "gst-summary", "--business-id", str(owner.business_id), "--month", "4", "--year", "2025", "--json",
        ])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["outputTax"] == "36.00"
        assert data["netPayable"] == "36.00"

    def test_invalid_month_reports_error(self, cli, owner, capsys):
        code = cli.run(["gst-summary", "--business-id", str(owner.business_id), "--month", "13", "--year", "2025"])
        assert code == 1
        assert "ERROR" in capsys.readouterr().err


class TestBalancesCommand:
    def test_table_output(self, cli, session, owner, capsys):
        InvoiceService(session).create_invoice(owner, sample_invoice(), issue=True)

        assert cli.run(["balances", "--business-id", str(owner.business_id)]) == 0
        out = capsys.readouterr().out
        assert "Accounts Receivable" in out
        assert "286.00" in out


class TestArgumentHandling:
    def test_no_command_prints_help(self, cli):
        assert cli.run([]) == 1

    def test_business_id_required(self, cli):
        with pytest.raises(SystemExit):
            cli.run(["verify"])
