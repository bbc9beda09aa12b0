"""GST aggregation over invoices and expenses. Read-only."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_engine.models import Expense, Invoice
from ledger_engine.services.payroll_service import period_end, validate_period
from ledger_engine.services.state_machine import InvoiceStatus
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import to_money

FILED_STATUSES = (InvoiceStatus.ISSUED.value, InvoiceStatus.PAID.value)


@dataclass(frozen=True)
class GSTSummary:
    """Monthly GST position. A negative net_payable is credit carried forward."""

    output_tax: Decimal
    input_tax: Decimal
    net_payable: Decimal
    total_sales: Decimal
    total_purchases: Decimal

    @property
    def is_credit(self) -> bool:
        return self.net_payable < 0


@dataclass(frozen=True)
class GSTRRow:
    """One row of a GSTR-1 (outward) or GSTR-2 (inward) register."""

    source_id: UUID
    row_date: date
    party_name: str
    gstin: str | None
    taxable_value: Decimal
    tax_amount: Decimal
    total_value: Decimal
    supply_type: str  # B2B, B2C or Expense
    document_number: str | None = None


class GSTService:
    """Derives GST figures for a calendar month."""

    def __init__(self, db: Session):
        self.db = db

    def get_gst_summary(self, ctx: TenantContext, month: int, year: int) -> GSTSummary:
        """Output tax from issued/paid invoices minus input tax from expenses."""
        ctx.require_permission(Permission.VIEW_REPORTS)
        start, end = _month_bounds(month, year)

        output_tax, total_sales = self.db.execute(
            select(
                func.coalesce(func.sum(Invoice.tax_amount), 0),
                func.coalesce(func.sum(Invoice.subtotal), 0),
            ).where(
                Invoice.business_id == ctx.business_id,
                Invoice.status.in_(FILED_STATUSES),
                Invoice.invoice_date >= start,
                Invoice.invoice_date <= end,
            )
        ).one()

        input_tax, gross_purchases = self.db.execute(
            select(
                func.coalesce(func.sum(Expense.gst_amount), 0),
                func.coalesce(func.sum(Expense.amount), 0),
            ).where(
                Expense.business_id == ctx.business_id,
                Expense.gst_amount > 0,
                Expense.expense_date >= start,
                Expense.expense_date <= end,
            )
        ).one()

        output_tax = to_money(Decimal(str(output_tax)))
        input_tax = to_money(Decimal(str(input_tax)))
        return GSTSummary(
            output_tax=output_tax,
            input_tax=input_tax,
            net_payable=output_tax - input_tax,
            total_sales=to_money(Decimal(str(total_sales))),
            total_purchases=to_money(Decimal(str(gross_purchases))) - input_tax,
        )

    def get_gstr1_rows(self, ctx: TenantContext, month: int, year: int) -> list[GSTRRow]:
        """Outward supplies; B2B when the customer has a GSTIN, else B2C."""
        ctx.require_permission(Permission.VIEW_REPORTS)
        start, end = _month_bounds(month, year)
        invoices = self.db.execute(
            select(Invoice)
            .where(
                Invoice.business_id == ctx.business_id,
                Invoice.status.in_(FILED_STATUSES),
                Invoice.invoice_date >= start,
                Invoice.invoice_date <= end,
            )
            .order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())
        ).scalars().all()

        return [
            GSTRRow(
                source_id=inv.invoice_id,
                row_date=inv.invoice_date,
                party_name=inv.customer_name,
                gstin=inv.customer_gstin,
                taxable_value=inv.subtotal,
                tax_amount=inv.tax_amount,
                total_value=inv.total_amount,
                supply_type="B2B" if inv.customer_gstin else "B2C",
                document_number=inv.invoice_number,
            )
            for inv in invoices
        ]

    def get_gstr2_rows(self, ctx: TenantContext, month: int, year: int) -> list[GSTRRow]:
        """Inward supplies from expenses carrying GST."""
        ctx.require_permission(Permission.VIEW_REPORTS)
        start, end = _month_bounds(month, year)
        expenses = self.db.execute(
            select(Expense)
            .where(
                Expense.business_id == ctx.business_id,
                Expense.gst_amount > 0,
                Expense.expense_date >= start,
                Expense.expense_date <= end,
            )
            .order_by(Expense.expense_date.desc())
        ).scalars().all()

        return [
            GSTRRow(
                source_id=exp.expense_id,
                row_date=exp.expense_date,
                party_name=exp.description,
                gstin=exp.supplier_gstin,
                taxable_value=exp.taxable_value,
                tax_amount=exp.gst_amount,
                total_value=exp.amount,
                supply_type="Expense",
            )
            for exp in expenses
        ]


def _month_bounds(month: int, year: int) -> tuple[date, date]:
    validate_period(month, year)
    return date(year, month, 1), period_end(month, year)
