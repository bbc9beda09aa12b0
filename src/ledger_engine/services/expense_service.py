"""Expense recording service."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engine.config import LedgerConfig
from ledger_engine.database import unit_of_work
from ledger_engine.errors import ValidationError
from ledger_engine.models import Expense
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import PAYMENT_METHODS, Account, ExpenseInput, PostingLine, to_money

logger = logging.getLogger(__name__)


class ExpenseService:
    """Records expenses and posts them.

    Posting: Dr category account (taxable value), Dr GST Input (gst_amount),
    Cr Bank or Cash (amount).
    """

    def __init__(
        self,
        db: Session,
        ledger: LedgerService | None = None,
        config: LedgerConfig | None = None,
    ):
        self.db = db
        self.ledger = ledger or LedgerService(db)
        self.config = config or LedgerConfig()

    def record_expense(self, ctx: TenantContext, data: ExpenseInput) -> UUID:
        ctx.require_permission(Permission.RECORD_EXPENSE)
        amount, gst_amount = self._validate(data)
        cash_account = Account.CASH if data.payment_method in self.config.cash_methods else Account.BANK

        with unit_of_work(self.db):
            expense = Expense(
                business_id=ctx.business_id,
                description=data.description.strip(),
                amount=amount,
                gst_amount=gst_amount,
                expense_date=data.expense_date or date.today(),
                category=data.category.strip(),
                payment_method=data.payment_method,
                supplier_gstin=(data.supplier_gstin or "").strip() or None,
                notes=data.notes,
                source="manual",
            )
            self.db.add(expense)
            self.db.flush()

            lines = [
                line
                for line in (
                    PostingLine.dr(Account.for_expense_category(expense.category), amount - gst_amount),
                    PostingLine.dr(Account.GST_INPUT, gst_amount),
                    PostingLine.cr(cash_account, amount),
                )
                if line.debit or line.credit
            ]

            result = self.ledger.post_transaction(
                business_id=ctx.business_id,
                source_type="expense",
                source_id=expense.expense_id,
                event="record",
                lines=lines,
                transaction_date=expense.expense_date,
                description=f"Expense: {expense.description}",
            )
            expense.transaction_id = result.transaction_id

        logger.info("Expense %s recorded: %s (%s)", expense.expense_id, amount, expense.category)
        return expense.expense_id

    def get_expense(self, ctx: TenantContext, expense_id: UUID) -> Expense:
        return ctx.ensure_owned(self.db.get(Expense, expense_id), "Expense", expense_id)

    def list_expenses(
        self,
        ctx: TenantContext,
        *,
        start: date | None = None,
        end: date | None = None,
        category: str | None = None,
        source: str | None = None,
    ) -> list[Expense]:
        stmt = select(Expense).where(Expense.business_id == ctx.business_id)
        if start is not None:
            stmt = stmt.where(Expense.expense_date >= start)
        if end is not None:
            stmt = stmt.where(Expense.expense_date <= end)
        if category is not None:
            stmt = stmt.where(Expense.category == category)
        if source is not None:
            stmt = stmt.where(Expense.source == source)
        return list(self.db.execute(stmt.order_by(Expense.expense_date.desc())).scalars().all())

    @staticmethod
    def _validate(data: ExpenseInput) -> tuple[Decimal, Decimal]:
        if not data.description or not data.description.strip():
            raise ValidationError("Description is required", field="description")
        if not data.category or not data.category.strip():
            raise ValidationError("Category is required", field="category")
        if data.payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                f"Unknown payment method '{data.payment_method}'", field="payment_method"
            )
        amount = to_money(data.amount)
        gst_amount = to_money(data.gst_amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        if gst_amount < 0 or gst_amount > amount:
            raise ValidationError("GST amount must be between 0 and the expense amount", field="gst_amount")
        return amount, gst_amount
