"""Expense model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base, TimestampMixin


class Expense(Base, TimestampMixin):
    """Business expense. `amount` is tax-inclusive; `gst_amount` is the reclaimable part."""

    __tablename__ = "expense"

    expense_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    payment_method: Mapped[str] = mapped_column(String, nullable=False)
    supplier_gstin: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="manual")
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ledger_transaction.transaction_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="expense_amount_check"),
        CheckConstraint(
            "gst_amount >= 0 AND gst_amount <= amount",
            name="expense_gst_amount_check",
        ),
        CheckConstraint("source IN ('manual', 'payroll')", name="expense_source_check"),
    )

    @property
    def taxable_value(self) -> Decimal:
        return self.amount - self.gst_amount
