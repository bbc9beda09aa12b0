"""Payment models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ledger_engine.models.invoice import Invoice


class Payment(Base, TimestampMixin):
    """Money received from a customer or paid to a supplier."""

    __tablename__ = "payment"

    payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    payment_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String, nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String, nullable=True)
    party_name: Mapped[str] = mapped_column(String, nullable=False)
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    expense_category: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="completed")
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ledger_transaction.transaction_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="payment_amount_check"),
        CheckConstraint("payment_type IN ('received', 'made')", name="payment_type_check"),
        CheckConstraint(
            "payment_method IN ('cash', 'bank', 'upi', 'card', 'cheque', 'other')",
            name="payment_method_check",
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'cancelled')",
            name="payment_status_check",
        ),
    )

    # Relationships
    invoice: Mapped[Invoice | None] = relationship()
