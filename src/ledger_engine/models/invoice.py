"""Invoice and invoice line item models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base, TimestampMixin


class Invoice(Base, TimestampMixin):
    """Sales invoice.

    Lifecycle: draft -> issued -> paid | cancelled. While in draft,
    draft_state tells an intentional draft apart from one whose issue step
    did not complete.
    """

    __tablename__ = "invoice"

    invoice_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    invoice_number: Mapped[str] = mapped_column(String, nullable=False)
    customer_name: Mapped[str] = mapped_column(String, nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    customer_gstin: Mapped[str | None] = mapped_column(String, nullable=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_settled: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    draft_state: Mapped[str | None] = mapped_column(String, nullable=True, default="intentional")
    issued_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("business_id", "invoice_number", name="invoice_business_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'issued', 'paid', 'cancelled')",
            name="invoice_status_check",
        ),
        CheckConstraint(
            "draft_state IS NULL OR draft_state IN ('intentional', 'incomplete')",
            name="invoice_draft_state_check",
        ),
        CheckConstraint(
            "amount_settled >= 0 AND amount_settled <= total_amount",
            name="invoice_settlement_check",
        ),
    )

    # Relationships
    items: Mapped[list[InvoiceLineItem]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )

    @property
    def outstanding(self) -> Decimal:
        """Amount still owed by the customer."""
        return self.total_amount - self.amount_settled


class InvoiceLineItem(Base):
    """Line of an invoice. Owned by its invoice."""

    __tablename__ = "invoice_line_item"

    invoice_line_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    product_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    line_amount: Mapped[Decimal] = mapped_column(nullable=False)
    line_tax: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="invoice_line_item_quantity_check"),
        CheckConstraint("unit_price >= 0", name="invoice_line_item_price_check"),
        CheckConstraint(
            "tax_rate >= 0 AND tax_rate <= 100",
            name="invoice_line_item_tax_rate_check",
        ),
    )

    # Relationships
    invoice: Mapped[Invoice] = relationship(back_populates="items")
