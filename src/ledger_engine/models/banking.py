"""Bank statement models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base, TimestampMixin


class BankStatementLine(Base, TimestampMixin):
    """Externally reported bank movement. Positive amounts are deposits."""

    __tablename__ = "bank_statement_line"

    statement_line_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    bank_account_name: Mapped[str] = mapped_column(String, nullable=False, default="Primary")
    statement_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reference: Mapped[str | None] = mapped_column(String, nullable=True)
    matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    matched_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ledger_transaction.transaction_id"),
        nullable=True,
    )
    matched_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("business_id", "reference", name="bank_statement_line_reference_unique"),
    )
