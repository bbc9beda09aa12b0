"""Ledger store models: transactions and their append-only entries."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.errors import ConflictError
from ledger_engine.models.base import Base, TimestampMixin


class Transaction(Base, TimestampMixin):
    """One economic event posted to the ledger.

    The idempotency key is (business_id, source_type, source_id, event):
    re-processing the same event finds the existing row instead of creating
    a second one.
    """

    __tablename__ = "ledger_transaction"

    transaction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    source_type: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[UUID] = mapped_column(nullable=False)
    event: Mapped[str] = mapped_column(String, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    # Signed Bank/Cash movement; what bank statement lines are matched against.
    amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    matched_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reverses_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ledger_transaction.transaction_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "business_id",
            "source_type",
            "source_id",
            "event",
            name="ledger_transaction_idempotency_key",
        ),
        CheckConstraint(
            "source_type IN ('invoice', 'payment', 'payroll', 'expense')",
            name="ledger_transaction_source_type_check",
        ),
        CheckConstraint(
            "event IN ('issue', 'settle', 'record', 'accrue', 'reverse')",
            name="ledger_transaction_event_check",
        ),
        Index("ledger_transaction_unmatched_idx", "business_id", "matched", "amount"),
    )

    # Relationships
    entries: Mapped[list[LedgerEntry]] = relationship(
        back_populates="transaction",
        order_by="LedgerEntry.position",
    )

    @property
    def total_debit(self) -> Decimal:
        return sum((e.debit for e in self.entries), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((e.credit for e in self.entries), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        """Check that debits equal credits to the cent."""
        return self.total_debit == self.total_credit


class LedgerEntry(Base, TimestampMixin):
    """Single debit or credit line of a transaction. Never updated or deleted."""

    __tablename__ = "ledger_entry"

    ledger_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    transaction_id: Mapped[UUID] = mapped_column(
        ForeignKey("ledger_transaction.transaction_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    account_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ledger_entry_non_negative_check"),
        CheckConstraint(
            "(debit = 0 AND credit <> 0) OR (credit = 0 AND debit <> 0)",
            name="ledger_entry_debit_credit_check",
        ),
    )

    # Relationships
    transaction: Mapped[Transaction] = relationship(back_populates="entries")


@event.listens_for(LedgerEntry, "before_update")
@event.listens_for(LedgerEntry, "before_delete")
def _reject_entry_mutation(mapper: Any, connection: Any, target: LedgerEntry) -> None:
    raise ConflictError(
        "Ledger entries are append-only; post a reversing transaction instead",
        ledger_entry_id=target.ledger_entry_id,
    )
