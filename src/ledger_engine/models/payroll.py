"""Employee, payroll run and payslip models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    designation: Mapped[str | None] = mapped_column(String, nullable=True)
    salary_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    joined_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("salary_amount >= 0", name="employee_salary_check"),
        CheckConstraint("status IN ('active', 'inactive')", name="employee_status_check"),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}".strip()

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if employee is on the payroll on a given date."""
        if self.status != "active":
            return False
        if self.joined_on is not None and self.joined_on > as_of_date:
            return False
        return True


class PayrollRun(Base, TimestampMixin):
    """Payroll run for one calendar month. At most one per business and period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    month: Mapped[int] = mapped_column(nullable=False)
    year: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    employee_count: Mapped[int] = mapped_column(nullable=False, default=0)
    failure_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("business_id", "month", "year", name="payroll_run_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_run_month_check"),
        CheckConstraint(
            "status IN ('draft', 'locked', 'paid', 'failed')",
            name="payroll_run_status_check",
        ),
    )

    # Relationships
    payslips: Mapped[list[Payslip]] = relationship(back_populates="run")


class Payslip(Base, TimestampMixin):
    """Salary of one employee for one period."""

    __tablename__ = "payslip"

    payslip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(nullable=False)
    year: Mapped[int] = mapped_column(nullable=False)
    salary_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    expense_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("expense.expense_id"),
        nullable=True,
    )
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ledger_transaction.transaction_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "business_id", "employee_id", "month", "year", name="payslip_employee_period_unique"
        ),
        CheckConstraint("status IN ('pending', 'paid')", name="payslip_status_check"),
    )

    # Relationships
    run: Mapped[PayrollRun] = relationship(back_populates="payslips")
    employee: Mapped[Employee] = relationship()
