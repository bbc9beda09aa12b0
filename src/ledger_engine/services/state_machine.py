"""Status enums and transition tables for invoices, payments and payroll runs."""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

from ledger_engine.errors import InvalidTransitionError, ValidationError

E = TypeVar("E", bound=Enum)


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"
    CANCELLED = "cancelled"


class DraftState(str, Enum):
    """Why an invoice is still a draft."""

    INTENTIONAL = "intentional"
    INCOMPLETE = "incomplete"


class PaymentStatus(str, Enum):
    """Payment status values."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    LOCKED = "locked"
    PAID = "paid"
    FAILED = "failed"


class _StateMachine:
    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str, reason: str | None = None) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status), reason)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)


class InvoiceStateMachine(_StateMachine):
    """State machine for invoice status transitions.

    Allowed transitions:
    - draft -> issued
    - issued -> paid
    - issued -> cancelled
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.ISSUED],
        InvoiceStatus.ISSUED: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
        InvoiceStatus.PAID: [],
        InvoiceStatus.CANCELLED: [],
    }

    # Statuses counted as revenue
    REVENUE_STATUSES = {InvoiceStatus.ISSUED, InvoiceStatus.PAID}

    @classmethod
    def is_editable(cls, status: str) -> bool:
        """Only drafts may have header or line items changed."""
        return status == InvoiceStatus.DRAFT


class PaymentStateMachine(_StateMachine):
    """Pending payments are completed, failed or cancelled; the rest are final."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PaymentStatus.PENDING: [
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
            PaymentStatus.CANCELLED,
        ],
        PaymentStatus.COMPLETED: [],
        PaymentStatus.FAILED: [],
        PaymentStatus.CANCELLED: [],
    }


class PayrollRunStateMachine(_StateMachine):
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft -> locked
    - draft -> failed
    - failed -> draft (resume)
    - locked -> paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.LOCKED, PayrollRunStatus.FAILED],
        PayrollRunStatus.FAILED: [PayrollRunStatus.DRAFT],
        PayrollRunStatus.LOCKED: [PayrollRunStatus.PAID],
        PayrollRunStatus.PAID: [],
    }

    @classmethod
    def is_resumable(cls, status: str) -> bool:
        return status == PayrollRunStatus.FAILED


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def parse_status(enum_cls: type[E], value: str, field: str = "status") -> E:
    """Coerce a caller-supplied status, raising ValidationError if unknown."""
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Unknown {field} '{value}'; expected one of {allowed}", field=field) from exc
