"""Subscription capability gate consulted before invoices are created."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_engine.errors import CapabilityDeniedError
from ledger_engine.models import Invoice


class BillingGate(Protocol):
    """Answers whether a business may create another invoice."""

    def can_create_invoice(self, business_id: UUID) -> tuple[bool, str | None]:
        ...


class AllowAllGate:
    """Gate that never denies. Used when billing is not enforced."""

    def can_create_invoice(self, business_id: UUID) -> tuple[bool, str | None]:
        return True, None


# Monthly invoice limit per plan tier; None means unlimited.
PLAN_INVOICE_LIMITS: dict[str, int | None] = {
    "trial": None,
    "starter": 100,
    "growth": None,
    "business": None,
    "enterprise": None,
}

TRIAL_DAYS = 14


@dataclass(frozen=True)
class PlanStatus:
    """Subscription state of one business."""

    tier: str | None
    business_created_on: date
    subscription_active: bool = False


@dataclass
class PlanLimitGate:
    """Trial / paid-plan gate with monthly invoice limits.

    Invoices dated on or after the first of the current month count against the
    plan's limit. A business without an active subscription is on the trial
    for TRIAL_DAYS after it was created and locked afterwards.
    """

    db: Session
    plans: dict[UUID, PlanStatus] = field(default_factory=dict)
    today: date | None = None

    def _today(self) -> date:
        return self.today or datetime.now(timezone.utc).date()

    def resolve_tier(self, business_id: UUID) -> tuple[str | None, str | None]:
        status = self.plans.get(business_id)
        if status is None:
            return None, "No subscription found. Please choose a plan."
        if status.subscription_active and status.tier:
            return status.tier, None
        if (self._today() - status.business_created_on).days <= TRIAL_DAYS:
            return "trial", None
        return None, "Trial expired. Please upgrade your plan."

    def can_create_invoice(self, business_id: UUID) -> tuple[bool, str | None]:
        tier, reason = self.resolve_tier(business_id)
        if tier is None:
            return False, reason

        limit = PLAN_INVOICE_LIMITS.get(tier, PLAN_INVOICE_LIMITS["starter"])
        if limit is None:
            return True, None

        month_start = self._today().replace(day=1)
        count = self.db.execute(
            select(func.count(Invoice.invoice_id)).where(
                Invoice.business_id == business_id,
                Invoice.invoice_date >= month_start,
            )
        ).scalar_one()
        if count >= limit:
            return False, f"Plan limit reached ({limit} invoices/mo). Upgrade to increase."
        return True, None


def require_invoice_capability(gate: BillingGate, business_id: UUID) -> None:
    """Raise CapabilityDeniedError if the gate refuses."""
    allowed, reason = gate.can_create_invoice(business_id)
    if not allowed:
        raise CapabilityDeniedError(reason or "Plan does not allow creating invoices")
