"""Tenant context and role permissions.

The engine never resolves identity. Callers hand it a business id and the
actor's role; every read and write is scoped to that business.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from ledger_engine.errors import AuthorizationError, NotFoundError, ValidationError

T = TypeVar("T")


class Role(str, Enum):
    """Membership role within a business."""

    OWNER = "owner"
    ACCOUNTANT = "accountant"
    STAFF = "staff"


class Permission(str, Enum):
    """Actions gated by role."""

    VIEW_DASHBOARD = "view_dashboard"
    VIEW_REPORTS = "view_reports"
    CREATE_INVOICE = "create_invoice"
    ISSUE_INVOICE = "issue_invoice"
    SETTLE_INVOICE = "settle_invoice"
    CANCEL_INVOICE = "cancel_invoice"
    DELETE_INVOICE = "delete_invoice"
    RECORD_PAYMENT = "record_payment"
    RECORD_EXPENSE = "record_expense"
    RUN_PAYROLL = "run_payroll"
    RECONCILE_BANK = "reconcile_bank"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.OWNER: frozenset(Permission),
    Role.ACCOUNTANT: frozenset(Permission) - {Permission.CANCEL_INVOICE, Permission.DELETE_INVOICE},
    Role.STAFF: frozenset({
        Permission.VIEW_DASHBOARD,
        Permission.CREATE_INVOICE,
        Permission.RECORD_PAYMENT,
        Permission.RECORD_EXPENSE,
    }),
}


@dataclass(frozen=True)
class TenantContext:
    """Resolved business and role of the acting user."""

    business_id: UUID
    role: Role

    @classmethod
    def create(cls, business_id: str | UUID, role: str | Role) -> TenantContext:
        """Build a context from raw header values."""
        try:
            bid = business_id if isinstance(business_id, UUID) else UUID(str(business_id))
        except ValueError as exc:
            raise ValidationError("business_id must be a UUID", field="business_id") from exc
        try:
            resolved_role = Role(role)
        except ValueError as exc:
            raise AuthorizationError(f"Unknown role '{role}'") from exc
        return cls(business_id=bid, role=resolved_role)

    def can(self, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS.get(self.role, frozenset())

    def require_permission(self, permission: Permission) -> None:
        """Raise AuthorizationError unless the role grants the permission."""
        if not self.can(permission):
            raise AuthorizationError(
                f"Role '{self.role.value}' may not {permission.value.replace('_', ' ')}",
                permission=permission.value,
            )

    def ensure_owned(self, row: T | None, entity: str, entity_id: Any) -> T:
        """Return the row if it exists and belongs to this business.

        Caller-supplied ids are always re-checked here rather than trusted.
        """
        if row is None:
            raise NotFoundError(f"{entity} {entity_id} not found", entity_id=entity_id)
        if getattr(row, "business_id", None) != self.business_id:
            raise AuthorizationError(
                f"{entity} {entity_id} belongs to another business",
                entity_id=entity_id,
            )
        return row
