"""Error taxonomy for ledger engine operations.

Every failure an operation can report is one of these types. Validation,
authorization and capability errors are raised before any write. Conflicts
come from store-level uniqueness or conditional updates and require a fresh
read before retrying.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class LedgerEngineError(Exception):
    """Base class for all ledger engine errors."""

    code = "LEDGER_ERROR"
    retryable = True

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        for key, value in self.details.items():
            body[key] = str(value) if isinstance(value, UUID) else value
        return body


class ValidationError(LedgerEngineError):
    """Input shape or range is invalid."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, **details: Any):
        self.field = field
        if field:
            details["field"] = field
        super().__init__(message, **details)


class UnbalancedTransactionError(ValidationError):
    """Debits and credits of a posting do not agree."""

    code = "UNBALANCED_TRANSACTION"


class AuthorizationError(LedgerEngineError):
    """Actor may not act on this tenant or row."""

    code = "AUTHORIZATION_ERROR"


class NotFoundError(LedgerEngineError):
    """Row does not exist."""

    code = "NOT_FOUND"


class ConflictError(LedgerEngineError):
    """Duplicate or concurrent change detected by the store."""

    code = "CONFLICT"
    retryable = False


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(from_status)
        self.to_status = str(to_status)
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=self.from_status, to_status=self.to_status)


class PartialFailureError(LedgerEngineError):
    """A multi-step operation stopped partway.

    The completed steps are committed and the entity is left in a resumable
    state; `entity_id` names what to resume.
    """

    code = "PARTIAL_FAILURE"

    def __init__(self, message: str, entity_type: str, entity_id: UUID, **details: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message, entity_type=entity_type, entity_id=entity_id, **details)


class CapabilityDeniedError(LedgerEngineError):
    """Plan or trial limits deny the operation."""

    code = "PLAN_LIMIT"
