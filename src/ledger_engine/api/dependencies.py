"""FastAPI dependencies for dependency injection."""

from collections.abc import Generator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ledger_engine.config import LedgerConfig, get_settings
from ledger_engine.database import init_db
from ledger_engine.services.billing import AllowAllGate, BillingGate
from ledger_engine.services.tenant import TenantContext


def get_db_session() -> Generator[Session, None, None]:
    """Get database session dependency."""
    _, factory = init_db()
    session = factory()
    try:
        yield session
    finally:
        session.close()


def get_tenant_context(
    x_business_id: Annotated[str | None, Header()] = None,
    x_role: Annotated[str | None, Header()] = None,
) -> TenantContext:
    """Build the tenant context from X-Business-ID and X-Role headers."""
    if not x_business_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Business-ID header is required",
        )
    try:
        business_id = UUID(x_business_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Business-ID format",
        )
    if not x_role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="X-Role header is required",
        )
    return TenantContext.create(business_id, x_role.lower())


def get_billing_gate() -> BillingGate:
    """Billing gate used for invoice creation. Overridden where plans are enforced."""
    return AllowAllGate()


def get_ledger_config() -> LedgerConfig:
    return LedgerConfig(invoice_number_prefix=get_settings().invoice_number_prefix)


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db_session)]
Tenant = Annotated[TenantContext, Depends(get_tenant_context)]
Gate = Annotated[BillingGate, Depends(get_billing_gate)]
Config = Annotated[LedgerConfig, Depends(get_ledger_config)]
