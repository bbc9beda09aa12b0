"""Pytest fixtures for ledger engine tests."""

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_engine.database import create_session_factory, get_engine
from ledger_engine.models import Base, Transaction
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.tenant import Role, TenantContext
from ledger_engine.services.types import InvoiceInput, LineItemInput

# In-memory SQLite shared across threads so TestClient requests see the same data
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def engine():
    """Fresh database per test."""
    engine = get_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def file_session_factory(tmp_path) -> Generator[sessionmaker[Session], None, None]:
    """Sessions on separate connections to one SQLite file, for concurrent writers."""
    file_engine = get_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(file_engine)
    yield create_session_factory(file_engine)
    file_engine.dispose()


@pytest.fixture
def business_id() -> UUID:
    return uuid4()


@pytest.fixture
def owner(business_id) -> TenantContext:
    return TenantContext(business_id=business_id, role=Role.OWNER)


@pytest.fixture
def accountant(business_id) -> TenantContext:
    return TenantContext(business_id=business_id, role=Role.ACCOUNTANT)


@pytest.fixture
def staff(business_id) -> TenantContext:
    return TenantContext(business_id=business_id, role=Role.STAFF)


@pytest.fixture
def other_owner() -> TenantContext:
    """Owner of a different business."""
    return TenantContext(business_id=uuid4(), role=Role.OWNER)


def sample_invoice(
    invoice_date: date = date(2025, 4, 10),
    customer_gstin: str | None = None,
    discount: Decimal = Decimal("0"),
    **overrides,
) -> InvoiceInput:
    """Two lines: 2 x 100.00 at 18% and 1 x 50.00 at 0% -> 250.00 + 36.00 = 286.00."""
    data = {
        "customer_name": "Acme Traders",
        "invoice_date": invoice_date,
        "customer_gstin": customer_gstin,
        "discount_amount": discount,
        "items": [
            LineItemInput(description="Widget", quantity=Decimal("2"), unit_price=Decimal("100"), tax_rate=Decimal("18")),
            LineItemInput(description="Service", quantity=Decimal("1"), unit_price=Decimal("50"), tax_rate=Decimal("0")),
        ],
    }
    data.update(overrides)
    return InvoiceInput(**data)


def entry_map(txn: Transaction) -> dict[str, tuple[Decimal, Decimal]]:
    """Account name -> (debit, credit) for a transaction's entries."""
    return {e.account_name: (e.debit, e.credit) for e in txn.entries}


class FailingLedger(LedgerService):
    """Ledger whose Nth post_transaction call raises."""

    def __init__(self, db: Session, fail_on_call: int = 1):
        super().__init__(db)
        self.fail_on_call = fail_on_call
        self.calls = 0

    def post_transaction(self, **kwargs):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("ledger unavailable")
        return super().post_transaction(**kwargs)
