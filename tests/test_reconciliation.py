"""Tests for bank statement import and reconciliation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engine.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.payment_service import PaymentService
from ledger_engine.services.reconciliation import ReconciliationService
from ledger_engine.services.types import PaymentInput, StatementLineInput


def receive(session, ctx, amount, on, party="Acme Traders", reference=None):
    service = PaymentService(session)
    payment_id = service.record_payment(
        ctx,
        PaymentInput(
            payment_type="received",
            amount=Decimal(amount),
            payment_method="bank",
            party_name=party,
            payment_date=on,
            reference_number=reference,
        ),
    )
    return service.get_payment(ctx, payment_id).transaction_id


def import_line(session, ctx, amount, on, description="", reference=None):
    service = ReconciliationService(session)
    service.import_statement(
        ctx,
        [StatementLineInput(statement_date=on, amount=Decimal(amount), description=description, reference=reference)],
    )
    return next(
        line for line in service.list_statement_lines(ctx, matched=False)
        if line.reference == reference and line.statement_date == on
    )


class TestImportStatement:
    def test_duplicate_reference_skipped(self, session, owner):
        service = ReconciliationService(session)
        lines = [
            StatementLineInput(statement_date=date(2025, 4, 2), amount=Decimal("1250"), reference="UTR1"),
            StatementLineInput(statement_date=date(2025, 4, 3), amount=Decimal("-80"), reference="UTR2"),
        ]
        assert service.import_statement(owner, lines).imported == 2

        again = service.import_statement(
            owner,
            lines + [StatementLineInput(statement_date=date(2025, 4, 4), amount=Decimal("10"))],
        )
        assert again.imported == 1
        assert again.skipped == 2
        assert len(service.list_statement_lines(owner)) == 3

    def test_zero_amount_rejected(self, session, owner):
        with pytest.raises(ValidationError):
            ReconciliationService(session).import_statement(
                owner, [StatementLineInput(statement_date=date(2025, 4, 2), amount=Decimal("0"))]
            )

    def test_staff_cannot_import(self, session, staff):
        with pytest.raises(AuthorizationError):
            ReconciliationService(session).import_statement(staff, [])


class TestFindMatches:
    """Candidates share the exact signed amount and are ranked by date distance."""

    def test_candidates_ranked_by_date(self, session, owner):
        near = receive(session, owner, "1250.00", date(2025, 4, 10))
        far = receive(session, owner, "1250.00", date(2025, 4, 1))
        receive(session, owner, "1250.01", date(2025, 4, 10))
        line = import_line(session, owner, "1250.00", date(2025, 4, 11), "NEFT ACME", "UTR9")

        candidates = ReconciliationService(session).find_matches(owner, line.statement_line_id)

        assert [c.transaction_id for c in candidates] == [near, far]
        assert candidates[0].date_delta_days == 1
        assert candidates[1].date_delta_days == 10

    def test_similarity_breaks_date_ties(self, session, owner):
        receive(session, owner, "500.00", date(2025, 4, 10), party="Zenith Ltd")
        acme = receive(session, owner, "500.00", date(2025, 4, 10), party="Acme Traders")
        line = import_line(session, owner, "500.00", date(2025, 4, 10), "Payment from Acme Traders", "R1")

        candidates = ReconciliationService(session).find_matches(owner, line.statement_line_id)
        assert candidates[0].transaction_id == acme

    def test_sign_must_match(self, session, owner):
        receive(session, owner, "80.00", date(2025, 4, 10))
        line = import_line(session, owner, "-80.00", date(2025, 4, 10), reference="W1")
        assert ReconciliationService(session).find_matches(owner, line.statement_line_id) == []

    def test_other_business_transactions_ignored(self, session, owner, other_owner):
        receive(session, other_owner, "1250.00", date(2025, 4, 10))
        line = import_line(session, owner, "1250.00", date(2025, 4, 10), reference="X")
        assert ReconciliationService(session).find_matches(owner, line.statement_line_id) == []


class TestReconcile:
    def test_reconcile_marks_both_sides(self, session, owner):
        txn_id = receive(session, owner, "1250.00", date(2025, 4, 10))
        line = import_line(session, owner, "1250.00", date(2025, 4, 11), reference="UTR1")
        service = ReconciliationService(session)

        matched = service.reconcile(owner, line.statement_line_id, txn_id)

        assert matched.matched is True
        assert matched.matched_transaction_id == txn_id
        txn = LedgerService(session).get_transaction(business_id=owner.business_id, transaction_id=txn_id)
        assert txn.matched is True
        assert service.list_statement_lines(owner, matched=False) == []

    def test_matched_transaction_not_offered_again(self, session, owner):
        txn_id = receive(session, owner, "1250.00", date(2025, 4, 10))
        first = import_line(session, owner, "1250.00", date(2025, 4, 11), reference="A")
        second = import_line(session, owner, "1250.00", date(2025, 4, 12), reference="B")
        service = ReconciliationService(session)
        service.reconcile(owner, first.statement_line_id, txn_id)

        assert service.find_matches(owner, second.statement_line_id) == []
        with pytest.raises(ConflictError):
            service.reconcile(owner, second.statement_line_id, txn_id)
        assert service.list_statement_lines(owner, matched=False)[0].statement_line_id == second.statement_line_id

    def test_line_reconciled_twice_conflicts(self, session, owner):
        first_txn = receive(session, owner, "100.00", date(2025, 4, 10))
        second_txn = receive(session, owner, "100.00", date(2025, 4, 10))
        line = import_line(session, owner, "100.00", date(2025, 4, 10), reference="L")
        service = ReconciliationService(session)
        service.reconcile(owner, line.statement_line_id, first_txn)

        with pytest.raises(ConflictError):
            service.reconcile(owner, line.statement_line_id, second_txn)
        with pytest.raises(ConflictError):
            service.find_matches(owner, line.statement_line_id)

    def test_amount_mismatch_rejected(self, session, owner):
        txn_id = receive(session, owner, "99.00", date(2025, 4, 10))
        line = import_line(session, owner, "100.00", date(2025, 4, 10), reference="M")
        with pytest.raises(ValidationError):
            ReconciliationService(session).reconcile(owner, line.statement_line_id, txn_id)

    def test_foreign_transaction_rejected(self, session, owner, other_owner):
        txn_id = receive(session, other_owner, "100.00", date(2025, 4, 10))
        line = import_line(session, owner, "100.00", date(2025, 4, 10), reference="F")
        with pytest.raises(AuthorizationError):
            ReconciliationService(session).reconcile(owner, line.statement_line_id, txn_id)

    def test_unknown_line(self, session, owner):
        with pytest.raises(NotFoundError):
            ReconciliationService(session).find_matches(owner, uuid4())
