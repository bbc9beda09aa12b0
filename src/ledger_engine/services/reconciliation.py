"""Bank reconciliation - statement import and transaction matching.

Statement lines are matched against ledger transactions by exact signed
amount. Candidates are only ranked; the operator always picks one.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_engine.database import unit_of_work
from ledger_engine.errors import ConflictError, ValidationError
from ledger_engine.models import BankStatementLine, Transaction
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import StatementLineInput, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    """Counts from a statement import."""

    imported: int
    skipped: int


@dataclass(frozen=True)
class MatchCandidate:
    """Unmatched transaction with the same amount as a statement line."""

    transaction_id: UUID
    transaction_date: date
    description: str
    amount: Decimal
    date_delta_days: int
    similarity: float


class ReconciliationService:
    """Imports bank statements and reconciles them against the ledger.

    Matching uses conditional updates on the `matched` flag of both the
    statement line and the transaction, so two operators cannot claim the
    same row.
    """

    def __init__(self, db: Session):
        self.db = db

    def import_statement(self, ctx: TenantContext, lines: list[StatementLineInput]) -> ImportResult:
        """Insert statement lines; lines whose reference was already imported are skipped."""
        ctx.require_permission(Permission.RECONCILE_BANK)
        for index, line in enumerate(lines):
            if to_money(line.amount) == 0:
                raise ValidationError("Statement amount cannot be zero", field=f"lines[{index}].amount")

        references = {line.reference for line in lines if line.reference}
        seen: set[str] = set()
        if references:
            seen = set(
                self.db.execute(
                    select(BankStatementLine.reference).where(
                        BankStatementLine.business_id == ctx.business_id,
                        BankStatementLine.reference.in_(references),
                    )
                ).scalars().all()
            )

        imported = skipped = 0
        with unit_of_work(self.db, "Statement was imported concurrently; re-run the import"):
            for line in lines:
                if line.reference:
                    if line.reference in seen:
                        skipped += 1
                        continue
                    seen.add(line.reference)
                self.db.add(
                    BankStatementLine(
                        business_id=ctx.business_id,
                        bank_account_name=line.bank_account_name,
                        statement_date=line.statement_date,
                        description=line.description,
                        amount=to_money(line.amount),
                        reference=line.reference,
                        matched=False,
                    )
                )
                imported += 1

        logger.info("Statement import: %d imported, %d skipped", imported, skipped)
        return ImportResult(imported=imported, skipped=skipped)

    def find_matches(self, ctx: TenantContext, line_id: UUID) -> list[MatchCandidate]:
        """Rank unmatched transactions with exactly the line's amount.

        Ordered by distance in days, then by description similarity.
        """
        ctx.require_permission(Permission.RECONCILE_BANK)
        line = self._load_line(ctx, line_id)
        if line.matched:
            raise ConflictError(f"Statement line {line_id} is already matched", line_id=line_id)
        if line.amount == 0:
            return []

        transactions = self.db.execute(
            select(Transaction).where(
                Transaction.business_id == ctx.business_id,
                Transaction.matched.is_(False),
                Transaction.amount == line.amount,
                Transaction.amount != 0,
            )
        ).scalars().all()

        candidates = [
            MatchCandidate(
                transaction_id=txn.transaction_id,
                transaction_date=txn.transaction_date,
                description=txn.description,
                amount=txn.amount,
                date_delta_days=abs((txn.transaction_date - line.statement_date).days),
                similarity=_similarity(line, txn),
            )
            for txn in transactions
        ]
        candidates.sort(key=lambda c: (c.date_delta_days, -c.similarity))
        return candidates

    def reconcile(self, ctx: TenantContext, line_id: UUID, transaction_id: UUID) -> BankStatementLine:
        """Mark a statement line and a transaction as matched to each other.

        Raises:
            ValidationError: Amounts differ
            ConflictError: Either side is already matched; nothing changes
        """
        ctx.require_permission(Permission.RECONCILE_BANK)
        line = self._load_line(ctx, line_id)
        txn = ctx.ensure_owned(self.db.get(Transaction, transaction_id), "Transaction", transaction_id)
        if txn.amount != line.amount or txn.amount == 0:
            raise ValidationError(
                f"Transaction amount {txn.amount} does not equal statement amount {line.amount}",
                field="transaction_id",
            )

        now = datetime.now(timezone.utc)
        with unit_of_work(self.db):
            line_result = self.db.execute(
                update(BankStatementLine)
                .where(
                    BankStatementLine.statement_line_id == line_id,
                    BankStatementLine.business_id == ctx.business_id,
                    BankStatementLine.matched.is_(False),
                )
                .values(matched=True, matched_transaction_id=transaction_id, matched_at=now)
                .execution_options(synchronize_session=False)
            )
            if line_result.rowcount != 1:
                raise ConflictError(f"Statement line {line_id} is already matched", line_id=line_id)

            txn_result = self.db.execute(
                update(Transaction)
                .where(
                    Transaction.transaction_id == transaction_id,
                    Transaction.business_id == ctx.business_id,
                    Transaction.matched.is_(False),
                )
                .values(matched=True, matched_at=now)
                .execution_options(synchronize_session=False)
            )
            if txn_result.rowcount != 1:
                raise ConflictError(
                    f"Transaction {transaction_id} is already matched",
                    transaction_id=transaction_id,
                )

        self.db.refresh(line)
        self.db.refresh(txn)
        logger.info("Statement line %s reconciled with transaction %s", line_id, transaction_id)
        return line

    def list_statement_lines(
        self,
        ctx: TenantContext,
        *,
        matched: bool | None = None,
    ) -> list[BankStatementLine]:
        ctx.require_permission(Permission.RECONCILE_BANK)
        stmt = select(BankStatementLine).where(BankStatementLine.business_id == ctx.business_id)
        if matched is not None:
            stmt = stmt.where(BankStatementLine.matched.is_(matched))
        return list(
            self.db.execute(stmt.order_by(BankStatementLine.statement_date.desc())).scalars().all()
        )

    def _load_line(self, ctx: TenantContext, line_id: UUID) -> BankStatementLine:
        return ctx.ensure_owned(
            self.db.get(BankStatementLine, line_id), "Statement line", line_id
        )


def _similarity(line: BankStatementLine, txn: Transaction) -> float:
    text = txn.description.lower()
    score = difflib.SequenceMatcher(None, line.description.lower(), text).ratio()
    if line.reference:
        ref = line.reference.lower()
        score = max(score, 1.0 if ref in text else difflib.SequenceMatcher(None, ref, text).ratio())
    return round(score, 4)
