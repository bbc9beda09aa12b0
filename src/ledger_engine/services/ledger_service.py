"""Ledger posting service - append-only double-entry transactions.

Provides idempotent posting of balanced transactions with:
- Idempotency via (business_id, source_type, source_id, event) uniqueness
- Balance check before any row is written
- Reversal-based corrections (no updates/deletes of entries)
- Account balances computed from entry aggregates
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ledger_engine.errors import (
    AuthorizationError,
    NotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from ledger_engine.models import LedgerEntry, Transaction
from ledger_engine.services.types import (
    ACCOUNT_CLASSES,
    CASH_ACCOUNTS,
    ZERO,
    Account,
    AccountClass,
    PostingLine,
    to_money,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostResult:
    """Result of a ledger posting operation.

    Check `is_new` before doing follow-up work: `is_new=False` means the
    event had already been posted and the existing transaction was returned.
    """

    transaction_id: UUID
    is_new: bool
    event: str


@dataclass(frozen=True)
class AccountBalance:
    """Debit and credit totals of one account."""

    account_name: str
    debit: Decimal
    credit: Decimal

    @property
    def account_class(self) -> AccountClass | None:
        try:
            return ACCOUNT_CLASSES[Account(self.account_name)]
        except ValueError:
            return None

    @property
    def balance(self) -> Decimal:
        """Balance on the account's normal side (debit-normal when unknown)."""
        cls = self.account_class
        if cls is None or cls.debit_normal:
            return self.debit - self.credit
        return self.credit - self.debit


class LedgerService:
    """Append-only double-entry posting service.

    Notes:
    - Posting never commits; the caller's unit of work does.
    - ledger_entry rows are append-only (mapper events refuse changes).
    - Every line carries a non-negative amount on exactly one side.
    """

    def __init__(self, db: Session):
        self.db = db

    def post_transaction(
        self,
        *,
        business_id: UUID,
        source_type: str,
        source_id: UUID,
        event: str,
        lines: list[PostingLine],
        transaction_date: date,
        description: str = "",
        reverses_transaction_id: UUID | None = None,
    ) -> PostResult:
        """Post a balanced transaction for one economic event.

        Args:
            business_id: Owning business
            source_type: invoice, payment, payroll or expense
            source_id: ID of the source document
            event: issue, settle, record, accrue or reverse
            lines: Debit and credit lines; must balance to the cent
            transaction_date: Accounting date
            description: Free text shown in statements and matching
            reverses_transaction_id: Set on reversals

        Returns:
            PostResult with the transaction id and whether it is new

        Raises:
            UnbalancedTransactionError: Debits and credits differ
            ValidationError: A line is empty, negative or two-sided
        """
        existing = self.find_transaction(
            business_id=business_id,
            source_type=source_type,
            source_id=source_id,
            event=event,
        )
        if existing is not None:
            logger.info(
                "Ledger event already posted: %s/%s/%s -> %s",
                source_type, source_id, event, existing.transaction_id,
            )
            return PostResult(transaction_id=existing.transaction_id, is_new=False, event=event)

        normalized = self._validate_lines(lines)

        txn = Transaction(
            business_id=business_id,
            source_type=source_type,
            source_id=source_id,
            event=event,
            transaction_date=transaction_date,
            description=description,
            amount=self._cash_movement(normalized),
            matched=False,
            reverses_transaction_id=reverses_transaction_id,
        )
        for position, line in enumerate(normalized):
            txn.entries.append(
                LedgerEntry(
                    business_id=business_id,
                    position=position,
                    account_name=line.account.value,
                    debit=line.debit,
                    credit=line.credit,
                )
            )
        self.db.add(txn)
        self.db.flush()

        return PostResult(transaction_id=txn.transaction_id, is_new=True, event=event)

    def reverse_transaction(
        self,
        *,
        business_id: UUID,
        transaction_id: UUID,
        reversal_date: date,
        reason: str,
    ) -> PostResult:
        """Post the mirror image of an existing transaction.

        Debits and credits are swapped; the original entries are untouched.
        The reversal shares the original's source and uses event 'reverse'.
        """
        original = self.get_transaction(business_id=business_id, transaction_id=transaction_id)
        if original.event == "reverse":
            raise ValidationError("A reversal cannot itself be reversed")

        lines = [
            PostingLine(
                account=Account(entry.account_name), debit=entry.debit, credit=entry.credit
            ).swapped()
            for entry in original.entries
        ]
        return self.post_transaction(
            business_id=business_id,
            source_type=original.source_type,
            source_id=original.source_id,
            event="reverse",
            lines=lines,
            transaction_date=reversal_date,
            description=f"Reversal: {reason}",
            reverses_transaction_id=original.transaction_id,
        )

    def get_transaction(self, *, business_id: UUID, transaction_id: UUID) -> Transaction:
        """Load a transaction with its entries, scoped to the business."""
        txn = self.db.execute(
            select(Transaction)
            .where(Transaction.transaction_id == transaction_id)
            .options(selectinload(Transaction.entries))
        ).scalar_one_or_none()

        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found", entity_id=transaction_id)
        if txn.business_id != business_id:
            raise AuthorizationError(
                f"Transaction {transaction_id} belongs to another business",
                entity_id=transaction_id,
            )
        return txn

    def find_transaction(
        self,
        *,
        business_id: UUID,
        source_type: str,
        source_id: UUID,
        event: str,
    ) -> Transaction | None:
        """Look up a transaction by its idempotency key."""
        return self.db.execute(
            select(Transaction).where(
                Transaction.business_id == business_id,
                Transaction.source_type == source_type,
                Transaction.source_id == source_id,
                Transaction.event == event,
            )
        ).scalar_one_or_none()

    def get_account_balances(
        self,
        *,
        business_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[AccountBalance]:
        """Aggregate debits and credits per account.

        Optional start/end bound the transaction date (inclusive).
        """
        stmt = (
            select(
                LedgerEntry.account_name,
                func.coalesce(func.sum(LedgerEntry.debit), 0),
                func.coalesce(func.sum(LedgerEntry.credit), 0),
            )
            .join(Transaction, Transaction.transaction_id == LedgerEntry.transaction_id)
            .where(LedgerEntry.business_id == business_id)
            .group_by(LedgerEntry.account_name)
            .order_by(LedgerEntry.account_name)
        )
        if start is not None:
            stmt = stmt.where(Transaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(Transaction.transaction_date <= end)

        return [
            AccountBalance(
                account_name=name,
                debit=to_money(Decimal(str(debit))),
                credit=to_money(Decimal(str(credit))),
            )
            for name, debit, credit in self.db.execute(stmt).all()
        ]

    def get_account_balance(self, *, business_id: UUID, account: Account | str) -> AccountBalance:
        """Balance of a single account; zero if it has never been posted to."""
        name = account.value if isinstance(account, Account) else account
        row = self.db.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.debit), 0),
                func.coalesce(func.sum(LedgerEntry.credit), 0),
            ).where(
                LedgerEntry.business_id == business_id,
                LedgerEntry.account_name == name,
            )
        ).one()
        return AccountBalance(
            account_name=name,
            debit=to_money(Decimal(str(row[0]))),
            credit=to_money(Decimal(str(row[1]))),
        )

    def verify_transaction_balanced(self, *, business_id: UUID, transaction_id: UUID) -> bool:
        """Re-check a stored transaction: total debits equal total credits."""
        txn = self.get_transaction(business_id=business_id, transaction_id=transaction_id)
        return bool(txn.entries) and txn.is_balanced

    @staticmethod
    def _validate_lines(lines: list[PostingLine]) -> list[PostingLine]:
        if len(lines) < 2:
            raise ValidationError("A transaction needs at least one debit and one credit")

        normalized: list[PostingLine] = []
        for line in lines:
            debit = to_money(line.debit)
            credit = to_money(line.credit)
            if debit < 0 or credit < 0:
                raise ValidationError(f"Negative amount on {line.account.value}")
            if (debit == 0) == (credit == 0):
                raise ValidationError(
                    f"Line on {line.account.value} must have exactly one of debit or credit"
                )
            normalized.append(PostingLine(account=line.account, debit=debit, credit=credit))

        total_debit = sum((line.debit for line in normalized), ZERO)
        total_credit = sum((line.credit for line in normalized), ZERO)
        if total_debit != total_credit:
            raise UnbalancedTransactionError(
                f"Debits {total_debit} do not equal credits {total_credit}",
                total_debit=str(total_debit),
                total_credit=str(total_credit),
            )
        return normalized

    @staticmethod
    def _cash_movement(lines: list[PostingLine]) -> Decimal:
        return sum(
            (line.debit - line.credit for line in lines if line.account in CASH_ACCOUNTS),
            ZERO,
        )
