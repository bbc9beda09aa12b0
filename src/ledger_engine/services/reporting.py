"""Read projections over the ledger: dashboard, profit and loss, integrity checks.

Every figure here is derived from ledger entry aggregates, never from
invoice or payment rows, so the reports agree with the books by construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_engine.models import LedgerEntry, Transaction
from ledger_engine.services.ledger_service import AccountBalance, LedgerService
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import (
    GST_ACCOUNTS,
    ZERO,
    Account,
    AccountClass,
    to_money,
)

logger = logging.getLogger(__name__)

# Asset accounts that must never carry a credit balance
NON_NEGATIVE_ACCOUNTS = (Account.ACCOUNTS_RECEIVABLE, Account.BANK, Account.CASH)


@dataclass(frozen=True)
class DashboardMetrics:
    revenue: Decimal
    expenses: Decimal
    net_profit: Decimal
    receivables: Decimal
    payables: Decimal
    cash_balance: Decimal
    gst_payable: Decimal


@dataclass(frozen=True)
class ProfitAndLossLine:
    account_name: str
    account_class: AccountClass
    amount: Decimal


@dataclass
class IntegrityCheck:
    """Outcome of one integrity check."""

    name: str
    passed: bool
    issues: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class IntegrityReport:
    """All integrity checks for one business."""

    checks: list[IntegrityCheck] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def failed_checks(self) -> list[str]:
        return [check.name for check in self.checks if not check.passed]


class ReportingService:
    """Dashboard, P&L and integrity projections."""

    def __init__(self, db: Session, ledger: LedgerService | None = None):
        self.db = db
        self.ledger = ledger or LedgerService(db)

    def get_dashboard_metrics(self, ctx: TenantContext) -> DashboardMetrics:
        ctx.require_permission(Permission.VIEW_DASHBOARD)
        balances = {b.account_name: b for b in self.ledger.get_account_balances(business_id=ctx.business_id)}

        def bal(account: Account) -> Decimal:
            entry = balances.get(account.value)
            return entry.balance if entry is not None else ZERO

        revenue = ZERO
        expenses = ZERO
        for entry in balances.values():
            cls = entry.account_class
            if cls == AccountClass.INCOME:
                revenue += entry.balance
            elif cls == AccountClass.EXPENSE:
                expenses += entry.balance

        return DashboardMetrics(
            revenue=revenue,
            expenses=expenses,
            net_profit=revenue - expenses,
            receivables=bal(Account.ACCOUNTS_RECEIVABLE),
            payables=bal(Account.ACCOUNTS_PAYABLE) + bal(Account.SALARIES_PAYABLE),
            cash_balance=bal(Account.BANK) + bal(Account.CASH),
            gst_payable=bal(Account.GST_OUTPUT) + bal(Account.GST_PAYABLE) - bal(Account.GST_INPUT),
        )

    def get_profit_and_loss(
        self,
        ctx: TenantContext,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ProfitAndLossLine]:
        """Income and expense accounts only; GST accounts never appear."""
        ctx.require_permission(Permission.VIEW_REPORTS)
        balances = self.ledger.get_account_balances(
            business_id=ctx.business_id, start=start, end=end
        )
        lines = [
            ProfitAndLossLine(
                account_name=b.account_name,
                account_class=b.account_class,
                amount=b.balance,
            )
            for b in balances
            if b.account_class is not None and b.account_class.in_profit_and_loss
        ]
        lines.sort(key=lambda line: (line.account_class != AccountClass.INCOME, line.account_name))
        return lines

    def run_integrity_checks(self, ctx: TenantContext) -> IntegrityReport:
        """Run every ledger integrity check for the business."""
        ctx.require_permission(Permission.VIEW_REPORTS)
        report = IntegrityReport(
            checks=[
                self._check_duplicate_keys(ctx),
                self._check_unbalanced(ctx),
                self._check_negative_assets(ctx),
                self._check_gst_in_profit_and_loss(ctx),
                self._check_orphaned_entries(ctx),
            ]
        )
        if report.passed:
            logger.info("Integrity checks passed for business %s", ctx.business_id)
        else:
            logger.warning(
                "Integrity checks failed for business %s: %s",
                ctx.business_id, ", ".join(report.failed_checks),
            )
        return report

    def _check_duplicate_keys(self, ctx: TenantContext) -> IntegrityCheck:
        rows = self.db.execute(
            select(
                Transaction.source_type,
                Transaction.source_id,
                Transaction.event,
                func.count(Transaction.transaction_id),
            )
            .where(Transaction.business_id == ctx.business_id)
            .group_by(Transaction.source_type, Transaction.source_id, Transaction.event)
            .having(func.count(Transaction.transaction_id) > 1)
        ).all()
        issues = [
            {"source_type": st, "source_id": str(sid), "event": ev, "count": n}
            for st, sid, ev, n in rows
        ]
        return IntegrityCheck(name="duplicate_source_keys", passed=not issues, issues=issues)

    def _check_unbalanced(self, ctx: TenantContext) -> IntegrityCheck:
        rows = self.db.execute(
            select(
                Transaction.transaction_id,
                func.coalesce(func.sum(LedgerEntry.debit), 0),
                func.coalesce(func.sum(LedgerEntry.credit), 0),
                func.count(LedgerEntry.ledger_entry_id),
            )
            .outerjoin(LedgerEntry, LedgerEntry.transaction_id == Transaction.transaction_id)
            .where(Transaction.business_id == ctx.business_id)
            .group_by(Transaction.transaction_id)
        ).all()

        issues = []
        for txn_id, debit, credit, count in rows:
            debit = to_money(Decimal(str(debit)))
            credit = to_money(Decimal(str(credit)))
            if count == 0 or debit != credit:
                issues.append({
                    "transaction_id": str(txn_id),
                    "debit": str(debit),
                    "credit": str(credit),
                    "entries": count,
                })
        return IntegrityCheck(name="unbalanced_transactions", passed=not issues, issues=issues)

    def _check_negative_assets(self, ctx: TenantContext) -> IntegrityCheck:
        issues = []
        for account in NON_NEGATIVE_ACCOUNTS:
            balance: AccountBalance = self.ledger.get_account_balance(
                business_id=ctx.business_id, account=account
            )
            if balance.balance < 0:
                issues.append({"account": account.value, "balance": str(balance.balance)})
        return IntegrityCheck(name="negative_asset_balances", passed=not issues, issues=issues)

    def _check_gst_in_profit_and_loss(self, ctx: TenantContext) -> IntegrityCheck:
        names = self.db.execute(
            select(LedgerEntry.account_name)
            .where(LedgerEntry.business_id == ctx.business_id)
            .distinct()
        ).scalars().all()

        issues = []
        gst_names = {a.value for a in GST_ACCOUNTS}
        for name in names:
            try:
                account = Account(name)
            except ValueError:
                issues.append({"account": name, "reason": "not in chart of accounts"})
                continue
            if name in gst_names and account.account_class.in_profit_and_loss:
                issues.append({"account": name, "reason": "GST account classified in P&L"})

        pl_names = {line.account_name for line in self.get_profit_and_loss(ctx)}
        for name in sorted(pl_names & gst_names):
            issues.append({"account": name, "reason": "GST account reported in P&L"})
        return IntegrityCheck(name="gst_in_profit_and_loss", passed=not issues, issues=issues)

    def _check_orphaned_entries(self, ctx: TenantContext) -> IntegrityCheck:
        rows = self.db.execute(
            select(LedgerEntry.ledger_entry_id, LedgerEntry.transaction_id)
            .outerjoin(Transaction, Transaction.transaction_id == LedgerEntry.transaction_id)
            .where(
                LedgerEntry.business_id == ctx.business_id,
                (Transaction.transaction_id.is_(None))
                | (Transaction.business_id != LedgerEntry.business_id),
            )
        ).all()
        issues = [
            {"ledger_entry_id": str(entry_id), "transaction_id": str(txn_id)}
            for entry_id, txn_id in rows
        ]
        return IntegrityCheck(name="orphaned_entries", passed=not issues, issues=issues)
