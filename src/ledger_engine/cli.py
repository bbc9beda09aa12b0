"""Ledger operations command line interface.

Provides operational tools for:
- Ledger integrity verification
- Monthly GST summary
- Account balances

Usage:
    ledger-engine-ops verify --business-id X
    ledger-engine-ops gst-summary --business-id X --month 4 --year 2025
    ledger-engine-ops balances --business-id X [--json]
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from ledger_engine.config import configure_logging
from ledger_engine.database import create_session_factory, get_engine, init_db
from ledger_engine.errors import LedgerEngineError
from ledger_engine.services.gst_service import GSTService
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.reporting import ReportingService
from ledger_engine.services.tenant import Role, TenantContext


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class LedgerCli:
    """Ledger operations command line interface."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory = session_factory
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="ledger-engine-ops",
            description="Ledger operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: DATABASE_URL from the environment)",
        )
        parser.add_argument("--log-level", type=str, default=None, help="Logging level")
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        verify = subparsers.add_parser("verify", help="Run ledger integrity checks")
        self._add_common(verify)

        gst = subparsers.add_parser("gst-summary", help="Show the GST position for a month")
        self._add_common(gst)
        gst.add_argument("--month", type=int, required=True, help="Month (1-12)")
        gst.add_argument("--year", type=int, required=True, help="Year")

        balances = subparsers.add_parser("balances", help="Show account balances")
        self._add_common(balances)

        return parser

    @staticmethod
    def _add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--business-id",
            type=parse_uuid,
            required=True,
            help="Business to operate on",
        )
        sub.add_argument("--json", action="store_true", help="Emit JSON instead of a table")

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)
        if self.session_factory is None:
            if parsed.database_url:
                engine = get_engine(parsed.database_url)
                self.session_factory = create_session_factory(engine)
            else:
                _, self.session_factory = init_db(create_schema=False)

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace, Session, TenantContext], int]] = {
            "verify": self._cmd_verify,
            "gst-summary": self._cmd_gst_summary,
            "balances": self._cmd_balances,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        ctx = TenantContext(business_id=parsed.business_id, role=Role.OWNER)
        with self.session_factory() as session:
            try:
                return handler(parsed, session, ctx)
            except LedgerEngineError as e:
                print(f"ERROR: {e.message}", file=sys.stderr)
                return 1

    def _cmd_verify(self, args: argparse.Namespace, session: Session, ctx: TenantContext) -> int:
        """Run integrity checks; exit status 1 when any fails."""
        report = ReportingService(session).run_integrity_checks(ctx)

        if args.json:
            _emit({
                "passed": report.passed,
                "checks": [
                    {"name": c.name, "passed": c.passed, "issues": c.issues}
                    for c in report.checks
                ],
            })
            return 0 if report.passed else 1

        print(f"Ledger integrity for business {ctx.business_id}")
        print("=" * 60)
        for check in report.checks:
            mark = "PASS" if check.passed else "FAIL"
            print(f"  [{mark}] {check.name}")
            for issue in check.issues:
                print(f"         - {issue}")
        print("=" * 60)
        print("All checks passed." if report.passed else f"Failed: {', '.join(report.failed_checks)}")
        return 0 if report.passed else 1

    def _cmd_gst_summary(self, args: argparse.Namespace, session: Session, ctx: TenantContext) -> int:
        summary = GSTService(session).get_gst_summary(ctx, args.month, args.year)

        if args.json:
            _emit({
                "outputTax": str(summary.output_tax),
                "inputTax": str(summary.input_tax),
                "netPayable": str(summary.net_payable),
                "totalSales": str(summary.total_sales),
                "totalPurchases": str(summary.total_purchases),
            })
            return 0

        print(f"GST summary {args.month:02d}/{args.year}")
        print(f"  Total sales:     {summary.total_sales:>15,.2f}")
        print(f"  Output tax:      {summary.output_tax:>15,.2f}")
        print(f"  Total purchases: {summary.total_purchases:>15,.2f}")
        print(f"  Input tax:       {summary.input_tax:>15,.2f}")
        label = "Credit carried:" if summary.is_credit else "Net payable:   "
        print(f"  {label}  {summary.net_payable:>15,.2f}")
        return 0

    def _cmd_balances(self, args: argparse.Namespace, session: Session, ctx: TenantContext) -> int:
        balances = LedgerService(session).get_account_balances(business_id=ctx.business_id)

        if args.json:
            _emit([
                {
                    "account": b.account_name,
                    "debit": str(b.debit),
                    "credit": str(b.credit),
                    "balance": str(b.balance),
                }
                for b in balances
            ])
            return 0

        print(f"{'Account':<24}{'Debit':>15}{'Credit':>15}{'Balance':>15}")
        for b in balances:
            print(f"{b.account_name:<24}{b.debit:>15,.2f}{b.credit:>15,.2f}{b.balance:>15,.2f}")
        return 0


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def main() -> int:
    """CLI entry point."""
    cli = LedgerCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
