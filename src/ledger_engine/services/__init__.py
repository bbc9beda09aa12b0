"""Ledger engine services."""

from ledger_engine.services.billing import AllowAllGate, BillingGate, PlanLimitGate, PlanStatus
from ledger_engine.services.expense_service import ExpenseService
from ledger_engine.services.gst_service import GSTRRow, GSTService, GSTSummary
from ledger_engine.services.invoice_service import (
    InvoiceResult,
    InvoiceService,
    InvoiceStats,
    compute_totals,
)
from ledger_engine.services.ledger_service import AccountBalance, LedgerService, PostResult
from ledger_engine.services.payment_service import PaymentService, PaymentStats
from ledger_engine.services.payroll_service import PayrollResult, PayrollService
from ledger_engine.services.reconciliation import (
    ImportResult,
    MatchCandidate,
    ReconciliationService,
)
from ledger_engine.services.reporting import (
    DashboardMetrics,
    IntegrityReport,
    ProfitAndLossLine,
    ReportingService,
)
from ledger_engine.services.state_machine import (
    DraftState,
    InvoiceStateMachine,
    InvoiceStatus,
    PaymentStateMachine,
    PaymentStatus,
    PayrollRunStateMachine,
    PayrollRunStatus,
)
from ledger_engine.services.tenant import Permission, Role, TenantContext

__all__ = [
    "AccountBalance",
    "AllowAllGate",
    "BillingGate",
    "DashboardMetrics",
    "DraftState",
    "ExpenseService",
    "GSTRRow",
    "GSTService",
    "GSTSummary",
    "ImportResult",
    "IntegrityReport",
    "InvoiceResult",
    "InvoiceService",
    "InvoiceStateMachine",
    "InvoiceStats",
    "InvoiceStatus",
    "LedgerService",
    "MatchCandidate",
    "PaymentService",
    "PaymentStateMachine",
    "PaymentStats",
    "PaymentStatus",
    "PayrollResult",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "PayrollService",
    "Permission",
    "PlanLimitGate",
    "PlanStatus",
    "PostResult",
    "ProfitAndLossLine",
    "ReconciliationService",
    "ReportingService",
    "Role",
    "TenantContext",
    "compute_totals",
]
