"""API routes."""

from ledger_engine.api.routes.banking import router as banking_router
from ledger_engine.api.routes.expenses import router as expenses_router
from ledger_engine.api.routes.gst import router as gst_router
from ledger_engine.api.routes.health import router as health_router
from ledger_engine.api.routes.invoices import router as invoices_router
from ledger_engine.api.routes.payments import router as payments_router
from ledger_engine.api.routes.payroll import router as payroll_router
from ledger_engine.api.routes.reports import router as reports_router

__all__ = [
    "banking_router",
    "expenses_router",
    "gst_router",
    "health_router",
    "invoices_router",
    "payments_router",
    "payroll_router",
    "reports_router",
]
