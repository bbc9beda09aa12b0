"""ORM models for the ledger engine."""

from ledger_engine.models.banking import BankStatementLine
from ledger_engine.models.base import Base, TimestampMixin
from ledger_engine.models.expense import Expense
from ledger_engine.models.invoice import Invoice, InvoiceLineItem
from ledger_engine.models.ledger import LedgerEntry, Transaction
from ledger_engine.models.payment import Payment
from ledger_engine.models.payroll import Employee, PayrollRun, Payslip

__all__ = [
    "Base",
    "TimestampMixin",
    "BankStatementLine",
    "Employee",
    "Expense",
    "Invoice",
    "InvoiceLineItem",
    "LedgerEntry",
    "Payment",
    "PayrollRun",
    "Payslip",
    "Transaction",
]
