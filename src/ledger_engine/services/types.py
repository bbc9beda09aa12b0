"""Shared value types for ledger engine services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize a value to the cent, rounding half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class AccountClass(str, Enum):
    """Account classification; decides the normal balance side."""

    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def debit_normal(self) -> bool:
        return self in (AccountClass.ASSET, AccountClass.EXPENSE)

    @property
    def in_profit_and_loss(self) -> bool:
        return self in (AccountClass.INCOME, AccountClass.EXPENSE)


class Account(str, Enum):
    """Fixed chart of accounts."""

    BANK = "Bank"
    CASH = "Cash"
    ACCOUNTS_RECEIVABLE = "Accounts Receivable"
    ACCOUNTS_PAYABLE = "Accounts Payable"
    SALES = "Sales"
    DISCOUNT_ALLOWED = "Discount Allowed"
    GST_OUTPUT = "GST Output"
    GST_INPUT = "GST Input"
    GST_PAYABLE = "GST Payable"
    SALARY_EXPENSE = "Salary Expense"
    SALARIES_PAYABLE = "Salaries Payable"
    PURCHASES = "Purchases"
    RENT_EXPENSE = "Rent Expense"
    UTILITIES_EXPENSE = "Utilities Expense"
    TRAVEL_EXPENSE = "Travel Expense"
    OFFICE_EXPENSE = "Office Expense"
    MARKETING_EXPENSE = "Marketing Expense"
    PROFESSIONAL_FEES = "Professional Fees"
    OTHER_EXPENSE = "Other Expense"

    @property
    def account_class(self) -> AccountClass:
        return ACCOUNT_CLASSES[self]

    @property
    def is_gst(self) -> bool:
        return self in GST_ACCOUNTS

    @classmethod
    def for_expense_category(cls, category: str) -> Account:
        """Map a free-form expense category to its expense account."""
        return EXPENSE_CATEGORY_ACCOUNTS.get(category.strip().lower(), cls.OTHER_EXPENSE)


ACCOUNT_CLASSES: dict[Account, AccountClass] = {
    Account.BANK: AccountClass.ASSET,
    Account.CASH: AccountClass.ASSET,
    Account.ACCOUNTS_RECEIVABLE: AccountClass.ASSET,
    Account.GST_INPUT: AccountClass.ASSET,
    Account.ACCOUNTS_PAYABLE: AccountClass.LIABILITY,
    Account.GST_OUTPUT: AccountClass.LIABILITY,
    Account.GST_PAYABLE: AccountClass.LIABILITY,
    Account.SALARIES_PAYABLE: AccountClass.LIABILITY,
    Account.SALES: AccountClass.INCOME,
    Account.DISCOUNT_ALLOWED: AccountClass.EXPENSE,
    Account.SALARY_EXPENSE: AccountClass.EXPENSE,
    Account.PURCHASES: AccountClass.EXPENSE,
    Account.RENT_EXPENSE: AccountClass.EXPENSE,
    Account.UTILITIES_EXPENSE: AccountClass.EXPENSE,
    Account.TRAVEL_EXPENSE: AccountClass.EXPENSE,
    Account.OFFICE_EXPENSE: AccountClass.EXPENSE,
    Account.MARKETING_EXPENSE: AccountClass.EXPENSE,
    Account.PROFESSIONAL_FEES: AccountClass.EXPENSE,
    Account.OTHER_EXPENSE: AccountClass.EXPENSE,
}

GST_ACCOUNTS = frozenset({Account.GST_OUTPUT, Account.GST_INPUT, Account.GST_PAYABLE})

# Accounts whose movements a bank statement can show
CASH_ACCOUNTS = frozenset({Account.BANK, Account.CASH})

EXPENSE_CATEGORY_ACCOUNTS: dict[str, Account] = {
    "purchases": Account.PURCHASES,
    "inventory": Account.PURCHASES,
    "rent": Account.RENT_EXPENSE,
    "utilities": Account.UTILITIES_EXPENSE,
    "travel": Account.TRAVEL_EXPENSE,
    "office": Account.OFFICE_EXPENSE,
    "office supplies": Account.OFFICE_EXPENSE,
    "marketing": Account.MARKETING_EXPENSE,
    "professional fees": Account.PROFESSIONAL_FEES,
    "salary": Account.SALARY_EXPENSE,
    "other": Account.OTHER_EXPENSE,
}

PAYMENT_METHODS = frozenset({"cash", "bank", "upi", "card", "cheque", "other"})


@dataclass(frozen=True)
class PostingLine:
    """One debit or credit of a posting. Exactly one side is non-zero."""

    account: Account
    debit: Decimal = ZERO
    credit: Decimal = ZERO

    @classmethod
    def dr(cls, account: Account, amount: Decimal) -> PostingLine:
        return cls(account=account, debit=to_money(amount))

    @classmethod
    def cr(cls, account: Account, amount: Decimal) -> PostingLine:
        return cls(account=account, credit=to_money(amount))

    def swapped(self) -> PostingLine:
        """Mirror line used by reversals."""
        return PostingLine(account=self.account, debit=self.credit, credit=self.debit)


@dataclass(frozen=True)
class LineItemInput:
    """Invoice line as submitted by the caller. Unit price excludes tax."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    product_id: UUID | None = None


@dataclass(frozen=True)
class InvoiceInput:
    """Invoice header plus its line items."""

    customer_name: str
    items: list[LineItemInput]
    invoice_date: date | None = None
    due_date: date | None = None
    customer_id: UUID | None = None
    customer_gstin: str | None = None
    invoice_number: str | None = None
    discount_amount: Decimal = ZERO
    notes: str | None = None


@dataclass(frozen=True)
class PaymentInput:
    """Payment received from a customer or made to a supplier."""

    payment_type: str
    amount: Decimal
    payment_method: str
    party_name: str
    payment_date: date | None = None
    reference_number: str | None = None
    invoice_id: UUID | None = None
    expense_category: str | None = None
    notes: str | None = None
    status: str = "completed"


@dataclass(frozen=True)
class ExpenseInput:
    """Expense entry. `amount` includes `gst_amount`."""

    description: str
    amount: Decimal
    category: str
    payment_method: str = "bank"
    gst_amount: Decimal = ZERO
    expense_date: date | None = None
    supplier_gstin: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StatementLineInput:
    """Bank statement line to import. Positive amounts are deposits."""

    statement_date: date
    amount: Decimal
    description: str = ""
    reference: str | None = None
    bank_account_name: str = "Primary"


@dataclass(frozen=True)
class InvoiceTotals:
    """Computed totals of an invoice."""

    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    line_amounts: list[tuple[Decimal, Decimal]] = field(default_factory=list)
