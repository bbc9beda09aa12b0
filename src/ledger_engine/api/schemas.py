"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================================================
# Common
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    detail: str
    code: str


# ============================================================================
# Invoice schemas
# ============================================================================


class LineItemCreate(BaseModel):
    """Invoice line. Unit price excludes tax."""

    description: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    product_id: UUID | None = None


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice, optionally issuing it."""

    customer_name: str = Field(min_length=1)
    items: list[LineItemCreate] = Field(min_length=1)
    invoice_date: date | None = None
    due_date: date | None = None
    customer_id: UUID | None = None
    customer_gstin: str | None = None
    invoice_number: str | None = None
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None
    issue: bool = False


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_line_item_id: UUID
    position: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    line_amount: Decimal
    line_tax: Decimal


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    business_id: UUID
    invoice_number: str
    customer_name: str
    customer_gstin: str | None = None
    invoice_date: date
    due_date: date | None = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    amount_settled: Decimal
    outstanding: Decimal
    status: str
    draft_state: str | None = None
    issued_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    items: list[LineItemResponse] = []


class InvoiceActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    invoice_number: str
    status: str
    draft_state: str | None = None


class MarkPaidRequest(BaseModel):
    amount: Decimal | None = None
    payment_date: date | None = None
    method: str = "bank"


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1)


class InvoiceStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_count: int
    draft_count: int
    issued_count: int
    paid_count: int
    cancelled_count: int
    revenue: Decimal
    outstanding: Decimal
    collected: Decimal


# ============================================================================
# Payment and expense schemas
# ============================================================================


class PaymentCreate(BaseModel):
    payment_type: str
    amount: Decimal = Field(gt=0)
    payment_method: str
    party_name: str = Field(min_length=1)
    payment_date: date | None = None
    reference_number: str | None = None
    invoice_id: UUID | None = None
    expense_category: str | None = None
    notes: str | None = None
    status: str = "completed"


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID
    payment_type: str
    amount: Decimal
    payment_date: date
    payment_method: str
    reference_number: str | None = None
    party_name: str
    invoice_id: UUID | None = None
    expense_category: str | None = None
    status: str
    transaction_id: UUID | None = None


class PaymentStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_received: Decimal
    total_paid: Decimal
    pending_count: int
    recent_count: int


class ExpenseCreate(BaseModel):
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    category: str = Field(min_length=1)
    payment_method: str = "bank"
    gst_amount: Decimal = Field(default=Decimal("0"), ge=0)
    expense_date: date | None = None
    supplier_gstin: str | None = None
    notes: str | None = None


class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    expense_id: UUID
    description: str
    amount: Decimal
    gst_amount: Decimal
    expense_date: date
    category: str
    payment_method: str
    supplier_gstin: str | None = None
    source: str
    transaction_id: UUID | None = None


# ============================================================================
# Payroll schemas
# ============================================================================


class EmployeeCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    salary_amount: Decimal = Field(ge=0)
    designation: str | None = None
    joined_on: date | None = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    first_name: str
    last_name: str
    designation: str | None = None
    salary_amount: Decimal
    status: str
    joined_on: date | None = None


class PayrollRunCreate(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int
    run_date: date | None = None


class PayrollResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    run_id: UUID
    status: str
    employee_count: int
    total_amount: Decimal
    processed: int


class PayrollRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    month: int
    year: int
    status: str
    total_amount: Decimal
    employee_count: int
    failure_reason: str | None = None
    locked_at: datetime | None = None
    paid_at: datetime | None = None


class PayslipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    employee_id: UUID
    month: int
    year: int
    salary_amount: Decimal
    status: str
    transaction_id: UUID | None = None


class MarkRunPaidRequest(BaseModel):
    payment_date: date | None = None


# ============================================================================
# GST schemas
# ============================================================================


class GSTSummaryResponse(BaseModel):
    """Monthly GST position, serialized with camelCase keys."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    output_tax: Decimal
    input_tax: Decimal
    net_payable: Decimal
    total_sales: Decimal
    total_purchases: Decimal
    is_credit: bool


class GSTRRowResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    source_id: UUID
    row_date: date
    party_name: str
    gstin: str | None = None
    taxable_value: Decimal
    tax_amount: Decimal
    total_value: Decimal
    supply_type: str
    document_number: str | None = None


# ============================================================================
# Banking schemas
# ============================================================================


class StatementLineCreate(BaseModel):
    statement_date: date
    amount: Decimal
    description: str = ""
    reference: str | None = None
    bank_account_name: str = "Primary"


class StatementImportRequest(BaseModel):
    lines: list[StatementLineCreate] = Field(min_length=1)


class ImportResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    imported: int
    skipped: int


class StatementLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    statement_line_id: UUID
    bank_account_name: str
    statement_date: date
    description: str
    amount: Decimal
    reference: str | None = None
    matched: bool
    matched_transaction_id: UUID | None = None
    matched_at: datetime | None = None


class MatchCandidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: UUID
    transaction_date: date
    description: str
    amount: Decimal
    date_delta_days: int
    similarity: float


class ReconcileRequest(BaseModel):
    transaction_id: UUID


# ============================================================================
# Report schemas
# ============================================================================


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    revenue: Decimal
    expenses: Decimal
    net_profit: Decimal
    receivables: Decimal
    payables: Decimal
    cash_balance: Decimal
    gst_payable: Decimal


class ProfitAndLossLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_name: str
    account_class: str
    amount: Decimal


class AccountBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_name: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


class IntegrityCheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    passed: bool
    issues: list[dict[str, Any]] = []


class IntegrityReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    passed: bool
    checks: list[IntegrityCheckResponse]
