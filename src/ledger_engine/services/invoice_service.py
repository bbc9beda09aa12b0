"""Invoice lifecycle: draft, issue, settle, cancel.

Creating an issued invoice runs as two units of work. The header and line
items are committed first as a draft marked `incomplete`; the issue posting
then runs on its own. If the second step fails the draft stays queryable
through `list_incomplete_drafts` and `issue_invoice` resumes it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, selectinload

from ledger_engine.config import LedgerConfig
from ledger_engine.database import unit_of_work
from ledger_engine.errors import ConflictError, PartialFailureError, ValidationError
from ledger_engine.models import Invoice, InvoiceLineItem
from ledger_engine.services.billing import AllowAllGate, BillingGate, require_invoice_capability
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.state_machine import (
    DraftState,
    InvoiceStateMachine,
    InvoiceStatus,
    parse_status,
)
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import (
    ZERO,
    Account,
    InvoiceInput,
    InvoiceTotals,
    LineItemInput,
    PostingLine,
    to_money,
)

logger = logging.getLogger(__name__)

NUMBER_SCAN_BATCH = 50


@dataclass(frozen=True)
class InvoiceResult:
    """Outcome of an invoice operation."""

    invoice_id: UUID
    invoice_number: str
    status: str
    draft_state: str | None


@dataclass(frozen=True)
class InvoiceStats:
    """Invoice counts and amounts for one business."""

    total_count: int
    draft_count: int
    issued_count: int
    paid_count: int
    cancelled_count: int
    revenue: Decimal
    outstanding: Decimal
    collected: Decimal


def compute_totals(items: list[LineItemInput], discount_amount: Decimal = ZERO) -> InvoiceTotals:
    """Compute invoice totals.

    Unit prices exclude tax. Each line's tax is rounded to the cent before
    summing, and the discount comes off the tax-inclusive sum.
    """
    line_amounts: list[tuple[Decimal, Decimal]] = []
    for item in items:
        line_amount = to_money(Decimal(str(item.quantity)) * Decimal(str(item.unit_price)))
        line_tax = to_money(line_amount * Decimal(str(item.tax_rate)) / Decimal("100"))
        line_amounts.append((line_amount, line_tax))

    subtotal = sum((amount for amount, _ in line_amounts), ZERO)
    tax_amount = sum((tax for _, tax in line_amounts), ZERO)
    discount = to_money(discount_amount)
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=subtotal + tax_amount - discount,
        line_amounts=line_amounts,
    )


def validate_invoice_input(data: InvoiceInput) -> None:
    """Reject malformed input before anything is written."""
    if not data.customer_name or not data.customer_name.strip():
        raise ValidationError("Customer name is required", field="customer_name")
    if not data.items:
        raise ValidationError("At least one item is required", field="items")

    for index, item in enumerate(data.items):
        if not item.description or not item.description.strip():
            raise ValidationError("Description is required", field=f"items[{index}].description")
        if Decimal(str(item.quantity)) <= 0:
            raise ValidationError("Quantity must be > 0", field=f"items[{index}].quantity")
        if Decimal(str(item.unit_price)) < 0:
            raise ValidationError("Price must be >= 0", field=f"items[{index}].unit_price")
        rate = Decimal(str(item.tax_rate))
        if rate < 0 or rate > 100:
            raise ValidationError(
                "Tax rate must be between 0 and 100", field=f"items[{index}].tax_rate"
            )

    discount = Decimal(str(data.discount_amount))
    if discount < 0:
        raise ValidationError("Discount must be >= 0", field="discount_amount")
    totals = compute_totals(data.items)
    if to_money(discount) > totals.subtotal + totals.tax_amount:
        raise ValidationError("Discount exceeds invoice amount", field="discount_amount")
    if data.due_date and data.invoice_date and data.due_date < data.invoice_date:
        raise ValidationError("Due date is before invoice date", field="due_date")


def apply_settlement(db: Session, invoice: Invoice, amount: Decimal) -> None:
    """Add `amount` to an issued invoice's settled balance in one statement.

    The row only changes if it is still issued and the new balance stays
    within the total; reaching the total flips it to paid. Any other state
    means a concurrent writer got there first.

    Raises:
        ConflictError: Invoice changed since it was read
    """
    settled = func.round(Invoice.amount_settled + amount, 2)
    fully_settled = settled == Invoice.total_amount
    result = db.execute(
        update(Invoice)
        .where(
            Invoice.invoice_id == invoice.invoice_id,
            Invoice.business_id == invoice.business_id,
            Invoice.status == InvoiceStatus.ISSUED.value,
            settled <= Invoice.total_amount,
        )
        .values(
            amount_settled=settled,
            status=case((fully_settled, InvoiceStatus.PAID.value), else_=Invoice.status),
            paid_at=case((fully_settled, _now()), else_=Invoice.paid_at),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Invoice {invoice.invoice_number} was settled concurrently; "
            f"{amount} no longer fits its outstanding balance",
            invoice_id=invoice.invoice_id,
        )


class InvoiceService:
    """Invoice lifecycle manager.

    Every state change that moves money runs in one unit of work together
    with its ledger posting.
    """

    def __init__(
        self,
        db: Session,
        ledger: LedgerService | None = None,
        gate: BillingGate | None = None,
        config: LedgerConfig | None = None,
    ):
        self.db = db
        self.ledger = ledger or LedgerService(db)
        self.gate = gate or AllowAllGate()
        self.config = config or LedgerConfig()

    def create_invoice(
        self,
        ctx: TenantContext,
        data: InvoiceInput,
        *,
        issue: bool = False,
    ) -> InvoiceResult:
        """Create an invoice, optionally issuing it.

        Raises:
            ValidationError: Input is malformed
            AuthorizationError: Role may not create (or issue) invoices
            CapabilityDeniedError: Plan limits deny a new invoice
            ConflictError: Invoice number already used
            PartialFailureError: Draft saved but the issue step failed
        """
        ctx.require_permission(Permission.CREATE_INVOICE)
        if issue:
            ctx.require_permission(Permission.ISSUE_INVOICE)
        validate_invoice_input(data)
        require_invoice_capability(self.gate, ctx.business_id)

        draft_state = DraftState.INCOMPLETE if issue else DraftState.INTENTIONAL
        invoice_number = (data.invoice_number or "").strip() or self._next_invoice_number(
            ctx.business_id
        )

        with unit_of_work(self.db, f"Invoice number {invoice_number} already exists"):
            invoice = self._build_invoice(ctx, data, invoice_number, draft_state)
            self.db.add(invoice)

        logger.info(
            "Invoice %s created as draft (%s) for business %s",
            invoice.invoice_number, draft_state.value, ctx.business_id,
        )

        if not issue:
            return self._result(invoice)

        try:
            return self.issue_invoice(ctx, invoice.invoice_id)
        except Exception as exc:
            logger.exception("Issue step failed for invoice %s", invoice.invoice_id)
            raise PartialFailureError(
                f"Invoice {invoice.invoice_number} was saved as an incomplete draft but could "
                f"not be issued: {exc}",
                entity_type="invoice",
                entity_id=invoice.invoice_id,
                invoice_number=invoice.invoice_number,
            ) from exc

    def issue_invoice(self, ctx: TenantContext, invoice_id: UUID) -> InvoiceResult:
        """Move a draft to issued and post the receivable."""
        ctx.require_permission(Permission.ISSUE_INVOICE)
        invoice = self._load(ctx, invoice_id)
        InvoiceStateMachine.validate_transition(
            invoice.status, InvoiceStatus.ISSUED, f"invoice is already {invoice.status}"
        )

        with unit_of_work(self.db):
            lines = [
                line
                for line in (
                    PostingLine.dr(Account.ACCOUNTS_RECEIVABLE, invoice.total_amount),
                    PostingLine.dr(Account.DISCOUNT_ALLOWED, invoice.discount_amount),
                    PostingLine.cr(Account.SALES, invoice.subtotal),
                    PostingLine.cr(Account.GST_OUTPUT, invoice.tax_amount),
                )
                if line.debit or line.credit
            ]
            if len(lines) >= 2:
                self.ledger.post_transaction(
                    business_id=ctx.business_id,
                    source_type="invoice",
                    source_id=invoice.invoice_id,
                    event="issue",
                    lines=lines,
                    transaction_date=invoice.invoice_date,
                    description=f"Invoice {invoice.invoice_number} - {invoice.customer_name}",
                )
            invoice.status = InvoiceStatus.ISSUED.value
            invoice.draft_state = None
            invoice.issued_at = _now()

        logger.info("Invoice %s issued, total %s", invoice.invoice_number, invoice.total_amount)
        return self._result(invoice)

    def mark_paid(
        self,
        ctx: TenantContext,
        invoice_id: UUID,
        *,
        amount: Decimal | None = None,
        payment_date: date | None = None,
        method: str = "bank",
    ) -> InvoiceResult:
        """Settle the full outstanding balance of an issued invoice.

        Partial settlement goes through PaymentService.record_payment.
        """
        ctx.require_permission(Permission.SETTLE_INVOICE)
        invoice = self._load(ctx, invoice_id)

        if invoice.status == InvoiceStatus.PAID:
            raise ConflictError(
                f"Invoice {invoice.invoice_number} is already paid", invoice_id=invoice_id
            )
        InvoiceStateMachine.validate_transition(
            invoice.status, InvoiceStatus.PAID, "only issued invoices can be settled"
        )

        outstanding = invoice.outstanding
        settle_amount = to_money(amount) if amount is not None else outstanding
        if settle_amount != outstanding:
            raise ValidationError(
                f"Amount {settle_amount} does not equal outstanding balance {outstanding}",
                field="amount",
            )

        cash_account = Account.CASH if method in self.config.cash_methods else Account.BANK
        with unit_of_work(self.db):
            if outstanding > 0:
                self.ledger.post_transaction(
                    business_id=ctx.business_id,
                    source_type="invoice",
                    source_id=invoice.invoice_id,
                    event="settle",
                    lines=[
                        PostingLine.dr(cash_account, outstanding),
                        PostingLine.cr(Account.ACCOUNTS_RECEIVABLE, outstanding),
                    ],
                    transaction_date=payment_date or date.today(),
                    description=f"Payment for invoice {invoice.invoice_number}",
                )
            apply_settlement(self.db, invoice, outstanding)

        self.db.refresh(invoice)
        logger.info("Invoice %s marked paid (%s)", invoice.invoice_number, outstanding)
        return self._result(invoice)

    def cancel_invoice(self, ctx: TenantContext, invoice_id: UUID, reason: str) -> InvoiceResult:
        """Cancel an issued, unsettled invoice by posting a reversal."""
        ctx.require_permission(Permission.CANCEL_INVOICE)
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required", field="reason")

        invoice = self._load(ctx, invoice_id)
        InvoiceStateMachine.validate_transition(
            invoice.status,
            InvoiceStatus.CANCELLED,
            "only issued invoices can be cancelled",
        )
        if invoice.amount_settled > 0:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} has recorded settlements and cannot be cancelled",
                invoice_id=invoice_id,
            )

        with unit_of_work(self.db):
            issue_txn = self.ledger.find_transaction(
                business_id=ctx.business_id,
                source_type="invoice",
                source_id=invoice.invoice_id,
                event="issue",
            )
            if issue_txn is not None:
                self.ledger.reverse_transaction(
                    business_id=ctx.business_id,
                    transaction_id=issue_txn.transaction_id,
                    reversal_date=date.today(),
                    reason=f"Cancel invoice {invoice.invoice_number}: {reason}",
                )
            invoice.status = InvoiceStatus.CANCELLED.value
            invoice.cancelled_at = _now()
            invoice.cancel_reason = reason.strip()

        logger.info("Invoice %s cancelled: %s", invoice.invoice_number, reason)
        return self._result(invoice)

    def delete_draft(self, ctx: TenantContext, invoice_id: UUID) -> None:
        """Delete a draft invoice and its line items."""
        ctx.require_permission(Permission.DELETE_INVOICE)
        invoice = self._load(ctx, invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise ValidationError(
                f"Cannot delete {invoice.status} invoice. Use cancellation instead.",
                invoice_id=invoice_id,
            )

        with unit_of_work(self.db):
            self.db.delete(invoice)

        logger.info("Draft invoice %s deleted", invoice.invoice_number)

    def duplicate_invoice(self, ctx: TenantContext, invoice_id: UUID) -> InvoiceResult:
        """Copy an invoice into a new intentional draft dated today."""
        source = self._load(ctx, invoice_id)
        data = InvoiceInput(
            customer_name=source.customer_name,
            customer_id=source.customer_id,
            customer_gstin=source.customer_gstin,
            invoice_date=date.today(),
            discount_amount=source.discount_amount,
            notes=source.notes,
            items=[
                LineItemInput(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    tax_rate=item.tax_rate,
                    product_id=item.product_id,
                )
                for item in source.items
            ],
        )
        return self.create_invoice(ctx, data, issue=False)

    def get_invoice(self, ctx: TenantContext, invoice_id: UUID) -> Invoice:
        return self._load(ctx, invoice_id)

    def list_invoices(
        self,
        ctx: TenantContext,
        *,
        status: str | None = None,
        draft_state: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Invoice]:
        stmt = select(Invoice).where(Invoice.business_id == ctx.business_id)
        if status is not None:
            stmt = stmt.where(Invoice.status == parse_status(InvoiceStatus, status).value)
        if draft_state is not None:
            stmt = stmt.where(
                Invoice.draft_state == parse_status(DraftState, draft_state, "draft_state").value
            )
        stmt = (
            stmt.options(selectinload(Invoice.items))
            .order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_incomplete_drafts(self, ctx: TenantContext) -> list[Invoice]:
        """Drafts whose issue step did not finish."""
        return self.list_invoices(
            ctx, status=InvoiceStatus.DRAFT.value, draft_state=DraftState.INCOMPLETE.value
        )

    def get_invoice_stats(self, ctx: TenantContext) -> InvoiceStats:
        rows = self.db.execute(
            select(
                Invoice.status,
                func.count(Invoice.invoice_id),
                func.coalesce(func.sum(Invoice.subtotal), 0),
                func.coalesce(func.sum(Invoice.total_amount), 0),
                func.coalesce(func.sum(Invoice.amount_settled), 0),
            )
            .where(Invoice.business_id == ctx.business_id)
            .group_by(Invoice.status)
        ).all()

        counts: dict[str, int] = {}
        revenue = outstanding = collected = ZERO
        for status, count, subtotal, total, settled in rows:
            counts[status] = count
            subtotal, total, settled = (to_money(Decimal(str(v))) for v in (subtotal, total, settled))
            if status in InvoiceStateMachine.REVENUE_STATUSES:
                revenue += subtotal
                collected += settled
            if status == InvoiceStatus.ISSUED:
                outstanding += total - settled

        return InvoiceStats(
            total_count=sum(counts.values()),
            draft_count=counts.get(InvoiceStatus.DRAFT.value, 0),
            issued_count=counts.get(InvoiceStatus.ISSUED.value, 0),
            paid_count=counts.get(InvoiceStatus.PAID.value, 0),
            cancelled_count=counts.get(InvoiceStatus.CANCELLED.value, 0),
            revenue=revenue,
            outstanding=outstanding,
            collected=collected,
        )

    def _build_invoice(
        self,
        ctx: TenantContext,
        data: InvoiceInput,
        invoice_number: str,
        draft_state: DraftState,
    ) -> Invoice:
        totals = compute_totals(data.items, data.discount_amount)
        invoice = Invoice(
            business_id=ctx.business_id,
            invoice_number=invoice_number,
            customer_name=data.customer_name.strip(),
            customer_id=data.customer_id,
            customer_gstin=(data.customer_gstin or "").strip() or None,
            invoice_date=data.invoice_date or date.today(),
            due_date=data.due_date,
            notes=data.notes,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            amount_settled=ZERO,
            status=InvoiceStatus.DRAFT.value,
            draft_state=draft_state.value,
        )
        for position, (item, (line_amount, line_tax)) in enumerate(
            zip(data.items, totals.line_amounts)
        ):
            invoice.items.append(
                InvoiceLineItem(
                    position=position,
                    product_id=item.product_id,
                    description=item.description.strip(),
                    quantity=Decimal(str(item.quantity)),
                    unit_price=to_money(item.unit_price),
                    tax_rate=Decimal(str(item.tax_rate)),
                    line_amount=line_amount,
                    line_tax=line_tax,
                )
            )
        return invoice

    def _next_invoice_number(self, business_id: UUID) -> str:
        """Next sequential number, e.g. INV-000001.

        Two concurrent callers can compute the same number; the unique
        constraint rejects the second insert with a ConflictError.
        """
        prefix = self.config.invoice_number_prefix
        pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
        # Longest first, then highest: the first numeric match is the maximum
        # among zero-padded numbers. Custom non-numeric suffixes are skipped.
        numbers = self.db.execute(
            select(Invoice.invoice_number)
            .where(
                Invoice.business_id == business_id,
                Invoice.invoice_number.like(f"{prefix}-%"),
            )
            .order_by(func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
            .execution_options(yield_per=NUMBER_SCAN_BATCH)
        ).scalars()

        highest = 0
        try:
            for number in numbers:
                match = pattern.match(number)
                if match:
                    highest = int(match.group(1))
                    break
        finally:
            numbers.close()
        return f"{prefix}-{highest + 1:0{self.config.invoice_number_width}d}"

    def _load(self, ctx: TenantContext, invoice_id: UUID) -> Invoice:
        invoice = self.db.execute(
            select(Invoice)
            .where(Invoice.invoice_id == invoice_id)
            .options(selectinload(Invoice.items))
        ).scalar_one_or_none()
        return ctx.ensure_owned(invoice, "Invoice", invoice_id)

    @staticmethod
    def _result(invoice: Invoice) -> InvoiceResult:
        return InvoiceResult(
            invoice_id=invoice.invoice_id,
            invoice_number=invoice.invoice_number,
            status=invoice.status,
            draft_state=invoice.draft_state,
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)
