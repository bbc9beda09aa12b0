"""Payment recording service.

Completed payments post to the ledger in the same unit of work that saves
them. Pending payments are saved without a posting and post when completed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_engine.config import LedgerConfig
from ledger_engine.database import unit_of_work
from ledger_engine.errors import ValidationError
from ledger_engine.models import Invoice, Payment
from ledger_engine.services.invoice_service import apply_settlement
from ledger_engine.services.ledger_service import LedgerService
from ledger_engine.services.state_machine import (
    InvoiceStatus,
    PaymentStateMachine,
    PaymentStatus,
    parse_status,
)
from ledger_engine.services.tenant import Permission, TenantContext
from ledger_engine.services.types import (
    PAYMENT_METHODS,
    ZERO,
    Account,
    PaymentInput,
    PostingLine,
    to_money,
)

logger = logging.getLogger(__name__)

PAYMENT_TYPES = ("received", "made")


@dataclass(frozen=True)
class PaymentStats:
    """Completed totals and pending count for one business."""

    total_received: Decimal
    total_paid: Decimal
    pending_count: int
    recent_count: int


class PaymentService:
    """Records payments received and made.

    Constraints:
    - A linked payment must be a receipt against an issued invoice of the
      same business, for no more than the outstanding balance.
    - One posting per payment, keyed (payment, payment_id, record).
    """

    def __init__(
        self,
        db: Session,
        ledger: LedgerService | None = None,
        config: LedgerConfig | None = None,
    ):
        self.db = db
        self.ledger = ledger or LedgerService(db)
        self.config = config or LedgerConfig()

    def record_payment(self, ctx: TenantContext, data: PaymentInput) -> UUID:
        """Save a payment and, when completed, post it.

        Raises:
            ValidationError: Input is malformed or overpays the invoice
            AuthorizationError: Role may not record payments, or the
                invoice belongs to another business
            NotFoundError: Linked invoice does not exist
        """
        ctx.require_permission(Permission.RECORD_PAYMENT)
        amount = self._validate(data)
        status = parse_status(PaymentStatus, data.status)
        if status not in (PaymentStatus.PENDING, PaymentStatus.COMPLETED):
            raise ValidationError("New payments must be pending or completed", field="status")

        invoice = None
        if data.invoice_id is not None:
            invoice = self._linked_invoice(ctx, data.invoice_id, data.payment_type, amount)

        with unit_of_work(self.db):
            payment = Payment(
                business_id=ctx.business_id,
                payment_type=data.payment_type,
                amount=amount,
                payment_date=data.payment_date or date.today(),
                payment_method=data.payment_method,
                reference_number=data.reference_number,
                party_name=data.party_name.strip(),
                invoice_id=data.invoice_id,
                expense_category=data.expense_category,
                notes=data.notes,
                status=status.value,
            )
            self.db.add(payment)
            self.db.flush()
            if status == PaymentStatus.COMPLETED:
                self._post(ctx, payment, invoice)
        self._refresh_invoice(invoice)

        logger.info(
            "Payment %s recorded: %s %s via %s (%s)",
            payment.payment_id, payment.payment_type, amount, payment.payment_method, status.value,
        )
        return payment.payment_id

    def complete_payment(self, ctx: TenantContext, payment_id: UUID) -> Payment:
        """Complete a pending payment and post it."""
        ctx.require_permission(Permission.RECORD_PAYMENT)
        payment = self._load(ctx, payment_id)
        PaymentStateMachine.validate_transition(payment.status, PaymentStatus.COMPLETED)

        invoice = None
        if payment.invoice_id is not None:
            invoice = self._linked_invoice(
                ctx, payment.invoice_id, payment.payment_type, payment.amount
            )

        with unit_of_work(self.db):
            payment.status = PaymentStatus.COMPLETED.value
            self._post(ctx, payment, invoice)
        self._refresh_invoice(invoice)

        logger.info("Payment %s completed", payment.payment_id)
        return payment

    def fail_payment(self, ctx: TenantContext, payment_id: UUID) -> Payment:
        return self._close(ctx, payment_id, PaymentStatus.FAILED)

    def cancel_payment(self, ctx: TenantContext, payment_id: UUID) -> Payment:
        return self._close(ctx, payment_id, PaymentStatus.CANCELLED)

    def get_payment(self, ctx: TenantContext, payment_id: UUID) -> Payment:
        return self._load(ctx, payment_id)

    def list_payments(
        self,
        ctx: TenantContext,
        *,
        payment_type: str | None = None,
        status: str | None = None,
        start: date | None = None,
        end: date | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Payment]:
        stmt = select(Payment).where(Payment.business_id == ctx.business_id)
        if payment_type is not None:
            if payment_type not in PAYMENT_TYPES:
                raise ValidationError(f"Unknown payment type '{payment_type}'", field="payment_type")
            stmt = stmt.where(Payment.payment_type == payment_type)
        if status is not None:
            stmt = stmt.where(Payment.status == parse_status(PaymentStatus, status).value)
        if start is not None:
            stmt = stmt.where(Payment.payment_date >= start)
        if end is not None:
            stmt = stmt.where(Payment.payment_date <= end)
        stmt = stmt.order_by(Payment.payment_date.desc()).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def get_payment_stats(self, ctx: TenantContext, *, today: date | None = None) -> PaymentStats:
        """Completed totals by direction, pending count, and payments in the last 7 days."""
        today = today or date.today()
        rows = self.db.execute(
            select(
                Payment.payment_type,
                Payment.status,
                func.count(Payment.payment_id),
                func.coalesce(func.sum(Payment.amount), 0),
            )
            .where(Payment.business_id == ctx.business_id)
            .group_by(Payment.payment_type, Payment.status)
        ).all()

        received = paid = ZERO
        pending = 0
        for payment_type, status, count, total in rows:
            if status == PaymentStatus.COMPLETED:
                if payment_type == "received":
                    received += to_money(Decimal(str(total)))
                else:
                    paid += to_money(Decimal(str(total)))
            elif status == PaymentStatus.PENDING:
                pending += count

        recent = self.db.execute(
            select(func.count(Payment.payment_id)).where(
                Payment.business_id == ctx.business_id,
                Payment.payment_date >= today - timedelta(days=7),
            )
        ).scalar_one()

        return PaymentStats(
            total_received=received,
            total_paid=paid,
            pending_count=pending,
            recent_count=recent,
        )

    def _post(self, ctx: TenantContext, payment: Payment, invoice: Invoice | None) -> None:
        cash_account = self.cash_account_for(payment.payment_method)
        if payment.payment_type == "received":
            counter = Account.ACCOUNTS_RECEIVABLE if invoice is not None else Account.SALES
            lines = [
                PostingLine.dr(cash_account, payment.amount),
                PostingLine.cr(counter, payment.amount),
            ]
        else:
            counter = (
                Account.for_expense_category(payment.expense_category)
                if payment.expense_category
                else Account.ACCOUNTS_PAYABLE
            )
            lines = [
                PostingLine.dr(counter, payment.amount),
                PostingLine.cr(cash_account, payment.amount),
            ]

        result = self.ledger.post_transaction(
            business_id=ctx.business_id,
            source_type="payment",
            source_id=payment.payment_id,
            event="record",
            lines=lines,
            transaction_date=payment.payment_date,
            description=_describe(payment, invoice),
        )
        payment.transaction_id = result.transaction_id

        if invoice is not None and result.is_new:
            apply_settlement(self.db, invoice, payment.amount)

    def cash_account_for(self, method: str) -> Account:
        return Account.CASH if method in self.config.cash_methods else Account.BANK

    def _refresh_invoice(self, invoice: Invoice | None) -> None:
        if invoice is None:
            return
        self.db.refresh(invoice)
        if invoice.status == InvoiceStatus.PAID:
            logger.info("Invoice %s fully settled", invoice.invoice_number)

    def _close(self, ctx: TenantContext, payment_id: UUID, status: PaymentStatus) -> Payment:
        ctx.require_permission(Permission.RECORD_PAYMENT)
        payment = self._load(ctx, payment_id)
        PaymentStateMachine.validate_transition(payment.status, status)
        with unit_of_work(self.db):
            payment.status = status.value
        logger.info("Payment %s %s", payment.payment_id, status.value)
        return payment

    def _linked_invoice(
        self,
        ctx: TenantContext,
        invoice_id: UUID,
        payment_type: str,
        amount: Decimal,
    ) -> Invoice:
        invoice = ctx.ensure_owned(self.db.get(Invoice, invoice_id), "Invoice", invoice_id)
        if payment_type != "received":
            raise ValidationError("Only received payments can settle an invoice", field="invoice_id")
        if invoice.status != InvoiceStatus.ISSUED:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} is {invoice.status}; only issued invoices accept payments",
                field="invoice_id",
            )
        if amount > invoice.outstanding:
            raise ValidationError(
                f"Payment {amount} exceeds outstanding balance {invoice.outstanding}",
                field="amount",
            )
        return invoice

    def _load(self, ctx: TenantContext, payment_id: UUID) -> Payment:
        return ctx.ensure_owned(self.db.get(Payment, payment_id), "Payment", payment_id)

    @staticmethod
    def _validate(data: PaymentInput) -> Decimal:
        if data.payment_type not in PAYMENT_TYPES:
            raise ValidationError("Payment type must be received or made", field="payment_type")
        amount = to_money(data.amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        if not data.party_name or not data.party_name.strip():
            raise ValidationError("Party name is required", field="party_name")
        if data.payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                f"Unknown payment method '{data.payment_method}'", field="payment_method"
            )
        return amount


def _describe(payment: Payment, invoice: Invoice | None) -> str:
    parts = ["Payment from" if payment.payment_type == "received" else "Payment to", payment.party_name]
    if invoice is not None:
        parts.append(f"for {invoice.invoice_number}")
    if payment.reference_number:
        parts.append(f"ref {payment.reference_number}")
    return " ".join(parts)
