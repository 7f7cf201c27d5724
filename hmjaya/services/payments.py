# hmjaya/services/payments.py
from __future__ import annotations

import logging
from datetime import date

import sqlalchemy as sa

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import (
    Invoice,
    InvoiceStatus,
    InvoiceType,
    PaidStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from hmjaya.services import ensure_transition, get_or_raise
from hmjaya.services.invoices import move_invoice
from hmjaya.services.pricing import round_money
from hmjaya.utils.codes import generate_code
from hmjaya.utils.parsers import clean_str, parse_date, parse_enum, parse_float

logger = logging.getLogger(__name__)

# Payments that count toward the invoice's paid amount
COUNTED_STATUSES = (PaidStatus.PENDING, PaidStatus.CLEARED)
CLOSED_INVOICE_STATUSES = (InvoiceStatus.COMPLETED, InvoiceStatus.CANCELLED)


def list_payments(status: PaidStatus | None = None, invoice_id: int | None = None):
    qry = Payment.query
    if status is not None:
        qry = qry.filter(Payment.status == status)
    if invoice_id:
        qry = qry.filter(Payment.invoice_id == invoice_id)
    return qry.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def payable_invoices():
    """Invoices that can still take a payment."""
    return (
        Invoice.query.filter(
            Invoice.status.notin_(list(CLOSED_INVOICE_STATUSES)),
            Invoice.payment_status == PaymentStatus.UNPAID,
        )
        .order_by(Invoice.due_date.asc())
        .all()
    )


def _settle(invoice: Invoice) -> None:
    """Move the invoice forward once it is fully paid."""
    if invoice.status in CLOSED_INVOICE_STATUSES or invoice.status is InvoiceStatus.RETURNED:
        return
    if invoice.type is InvoiceType.SERVICE:
        # Nothing to deliver: paid in full means done
        if invoice.status is InvoiceStatus.DRAFT:
            move_invoice(invoice, InvoiceStatus.SENT)
        move_invoice(invoice, InvoiceStatus.COMPLETED)
    elif invoice.status is InvoiceStatus.DELIVERED:
        move_invoice(invoice, InvoiceStatus.COMPLETED)
    elif invoice.status is not InvoiceStatus.PAID:
        move_invoice(invoice, InvoiceStatus.PAID)


def recalculate_invoice_payments(invoice: Invoice) -> None:
    """Re-derive paid/remaining/payment_status from the counted payments."""
    db.session.flush()
    paid = (
        db.session.query(sa.func.coalesce(sa.func.sum(Payment.amount), 0.0))
        .filter(Payment.invoice_id == invoice.id, Payment.status.in_(list(COUNTED_STATUSES)))
        .scalar()
    )
    paid = round_money(paid)
    total = invoice.total_amount or 0.0

    invoice.paid_amount = paid
    invoice.remaining_amount = round_money(total - paid)

    if paid > total:
        invoice.payment_status = PaymentStatus.OVERPAID
    elif total > 0 and paid >= total:
        invoice.payment_status = PaymentStatus.PAID
    else:
        invoice.payment_status = PaymentStatus.UNPAID

    if invoice.payment_status is PaymentStatus.UNPAID:
        # A withdrawn payment re-opens a PAID invoice
        if invoice.status is InvoiceStatus.PAID:
            move_invoice(invoice, InvoiceStatus.SENT)
    else:
        _settle(invoice)


def _ensure_invoice_open(invoice: Invoice) -> None:
    if invoice.status is InvoiceStatus.CANCELLED:
        raise ActionError("Cannot record payment for a cancelled invoice")
    if invoice.status is InvoiceStatus.COMPLETED:
        raise ActionError("Invoice is already completed")


def _apply_method_details(payment: Payment, data: dict) -> None:
    payment.reference = clean_str(data.get("reference"), 120)
    payment.notes = clean_str(data.get("notes"))
    payment.proof_url = clean_str(data.get("proof_url"), 500)
    if payment.method is PaymentMethod.TRANSFER_BANK:
        payment.bank_name = clean_str(data.get("bank_name"), 80)
        payment.account_number = clean_str(data.get("account_number"), 60)
        payment.account_holder = clean_str(data.get("account_holder"), 120)
    elif payment.method is PaymentMethod.CEK:
        payment.check_number = clean_str(data.get("check_number"), 60)
        payment.check_bank = clean_str(data.get("check_bank"), 80)
        payment.check_due_date = parse_date(data.get("check_due_date"))
        if not payment.check_number:
            raise ActionError("Cheque number is required for CEK payments")


def record_payment(invoice: Invoice, data: dict, user) -> Payment:
    _ensure_invoice_open(invoice)

    remaining = round_money(invoice.remaining_amount)
    if remaining <= 0:
        raise ActionError("Invoice is already fully paid")

    amount = parse_float(data.get("amount"))
    if amount is None or amount <= 0:
        raise ActionError("Payment amount must be greater than zero")
    amount = round_money(amount)
    if amount > remaining:
        raise ActionError(f"Payment amount exceeds the remaining balance ({remaining:,.0f})")

    method = parse_enum(PaymentMethod, data.get("method"), None)
    if method is None:
        raise ActionError("Unknown payment method")

    settles = amount >= remaining
    status = parse_enum(PaidStatus, data.get("status"), None)
    if status is None:
        status = PaidStatus.CLEARED if settles else PaidStatus.PENDING
    if status not in COUNTED_STATUSES:
        raise ActionError("New payments must be PENDING or CLEARED")

    payment_date = parse_date(data.get("payment_date")) or date.today()
    payment = Payment(
        code=generate_code(Payment, payment_date),
        payment_date=payment_date,
        amount=amount,
        method=method,
        status=status,
        invoice=invoice,
        user_id=getattr(user, "id", None),
    )
    _apply_method_details(payment, data)
    db.session.add(payment)

    recalculate_invoice_payments(invoice)
    logger.info(
        "Payment %s of %.0f recorded on invoice %s (%s)",
        payment.code, amount, invoice.code, invoice.payment_status.value,
    )
    return payment


def update_payment(payment: Payment, data: dict) -> Payment:
    invoice = payment.invoice
    _ensure_invoice_open(invoice)
    if payment.status not in COUNTED_STATUSES:
        raise ActionError(f"A {payment.status.value} payment cannot be edited")

    if "amount" in data:
        amount = parse_float(data.get("amount"))
        if amount is None or amount <= 0:
            raise ActionError("Payment amount must be greater than zero")
        amount = round_money(amount)
        available = round_money((invoice.remaining_amount or 0.0) + payment.amount)
        if amount > available:
            raise ActionError(f"Payment amount exceeds the remaining balance ({available:,.0f})")
        payment.amount = amount

    if "method" in data:
        method = parse_enum(PaymentMethod, data.get("method"), None)
        if method is None:
            raise ActionError("Unknown payment method")
        payment.method = method
    if "payment_date" in data:
        payment.payment_date = parse_date(data.get("payment_date")) or payment.payment_date

    _apply_method_details(payment, {**_current_details(payment), **data})
    recalculate_invoice_payments(invoice)
    return payment


def _current_details(payment: Payment) -> dict:
    return {
        "reference": payment.reference,
        "notes": payment.notes,
        "proof_url": payment.proof_url,
        "bank_name": payment.bank_name,
        "account_number": payment.account_number,
        "account_holder": payment.account_holder,
        "check_number": payment.check_number,
        "check_bank": payment.check_bank,
        "check_due_date": payment.check_due_date,
    }


def set_payment_status(payment: Payment, target: PaidStatus) -> Payment:
    invoice = payment.invoice
    if invoice.status is InvoiceStatus.COMPLETED and target is not PaidStatus.CLEARED:
        raise ActionError("Payments of a completed invoice cannot be withdrawn")
    ensure_transition(payment.status, target, "payment")
    payment.status = target
    recalculate_invoice_payments(invoice)
    return payment


def delete_payment(payment: Payment) -> None:
    invoice = payment.invoice
    if invoice.status is InvoiceStatus.COMPLETED:
        raise ActionError("Cannot delete a payment of a completed invoice")
    code = payment.code
    db.session.delete(payment)
    recalculate_invoice_payments(invoice)
    db.session.expire(invoice, ["payments"])
    logger.info("Payment %s deleted from invoice %s", code, invoice.code)


def get_payment(payment_id: int) -> Payment:
    return get_or_raise(Payment, payment_id, "Payment")
