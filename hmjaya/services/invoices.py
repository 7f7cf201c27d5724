# hmjaya/services/invoices.py
from __future__ import annotations

import logging
from datetime import date, timedelta

import sqlalchemy as sa

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import (
    Customer,
    DeliveryStatus,
    DiscountType,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
    OrderStatus,
    PaidStatus,
    PaymentStatus,
    Product,
    PurchaseOrder,
    PurchaseOrderStatus,
    is_terminal,
    utcnow_naive,
)
from hmjaya.services import ensure_transition, get_or_raise
from hmjaya.services.orders import complete_order, net_terms_days, set_purchase_order_status
from hmjaya.services.pricing import invoice_totals, line_total
from hmjaya.services.stock import book_invoice_stock, release_invoice_stock
from hmjaya.services.taxes import active_tax_percentage
from hmjaya.utils.codes import generate_code
from hmjaya.utils.parsers import clean_str, parse_bool, parse_date, parse_enum, parse_float, parse_int

logger = logging.getLogger(__name__)

# Stored statuses that read as OVERDUE once the due date has passed unpaid
OVERDUE_CANDIDATES = {InvoiceStatus.SENT, InvoiceStatus.DELIVERED}
EDITABLE_STATUSES = {InvoiceStatus.DRAFT, InvoiceStatus.SENT}
ACTIVE_DELIVERY_STATUSES = {DeliveryStatus.PENDING, DeliveryStatus.IN_TRANSIT}


# =========================================================
# Read-time status
# =========================================================
def effective_status(invoice: Invoice, today: date | None = None) -> InvoiceStatus:
    """OVERDUE is derived from the due date, never stored."""
    today = today or date.today()
    if (
        invoice.status in OVERDUE_CANDIDATES
        and invoice.payment_status is PaymentStatus.UNPAID
        and invoice.due_date is not None
        and invoice.due_date < today
    ):
        return InvoiceStatus.OVERDUE
    return invoice.status


def overdue_filter(today: date | None = None):
    today = today or date.today()
    return sa.and_(
        Invoice.status.in_(list(OVERDUE_CANDIDATES)),
        Invoice.payment_status == PaymentStatus.UNPAID,
        Invoice.due_date.isnot(None),
        Invoice.due_date < today,
    )


def list_invoices(status: InvoiceStatus | None = None, q: str | None = None, today: date | None = None):
    qry = Invoice.query.outerjoin(Customer, Invoice.customer_id == Customer.id)
    if status is InvoiceStatus.OVERDUE:
        qry = qry.filter(overdue_filter(today))
    elif status is not None:
        qry = qry.filter(Invoice.status == status)
        if status in OVERDUE_CANDIDATES:
            qry = qry.filter(sa.not_(overdue_filter(today)))
    if q:
        like = f"%{q.strip()}%"
        qry = qry.filter(sa.or_(Invoice.code.ilike(like), Customer.name.ilike(like), Customer.code.ilike(like)))
    return qry.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()


def search_invoices(q: str | None, limit: int = 20):
    q = (q or "").strip()
    if not q:
        return []
    like = f"%{q}%"
    return (
        Invoice.query.outerjoin(Customer, Invoice.customer_id == Customer.id)
        .filter(sa.or_(Invoice.code.ilike(like), Customer.name.ilike(like), Customer.code.ilike(like)))
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .limit(limit)
        .all()
    )


# =========================================================
# Totals
# =========================================================
def _build_items(raw_items) -> list[InvoiceItem]:
    if not raw_items:
        raise ActionError("Invoice must contain at least one item")

    items = []
    for raw in raw_items:
        product = get_or_raise(Product, parse_int(raw.get("product_id")), "Product")
        qty = parse_int(raw.get("quantity"))
        if not qty or qty <= 0:
            raise ActionError(f"Quantity for {product.name} must be greater than zero")
        price = parse_float(raw.get("price"))
        if price is None:
            price = product.selling_price or product.price
        if price < 0:
            raise ActionError(f"Price for {product.name} cannot be negative")
        discount = parse_float(raw.get("discount")) or 0.0
        discount_type = parse_enum(DiscountType, raw.get("discount_type"), DiscountType.AMOUNT)

        items.append(
            InvoiceItem(
                product=product,
                quantity=qty,
                price=price,
                discount=discount,
                discount_type=discount_type,
                total_price=line_total(qty, price, discount, discount_type),
            )
        )
    return items


def _items_from_purchase_order(po: PurchaseOrder) -> list[dict]:
    return [
        {"product_id": i.product_id, "quantity": i.quantity, "price": i.price, "discount": i.discount}
        for i in po.items
    ]


def recalculate_invoice_totals(invoice: Invoice) -> None:
    """Refresh line totals, header totals and the remaining amount."""
    for item in invoice.items:
        item.total_price = line_total(item.quantity, item.price, item.discount, item.discount_type)

    totals = invoice_totals(
        [i.total_price for i in invoice.items],
        discount=invoice.discount,
        discount_type=invoice.discount_type,
        tax_percentage=invoice.tax_percentage,
        shipping_cost=invoice.shipping_cost,
    )
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.shipping_cost = totals.shipping_cost
    invoice.total_amount = totals.total_amount
    invoice.remaining_amount = round(invoice.total_amount - (invoice.paid_amount or 0.0), 2)


def _apply_header(invoice: Invoice, data: dict) -> None:
    if "discount" in data:
        invoice.discount = parse_float(data.get("discount")) or 0.0
    if "discount_type" in data:
        invoice.discount_type = parse_enum(DiscountType, data.get("discount_type"), DiscountType.AMOUNT)
    if "tax_percentage" in data:
        pct = parse_float(data.get("tax_percentage"))
        if pct is None or pct < 0:
            raise ActionError("Invalid tax percentage")
        invoice.tax_percentage = pct
    if "shipping_cost" in data:
        invoice.shipping_cost = max(parse_float(data.get("shipping_cost")) or 0.0, 0.0)
    if "notes" in data:
        invoice.notes = clean_str(data.get("notes"))
    if "use_delivery_note" in data:
        invoice.use_delivery_note = parse_bool(data.get("use_delivery_note"))


# =========================================================
# Create / update / delete
# =========================================================
def _usable_purchase_order(po_id) -> PurchaseOrder:
    po = get_or_raise(PurchaseOrder, parse_int(po_id), "Purchase order")
    if po.status is not PurchaseOrderStatus.PENDING:
        raise ActionError(f"Purchase order {po.code} is {po.status.value} and cannot be invoiced")
    if any(inv.status is not InvoiceStatus.CANCELLED for inv in po.invoices):
        raise ActionError(f"Purchase order {po.code} already has an invoice")
    return po


def create_invoice(data: dict, user) -> Invoice:
    po = None
    if data.get("purchase_order_id"):
        po = _usable_purchase_order(data.get("purchase_order_id"))

    if po is not None:
        customer = po.order.customer
    else:
        customer = get_or_raise(Customer, parse_int(data.get("customer_id")), "Customer")

    raw_items = data.get("items") or (_items_from_purchase_order(po) if po else None)
    items = _build_items(raw_items)

    invoice_date = parse_date(data.get("invoice_date")) or date.today()
    due_date = parse_date(data.get("due_date"))
    if due_date is None:
        due_date = po.payment_deadline if po and po.payment_deadline else invoice_date + timedelta(days=net_terms_days())
    if due_date < invoice_date:
        raise ActionError("Due date cannot be before the invoice date")

    tax_percentage = parse_float(data.get("tax_percentage"))
    invoice = Invoice(
        code=clean_str(data.get("code"), 40) or generate_code(Invoice, invoice_date),
        invoice_date=invoice_date,
        due_date=due_date,
        type=parse_enum(InvoiceType, data.get("type"), InvoiceType.PRODUCT),
        use_delivery_note=parse_bool(data.get("use_delivery_note")),
        status=InvoiceStatus.DRAFT,
        payment_status=PaymentStatus.UNPAID,
        customer=customer,
        purchase_order=po,
        discount=parse_float(data.get("discount")) or 0.0,
        discount_type=parse_enum(DiscountType, data.get("discount_type"), DiscountType.AMOUNT),
        tax_percentage=tax_percentage if tax_percentage is not None else active_tax_percentage(),
        shipping_cost=max(parse_float(data.get("shipping_cost")) or 0.0, 0.0),
        paid_amount=0.0,
        notes=clean_str(data.get("notes")),
        created_by_id=getattr(user, "id", None),
        items=items,
    )
    recalculate_invoice_totals(invoice)
    db.session.add(invoice)

    if invoice.type is InvoiceType.PRODUCT:
        book_invoice_stock(invoice, user)

    set_purchase_order_status(po, PurchaseOrderStatus.PROCESSING)
    db.session.flush()
    logger.info("Invoice %s created (total %.0f)", invoice.code, invoice.total_amount)
    return invoice


def _has_payments(invoice: Invoice) -> bool:
    return any(p.status in (PaidStatus.PENDING, PaidStatus.CLEARED) for p in invoice.payments)


def update_invoice(invoice: Invoice, data: dict, user=None) -> Invoice:
    if invoice.status not in EDITABLE_STATUSES:
        raise ActionError(f"Invoice {invoice.code} is {invoice.status.value} and can no longer be edited")
    if _has_payments(invoice):
        raise ActionError("Invoice cannot be edited once payments have been recorded")

    if "purchase_order_id" in data:
        new_po_id = parse_int(data.get("purchase_order_id"))
        if new_po_id != invoice.purchase_order_id:
            old_po = invoice.purchase_order
            new_po = _usable_purchase_order(new_po_id) if new_po_id else None
            set_purchase_order_status(old_po, PurchaseOrderStatus.PENDING)
            invoice.purchase_order = new_po
            if new_po is not None:
                invoice.customer = new_po.order.customer
                set_purchase_order_status(new_po, PurchaseOrderStatus.PROCESSING)

    if "items" in data:
        restock = invoice.stock_committed
        release_invoice_stock(invoice, user, notes="Invoice lines edited")
        invoice.items = _build_items(data.get("items"))
        if restock:
            db.session.flush()
            book_invoice_stock(invoice, user)

    if "invoice_date" in data:
        invoice.invoice_date = parse_date(data.get("invoice_date")) or invoice.invoice_date
    if "due_date" in data:
        invoice.due_date = parse_date(data.get("due_date")) or invoice.due_date
    if invoice.due_date and invoice.due_date < invoice.invoice_date:
        raise ActionError("Due date cannot be before the invoice date")

    _apply_header(invoice, data)
    recalculate_invoice_totals(invoice)
    db.session.flush()
    return invoice


def delete_invoice(invoice: Invoice, user=None) -> None:
    if invoice.payments:
        raise ActionError("Cannot delete invoice. Payment data already exists for this invoice.")
    if invoice.deliveries:
        raise ActionError("Cannot delete invoice. Delivery data already exists for this invoice.")
    if invoice.delivery_note is not None:
        raise ActionError("Cannot delete invoice. Delete its delivery note first.")
    if invoice.swaps:
        raise ActionError("Cannot delete invoice. Swap data already exists for this invoice.")

    release_invoice_stock(invoice, user, notes="Invoice deleted")
    set_purchase_order_status(invoice.purchase_order, PurchaseOrderStatus.PENDING)
    code = invoice.code
    db.session.delete(invoice)
    db.session.flush()
    logger.info("Invoice %s deleted", code)


# =========================================================
# Lifecycle actions
# =========================================================
def mark_invoice_sent(invoice: Invoice) -> bool:
    """DRAFT -> SENT when the invoice is printed/sent. Any other status is left alone."""
    if invoice.status is not InvoiceStatus.DRAFT:
        return False
    invoice.status = InvoiceStatus.SENT
    db.session.flush()
    return True


def move_invoice(invoice: Invoice, target: InvoiceStatus) -> None:
    ensure_transition(invoice.status, target, "invoice")
    invoice.status = target
    if target is InvoiceStatus.COMPLETED:
        po = invoice.purchase_order
        set_purchase_order_status(po, PurchaseOrderStatus.COMPLETED)
        if po is not None and po.order.status is not OrderStatus.CANCELLED:
            complete_order(po.order)


def cancel_invoice(invoice: Invoice, reason: str | None, user) -> Invoice:
    reason = clean_str(reason)
    if not reason:
        raise ActionError("A cancellation reason is required")

    if invoice.is_canceled or invoice.status is InvoiceStatus.CANCELLED:
        raise ActionError("Invoice has already been cancelled")
    if invoice.status is InvoiceStatus.COMPLETED:
        raise ActionError("Completed invoices cannot be cancelled")

    latest = invoice.latest_delivery
    if latest is not None and latest.status in ACTIVE_DELIVERY_STATUSES:
        raise ActionError(
            "Invoice is currently being delivered. Finish or cancel the delivery before cancelling the invoice."
        )

    for payment in invoice.payments:
        if payment.status in (PaidStatus.PENDING, PaidStatus.CLEARED):
            payment.status = PaidStatus.CANCELED

    release_invoice_stock(invoice, user, notes=f"Invoice cancelled: {reason}")

    now = utcnow_naive()
    invoice.status = InvoiceStatus.CANCELLED
    invoice.payment_status = PaymentStatus.UNPAID
    invoice.paid_amount = 0.0
    invoice.remaining_amount = invoice.total_amount
    invoice.allow_redelivery = False
    invoice.is_canceled = True
    invoice.canceled_at = now
    invoice.cancel_reason = reason
    invoice.canceled_by_id = getattr(user, "id", None)

    po = invoice.purchase_order
    if po is not None:
        if not is_terminal(po.status):
            po.status = PurchaseOrderStatus.CANCELLED
        order = po.order
        if order is not None and not is_terminal(order.status):
            order.status = OrderStatus.CANCELLED
            order.canceled_at = now
            order.cancel_reason = reason

    db.session.flush()
    logger.info("Invoice %s cancelled by user %s: %s", invoice.code, getattr(user, "id", None), reason)
    return invoice


def cancelled_invoices():
    return (
        Invoice.query.filter(Invoice.status == InvoiceStatus.CANCELLED)
        .order_by(Invoice.canceled_at.desc())
        .all()
    )


def cancellable_invoices():
    return (
        Invoice.query.filter(Invoice.status.notin_([InvoiceStatus.CANCELLED, InvoiceStatus.COMPLETED]))
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )
