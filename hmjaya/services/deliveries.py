# hmjaya/services/deliveries.py
from __future__ import annotations

import logging
from datetime import date

from hmjaya.errors import ActionError, NotFoundError
from hmjaya.extensions import db
from hmjaya.models import (
    Delivery,
    DeliveryNote,
    DeliveryStatus,
    Invoice,
    InvoiceStatus,
    InvoiceType,
    PaymentStatus,
    PurchaseOrderStatus,
    User,
    utcnow_naive,
)
from hmjaya.services import ensure_transition, get_or_raise
from hmjaya.services.invoices import move_invoice
from hmjaya.services.orders import set_purchase_order_status
from hmjaya.services.stock import book_invoice_stock, release_invoice_stock
from hmjaya.utils.codes import generate_code
from hmjaya.utils.parsers import clean_str, parse_date, parse_enum, parse_int

logger = logging.getLogger(__name__)

DELIVERABLE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PAID)
OPEN_DELIVERY_STATUSES = (DeliveryStatus.PENDING, DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED)
FAILED_DELIVERY_STATUSES = (DeliveryStatus.RETURNED, DeliveryStatus.CANCELLED)


# =========================================================
# Deliveries (pengiriman)
# =========================================================
def list_deliveries(status: DeliveryStatus | None = None, helper_id: int | None = None):
    qry = Delivery.query
    if status is not None:
        qry = qry.filter(Delivery.status == status)
    if helper_id:
        qry = qry.filter(Delivery.helper_id == helper_id)
    return qry.order_by(Delivery.delivery_date.desc(), Delivery.id.desc()).all()


def deliverable_invoices():
    invoices = (
        Invoice.query.filter(
            Invoice.type == InvoiceType.PRODUCT,
            Invoice.status.in_(list(DELIVERABLE_STATUSES)),
        )
        .order_by(Invoice.invoice_date.asc())
        .all()
    )
    return [inv for inv in invoices if _delivery_block_reason(inv) is None]


def _delivery_block_reason(invoice: Invoice) -> str | None:
    if invoice.type is not InvoiceType.PRODUCT:
        return "Only PRODUCT invoices can be delivered"
    if invoice.status not in DELIVERABLE_STATUSES:
        return f"Invoice {invoice.code} is {invoice.status.value} and cannot be delivered"

    latest = invoice.latest_delivery
    if latest is not None:
        if latest.status in OPEN_DELIVERY_STATUSES:
            return "Invoice already has an active delivery"
        if latest.status in FAILED_DELIVERY_STATUSES and not invoice.allow_redelivery:
            return "Redelivery has not been approved for this invoice"

    if invoice.use_delivery_note and invoice.delivery_note is None:
        return "Create the delivery note (surat jalan) for this invoice first"
    return None


def create_delivery(invoice: Invoice, data: dict, user=None) -> Delivery:
    reason = _delivery_block_reason(invoice)
    if reason:
        raise ActionError(reason)

    helper = None
    helper_id = parse_int(data.get("helper_id")) or getattr(user, "id", None)
    if helper_id:
        helper = get_or_raise(User, helper_id, "Helper")

    delivery = Delivery(
        invoice=invoice,
        helper=helper,
        status=DeliveryStatus.PENDING,
        delivery_date=parse_date(data.get("delivery_date")) or date.today(),
        notes=clean_str(data.get("notes")),
    )
    db.session.add(delivery)

    invoice.allow_redelivery = False
    set_purchase_order_status(invoice.purchase_order, PurchaseOrderStatus.READY_FOR_DELIVERY)
    db.session.flush()
    logger.info("Delivery %s scheduled for invoice %s", delivery.id, invoice.code)
    return delivery


def update_delivery_status(delivery: Delivery, target: DeliveryStatus, reason: str | None = None, user=None) -> Delivery:
    ensure_transition(delivery.status, target, "delivery")
    invoice = delivery.invoice

    if target in FAILED_DELIVERY_STATUSES:
        reason = clean_str(reason)
        if not reason:
            raise ActionError("A reason is required when a delivery is returned or cancelled")
        delivery.return_reason = reason

    delivery.status = target

    if target is DeliveryStatus.DELIVERED:
        delivery.delivered_at = utcnow_naive()
        if invoice.payment_status in (PaymentStatus.PAID, PaymentStatus.OVERPAID):
            move_invoice(invoice, InvoiceStatus.COMPLETED)
        else:
            move_invoice(invoice, InvoiceStatus.DELIVERED)

    elif target in FAILED_DELIVERY_STATUSES:
        move_invoice(invoice, InvoiceStatus.RETURNED)
        invoice.allow_redelivery = False
        release_invoice_stock(invoice, user, notes=f"Delivery {target.value.lower()}: {delivery.return_reason}")

    db.session.flush()
    logger.info("Delivery %s for invoice %s -> %s", delivery.id, invoice.code, target.value)
    return delivery


def approve_redelivery(invoice: Invoice, user=None) -> Invoice:
    latest = invoice.latest_delivery
    if latest is None or latest.status not in FAILED_DELIVERY_STATUSES:
        raise ActionError("Only returned or cancelled deliveries can be redelivered")
    if invoice.status is not InvoiceStatus.RETURNED:
        raise ActionError(f"Invoice {invoice.code} is {invoice.status.value}, not RETURNED")

    book_invoice_stock(invoice, user)
    invoice.allow_redelivery = True
    if invoice.payment_status in (PaymentStatus.PAID, PaymentStatus.OVERPAID):
        move_invoice(invoice, InvoiceStatus.PAID)
    else:
        move_invoice(invoice, InvoiceStatus.SENT)
    db.session.flush()
    return invoice


def delete_delivery(delivery: Delivery) -> None:
    if delivery.status is not DeliveryStatus.PENDING:
        raise ActionError("Only pending deliveries can be deleted")
    db.session.delete(delivery)
    db.session.flush()


# =========================================================
# Delivery notes (surat jalan)
# =========================================================
def eligible_invoices_for_delivery_note():
    return (
        Invoice.query.outerjoin(DeliveryNote, DeliveryNote.invoice_id == Invoice.id)
        .filter(
            Invoice.type == InvoiceType.PRODUCT,
            Invoice.use_delivery_note.is_(True),
            Invoice.status.in_(list(DELIVERABLE_STATUSES)),
            DeliveryNote.id.is_(None),
        )
        .order_by(Invoice.invoice_date.asc())
        .all()
    )


def list_delivery_notes(q: str | None = None):
    qry = DeliveryNote.query.join(Invoice, DeliveryNote.invoice_id == Invoice.id)
    if q:
        like = f"%{q.strip()}%"
        qry = qry.filter(
            DeliveryNote.code.ilike(like)
            | Invoice.code.ilike(like)
            | DeliveryNote.driver_name.ilike(like)
        )
    return qry.order_by(DeliveryNote.delivery_date.desc(), DeliveryNote.id.desc()).all()


def create_delivery_note(data: dict, user=None) -> DeliveryNote:
    invoice = db.session.get(Invoice, parse_int(data.get("invoice_id"))) if data.get("invoice_id") else None
    if invoice is None:
        raise NotFoundError("Invoice not found")
    if not invoice.items:
        raise ActionError("No items found for this invoice")
    if invoice.type is not InvoiceType.PRODUCT:
        raise ActionError("Only PRODUCT type invoices can have delivery notes")
    if not invoice.use_delivery_note:
        raise ActionError("This invoice is not marked for delivery note usage")
    if invoice.delivery_note is not None:
        raise ActionError("Delivery note already exists for this invoice")
    if invoice.status is InvoiceStatus.CANCELLED:
        raise ActionError("Cannot create a delivery note for a cancelled invoice")

    driver_name = clean_str(data.get("driver_name"), 120)
    vehicle_number = clean_str(data.get("vehicle_number"), 30)
    if not driver_name or not vehicle_number:
        raise ActionError("Driver name and vehicle number are required")

    warehouse_user_id = parse_int(data.get("warehouse_user_id")) or getattr(user, "id", None)
    if warehouse_user_id:
        get_or_raise(User, warehouse_user_id, "Warehouse user")

    delivery_date = parse_date(data.get("delivery_date")) or date.today()
    note = DeliveryNote(
        code=clean_str(data.get("code"), 40) or generate_code(DeliveryNote, delivery_date),
        delivery_date=delivery_date,
        driver_name=driver_name,
        vehicle_number=vehicle_number,
        notes=clean_str(data.get("notes")),
        invoice=invoice,
        customer_id=invoice.customer_id,
        warehouse_user_id=warehouse_user_id,
    )
    db.session.add(note)
    set_purchase_order_status(invoice.purchase_order, PurchaseOrderStatus.READY_FOR_DELIVERY)
    db.session.flush()
    logger.info("Delivery note %s created for invoice %s", note.code, invoice.code)
    return note


def update_delivery_note(note: DeliveryNote, data: dict) -> DeliveryNote:
    if "driver_name" in data:
        note.driver_name = clean_str(data.get("driver_name"), 120) or note.driver_name
    if "vehicle_number" in data:
        note.vehicle_number = clean_str(data.get("vehicle_number"), 30) or note.vehicle_number
    if "delivery_date" in data:
        note.delivery_date = parse_date(data.get("delivery_date")) or note.delivery_date
    if "notes" in data:
        note.notes = clean_str(data.get("notes"))
    if "warehouse_user_id" in data:
        wid = parse_int(data.get("warehouse_user_id"))
        note.warehouse_user_id = get_or_raise(User, wid, "Warehouse user").id if wid else None
    db.session.flush()
    return note


def delete_delivery_note(note: DeliveryNote) -> None:
    latest = note.invoice.latest_delivery if note.invoice else None
    if latest is not None and latest.status in OPEN_DELIVERY_STATUSES:
        raise ActionError("Delivery note is in use by a delivery and cannot be deleted")
    db.session.delete(note)
    db.session.flush()


def parse_delivery_status(value) -> DeliveryStatus:
    status = parse_enum(DeliveryStatus, value, None)
    if status is None:
        raise ActionError(f"Unknown delivery status: {value}")
    return status
