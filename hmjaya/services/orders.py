# hmjaya/services/orders.py
from __future__ import annotations

import logging
from datetime import date, timedelta

from flask import current_app

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import (
    Customer,
    InvoiceStatus,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    can_transition,
    is_terminal,
    utcnow_naive,
)
from hmjaya.services import ensure_transition, get_or_raise
from hmjaya.services.pricing import line_total, round_money
from hmjaya.utils.codes import generate_code
from hmjaya.utils.parsers import clean_str, parse_bool, parse_date, parse_float, parse_int

logger = logging.getLogger(__name__)


def net_terms_days() -> int:
    return int(current_app.config.get("DEFAULT_NET_TERMS_DAYS", 30))


# =========================================================
# Orders
# =========================================================
def _build_order_items(raw_items) -> list[OrderItem]:
    if not raw_items:
        raise ActionError("Order must contain at least one item")

    items = []
    for raw in raw_items:
        product = get_or_raise(Product, parse_int(raw.get("product_id")), "Product")
        if not product.is_active:
            raise ActionError(f"Product {product.name} is inactive")
        qty = parse_int(raw.get("quantity"))
        if not qty or qty <= 0:
            raise ActionError(f"Quantity for {product.name} must be greater than zero")

        price = parse_float(raw.get("price"))
        if price is None:
            price = product.selling_price or product.price
        discount = parse_float(raw.get("discount")) or 0.0

        items.append(
            OrderItem(
                product=product,
                quantity=qty,
                price=price,
                discount=discount,
                total_price=line_total(qty, price, discount),
            )
        )
    return items


def create_order(data: dict, sales_user) -> Order:
    customer = get_or_raise(Customer, parse_int(data.get("customer_id")), "Customer")
    if not customer.is_active:
        raise ActionError("Customer is inactive")

    items = _build_order_items(data.get("items"))
    subtotal = round_money(sum(i.total_price for i in items))
    discount = min(parse_float(data.get("discount")) or 0.0, subtotal)
    requires_confirmation = parse_bool(data.get("requires_confirmation"))

    order = Order(
        code=generate_code(Order),
        order_date=parse_date(data.get("order_date")) or date.today(),
        customer=customer,
        sales_id=getattr(sales_user, "id", None),
        status=OrderStatus.PENDING_CONFIRMATION if requires_confirmation else OrderStatus.NEW,
        requires_confirmation=requires_confirmation,
        subtotal=subtotal,
        discount=discount,
        total_amount=round_money(subtotal - discount),
        notes=clean_str(data.get("notes")),
        items=items,
    )
    db.session.add(order)
    db.session.flush()
    logger.info("Order %s created for customer %s", order.code, customer.code)
    return order


def update_order(order_id: int, data: dict) -> Order:
    order = get_or_raise(Order, order_id, "Order")
    if order.status not in (OrderStatus.NEW, OrderStatus.PENDING_CONFIRMATION):
        raise ActionError("Only new orders can be edited")

    if "items" in data:
        order.items = _build_order_items(data.get("items"))
    if "notes" in data:
        order.notes = clean_str(data.get("notes"))

    order.subtotal = round_money(sum(i.total_price for i in order.items))
    if "discount" in data:
        order.discount = parse_float(data.get("discount")) or 0.0
    order.discount = min(order.discount or 0.0, order.subtotal)
    order.total_amount = round_money(order.subtotal - order.discount)
    db.session.flush()
    return order


def request_confirmation(order: Order) -> Order:
    ensure_transition(order.status, OrderStatus.PENDING_CONFIRMATION, "order")
    order.status = OrderStatus.PENDING_CONFIRMATION
    db.session.flush()
    return order


def confirm_order(order: Order, user) -> PurchaseOrder:
    """Confirm the order and raise its purchase order."""
    ensure_transition(order.status, OrderStatus.PROCESSING, "order")
    order.status = OrderStatus.PROCESSING
    order.confirmed_at = utcnow_naive()
    po = generate_purchase_order(order, user)
    logger.info("Order %s confirmed, purchase order %s raised", order.code, po.code)
    return po


def complete_order(order: Order | None) -> None:
    if order is None or order.status is OrderStatus.COMPLETED:
        return
    ensure_transition(order.status, OrderStatus.COMPLETED, "order")
    order.status = OrderStatus.COMPLETED
    order.completed_at = utcnow_naive()


def cancel_order(order: Order, reason: str | None = None) -> Order:
    if is_terminal(order.status):
        raise ActionError(f"Order is already {order.status.value.lower()}")

    po = order.purchase_order
    if po is not None:
        active = [inv for inv in po.invoices if inv.status is not InvoiceStatus.CANCELLED]
        if active:
            raise ActionError("Cancel the invoice for this order before cancelling the order")
        if not is_terminal(po.status):
            po.status = PurchaseOrderStatus.CANCELLED

    order.status = OrderStatus.CANCELLED
    order.canceled_at = utcnow_naive()
    order.cancel_reason = clean_str(reason)
    db.session.flush()
    logger.info("Order %s cancelled", order.code)
    return order


# =========================================================
# Purchase orders
# =========================================================
def generate_purchase_order(order: Order, user, *, po_date: date | None = None) -> PurchaseOrder:
    if order.purchase_order is not None:
        raise ActionError("Purchase order already exists for this order")
    if order.status is not OrderStatus.PROCESSING:
        raise ActionError("Only confirmed orders can produce a purchase order")

    po_date = po_date or date.today()
    po = PurchaseOrder(
        code=generate_code(PurchaseOrder, po_date),
        po_date=po_date,
        payment_deadline=po_date + timedelta(days=net_terms_days()),
        order=order,
        creator_id=getattr(user, "id", None),
        status=PurchaseOrderStatus.PENDING,
        subtotal=order.subtotal,
        discount=order.discount,
        total_amount=order.total_amount,
        notes=order.notes,
        items=[
            PurchaseOrderItem(
                product=i.product,
                quantity=i.quantity,
                price=i.price,
                discount=i.discount,
                total_price=i.total_price,
            )
            for i in order.items
        ],
    )
    db.session.add(po)
    db.session.flush()
    return po


def set_purchase_order_status(po: PurchaseOrder | None, target: PurchaseOrderStatus) -> None:
    """Lifecycle side effect: move the PO only when the move is allowed, otherwise leave it."""
    if po is None or po.status is target:
        return
    if can_transition(po.status, target):
        po.status = target


def update_purchase_order_status(po: PurchaseOrder, target: PurchaseOrderStatus) -> PurchaseOrder:
    ensure_transition(po.status, target, "purchase order")
    if target is PurchaseOrderStatus.CANCELLED:
        if any(inv.status is not InvoiceStatus.CANCELLED for inv in po.invoices):
            raise ActionError("Cancel the invoice for this purchase order first")
        if not is_terminal(po.order.status):
            po.order.status = OrderStatus.CANCELLED
            po.order.canceled_at = utcnow_naive()
    po.status = target
    db.session.flush()
    return po


def update_purchase_order(po_id: int, data: dict) -> PurchaseOrder:
    po = get_or_raise(PurchaseOrder, po_id, "Purchase order")
    if is_terminal(po.status):
        raise ActionError("Closed purchase orders cannot be edited")
    if "payment_deadline" in data:
        deadline = parse_date(data.get("payment_deadline"))
        if deadline is None:
            raise ActionError("Invalid payment deadline")
        if deadline < po.po_date:
            raise ActionError("Payment deadline cannot be before the PO date")
        po.payment_deadline = deadline
    if "notes" in data:
        po.notes = clean_str(data.get("notes"))
    db.session.flush()
    return po
