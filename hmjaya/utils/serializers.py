# hmjaya/utils/serializers.py
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy.orm import class_mapper

from hmjaya.constants.statuses import PAYMENT_STATUS_LABELS
from hmjaya.services.invoices import effective_status
from hmjaya.services.pricing import calculate_selling_price

# Never leave the server
HIDDEN_COLUMNS = {"password_hash"}


def model_to_dict(obj, exclude=()):
    """Convert a SQLAlchemy object to a dictionary of its columns."""
    if obj is None:
        return None
    mapper = class_mapper(obj.__class__)
    result = {}
    for c in mapper.columns:
        if c.key in HIDDEN_COLUMNS or c.key in exclude:
            continue
        value = getattr(obj, c.key)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, Decimal):
            value = float(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        result[c.key] = value
    return result


def _brief(obj, *fields):
    if obj is None:
        return None
    return {f: getattr(obj, f) for f in ("id", *fields)}


# =========================================================
# Per-entity shapes
# =========================================================
def user_dict(user):
    return model_to_dict(user, exclude=("failed_login_attempts", "locked_until"))


def customer_dict(customer):
    return model_to_dict(customer)


def tax_dict(tax):
    data = model_to_dict(tax)
    data["percentage"] = tax.percentage
    return data


def product_dict(product):
    data = model_to_dict(product)
    data["category"] = _brief(product.category, "code", "name")
    data["low_stock"] = (product.current_stock or 0) <= (product.min_stock or 0)
    return data


def category_dict(category):
    return model_to_dict(category)


def stock_movement_dict(movement):
    data = model_to_dict(movement)
    data["product"] = _brief(movement.product, "code", "name")
    data["user"] = _brief(movement.user, "name")
    return data


def profile_dict(profile):
    return model_to_dict(profile)


def _line(item):
    data = model_to_dict(item)
    data["product"] = _brief(item.product, "code", "name", "unit")
    return data


def order_dict(order, with_items: bool = True):
    data = model_to_dict(order)
    data["customer"] = _brief(order.customer, "code", "name")
    data["sales"] = _brief(order.sales, "name", "email")
    po = order.purchase_order
    data["purchase_order"] = _brief(po, "code") if po else None
    if with_items:
        data["items"] = [_line(i) for i in order.items]
    return data


def purchase_order_dict(po, with_items: bool = True):
    data = model_to_dict(po)
    data["order"] = _brief(po.order, "code")
    data["customer"] = _brief(po.order.customer, "code", "name") if po.order else None
    data["invoices"] = [
        {"id": inv.id, "code": inv.code, "status": inv.status.value} for inv in po.invoices
    ]
    if with_items:
        data["items"] = [_line(i) for i in po.items]
    return data


def payment_dict(payment):
    data = model_to_dict(payment)
    data["invoice"] = _brief(payment.invoice, "code")
    return data


def delivery_dict(delivery):
    data = model_to_dict(delivery)
    data["invoice"] = _brief(delivery.invoice, "code")
    data["helper"] = _brief(delivery.helper, "name")
    return data


def invoice_dict(invoice, with_items: bool = True, today=None):
    data = model_to_dict(invoice)
    data["effective_status"] = effective_status(invoice, today).value
    data["payment_status_label"] = PAYMENT_STATUS_LABELS.get(
        invoice.payment_status.value, invoice.payment_status.value
    )
    data["customer"] = _brief(invoice.customer, "code", "name", "address", "city")
    data["purchase_order"] = _brief(invoice.purchase_order, "code")
    data["delivery_note"] = _brief(invoice.delivery_note, "code")
    if with_items:
        data["items"] = [_line(i) for i in invoice.items]
        data["payments"] = [payment_dict(p) for p in invoice.payments]
        data["deliveries"] = [model_to_dict(d) for d in invoice.deliveries]
    return data


def delivery_note_dict(note):
    data = model_to_dict(note)
    inv = note.invoice
    data["invoice"] = _brief(inv, "code") if inv else None
    data["customer"] = _brief(note.customer, "code", "name", "address", "city")
    data["warehouse_user"] = _brief(note.warehouse_user, "name")
    data["items"] = [_line(i) for i in inv.items] if inv else []
    return data


def swap_dict(swap):
    data = model_to_dict(swap)
    data["invoice"] = _brief(swap.invoice, "code")
    data["items"] = [
        {**model_to_dict(i), "product": _brief(i.product, "code", "name")} for i in swap.items
    ]
    return data


def field_visit_dict(visit):
    data = model_to_dict(visit)
    data["sales"] = _brief(visit.sales, "name", "email")
    data["customer"] = _brief(visit.customer, "name", "address", "city")
    return data


def target_dict(target):
    data = model_to_dict(target)
    data["user"] = _brief(target.user, "name")
    data["achievement_pct"] = (
        round(target.achieved_amount / target.target_amount * 100, 1) if target.target_amount else 0.0
    )
    return data


def price_preview(base_price, tax_percentage) -> dict:
    return {
        "price": base_price,
        "tax_percentage": tax_percentage,
        "selling_price": float(calculate_selling_price(base_price, tax_percentage)),
    }
