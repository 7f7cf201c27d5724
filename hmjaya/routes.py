# hmjaya/routes.py
from __future__ import annotations

from datetime import date

import sqlalchemy as sa
from flask import Blueprint, send_from_directory
from flask_login import current_user, login_required

from hmjaya.constants.roles import default_path_for
from hmjaya.extensions import db
from hmjaya.models import (
    Delivery,
    DeliveryStatus,
    Invoice,
    InvoiceStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    Product,
    PurchaseOrder,
    PurchaseOrderStatus,
)
from hmjaya.services.invoices import overdue_filter
from hmjaya.services.receivables import receivables_report
from hmjaya.services.uploads import upload_dir
from hmjaya.utils.responses import ok

main = Blueprint("main", __name__)


def _count_by_status(model) -> dict:
    rows = db.session.query(model.status, sa.func.count(model.id)).group_by(model.status).all()
    return {status.value: count for status, count in rows}


# =========================================================
# Dashboard
# =========================================================
@main.route("/")
@login_required
def dashboard():
    today = date.today()

    revenue = (
        db.session.query(sa.func.coalesce(sa.func.sum(Invoice.total_amount), 0.0))
        .filter(Invoice.status == InvoiceStatus.COMPLETED)
        .scalar()
    )
    low_stock = (
        Product.query.filter(Product.is_active.is_(True), Product.current_stock <= Product.min_stock)
        .order_by(Product.current_stock.asc())
        .limit(10)
        .all()
    )
    stats = receivables_report(today=today)["stats"]

    return ok(
        {
            "role": current_user.role,
            "home": default_path_for(current_user.role),
            "orders": _count_by_status(Order),
            "purchase_orders": _count_by_status(PurchaseOrder),
            "invoices": _count_by_status(Invoice),
            "overdue_invoices": Invoice.query.filter(overdue_filter(today)).count(),
            "unpaid_invoices": Invoice.query.filter(
                Invoice.payment_status == PaymentStatus.UNPAID,
                Invoice.status != InvoiceStatus.CANCELLED,
            ).count(),
            "pending_orders": Order.query.filter(
                Order.status.in_([OrderStatus.NEW, OrderStatus.PENDING_CONFIRMATION])
            ).count(),
            "ready_for_delivery": PurchaseOrder.query.filter(
                PurchaseOrder.status == PurchaseOrderStatus.READY_FOR_DELIVERY
            ).count(),
            "active_deliveries": Delivery.query.filter(
                Delivery.status.in_([DeliveryStatus.PENDING, DeliveryStatus.IN_TRANSIT])
            ).count(),
            "completed_revenue": float(revenue or 0.0),
            "receivables": stats,
            "low_stock": [
                {"id": p.id, "code": p.code, "name": p.name, "current_stock": p.current_stock, "min_stock": p.min_stock}
                for p in low_stock
            ],
        }
    )


# =========================================================
# Uploaded files (field visit photos, payment proofs)
# =========================================================
@main.route("/uploads/<path:name>")
def uploaded_file(name: str):
    return send_from_directory(upload_dir(), name)
