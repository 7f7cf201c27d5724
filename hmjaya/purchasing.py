# hmjaya/purchasing.py
from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user

from hmjaya.constants.roles import ADMIN, OWNER
from hmjaya.constants.statuses import PURCHASE_ORDER_LABELS, resolve_status
from hmjaya.errors import ActionError
from hmjaya.models import Invoice, Order, OrderStatus, PaidStatus, PurchaseOrder, PurchaseOrderStatus
from hmjaya.services import get_or_raise
from hmjaya.services.orders import confirm_order, update_purchase_order, update_purchase_order_status
from hmjaya.services.payments import (
    delete_payment,
    get_payment,
    list_payments,
    payable_invoices,
    record_payment,
    set_payment_status,
    update_payment,
)
from hmjaya.utils.guards import role_required
from hmjaya.utils.parsers import parse_int
from hmjaya.utils.responses import ok, request_data, run_action
from hmjaya.utils.serializers import invoice_dict, order_dict, payment_dict, purchase_order_dict

purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/purchasing")

STAFF = (OWNER, ADMIN)


def _po_dict(po, with_items: bool = True):
    data = purchase_order_dict(po, with_items=with_items)
    data["status_label"] = PURCHASE_ORDER_LABELS.get(po.status.value, po.status.value)
    return data


def _status_from(data: dict, enum_cls, what: str):
    status = resolve_status(enum_cls, data.get("status"))
    if status is None:
        raise ActionError(f"Unknown {what} status: {data.get('status')}")
    return status


# =========================================================
# Purchase orders (daftar PO)
# =========================================================
@purchasing_bp.route("/daftar-po", methods=["GET"])
@role_required(*STAFF)
def po_list():
    qry = PurchaseOrder.query
    status = resolve_status(PurchaseOrderStatus, request.args.get("status"))
    if status is not None:
        qry = qry.filter(PurchaseOrder.status == status)
    pos = qry.order_by(PurchaseOrder.po_date.desc(), PurchaseOrder.id.desc()).all()
    return ok([_po_dict(po, with_items=False) for po in pos])


@purchasing_bp.route("/daftar-po/orders", methods=["GET"])
@role_required(*STAFF)
def po_pending_orders():
    """Orders waiting for a purchase order."""
    orders = (
        Order.query.filter(Order.status.in_([OrderStatus.NEW, OrderStatus.PENDING_CONFIRMATION]))
        .order_by(Order.order_date.asc(), Order.id.asc())
        .all()
    )
    return ok([order_dict(o) for o in orders])


@purchasing_bp.route("/daftar-po/orders/<int:order_id>/confirm", methods=["POST"])
@role_required(*STAFF)
def po_confirm_order(order_id: int):
    return run_action(
        "Confirm order",
        lambda: confirm_order(get_or_raise(Order, order_id, "Order"), current_user),
        serialize=_po_dict,
        success_status=201,
        retry_on_conflict=True,
    )


@purchasing_bp.route("/daftar-po/<int:po_id>", methods=["GET"])
@role_required(*STAFF)
def po_detail(po_id: int):
    return ok(_po_dict(get_or_raise(PurchaseOrder, po_id, "Purchase order")))


@purchasing_bp.route("/daftar-po/<int:po_id>", methods=["PUT", "POST"])
@role_required(*STAFF)
def po_update(po_id: int):
    data = request_data()
    return run_action(
        "Update purchase order",
        lambda: update_purchase_order(po_id, data),
        serialize=_po_dict,
    )


@purchasing_bp.route("/daftar-po/<int:po_id>/status", methods=["POST"])
@role_required(*STAFF)
def po_status(po_id: int):
    data = request_data()
    return run_action(
        "Update purchase order status",
        lambda: update_purchase_order_status(
            get_or_raise(PurchaseOrder, po_id, "Purchase order"),
            _status_from(data, PurchaseOrderStatus, "purchase order"),
        ),
        serialize=_po_dict,
    )


# =========================================================
# Payments (pembayaran)
# =========================================================
@purchasing_bp.route("/pembayaran", methods=["GET"])
@role_required(*STAFF)
def payments_list():
    status = resolve_status(PaidStatus, request.args.get("status"))
    payments = list_payments(status=status, invoice_id=parse_int(request.args.get("invoice_id")))
    return ok([payment_dict(p) for p in payments])


@purchasing_bp.route("/pembayaran/invoices", methods=["GET"])
@role_required(*STAFF)
def payments_invoices():
    return ok([invoice_dict(i, with_items=False) for i in payable_invoices()])


@purchasing_bp.route("/pembayaran", methods=["POST"])
@role_required(*STAFF)
def payments_create():
    data = request_data()
    return run_action(
        "Record payment",
        lambda: record_payment(
            get_or_raise(Invoice, parse_int(data.get("invoice_id")), "Invoice"), data, current_user
        ),
        serialize=payment_dict,
        success_status=201,
        retry_on_conflict=True,
    )


@purchasing_bp.route("/pembayaran/<int:payment_id>", methods=["GET"])
@role_required(*STAFF)
def payments_detail(payment_id: int):
    payment = get_payment(payment_id)
    data = payment_dict(payment)
    data["invoice"] = invoice_dict(payment.invoice, with_items=False)
    return ok(data)


@purchasing_bp.route("/pembayaran/<int:payment_id>", methods=["PUT", "POST"])
@role_required(*STAFF)
def payments_update(payment_id: int):
    data = request_data()
    return run_action(
        "Update payment",
        lambda: update_payment(get_payment(payment_id), data),
        serialize=payment_dict,
    )


@purchasing_bp.route("/pembayaran/<int:payment_id>/status", methods=["POST"])
@role_required(*STAFF)
def payments_status(payment_id: int):
    data = request_data()
    return run_action(
        "Update payment status",
        lambda: set_payment_status(get_payment(payment_id), _status_from(data, PaidStatus, "payment")),
        serialize=payment_dict,
    )


@purchasing_bp.route("/pembayaran/<int:payment_id>", methods=["DELETE"])
@role_required(*STAFF)
def payments_delete(payment_id: int):
    return run_action(
        "Delete payment",
        lambda: delete_payment(get_payment(payment_id)),
        message="Payment deleted successfully",
    )
