# hmjaya/sales.py
from __future__ import annotations

from flask import Blueprint, current_app, request
from flask_login import current_user

from hmjaya.constants.roles import ADMIN, HELPER, OWNER, SALES
from hmjaya.constants.statuses import resolve_status
from hmjaya.config.company import company_context
from hmjaya.errors import NotFoundError
from hmjaya.extensions import db
from hmjaya.models import (
    Delivery,
    DeliveryNote,
    DeliveryStatus,
    Invoice,
    InvoiceStatus,
    Order,
    OrderStatus,
    PurchaseOrder,
    PurchaseOrderStatus,
    Swap,
)
from hmjaya.services import get_or_raise
from hmjaya.services.company_profiles import get_active_profile
from hmjaya.services.deliveries import (
    approve_redelivery,
    create_delivery,
    create_delivery_note,
    delete_delivery,
    delete_delivery_note,
    deliverable_invoices,
    eligible_invoices_for_delivery_note,
    list_deliveries,
    list_delivery_notes,
    parse_delivery_status,
    update_delivery_note,
    update_delivery_status,
)
from hmjaya.services.field_visits import list_visits
from hmjaya.services.invoices import (
    cancel_invoice,
    cancellable_invoices,
    cancelled_invoices,
    create_invoice,
    delete_invoice,
    list_invoices,
    mark_invoice_sent,
    update_invoice,
)
from hmjaya.services.orders import cancel_order, create_order, request_confirmation, update_order
from hmjaya.services.swaps import create_swap, delete_swap, list_swaps, validate_swap_groups
from hmjaya.services.targets import list_targets
from hmjaya.services.users import warehouse_users
from hmjaya.utils.delivery_note_pdf import render_delivery_note_pdf
from hmjaya.utils.guards import role_required
from hmjaya.utils.invoice_pdf import render_invoice_pdf
from hmjaya.utils.parsers import parse_int
from hmjaya.utils.responses import ok, request_data, run_action
from hmjaya.utils.serializers import (
    delivery_dict,
    delivery_note_dict,
    field_visit_dict,
    invoice_dict,
    order_dict,
    purchase_order_dict,
    swap_dict,
    target_dict,
    user_dict,
)

sales_bp = Blueprint("sales", __name__, url_prefix="/sales")

STAFF = (OWNER, ADMIN)
CLOSED_ORDER_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


def _pdf_response(pdf_bytes: bytes, filename: str):
    return current_app.response_class(
        pdf_bytes,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


def _own_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    # Another salesperson's order reads as missing
    if order is None or order.sales_id != current_user.id:
        raise NotFoundError("Order not found")
    return order


# =========================================================
# Sales home
# =========================================================
@sales_bp.route("")
@role_required(SALES, OWNER, ADMIN)
def index():
    qry = Order.query
    if current_user.role == SALES:
        qry = qry.filter(Order.sales_id == current_user.id)
    recent = qry.order_by(Order.order_date.desc(), Order.id.desc()).limit(10).all()

    data = {
        "recent_orders": [order_dict(o, with_items=False) for o in recent],
        "open_orders": qry.filter(Order.status.notin_(list(CLOSED_ORDER_STATUSES))).count(),
    }
    if current_user.role == SALES:
        data["targets"] = [target_dict(t) for t in list_targets(user_id=current_user.id)]
    return ok(data)


@sales_bp.route("/field-visits")
@role_required(SALES)
def field_visits():
    return ok([field_visit_dict(v) for v in list_visits(sales_id=current_user.id)])


# =========================================================
# Orders (sales)
# =========================================================
@sales_bp.route("/orders", methods=["GET"])
@role_required(SALES)
def orders_list():
    qry = Order.query.filter(Order.sales_id == current_user.id)
    status = resolve_status(OrderStatus, request.args.get("status"))
    if status is not None:
        qry = qry.filter(Order.status == status)
    orders = qry.order_by(Order.order_date.desc(), Order.id.desc()).all()
    return ok([order_dict(o, with_items=False) for o in orders])


@sales_bp.route("/orders", methods=["POST"])
@role_required(SALES)
def orders_create():
    data = request_data()
    return run_action(
        "Create order",
        lambda: create_order(data, current_user),
        serialize=order_dict,
        success_status=201,
    )


@sales_bp.route("/orders/<int:order_id>", methods=["GET"])
@role_required(SALES)
def orders_detail(order_id: int):
    return ok(order_dict(_own_order(order_id)))


@sales_bp.route("/orders/<int:order_id>", methods=["PUT", "POST"])
@role_required(SALES)
def orders_update(order_id: int):
    data = request_data()
    return run_action(
        "Update order",
        lambda: update_order(_own_order(order_id).id, data),
        serialize=order_dict,
    )


@sales_bp.route("/orders/<int:order_id>/request-confirmation", methods=["POST"])
@role_required(SALES)
def orders_request_confirmation(order_id: int):
    return run_action(
        "Request order confirmation",
        lambda: request_confirmation(_own_order(order_id)),
        serialize=order_dict,
    )


@sales_bp.route("/orders/<int:order_id>/cancel", methods=["POST"])
@role_required(SALES)
def orders_cancel(order_id: int):
    reason = request_data().get("reason")
    return run_action(
        "Cancel order",
        lambda: cancel_order(_own_order(order_id), reason),
        serialize=order_dict,
    )


@sales_bp.route("/order-history")
@role_required(SALES)
def order_history():
    orders = (
        Order.query.filter(
            Order.sales_id == current_user.id,
            Order.status.in_(list(CLOSED_ORDER_STATUSES)),
        )
        .order_by(Order.order_date.desc(), Order.id.desc())
        .all()
    )
    return ok([order_dict(o, with_items=False) for o in orders])


# =========================================================
# Invoices
# =========================================================
@sales_bp.route("/invoice", methods=["GET"])
@role_required(*STAFF)
def invoices_list():
    status = resolve_status(InvoiceStatus, request.args.get("status"))
    invoices = list_invoices(status=status, q=request.args.get("q"))
    return ok([invoice_dict(i, with_items=False) for i in invoices])


@sales_bp.route("/invoice/purchase-orders", methods=["GET"])
@role_required(*STAFF)
def invoices_purchase_orders():
    """Purchase orders that can still be invoiced."""
    pos = (
        PurchaseOrder.query.filter(PurchaseOrder.status == PurchaseOrderStatus.PENDING)
        .order_by(PurchaseOrder.po_date.asc())
        .all()
    )
    usable = [po for po in pos if all(inv.status is InvoiceStatus.CANCELLED for inv in po.invoices)]
    return ok([purchase_order_dict(po) for po in usable])


@sales_bp.route("/invoice", methods=["POST"])
@role_required(*STAFF)
def invoices_create():
    data = request_data()
    return run_action(
        "Create invoice",
        lambda: create_invoice(data, current_user),
        serialize=invoice_dict,
        success_status=201,
        retry_on_conflict=True,
    )


@sales_bp.route("/invoice/<int:invoice_id>", methods=["GET"])
@role_required(*STAFF)
def invoices_detail(invoice_id: int):
    return ok(invoice_dict(get_or_raise(Invoice, invoice_id, "Invoice")))


@sales_bp.route("/invoice/<int:invoice_id>", methods=["PUT", "POST"])
@role_required(*STAFF)
def invoices_update(invoice_id: int):
    data = request_data()
    return run_action(
        "Update invoice",
        lambda: update_invoice(get_or_raise(Invoice, invoice_id, "Invoice"), data, current_user),
        serialize=invoice_dict,
    )


@sales_bp.route("/invoice/<int:invoice_id>", methods=["DELETE"])
@role_required(*STAFF)
def invoices_delete(invoice_id: int):
    return run_action(
        "Delete invoice",
        lambda: delete_invoice(get_or_raise(Invoice, invoice_id, "Invoice"), current_user),
        message="Invoice deleted successfully",
    )


@sales_bp.route("/invoice/<int:invoice_id>/send", methods=["POST"])
@role_required(*STAFF)
def invoices_send(invoice_id: int):
    def _send():
        invoice = get_or_raise(Invoice, invoice_id, "Invoice")
        mark_invoice_sent(invoice)
        return invoice

    return run_action("Send invoice", _send, serialize=invoice_dict)


@sales_bp.route("/invoice/<int:invoice_id>/pdf", methods=["GET"])
@role_required(*STAFF)
def invoices_pdf(invoice_id: int):
    invoice = get_or_raise(Invoice, invoice_id, "Invoice")
    company = company_context(get_active_profile())
    pdf_bytes = render_invoice_pdf(invoice, company, current_app.config.get("CURRENCY", "Rp"))
    return _pdf_response(pdf_bytes, f"{invoice.code}.pdf")


# =========================================================
# Invoice cancellation
# =========================================================
@sales_bp.route("/invoice-cancellation", methods=["GET"])
@role_required(*STAFF)
def cancellation_candidates():
    return ok([invoice_dict(i, with_items=False) for i in cancellable_invoices()])


@sales_bp.route("/invoice-cancellation/history", methods=["GET"])
@role_required(*STAFF)
def cancellation_history():
    return ok([invoice_dict(i, with_items=False) for i in cancelled_invoices()])


@sales_bp.route("/invoice-cancellation/<int:invoice_id>", methods=["POST"])
@role_required(*STAFF)
def cancellation_submit(invoice_id: int):
    reason = request_data().get("reason")
    return run_action(
        "Cancel invoice",
        lambda: cancel_invoice(get_or_raise(Invoice, invoice_id, "Invoice"), reason, current_user),
        serialize=invoice_dict,
    )


# =========================================================
# Deliveries (pengiriman)
# =========================================================
@sales_bp.route("/pengiriman", methods=["GET"])
@role_required(OWNER, HELPER, ADMIN)
def deliveries_list():
    status = resolve_status(DeliveryStatus, request.args.get("status"))
    helper_id = current_user.id if current_user.role == HELPER else parse_int(request.args.get("helper_id"))
    return ok([delivery_dict(d) for d in list_deliveries(status=status, helper_id=helper_id)])


@sales_bp.route("/pengiriman/invoices", methods=["GET"])
@role_required(OWNER, HELPER, ADMIN)
def deliveries_invoices():
    return ok([invoice_dict(i, with_items=False) for i in deliverable_invoices()])


@sales_bp.route("/pengiriman", methods=["POST"])
@role_required(OWNER, HELPER, ADMIN)
def deliveries_create():
    data = request_data()
    return run_action(
        "Create delivery",
        lambda: create_delivery(
            get_or_raise(Invoice, parse_int(data.get("invoice_id")), "Invoice"), data, current_user
        ),
        serialize=delivery_dict,
        success_status=201,
    )


@sales_bp.route("/pengiriman/<int:delivery_id>/status", methods=["POST"])
@role_required(OWNER, HELPER, ADMIN)
def deliveries_status(delivery_id: int):
    data = request_data()
    return run_action(
        "Update delivery status",
        lambda: update_delivery_status(
            get_or_raise(Delivery, delivery_id, "Delivery"),
            parse_delivery_status(data.get("status")),
            data.get("reason") or data.get("return_reason"),
            current_user,
        ),
        serialize=delivery_dict,
    )


@sales_bp.route("/pengiriman/invoice/<int:invoice_id>/redelivery", methods=["POST"])
@role_required(*STAFF)
def deliveries_redelivery(invoice_id: int):
    return run_action(
        "Approve redelivery",
        lambda: approve_redelivery(get_or_raise(Invoice, invoice_id, "Invoice"), current_user),
        serialize=invoice_dict,
    )


@sales_bp.route("/pengiriman/<int:delivery_id>", methods=["DELETE"])
@role_required(*STAFF)
def deliveries_delete(delivery_id: int):
    return run_action(
        "Delete delivery",
        lambda: delete_delivery(get_or_raise(Delivery, delivery_id, "Delivery")),
        message="Delivery deleted successfully",
    )


# =========================================================
# Delivery notes (surat jalan)
# =========================================================
@sales_bp.route("/surat-jalan", methods=["GET"])
@role_required(*STAFF)
def notes_list():
    return ok([delivery_note_dict(n) for n in list_delivery_notes(request.args.get("q"))])


@sales_bp.route("/surat-jalan/eligible", methods=["GET"])
@role_required(*STAFF)
def notes_eligible():
    return ok([invoice_dict(i) for i in eligible_invoices_for_delivery_note()])


@sales_bp.route("/surat-jalan/warehouse-users", methods=["GET"])
@role_required(*STAFF)
def notes_warehouse_users():
    return ok([user_dict(u) for u in warehouse_users()])


@sales_bp.route("/surat-jalan", methods=["POST"])
@role_required(*STAFF)
def notes_create():
    data = request_data()
    return run_action(
        "Create delivery note",
        lambda: create_delivery_note(data, current_user),
        serialize=delivery_note_dict,
        success_status=201,
        retry_on_conflict=True,
    )


@sales_bp.route("/surat-jalan/<int:note_id>", methods=["GET"])
@role_required(*STAFF)
def notes_detail(note_id: int):
    return ok(delivery_note_dict(get_or_raise(DeliveryNote, note_id, "Delivery note")))


@sales_bp.route("/surat-jalan/<int:note_id>", methods=["PUT", "POST"])
@role_required(*STAFF)
def notes_update(note_id: int):
    data = request_data()
    return run_action(
        "Update delivery note",
        lambda: update_delivery_note(get_or_raise(DeliveryNote, note_id, "Delivery note"), data),
        serialize=delivery_note_dict,
    )


@sales_bp.route("/surat-jalan/<int:note_id>", methods=["DELETE"])
@role_required(*STAFF)
def notes_delete(note_id: int):
    return run_action(
        "Delete delivery note",
        lambda: delete_delivery_note(get_or_raise(DeliveryNote, note_id, "Delivery note")),
        message="Delivery note deleted successfully",
    )


@sales_bp.route("/surat-jalan/<int:note_id>/pdf", methods=["GET"])
@role_required(*STAFF)
def notes_pdf(note_id: int):
    note = get_or_raise(DeliveryNote, note_id, "Delivery note")
    pdf_bytes = render_delivery_note_pdf(note, company_context(get_active_profile()))
    return _pdf_response(pdf_bytes, f"surat-jalan-{note.code}.pdf")


# =========================================================
# Swaps (tukar guling)
# =========================================================
@sales_bp.route("/tukar", methods=["GET"])
@role_required(*STAFF)
def swaps_list():
    return ok([swap_dict(s) for s in list_swaps(parse_int(request.args.get("invoice_id")))])


@sales_bp.route("/tukar/validate", methods=["POST"])
@role_required(*STAFF)
def swaps_validate():
    def _validate():
        result = validate_swap_groups(request_data().get("groups"))
        return {
            "groups": [
                {k: g[k] for k in ("group_no", "old_total", "replacement_total", "difference")}
                for g in result["groups"]
            ],
            "total_difference": result["total_difference"],
        }

    return run_action("Validate swap", _validate)


@sales_bp.route("/tukar", methods=["POST"])
@role_required(*STAFF)
def swaps_create():
    data = request_data()
    return run_action(
        "Create swap",
        lambda: create_swap(
            get_or_raise(Invoice, parse_int(data.get("invoice_id")), "Invoice"), data, current_user
        ),
        serialize=swap_dict,
        success_status=201,
        retry_on_conflict=True,
    )


@sales_bp.route("/tukar/<int:swap_id>", methods=["GET"])
@role_required(*STAFF)
def swaps_detail(swap_id: int):
    return ok(swap_dict(get_or_raise(Swap, swap_id, "Swap")))


@sales_bp.route("/tukar/<int:swap_id>", methods=["DELETE"])
@role_required(*STAFF)
def swaps_delete(swap_id: int):
    return run_action(
        "Cancel swap",
        lambda: delete_swap(get_or_raise(Swap, swap_id, "Swap"), current_user),
        serialize=swap_dict,
    )
