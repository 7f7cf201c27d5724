"""
Order -> purchase order -> invoice -> payment -> delivery.

Walks the document chain through the services and checks that every status
moves together and that stock is booked exactly once.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from hmjaya.errors import ActionError
from hmjaya.models import (
    DeliveryStatus,
    InvoiceStatus,
    InvoiceType,
    OrderStatus,
    PaidStatus,
    PaymentStatus,
    PurchaseOrderStatus,
    StockMovement,
    StockMovementType,
)
from hmjaya.services.deliveries import approve_redelivery, create_delivery, update_delivery_status
from hmjaya.services.invoices import (
    cancel_invoice,
    create_invoice,
    delete_invoice,
    effective_status,
    mark_invoice_sent,
    update_invoice,
)
from hmjaya.services.orders import cancel_order, confirm_order, create_order, request_confirmation
from hmjaya.services.payments import delete_payment, record_payment, set_payment_status


@pytest.fixture
def order(db, customer, products, sales_user):
    small, _ = products
    order = create_order(
        {"customer_id": customer.id, "items": [{"product_id": small.id, "quantity": 2}]},
        sales_user,
    )
    db.session.commit()
    return order


@pytest.fixture
def invoiced(db, order, owner):
    """Confirmed order with its PO invoiced at 0% tax: 2 x 12.000 = 24.000."""
    po = confirm_order(order, owner)
    invoice = create_invoice({"purchase_order_id": po.id, "tax_percentage": 0}, owner)
    db.session.commit()
    return order, po, invoice


# =============================================================================
# Orders and purchase orders
# =============================================================================


class TestOrders:

    def test_order_takes_selling_price(self, order):
        assert order.status is OrderStatus.NEW
        assert order.code.startswith(f"ORD-{date.today().year}-")
        assert order.items[0].price == 12000.0
        assert order.total_amount == 24000.0

    def test_order_needs_items(self, db, customer, sales_user):
        with pytest.raises(ActionError, match="at least one item"):
            create_order({"customer_id": customer.id, "items": []}, sales_user)

    def test_confirm_raises_purchase_order(self, db, order, owner):
        request_confirmation(order)
        po = confirm_order(order, owner)

        assert order.status is OrderStatus.PROCESSING
        assert po.status is PurchaseOrderStatus.PENDING
        assert po.total_amount == order.total_amount
        assert po.payment_deadline == po.po_date + timedelta(days=30)
        assert [(i.product_id, i.quantity) for i in po.items] == [(i.product_id, i.quantity) for i in order.items]

    def test_order_cannot_be_confirmed_twice(self, db, order, owner):
        confirm_order(order, owner)
        with pytest.raises(ActionError, match="PROCESSING to PROCESSING|already exists"):
            confirm_order(order, owner)

    def test_cancelled_order_is_terminal(self, db, order, owner):
        cancel_order(order, "customer changed mind")
        assert order.status is OrderStatus.CANCELLED
        with pytest.raises(ActionError):
            confirm_order(order, owner)

    def test_order_with_live_invoice_cannot_be_cancelled(self, invoiced):
        order, _, _ = invoiced
        with pytest.raises(ActionError, match="Cancel the invoice"):
            cancel_order(order)


# =============================================================================
# Invoices
# =============================================================================


class TestInvoices:

    def test_invoice_from_purchase_order(self, invoiced, products):
        order, po, invoice = invoiced
        small, _ = products

        assert invoice.status is InvoiceStatus.DRAFT
        assert invoice.payment_status is PaymentStatus.UNPAID
        assert invoice.customer_id == order.customer_id
        assert invoice.total_amount == 24000.0
        assert invoice.remaining_amount == 24000.0
        assert invoice.due_date == po.payment_deadline
        assert po.status is PurchaseOrderStatus.PROCESSING
        assert small.current_stock == 48
        assert invoice.stock_committed is True

    def test_active_tax_applies_by_default(self, db, owner, customer, products, active_tax):
        small, _ = products
        invoice = create_invoice(
            {"customer_id": customer.id, "items": [{"product_id": small.id, "quantity": 1, "price": 10000}]},
            owner,
        )
        assert invoice.tax_percentage == 11.0
        assert invoice.total_amount == 11100.0

    def test_purchase_order_can_only_be_invoiced_once(self, db, invoiced, owner):
        _, po, _ = invoiced
        with pytest.raises(ActionError, match="cannot be invoiced|already has an invoice"):
            create_invoice({"purchase_order_id": po.id}, owner)

    def test_insufficient_stock(self, db, owner, customer, products):
        small, _ = products
        with pytest.raises(ActionError, match="Insufficient stock"):
            create_invoice({"customer_id": customer.id, "items": [{"product_id": small.id, "quantity": 51}]}, owner)

    def test_service_invoice_does_not_touch_stock(self, db, make_invoice, products):
        small, _ = products
        invoice = make_invoice(type="SERVICE")
        assert invoice.type is InvoiceType.SERVICE
        assert invoice.stock_committed is False
        assert small.current_stock == 50

    def test_editing_lines_rebooks_stock(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice()
        update_invoice(invoice, {"items": [{"product_id": large.id, "quantity": 3}]}, owner)
        db.session.commit()

        assert small.current_stock == 50
        assert large.current_stock == 27
        assert invoice.total_amount == 69000.0

    @pytest.mark.parametrize(
        "changes",
        [{"shipping_cost": 0}, {"discount_type": "PERCENTAGE"}, {"notes": "Kirim sore"}],
    )
    def test_no_edits_once_paid_into(self, db, make_invoice, owner, changes):
        invoice = make_invoice(shipping_cost=5000, discount=1000)
        mark_invoice_sent(invoice)
        record_payment(invoice, {"amount": 20000, "method": "CASH"}, owner)
        db.session.commit()

        with pytest.raises(ActionError, match="once payments have been recorded"):
            update_invoice(invoice, changes, owner)
        assert invoice.total_amount == 28000.0
        assert invoice.remaining_amount == 8000.0
        assert invoice.payment_status is PaymentStatus.UNPAID
        assert invoice.status is InvoiceStatus.SENT

    def test_due_date_before_invoice_date(self, db, owner, customer, products):
        small, _ = products
        with pytest.raises(ActionError, match="Due date cannot be before"):
            create_invoice(
                {
                    "customer_id": customer.id,
                    "items": [{"product_id": small.id, "quantity": 1}],
                    "invoice_date": "2026-03-10",
                    "due_date": "2026-03-01",
                },
                owner,
            )

    def test_delete_releases_stock_and_reopens_po(self, db, invoiced, products, owner):
        _, po, invoice = invoiced
        small, _ = products
        delete_invoice(invoice, owner)
        db.session.commit()

        assert small.current_stock == 50
        assert po.status is PurchaseOrderStatus.PENDING

    def test_overdue_is_derived_not_stored(self, db, make_invoice):
        invoice = make_invoice(invoice_date="2026-01-01", due_date="2026-01-31")
        mark_invoice_sent(invoice)

        assert effective_status(invoice, today=date(2026, 2, 1)) is InvoiceStatus.OVERDUE
        assert effective_status(invoice, today=date(2026, 1, 31)) is InvoiceStatus.SENT
        assert invoice.status is InvoiceStatus.SENT

    def test_mark_sent_only_moves_drafts(self, db, make_invoice):
        invoice = make_invoice()
        assert mark_invoice_sent(invoice) is True
        assert mark_invoice_sent(invoice) is False


# =============================================================================
# Payments
# =============================================================================


class TestPayments:

    def test_partial_payment_stays_pending(self, db, invoiced, owner):
        _, _, invoice = invoiced
        payment = record_payment(invoice, {"amount": 10000, "method": "CASH"}, owner)

        assert payment.status is PaidStatus.PENDING
        assert payment.code.startswith("PAY-")
        assert invoice.paid_amount == 10000.0
        assert invoice.remaining_amount == 14000.0
        assert invoice.payment_status is PaymentStatus.UNPAID
        assert invoice.status is InvoiceStatus.DRAFT

    def test_overpayment_refused(self, db, invoiced, owner):
        _, _, invoice = invoiced
        with pytest.raises(ActionError, match="exceeds the remaining balance"):
            record_payment(invoice, {"amount": 30000, "method": "CASH"}, owner)

    def test_cheque_needs_number(self, db, invoiced, owner):
        _, _, invoice = invoiced
        with pytest.raises(ActionError, match="Cheque number"):
            record_payment(invoice, {"amount": 1000, "method": "CEK"}, owner)

    def test_unknown_method(self, db, invoiced, owner):
        _, _, invoice = invoiced
        with pytest.raises(ActionError, match="Unknown payment method"):
            record_payment(invoice, {"amount": 1000, "method": "BITCOIN"}, owner)

    def test_full_payment_marks_paid(self, db, invoiced, owner):
        _, _, invoice = invoiced
        payment = record_payment(invoice, {"amount": 24000, "method": "TRANSFER_BANK", "bank_name": "BCA"}, owner)

        assert payment.status is PaidStatus.CLEARED
        assert invoice.payment_status is PaymentStatus.PAID
        assert invoice.status is InvoiceStatus.PAID
        assert invoice.remaining_amount == 0.0

    def test_fully_paid_invoice_takes_no_more_payments(self, db, invoiced, owner):
        _, _, invoice = invoiced
        record_payment(invoice, {"amount": 24000, "method": "CASH"}, owner)
        with pytest.raises(ActionError, match="already fully paid"):
            record_payment(invoice, {"amount": 1, "method": "CASH"}, owner)

    def test_withdrawn_payment_reopens_invoice(self, db, invoiced, owner):
        _, _, invoice = invoiced
        payment = record_payment(invoice, {"amount": 24000, "method": "CASH"}, owner)
        set_payment_status(payment, PaidStatus.CANCELED)

        assert invoice.payment_status is PaymentStatus.UNPAID
        assert invoice.status is InvoiceStatus.SENT
        assert invoice.remaining_amount == 24000.0

    def test_deleting_payment_recomputes_balance(self, db, invoiced, owner):
        _, _, invoice = invoiced
        payment = record_payment(invoice, {"amount": 4000, "method": "CASH"}, owner)
        db.session.commit()
        delete_payment(payment)

        assert invoice.paid_amount == 0.0
        assert invoice.remaining_amount == 24000.0

    def test_paid_service_invoice_completes(self, db, make_invoice, owner):
        invoice = make_invoice(type="SERVICE")
        record_payment(invoice, {"amount": invoice.total_amount, "method": "CASH"}, owner)
        assert invoice.status is InvoiceStatus.COMPLETED


# =============================================================================
# Full chain
# =============================================================================


class TestCompletion:

    def test_paid_and_delivered_completes_every_document(self, db, invoiced, owner, helper):
        order, po, invoice = invoiced

        record_payment(invoice, {"amount": 24000, "method": "CASH"}, owner)
        delivery = create_delivery(invoice, {"helper_id": helper.id}, owner)
        assert po.status is PurchaseOrderStatus.READY_FOR_DELIVERY

        update_delivery_status(delivery, DeliveryStatus.IN_TRANSIT)
        update_delivery_status(delivery, DeliveryStatus.DELIVERED)
        db.session.commit()

        assert delivery.delivered_at is not None
        assert invoice.status is InvoiceStatus.COMPLETED
        assert po.status is PurchaseOrderStatus.COMPLETED
        assert order.status is OrderStatus.COMPLETED
        assert order.completed_at is not None

    def test_delivered_then_paid_completes(self, db, invoiced, owner):
        order, _, invoice = invoiced
        mark_invoice_sent(invoice)
        delivery = create_delivery(invoice, {}, owner)
        update_delivery_status(delivery, DeliveryStatus.DELIVERED)
        assert invoice.status is InvoiceStatus.DELIVERED
        assert order.status is OrderStatus.PROCESSING

        record_payment(invoice, {"amount": 24000, "method": "CASH"}, owner)
        assert invoice.status is InvoiceStatus.COMPLETED
        assert order.status is OrderStatus.COMPLETED

    def test_completed_invoice_cannot_be_cancelled(self, db, make_invoice, owner):
        invoice = make_invoice(type="SERVICE")
        record_payment(invoice, {"amount": invoice.total_amount, "method": "CASH"}, owner)
        with pytest.raises(ActionError, match="Completed invoices cannot be cancelled"):
            cancel_invoice(invoice, "late", owner)


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:

    def test_cancel_requires_reason(self, db, invoiced, owner):
        _, _, invoice = invoiced
        with pytest.raises(ActionError, match="reason is required"):
            cancel_invoice(invoice, "  ", owner)

    def test_cancel_restores_stock_and_closes_chain(self, db, invoiced, products, owner):
        order, po, invoice = invoiced
        small, _ = products
        payment = record_payment(invoice, {"amount": 5000, "method": "CASH"}, owner)

        cancel_invoice(invoice, "Salah input", owner)
        db.session.commit()

        assert invoice.status is InvoiceStatus.CANCELLED
        assert invoice.is_canceled is True
        assert invoice.canceled_by_id == owner.id
        assert invoice.paid_amount == 0.0
        assert payment.status is PaidStatus.CANCELED
        assert po.status is PurchaseOrderStatus.CANCELLED
        assert order.status is OrderStatus.CANCELLED
        assert small.current_stock == 50

        returned = StockMovement.query.filter_by(type=StockMovementType.RETURN_IN).one()
        assert returned.reference == invoice.code

    def test_cancelled_invoice_is_terminal(self, db, invoiced, owner):
        _, _, invoice = invoiced
        cancel_invoice(invoice, "Salah input", owner)

        with pytest.raises(ActionError, match="already been cancelled"):
            cancel_invoice(invoice, "again", owner)
        with pytest.raises(ActionError, match="cancelled invoice"):
            record_payment(invoice, {"amount": 1000, "method": "CASH"}, owner)
        with pytest.raises(ActionError, match="can no longer be edited"):
            update_invoice(invoice, {"notes": "x"}, owner)
        assert mark_invoice_sent(invoice) is False
        assert invoice.status is InvoiceStatus.CANCELLED

    def test_cancel_blocked_while_delivery_is_active(self, db, invoiced, owner):
        _, _, invoice = invoiced
        mark_invoice_sent(invoice)
        create_delivery(invoice, {}, owner)
        with pytest.raises(ActionError, match="currently being delivered"):
            cancel_invoice(invoice, "Salah input", owner)


# =============================================================================
# Failed deliveries
# =============================================================================


class TestRedelivery:

    def test_returned_delivery_releases_stock(self, db, invoiced, products, owner):
        _, _, invoice = invoiced
        small, _ = products
        mark_invoice_sent(invoice)
        delivery = create_delivery(invoice, {}, owner)

        with pytest.raises(ActionError, match="reason is required"):
            update_delivery_status(delivery, DeliveryStatus.RETURNED)

        update_delivery_status(delivery, DeliveryStatus.RETURNED, reason="Toko tutup", user=owner)
        assert invoice.status is InvoiceStatus.RETURNED
        assert small.current_stock == 50
        assert invoice.stock_committed is False

    def test_redelivery_needs_approval(self, db, invoiced, products, owner):
        _, _, invoice = invoiced
        small, _ = products
        mark_invoice_sent(invoice)
        delivery = create_delivery(invoice, {}, owner)
        update_delivery_status(delivery, DeliveryStatus.CANCELLED, reason="Truk rusak", user=owner)

        with pytest.raises(ActionError, match="cannot be delivered"):
            create_delivery(invoice, {}, owner)

        approve_redelivery(invoice, owner)
        assert invoice.status is InvoiceStatus.SENT
        assert invoice.allow_redelivery is True
        assert small.current_stock == 48

        second = create_delivery(invoice, {}, owner)
        assert second.status is DeliveryStatus.PENDING
        assert invoice.allow_redelivery is False

    def test_only_one_active_delivery(self, db, invoiced, owner):
        _, _, invoice = invoiced
        mark_invoice_sent(invoice)
        create_delivery(invoice, {}, owner)
        with pytest.raises(ActionError, match="already has an active delivery"):
            create_delivery(invoice, {}, owner)

    def test_draft_invoice_cannot_be_delivered(self, db, invoiced, owner):
        _, _, invoice = invoiced
        with pytest.raises(ActionError, match="DRAFT and cannot be delivered"):
            create_delivery(invoice, {}, owner)
