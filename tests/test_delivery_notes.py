"""
Surat jalan (delivery notes) and their hold on deliveries.
"""

from __future__ import annotations

import pytest

from hmjaya.errors import ActionError, NotFoundError
from hmjaya.models import DeliveryStatus
from hmjaya.services.deliveries import (
    create_delivery,
    create_delivery_note,
    delete_delivery_note,
    eligible_invoices_for_delivery_note,
    list_delivery_notes,
    update_delivery_status,
)
from hmjaya.services.invoices import cancel_invoice, mark_invoice_sent


@pytest.fixture
def note_invoice(db, make_invoice):
    invoice = make_invoice(use_delivery_note=True)
    mark_invoice_sent(invoice)
    db.session.commit()
    return invoice


def _note(invoice, user, **extra):
    return create_delivery_note(
        {"invoice_id": invoice.id, "driver_name": "Pak Rudi", "vehicle_number": "M 1234 AB", **extra},
        user,
    )


class TestCreateDeliveryNote:

    def test_note_copies_invoice_customer(self, db, note_invoice, warehouse):
        note = _note(note_invoice, warehouse)
        db.session.commit()

        assert note.code.startswith("SJ-")
        assert note.customer_id == note_invoice.customer_id
        assert note.warehouse_user_id == warehouse.id
        assert note_invoice.delivery_note is note

    def test_one_note_per_invoice(self, db, note_invoice, warehouse):
        _note(note_invoice, warehouse)
        db.session.commit()
        with pytest.raises(ActionError, match="Delivery note already exists for this invoice"):
            _note(note_invoice, warehouse)

    def test_invoice_must_opt_in(self, db, make_invoice, warehouse):
        invoice = make_invoice()
        with pytest.raises(ActionError, match="not marked for delivery note usage"):
            _note(invoice, warehouse)

    def test_service_invoice_rejected(self, db, make_invoice, warehouse):
        invoice = make_invoice(type="SERVICE", use_delivery_note=True)
        with pytest.raises(ActionError, match="Only PRODUCT type invoices"):
            _note(invoice, warehouse)

    def test_cancelled_invoice_rejected(self, db, note_invoice, warehouse, owner):
        cancel_invoice(note_invoice, "Salah input", owner)
        with pytest.raises(ActionError, match="cancelled invoice"):
            _note(note_invoice, warehouse)

    def test_driver_and_vehicle_required(self, db, note_invoice, warehouse):
        with pytest.raises(ActionError, match="Driver name and vehicle number are required"):
            _note(note_invoice, warehouse, driver_name="")

    def test_unknown_invoice(self, db, warehouse):
        with pytest.raises(NotFoundError, match="Invoice not found"):
            create_delivery_note({"invoice_id": 999, "driver_name": "A", "vehicle_number": "B"}, warehouse)


class TestEligibility:

    def test_eligible_list_drops_invoices_with_a_note(self, db, note_invoice, warehouse):
        assert eligible_invoices_for_delivery_note() == [note_invoice]
        _note(note_invoice, warehouse)
        db.session.commit()
        assert eligible_invoices_for_delivery_note() == []

    def test_search_by_driver(self, db, note_invoice, warehouse):
        note = _note(note_invoice, warehouse)
        db.session.commit()
        assert list_delivery_notes("rudi") == [note]
        assert list_delivery_notes("nobody") == []


class TestDeliveryHold:

    def test_delivery_waits_for_the_note(self, db, note_invoice, warehouse, owner):
        with pytest.raises(ActionError, match="Create the delivery note"):
            create_delivery(note_invoice, {}, owner)

        _note(note_invoice, warehouse)
        delivery = create_delivery(note_invoice, {}, owner)
        assert delivery.status is DeliveryStatus.PENDING

    def test_note_in_use_cannot_be_deleted(self, db, note_invoice, warehouse, owner):
        note = _note(note_invoice, warehouse)
        delivery = create_delivery(note_invoice, {}, owner)

        with pytest.raises(ActionError, match="in use by a delivery"):
            delete_delivery_note(note)

        update_delivery_status(delivery, DeliveryStatus.RETURNED, reason="Alamat salah", user=owner)
        delete_delivery_note(note)
        db.session.commit()
        assert list_delivery_notes() == []
