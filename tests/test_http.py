"""
JSON surface: envelope, the document chain over HTTP, uploads and PDFs.
"""

from __future__ import annotations

import io
import os

import pytest

from hmjaya.models import FieldVisit
from hmjaya.services.field_visits import create_visit, delete_visit
from hmjaya.services.orders import create_order


@pytest.fixture
def owner_client(client, owner, login_as):
    login_as(owner)
    return client


@pytest.fixture
def order(db, customer, products, sales_user):
    small, _ = products
    order = create_order(
        {"customer_id": customer.id, "items": [{"product_id": small.id, "quantity": 2}]},
        sales_user,
    )
    db.session.commit()
    return order


# =============================================================================
# Envelope
# =============================================================================


class TestEnvelope:

    def test_api_needs_a_session(self, client):
        resp = client.get("/api/customers")
        assert resp.status_code == 401
        assert resp.get_json() == {"success": False, "error": "Unauthorized"}

    def test_list_is_wrapped(self, owner_client, customer):
        resp = owner_client.get("/api/customers?search=berkah")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["success"] is True
        assert [c["code"] for c in body["data"]] == ["CUST-001"]

    def test_missing_record_is_json_404(self, owner_client):
        resp = owner_client.get("/sales/invoice/999")
        assert resp.status_code == 404
        assert resp.get_json() == {"success": False, "error": "Invoice not found"}

    def test_business_error_is_json_400(self, owner_client, customer):
        resp = owner_client.post("/sales/invoice", json={"customer_id": customer.id, "items": []})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invoice must contain at least one item"

    def test_unique_violation_is_409(self, owner_client, customer):
        resp = owner_client.post(
            "/management/kustomer",
            json={"code": "CUST-001", "name": "Toko Lain", "address": "Jl. Lain", "city": "Sampang"},
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "Customer code is already in use"

    def test_field_visit_delete_needs_a_target(self, owner_client):
        resp = owner_client.delete("/api/field-visits")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Missing visitId or deleteAll parameter"


# =============================================================================
# Document chain
# =============================================================================


class TestDocumentChain:

    def test_order_to_completed_invoice(self, owner_client, order, helper):
        resp = owner_client.post(f"/purchasing/daftar-po/orders/{order.id}/confirm")
        assert resp.status_code == 201
        po = resp.get_json()["data"]
        assert po["status"] == "PENDING"

        resp = owner_client.post("/sales/invoice", json={"purchase_order_id": po["id"], "tax_percentage": 0})
        assert resp.status_code == 201
        invoice = resp.get_json()["data"]
        assert invoice["total_amount"] == 24000.0
        assert invoice["status"] == "DRAFT"

        resp = owner_client.post(f"/sales/invoice/{invoice['id']}/send")
        assert resp.get_json()["data"]["status"] == "SENT"

        resp = owner_client.post(
            "/purchasing/pembayaran",
            json={"invoice_id": invoice["id"], "amount": 24000, "method": "CASH"},
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["status"] == "CLEARED"

        resp = owner_client.post("/sales/pengiriman", json={"invoice_id": invoice["id"], "helper_id": helper.id})
        assert resp.status_code == 201
        delivery = resp.get_json()["data"]

        resp = owner_client.post(f"/sales/pengiriman/{delivery['id']}/status", json={"status": "DELIVERED"})
        assert resp.status_code == 200

        detail = owner_client.get(f"/sales/invoice/{invoice['id']}").get_json()["data"]
        assert detail["status"] == "COMPLETED"
        assert detail["payment_status"] == "PAID"
        assert detail["payment_status_label"] == "Lunas"

        po_detail = owner_client.get(f"/purchasing/daftar-po/{po['id']}").get_json()["data"]
        assert po_detail["status"] == "COMPLETED"

    def test_overpayment_over_http(self, owner_client, make_invoice):
        invoice = make_invoice()
        resp = owner_client.post(
            "/purchasing/pembayaran",
            json={"invoice_id": invoice.id, "amount": 50000, "method": "CASH"},
        )
        assert resp.status_code == 400
        assert "exceeds the remaining balance" in resp.get_json()["error"]

    def test_cancellation_over_http(self, owner_client, make_invoice):
        invoice = make_invoice()
        resp = owner_client.post(f"/sales/invoice-cancellation/{invoice.id}", json={})
        assert resp.status_code == 400

        resp = owner_client.post(f"/sales/invoice-cancellation/{invoice.id}", json={"reason": "Salah input"})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "CANCELLED"

        history = owner_client.get("/sales/invoice-cancellation/history").get_json()["data"]
        assert [h["id"] for h in history] == [invoice.id]

    def test_dashboard(self, owner_client, make_invoice):
        make_invoice()
        data = owner_client.get("/").get_json()["data"]
        assert data["invoices"] == {"DRAFT": 1}
        assert data["unpaid_invoices"] == 1


# =============================================================================
# PDFs
# =============================================================================


class TestPdfs:

    def test_invoice_pdf(self, owner_client, make_invoice):
        invoice = make_invoice()
        resp = owner_client.get(f"/sales/invoice/{invoice.id}/pdf")
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert f'filename="{invoice.code}.pdf"' in resp.headers["Content-Disposition"]

    def test_pdf_does_not_send_the_invoice(self, owner_client, make_invoice):
        invoice = make_invoice()
        owner_client.get(f"/sales/invoice/{invoice.id}/pdf")
        detail = owner_client.get(f"/sales/invoice/{invoice.id}").get_json()["data"]
        assert detail["status"] == "DRAFT"

    def test_delivery_note_pdf(self, owner_client, make_invoice):
        invoice = make_invoice(use_delivery_note=True)
        owner_client.post(f"/sales/invoice/{invoice.id}/send")

        resp = owner_client.post(
            "/sales/surat-jalan",
            json={"invoice_id": invoice.id, "driver_name": "Pak Rudi", "vehicle_number": "M 1234 AB"},
        )
        assert resp.status_code == 201
        note = resp.get_json()["data"]

        resp = owner_client.get(f"/sales/surat-jalan/{note['id']}/pdf")
        assert resp.status_code == 200
        assert resp.data.startswith(b"%PDF")
        assert f"surat-jalan-{note['code']}.pdf" in resp.headers["Content-Disposition"]

        resp = owner_client.post(
            "/sales/surat-jalan",
            json={"invoice_id": invoice.id, "driver_name": "Pak Rudi", "vehicle_number": "M 1234 AB"},
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Delivery note already exists for this invoice"


# =============================================================================
# Field visits and uploads
# =============================================================================


class TestFieldVisits:

    def test_check_in_at_new_store(self, client, sales_user, login_as):
        login_as(sales_user)
        resp = client.post(
            "/api/field-visits",
            json={
                "store_name": "Toko Baru",
                "store_address": "Jl. Baru 2",
                "store_phone": "0811",
                "store_city": "Sampang",
                "visit_purpose": "Penawaran",
                "latitude": -7.1,
                "longitude": 112.9,
            },
        )
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["customer_created"] is True
        assert body["data"]["sales_id"] == sales_user.id

        visits = client.get(f"/api/field-visits?salesId={sales_user.id}").get_json()["data"]
        assert len(visits) == 1

    def test_check_in_needs_purpose(self, owner_client, customer):
        resp = owner_client.post("/api/field-visits", json={"customer_id": customer.id})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Missing required fields"


class TestUploads:

    def test_upload_serve_and_delete(self, owner_client):
        resp = owner_client.post(
            "/api/upload",
            data={"files": (io.BytesIO(b"\xff\xd8jpeg-bytes"), "toko.jpg")},
            content_type="multipart/form-data",
        )
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["success"] is True
        url = body["files"][0]
        assert url.startswith("/uploads/field-visit-") and url.endswith(".jpg")

        assert owner_client.get(url).data == b"\xff\xd8jpeg-bytes"

        assert owner_client.delete(f"/api/upload?pathname={url}").get_json() == {"success": True}
        assert owner_client.delete(f"/api/upload?pathname={url}").status_code == 404

    def test_upload_needs_files(self, owner_client):
        resp = owner_client.post("/api/upload", data={}, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "No files provided"


class TestVisitPhotos:

    def _upload(self, client) -> str:
        resp = client.post(
            "/api/upload",
            data={"files": (io.BytesIO(b"\xff\xd8toko"), "depan.jpg")},
            content_type="multipart/form-data",
        )
        return resp.get_json()["files"][0]

    def test_photos_survive_a_rolled_back_delete(self, app, db, owner_client, owner, customer):
        url = self._upload(owner_client)
        path = os.path.join(app.config["UPLOAD_DIR"], os.path.basename(url))
        visit, _ = create_visit(
            {"customer_id": customer.id, "visit_purpose": "Penagihan", "photos": [url]}, owner
        )
        db.session.commit()
        visit_id = visit.id

        assert delete_visit(visit_id) == [url]
        db.session.rollback()

        assert os.path.exists(path)
        assert db.session.get(FieldVisit, visit_id).photos == [url]

    def test_committed_delete_removes_photos(self, app, db, owner_client, owner, customer):
        url = self._upload(owner_client)
        path = os.path.join(app.config["UPLOAD_DIR"], os.path.basename(url))
        visit, _ = create_visit(
            {"customer_id": customer.id, "visit_purpose": "Penagihan", "photos": [url]}, owner
        )
        db.session.commit()

        resp = owner_client.delete(f"/api/field-visits?visitId={visit.id}")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == 1
        assert not os.path.exists(path)
        assert FieldVisit.query.count() == 0
