# hmjaya/api.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from hmjaya.errors import ActionError
from hmjaya.services.customers import search_customers
from hmjaya.services.field_visits import create_visit, delete_all_visits, delete_visit, list_visits
from hmjaya.services.invoices import search_invoices
from hmjaya.services.receivables import receivables_report
from hmjaya.services.targets import create_target, list_targets
from hmjaya.services.uploads import delete_upload, discard_uploads, store_uploads
from hmjaya.utils.parsers import parse_bool, parse_int
from hmjaya.utils.responses import fail, ok, request_data, run_action
from hmjaya.utils.serializers import customer_dict, field_visit_dict, invoice_dict, target_dict

api_bp = Blueprint("api", __name__, url_prefix="/api")


@api_bp.before_request
@login_required
def require_login():
    """Every /api call needs a session; anonymous callers get a JSON 401."""
    return None


# =========================================================
# Customers
# =========================================================
@api_bp.route("/customers", methods=["GET"])
def customers():
    found = search_customers(
        request.args.get("search"),
        include_inactive=parse_bool(request.args.get("includeInactive")),
    )
    return ok([customer_dict(c) for c in found])


# =========================================================
# Field visits (check-in)
# =========================================================
@api_bp.route("/field-visits", methods=["GET"])
def field_visits_list():
    visits = list_visits(parse_int(request.args.get("salesId")))
    return ok([field_visit_dict(v) for v in visits])


@api_bp.route("/field-visits", methods=["POST"])
def field_visits_create():
    data = request_data()
    created = {}

    def _create():
        visit, customer_created = create_visit(data, current_user)
        created["customer"] = customer_created
        return visit

    response = run_action("Create field visit", _create, serialize=field_visit_dict)
    body, status = response
    if status == 200:
        payload = body.get_json()
        payload["customer_created"] = created["customer"]
        payload["message"] = (
            "Check-in saved. The new store has been added as a customer."
            if created["customer"]
            else "Check-in saved."
        )
        return jsonify(payload), status
    return response


@api_bp.route("/field-visits", methods=["DELETE"])
def field_visits_delete():
    if parse_bool(request.args.get("deleteAll")):
        return run_action(
            "Delete field visits",
            delete_all_visits,
            after_commit=discard_uploads,
            message="All visits and photos deleted successfully",
        )

    visit_id = parse_int(request.args.get("visitId"))
    if not visit_id:
        return fail("Missing visitId or deleteAll parameter", 400)
    return run_action(
        "Delete field visit",
        lambda: delete_visit(visit_id),
        after_commit=discard_uploads,
        message="Visit and photos deleted successfully",
    )


# =========================================================
# Finance / invoices
# =========================================================
@api_bp.route("/finance/receivables", methods=["GET"])
def finance_receivables():
    return ok(
        receivables_report(
            year=parse_int(request.args.get("year")),
            month=parse_int(request.args.get("month")),
            category=request.args.get("category"),
        )
    )


@api_bp.route("/invoices/search", methods=["GET"])
def invoices_search():
    found = search_invoices(request.args.get("q"))
    return ok([invoice_dict(i, with_items=False) for i in found])


# =========================================================
# Sales targets
# =========================================================
@api_bp.route("/targets", methods=["GET"])
def targets_list():
    return run_action(
        "List sales targets",
        lambda: list_targets(parse_int(request.args.get("userId")), request.args.get("period")),
        serialize=lambda targets: [target_dict(t) for t in targets],
    )


@api_bp.route("/targets", methods=["POST"])
def targets_create():
    data = request_data()
    return run_action("Create sales target", lambda: create_target(data), serialize=target_dict, success_status=201)


# =========================================================
# Uploads
# =========================================================
@api_bp.route("/upload", methods=["POST"])
def upload():
    try:
        urls = store_uploads(request.files.getlist("files"))
    except ActionError as exc:
        return fail(exc.message, exc.status_code)
    except OSError as exc:
        current_app.logger.exception("Upload failed")
        return fail(f"Upload failed: {exc}", 500)
    return jsonify({"success": True, "files": urls}), 200


@api_bp.route("/upload", methods=["DELETE"])
def upload_delete():
    try:
        delete_upload(request.args.get("pathname") or "")
    except ActionError as exc:
        return fail(exc.message, exc.status_code)
    except OSError:
        current_app.logger.exception("Failed to delete uploaded file")
        return fail("Failed to delete file", 500)
    return jsonify({"success": True}), 200
