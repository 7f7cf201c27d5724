# hmjaya/utils/responses.py
from __future__ import annotations

from typing import Any, Callable

from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hmjaya.errors import ActionError
from hmjaya.extensions import db

# Constraint name (Postgres) or table.column (SQLite) -> message for the user
UNIQUE_MESSAGES = (
    (("customer_code_key", "customer.code"), "Customer code is already in use"),
    (("user_email_key", "user.email"), "Email is already registered"),
    (("product_code_key", "product.code"), "Product code is already in use"),
    (("category_code_key", "category.code"), "Category code is already in use"),
    (("company_profile_code_key", "company_profile.code"), "Company profile code is already in use"),
    (("invoice_code_key", "invoice.code"), "Invoice code is already in use"),
    (("delivery_note_invoice_id_key", "delivery_note.invoice_id"), "Delivery note already exists for this invoice"),
    (("delivery_note_code_key", "delivery_note.code"), "Delivery note number is already in use"),
    (("purchase_order_order_id_key", "purchase_order.order_id"), "Purchase order already exists for this order"),
    (("sales_target_user_period_key", "sales_target.user_id"), "A target for this user and period already exists"),
)


def ok(data: Any = None, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def fail(error: str, status: int = 400):
    return jsonify({"success": False, "error": error}), status


def integrity_message(exc: IntegrityError) -> str:
    raw = str(getattr(exc, "orig", exc))
    for needles, message in UNIQUE_MESSAGES:
        if any(n in raw for n in needles):
            return message
    if "unique" in raw.lower() or "duplicate" in raw.lower():
        return "A record with the same value already exists"
    return "The change conflicts with related data"


def request_data() -> dict:
    """JSON body, or the form fields for classic form posts."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def run_action(
    action: str,
    fn: Callable[[], Any],
    *,
    serialize: Callable[[Any], Any] | None = None,
    after_commit: Callable[[Any], Any] | None = None,
    success_status: int = 200,
    retry_on_conflict: bool = False,
    **extra,
):
    """
    Run one business action as one transaction and answer with the JSON envelope.
    Services flush; this commits, or rolls back on any failure.

    retry_on_conflict: run once more after a unique-constraint race
    (two users taking the same generated number at the same time).

    after_commit: work outside the database (files on disk), run with the result
    only after a successful commit. Its return value becomes the result.
    """
    attempts = 2 if retry_on_conflict else 1
    for attempt in range(attempts):
        try:
            result = fn()
            db.session.commit()
            break
        except ActionError as exc:
            db.session.rollback()
            return fail(exc.message, exc.status_code)
        except IntegrityError as exc:
            db.session.rollback()
            if attempt + 1 < attempts:
                current_app.logger.info("%s hit a constraint, retrying once", action)
                continue
            current_app.logger.warning("%s hit a constraint: %s", action, getattr(exc, "orig", exc))
            return fail(integrity_message(exc), 409)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("%s failed", action)
            return fail(f"{action} failed.", 500)

    if after_commit is not None:
        result = after_commit(result)
    data = serialize(result) if serialize is not None else result
    return ok(data, success_status, **extra)
