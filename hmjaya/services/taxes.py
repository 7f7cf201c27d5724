# hmjaya/services/taxes.py
from __future__ import annotations

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import Tax
from hmjaya.services import get_or_raise
from hmjaya.utils.parsers import clean_str, parse_bool, parse_float


def get_active_tax() -> Tax | None:
    return Tax.query.filter(Tax.is_active.is_(True)).order_by(Tax.id.desc()).first()


def active_tax_percentage() -> float:
    tax = get_active_tax()
    return tax.percentage if tax else 0.0


def _deactivate_others(keep_id: int | None = None) -> None:
    qry = Tax.query.filter(Tax.is_active.is_(True))
    if keep_id is not None:
        qry = qry.filter(Tax.id != keep_id)
    qry.update({Tax.is_active: False}, synchronize_session="fetch")


def _clean_nominal(value) -> str:
    pct = parse_float(value)
    if pct is None or pct < 0 or pct > 100:
        raise ActionError("Tax nominal must be a percentage between 0 and 100")
    # "11.0" -> "11"
    return f"{pct:g}"


def create_tax(data: dict) -> Tax:
    nominal = _clean_nominal(data.get("nominal"))
    is_active = parse_bool(data.get("is_active"))

    if is_active:
        _deactivate_others()

    tax = Tax(nominal=nominal, notes=clean_str(data.get("notes"), 255), is_active=is_active)
    db.session.add(tax)
    db.session.flush()
    return tax


def update_tax(tax_id: int, data: dict) -> Tax:
    tax = get_or_raise(Tax, tax_id, "Tax")

    if "nominal" in data:
        tax.nominal = _clean_nominal(data.get("nominal"))
    if "notes" in data:
        tax.notes = clean_str(data.get("notes"), 255)
    if "is_active" in data:
        is_active = parse_bool(data.get("is_active"))
        if is_active:
            _deactivate_others(keep_id=tax.id)
        tax.is_active = is_active

    db.session.flush()
    return tax


def delete_tax(tax_id: int) -> None:
    tax = get_or_raise(Tax, tax_id, "Tax")
    if tax.is_active and Tax.query.filter(Tax.id != tax.id).count() > 0:
        raise ActionError("Activate another tax before deleting the active one")
    db.session.delete(tax)
    db.session.flush()


def list_taxes():
    return Tax.query.order_by(Tax.is_active.desc(), Tax.created_at.desc()).all()
