# hmjaya/services/field_visits.py
from __future__ import annotations

import logging
from datetime import date

from hmjaya.errors import ActionError, NotFoundError
from hmjaya.extensions import db
from hmjaya.models import Customer, FieldVisit, User, utcnow_naive
from hmjaya.services import get_or_raise
from hmjaya.services.customers import create_customer_from_visit
from hmjaya.utils.parsers import clean_str, parse_float, parse_int

logger = logging.getLogger(__name__)


def list_visits(sales_id: int | None = None):
    qry = FieldVisit.query
    if sales_id:
        qry = qry.filter(FieldVisit.sales_id == sales_id)
    return qry.order_by(FieldVisit.created_at.desc(), FieldVisit.id.desc()).all()


def create_visit(data: dict, user=None) -> tuple[FieldVisit, bool]:
    """Check in at a store. Returns (visit, customer_created)."""
    sales_id = parse_int(data.get("sales_id")) or getattr(user, "id", None)
    customer_id = parse_int(data.get("customer_id"))
    store_name = clean_str(data.get("store_name"))
    purpose = clean_str(data.get("visit_purpose"), 255)

    if not sales_id or not (customer_id or store_name) or not purpose:
        raise ActionError("Missing required fields")

    sales = get_or_raise(User, sales_id, "Sales user")

    created = False
    if customer_id:
        customer = get_or_raise(Customer, customer_id, "Customer")
    else:
        customer = create_customer_from_visit(data)
        created = True

    photos = data.get("photos") or []
    if not isinstance(photos, list):
        raise ActionError("photos must be a list of URLs")

    now = utcnow_naive()
    visit = FieldVisit(
        sales=sales,
        customer=customer,
        visit_purpose=purpose,
        notes=clean_str(data.get("notes")),
        latitude=parse_float(data.get("latitude")) or 0.0,
        longitude=parse_float(data.get("longitude")) or 0.0,
        photos=[str(p) for p in photos],
        visit_date=date.today(),
        check_in_time=now,
    )
    db.session.add(visit)
    db.session.flush()
    logger.info("Field visit %s by user %s at customer %s", visit.id, sales.id, customer.code)
    return visit, created


def delete_visit(visit_id: int) -> list[str]:
    """Delete one visit; returns its photo URLs for removal once the delete is committed."""
    visit = db.session.get(FieldVisit, visit_id) if visit_id else None
    if visit is None:
        raise NotFoundError("Visit not found")
    photos = list(visit.photos or [])
    db.session.delete(visit)
    db.session.flush()
    return photos


def delete_all_visits() -> list[str]:
    photos = []
    for visit in FieldVisit.query.all():
        photos.extend(visit.photos or [])
        db.session.delete(visit)
    db.session.flush()
    return photos
