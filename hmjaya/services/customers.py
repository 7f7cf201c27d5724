# hmjaya/services/customers.py
from __future__ import annotations

import time

import sqlalchemy as sa

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import Customer, DeliveryNote, FieldVisit, Invoice, Order
from hmjaya.services import get_or_raise
from hmjaya.utils.parsers import clean_str, parse_bool, parse_float

CUSTOMER_CODE_MAXLEN = 40
CUSTOMER_NAME_MAXLEN = 160
CUSTOMER_EMAIL_MAXLEN = 120
CUSTOMER_PHONE_MAXLEN = 30
CUSTOMER_ADDRESS_MAXLEN = 255
CUSTOMER_CITY_MAXLEN = 80


def search_customers(search: str | None = None, include_inactive: bool = False, limit: int | None = None):
    qry = Customer.query
    if not include_inactive:
        qry = qry.filter(Customer.is_active.is_(True))

    q = (search or "").strip()
    if q:
        like = f"%{q}%"
        qry = qry.filter(
            sa.or_(
                Customer.name.ilike(like),
                Customer.address.ilike(like),
                Customer.email.ilike(like),
                Customer.code.ilike(like),
                Customer.phone.ilike(like),
            )
        )

    qry = qry.order_by(Customer.name.asc())
    if limit:
        qry = qry.limit(limit)
    return qry.all()


def _apply_fields(customer: Customer, data: dict, *, partial: bool) -> None:
    fields = {
        "code": CUSTOMER_CODE_MAXLEN,
        "name": CUSTOMER_NAME_MAXLEN,
        "email": CUSTOMER_EMAIL_MAXLEN,
        "phone": CUSTOMER_PHONE_MAXLEN,
        "address": CUSTOMER_ADDRESS_MAXLEN,
        "city": CUSTOMER_CITY_MAXLEN,
    }
    for field, maxlen in fields.items():
        if partial and field not in data:
            continue
        raw = (str(data.get(field) or "")).strip()
        if len(raw) > maxlen:
            raise ActionError(f"Customer {field} must be at most {maxlen} characters")
        setattr(customer, field, raw or None)

    for field in ("latitude", "longitude"):
        if field in data:
            setattr(customer, field, parse_float(data.get(field)))

    if "is_active" in data:
        customer.is_active = parse_bool(data.get("is_active"), default=True)

    for required in ("code", "name", "address", "city"):
        if not getattr(customer, required):
            raise ActionError(f"Customer {required} is required")


def create_customer(data: dict) -> Customer:
    customer = Customer(is_active=True)
    _apply_fields(customer, data, partial=False)
    db.session.add(customer)
    db.session.flush()
    return customer


def update_customer(customer_id: int, data: dict) -> Customer:
    customer = get_or_raise(Customer, customer_id, "Customer")
    _apply_fields(customer, data, partial=True)
    db.session.flush()
    return customer


def toggle_customer_status(customer_id: int) -> Customer:
    customer = get_or_raise(Customer, customer_id, "Customer")
    customer.is_active = not customer.is_active
    db.session.flush()
    return customer


def customer_has_transactions(customer_id: int) -> bool:
    for model in (Order, Invoice, DeliveryNote, FieldVisit):
        if db.session.query(model.id).filter(model.customer_id == customer_id).first() is not None:
            return True
    return False


def delete_customer(customer_id: int) -> None:
    customer = get_or_raise(Customer, customer_id, "Customer")
    if customer_has_transactions(customer.id):
        raise ActionError(
            "Cannot delete a customer that has transactions. "
            "Remove the related orders, invoices, delivery notes and visits first."
        )
    db.session.delete(customer)
    db.session.flush()


def generate_walk_in_code() -> str:
    """CUST-<epoch ms>, used when a sales rep registers a new store during a visit."""
    return f"CUST-{int(time.time() * 1000)}"


def create_customer_from_visit(data: dict) -> Customer:
    store_name = clean_str(data.get("store_name"), CUSTOMER_NAME_MAXLEN)
    address = clean_str(data.get("store_address"), CUSTOMER_ADDRESS_MAXLEN)
    phone = clean_str(data.get("store_phone"), CUSTOMER_PHONE_MAXLEN)
    city = clean_str(data.get("store_city"), CUSTOMER_CITY_MAXLEN)

    if not (store_name and address and phone and city):
        raise ActionError("Name, address, phone and city are required for a new store")

    customer = Customer(
        code=generate_walk_in_code(),
        name=store_name,
        address=address,
        phone=phone,
        city=city,
        latitude=parse_float(data.get("latitude")),
        longitude=parse_float(data.get("longitude")),
        is_active=True,
    )
    db.session.add(customer)
    db.session.flush()
    return customer
