# hmjaya/utils/codes.py
from __future__ import annotations

from datetime import date

import sqlalchemy as sa

from hmjaya.extensions import db

# Document number prefixes per table
PREFIXES = {
    "order": "ORD",
    "purchase_order": "PO",
    "invoice": "INV",
    "payment": "PAY",
    "delivery_note": "SJ",
    "swap": "TG",
}


def generate_code(model, on: date | None = None) -> str:
    """
    Human-friendly running number per table and year, e.g. INV-2026-0007.
    Not concurrency-safe on its own; the unique constraint on `code` catches clashes.
    """
    prefix = PREFIXES.get(model.__tablename__, model.__tablename__.upper()[:3])
    stem = f"{prefix}-{(on or date.today()).year}-"

    count = (
        db.session.query(sa.func.count(model.id))
        .filter(model.code.like(f"{stem}%"))
        .scalar()
        or 0
    )
    n = count + 1
    # Deleted rows leave gaps; skip forward to the first free number
    while db.session.query(model.id).filter(model.code == f"{stem}{n:04d}").first() is not None:
        n += 1
    return f"{stem}{n:04d}"
