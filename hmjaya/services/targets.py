# hmjaya/services/targets.py
from __future__ import annotations

import calendar
import re
from datetime import date

import sqlalchemy as sa

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import Order, OrderStatus, SalesTarget, User
from hmjaya.services import get_or_raise
from hmjaya.utils.parsers import clean_str, parse_float, parse_int

PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _clean_period(value) -> str:
    period = (str(value or "")).strip()
    if not PERIOD_RE.match(period):
        raise ActionError("Period must look like YYYY-MM")
    return period


def achieved_for(user_id: int, period: str) -> float:
    """Completed order value for the sales user within the period."""
    year, month = (int(p) for p in period.split("-"))
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    total = (
        db.session.query(sa.func.coalesce(sa.func.sum(Order.total_amount), 0.0))
        .filter(
            Order.sales_id == user_id,
            Order.status == OrderStatus.COMPLETED,
            Order.order_date.between(start, end),
        )
        .scalar()
    )
    return float(total or 0.0)


def list_targets(user_id: int | None = None, period: str | None = None):
    qry = SalesTarget.query
    if user_id:
        qry = qry.filter(SalesTarget.user_id == user_id)
    if period:
        qry = qry.filter(SalesTarget.period == _clean_period(period))
    targets = qry.order_by(SalesTarget.period.desc(), SalesTarget.id.desc()).all()
    for t in targets:
        t.achieved_amount = achieved_for(t.user_id, t.period)
    return targets


def create_target(data: dict) -> SalesTarget:
    user_id = parse_int(data.get("user_id"))
    amount = parse_float(data.get("target_amount"))
    if not user_id or amount is None:
        raise ActionError("User, period and target amount are required")
    if amount <= 0:
        raise ActionError("Target amount must be greater than zero")

    user = get_or_raise(User, user_id, "User")
    period = _clean_period(data.get("period"))
    if SalesTarget.query.filter_by(user_id=user.id, period=period).first():
        raise ActionError(f"A target for {user.name} in {period} already exists")

    target = SalesTarget(
        user=user,
        period=period,
        target_amount=amount,
        achieved_amount=achieved_for(user.id, period),
        notes=clean_str(data.get("notes")),
    )
    db.session.add(target)
    db.session.flush()
    return target
