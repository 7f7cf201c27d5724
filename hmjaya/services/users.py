# hmjaya/services/users.py
from __future__ import annotations

import sqlalchemy as sa

from hmjaya.constants.roles import ROLES, WAREHOUSE_STAFF_ROLES, normalize_role
from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import User, utcnow_naive
from hmjaya.services import get_or_raise
from hmjaya.utils.parsers import clean_str, parse_bool
from hmjaya.utils.passwords import hash_password, validate_password, verify_password


def list_users(q: str | None = None, role: str | None = None, status: str | None = None):
    qry = User.query

    q = (q or "").strip()
    if q:
        like = f"%{q.lower()}%"
        qry = qry.filter(
            sa.or_(
                db.func.lower(User.name).like(like),
                db.func.lower(User.email).like(like),
                db.func.lower(User.phone).like(like),
            )
        )

    role = normalize_role(role)
    if role:
        qry = qry.filter(User.role == role)

    status = (status or "").strip().lower()
    if status in ("active", "inactive"):
        qry = qry.filter(User.is_active.is_(status == "active"))

    return qry.order_by(User.id.desc()).all()


def warehouse_users():
    return (
        User.query.filter(User.role.in_(WAREHOUSE_STAFF_ROLES), User.is_active.is_(True))
        .order_by(User.name.asc())
        .all()
    )


def _clean_role(value) -> str:
    role = normalize_role(value)
    if role not in ROLES:
        raise ActionError(f"Unknown role: {value}")
    return role


def _set_password(user: User, password: str) -> None:
    ok, msg = validate_password(password)
    if not ok:
        raise ActionError(msg)
    user.password_hash = hash_password(password)
    user.password_changed_at = utcnow_naive()


def create_user(data: dict) -> User:
    name = clean_str(data.get("name"), 120)
    email = (clean_str(data.get("email"), 120) or "").lower()
    password = data.get("password") or ""

    if not name or not email or not data.get("role") or not password:
        raise ActionError("Name, email, role and password are required")

    if User.query.filter(db.func.lower(User.email) == email).first():
        raise ActionError("Email is already registered")

    user = User(
        name=name,
        email=email,
        phone=clean_str(data.get("phone"), 30),
        role=_clean_role(data.get("role")),
        is_active=True,
        must_change_password=parse_bool(data.get("must_change_password"), default=True),
    )
    _set_password(user, password)
    db.session.add(user)
    db.session.flush()
    return user


def update_user(user_id: int, data: dict, acting_user=None) -> User:
    user = get_or_raise(User, user_id, "User")

    if "name" in data:
        user.name = clean_str(data.get("name"), 120) or user.name
    if "phone" in data:
        user.phone = clean_str(data.get("phone"), 30)
    if "role" in data:
        user.role = _clean_role(data.get("role"))
    if "is_active" in data:
        is_active = parse_bool(data.get("is_active"), default=True)
        if not is_active and acting_user is not None and acting_user.id == user.id:
            raise ActionError("You cannot deactivate your own account")
        user.is_active = is_active
    if data.get("password"):
        _set_password(user, data["password"])
        user.must_change_password = True

    db.session.flush()
    return user


def change_own_password(user: User, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ActionError("Current and new password are required")
    if not verify_password(user.password_hash, current_password):
        raise ActionError("Current password is incorrect")
    if verify_password(user.password_hash, new_password):
        raise ActionError("New password must be different from the current password")
    _set_password(user, new_password)
    user.must_change_password = False
    db.session.flush()
