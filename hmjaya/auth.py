# hmjaya/auth.py
from __future__ import annotations

from flask import Blueprint, current_app, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from .constants.roles import default_path_for
from .extensions import db, limiter
from .models import User
from .services.users import change_own_password
from .utils.passwords import (
    is_locked_out,
    register_failed_login,
    register_successful_login,
    verify_password,
)
from .utils.responses import fail, ok, request_data, run_action
from .utils.serializers import user_dict

auth = Blueprint("auth", __name__)


def _session_payload(user) -> dict:
    return {
        "user": user_dict(user),
        "redirect": default_path_for(user.role),
        "must_change_password": bool(user.must_change_password),
    }


# =========================================================
# Sign in / sign out
# =========================================================
@auth.route("/sign-in", methods=["GET", "POST"], endpoint="login")
@limiter.limit("10 per minute", methods=["POST"])
def login():
    if getattr(current_user, "is_authenticated", False):
        return ok(_session_payload(current_user))

    if request.method == "GET":
        return ok({"authenticated": False})

    data = request_data()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return fail("Email and password are required.", 400)

    user = User.query.filter(db.func.lower(User.email) == email).first()

    if user and is_locked_out(user.locked_until):
        return fail("Too many failed attempts. Try again later.", 423)

    if user and user.is_active is False:
        return fail("This account is inactive. Contact an admin.", 403)

    if not user or not verify_password(user.password_hash, password):
        if user:
            locked = register_failed_login(
                user,
                current_app.config.get("LOGIN_MAX_ATTEMPTS", 5),
                current_app.config.get("LOGIN_LOCKOUT_MINUTES", 10),
            )
            try:
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception("Failed to record login failure for user %s", user.id)
            if locked:
                current_app.logger.warning("User %s locked out after repeated failed logins", user.id)
        return fail("Invalid email or password", 401)

    register_successful_login(user)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record login for user %s", user.id)
        return fail("Sign in failed. Please try again.", 500)

    login_user(user)
    current_app.logger.info("User %s signed in", user.id)
    return ok(_session_payload(user))


@auth.route("/sign-out", methods=["POST"])
@login_required
def logout():
    logout_user()
    return ok({"redirect": "/sign-in"})


# =========================================================
# Change password (logged-in users)
# =========================================================
@auth.route("/change-password", methods=["POST"])
@login_required
def change_password():
    data = request_data()
    current_password = (data.get("current_password") or "").strip()
    new_password = (data.get("new_password") or "").strip()
    confirm_password = (data.get("confirm_password") or new_password).strip()

    if not current_password or not new_password:
        return fail("All fields are required.", 400)
    if new_password != confirm_password:
        return fail("New password and confirmation do not match.", 400)

    user = current_user._get_current_object()
    return run_action(
        "Change password",
        lambda: change_own_password(user, current_password, new_password),
        serialize=lambda _: {"redirect": default_path_for(user.role)},
    )
