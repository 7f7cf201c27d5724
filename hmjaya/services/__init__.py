# hmjaya/services/__init__.py
"""
Business actions. Services validate, mutate and flush, but never commit:
the calling route owns the transaction (see hmjaya.utils.responses.run_action).
"""
from __future__ import annotations

from hmjaya.errors import ActionError, NotFoundError
from hmjaya.extensions import db
from hmjaya.models import can_transition


def get_or_raise(model, obj_id, label: str | None = None):
    obj = db.session.get(model, obj_id) if obj_id is not None else None
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def ensure_transition(current, target, what: str) -> None:
    if current == target:
        return
    if not can_transition(current, target):
        raise ActionError(
            f"Cannot change {what} status from {current.value} to {target.value}"
        )
