# hmjaya/utils/parsers.py
from __future__ import annotations

from datetime import date, datetime


def parse_float(val):
    try:
        if val is None or str(val).strip() == "":
            return None
        return float(val)
    except (TypeError, ValueError):
        return None


def parse_int(val):
    try:
        if val is None or str(val).strip() == "":
            return None
        return int(val)
    except (TypeError, ValueError):
        return None


def parse_date(val):
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    try:
        if not val:
            return None
        # Accept full ISO timestamps from JS clients too
        return date.fromisoformat(str(val).strip()[:10])
    except (TypeError, ValueError):
        return None


def parse_bool(val, default: bool = False) -> bool:
    if val is None or val == "":
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "yes", "on", "y")


def clean_str(val, maxlen: int | None = None) -> str | None:
    s = (str(val) if val is not None else "").strip()
    if not s:
        return None
    return s[:maxlen] if maxlen else s


def safe_enum_value(v):
    try:
        return v.value
    except AttributeError:
        return v


def parse_enum(enum_cls, val, default=None):
    if isinstance(val, enum_cls):
        return val
    try:
        return enum_cls(str(val).strip().upper())
    except (TypeError, ValueError):
        return default
