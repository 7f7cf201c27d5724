# hmjaya/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import abort, redirect, request
from flask_login import current_user, login_required

from hmjaya.constants.roles import ADMIN, HELPER, KEUANGAN, OWNER, SALES, WAREHOUSE, default_path_for

# Page prefixes -> roles allowed to open them (most specific prefix wins)
SUBMODULE_ROLES: dict[str, tuple[str, ...]] = {
    # Dashboard
    "/": (OWNER, ADMIN, WAREHOUSE, HELPER, KEUANGAN),

    # Sales
    "/sales": (SALES, OWNER, ADMIN),
    "/sales/fields": (SALES,),
    "/sales/field-visits": (SALES,),
    "/sales/orders": (SALES,),
    "/sales/order-history": (SALES,),
    "/sales/invoice": (OWNER, ADMIN),
    "/sales/invoice-cancellation": (OWNER, ADMIN),
    "/sales/pengiriman": (OWNER, HELPER, ADMIN),
    "/sales/surat-jalan": (OWNER, ADMIN),
    "/sales/tukar": (OWNER, ADMIN),

    # Inventory
    "/inventory/produksi": (WAREHOUSE, OWNER),
    "/inventory/manajemen-stok": (WAREHOUSE, OWNER),
    "/inventory/stok-opname": (WAREHOUSE, OWNER),
    "/inventory/produk": (WAREHOUSE, OWNER),

    # Purchasing
    "/purchasing/daftar-po": (OWNER, ADMIN),
    "/purchasing/pengeluaran": (OWNER, ADMIN),
    "/purchasing/transaction-history": (OWNER, ADMIN),
    "/purchasing/pembayaran": (OWNER, ADMIN),

    # Finance
    "/management/finance/revenue-analytics": (OWNER, KEUANGAN),
    "/management/finance/expenses": (OWNER, KEUANGAN),
    "/management/finance/piutang": (OWNER, KEUANGAN),
    "/management/finance/detailed": (OWNER, KEUANGAN),

    # Management
    "/management": (ADMIN, OWNER),
    "/management/kategori": (WAREHOUSE, OWNER),
    "/management/kustomer": (OWNER, ADMIN),
    "/management/pajak": (OWNER,),
    "/management/profil": (OWNER,),
    "/management/users": (OWNER,),
    "/management/sales-target": (OWNER,),
    "/management/field-visits": (OWNER,),
}

PUBLIC_PREFIXES = ("/sign-in", "/sign-up", "/api/", "/uploads/", "/static")
AUTH_PAGES = ("/sign-in", "/sign-up")

_SORTED_RULES = sorted(SUBMODULE_ROLES, key=len, reverse=True)


def match_rule(path: str) -> str | None:
    """Longest rule equal to `path` or a parent of it. "/" only matches itself."""
    for rule in _SORTED_RULES:
        if path == rule or (rule != "/" and path.startswith(rule + "/")):
            return rule
    return None


def redirect_target(path: str, role: str | None, authenticated: bool) -> str | None:
    """Where the gate sends this request, or None to let it through."""
    if not authenticated:
        if path.startswith(PUBLIC_PREFIXES):
            return None
        return "/sign-in"

    default = default_path_for(role)
    if path.startswith(AUTH_PAGES):
        return default

    rule = match_rule(path)
    if rule is not None and role not in SUBMODULE_ROLES[rule] and path != default:
        return default
    return None


def enforce_role_access():
    """before_request hook: the page gate for every dashboard path."""
    target = redirect_target(
        request.path,
        getattr(current_user, "role", None),
        current_user.is_authenticated,
    )
    if target is not None:
        return redirect(target)
    return None


def role_required(*allowed_roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Generic role gate:
        @role_required(OWNER, ADMIN)
        def view(): ...
    """
    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            role = getattr(current_user, "role", None)
            if role not in allowed_roles:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def owner_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Allow only OWNER. Returns 403 for all other logged-in roles."""
    return role_required(OWNER)(view)
