# hmjaya/constants/roles.py
from __future__ import annotations

OWNER = "OWNER"
ADMIN = "ADMIN"
SALES = "SALES"
WAREHOUSE = "WAREHOUSE"
HELPER = "HELPER"
KEUANGAN = "KEUANGAN"  # finance

ROLES = {
    OWNER: "Owner",
    ADMIN: "Admin",
    SALES: "Sales",
    WAREHOUSE: "Gudang",
    HELPER: "Helper",
    KEUANGAN: "Keuangan",
}

# Where each role lands after sign-in, and where it is sent when it opens a
# page it may not see.
DEFAULT_PATHS = {
    SALES: "/sales",
    WAREHOUSE: "/inventory/produksi",
    HELPER: "/sales/pengiriman",
    KEUANGAN: "/management/finance/revenue-analytics",
    ADMIN: "/sales/invoice",
    OWNER: "/",
}

# Roles that may be picked as warehouse staff on a delivery note
WAREHOUSE_STAFF_ROLES = (WAREHOUSE, ADMIN, OWNER)


def normalize_role(role: str | None) -> str:
    return (role or "").strip().upper().replace("-", "_")


def default_path_for(role: str | None) -> str:
    return DEFAULT_PATHS.get(normalize_role(role), "/")
