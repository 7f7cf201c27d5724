# hmjaya/config/company.py
from __future__ import annotations

"""
Company identity used on printed documents.

The values here are the fallback. When an active CompanyProfile row exists,
its fields win (see company_context).
"""

# -----------------------------
# Canonical fields
# -----------------------------
COMPANY_NAME = "CV HM JAYA BERKAH"
COMPANY_TAGLINE = "Distributor Air Minum"

# Single display line (PDF-friendly)
COMPANY_ADDRESS = "Jl. Raya Dumajah Timur, Kec. Tanah Merah, Kab. Bangkalan, Jawa Timur"
COMPANY_CITY = "Bangkalan"

COMPANY_EMAIL = ""
COMPANY_PHONE = ""

COMPANY_PROFILE = {
    "name": COMPANY_NAME,
    "tagline": COMPANY_TAGLINE,
    "address": COMPANY_ADDRESS,
    "city": COMPANY_CITY,
    "email": COMPANY_EMAIL,
    "phone": COMPANY_PHONE,
    "owner": "",
    "bank_accounts": [],
}


def company_context(profile=None) -> dict:
    """
    Identity for documents: defaults, overridden by the given CompanyProfile.
    Empty profile fields keep the default.
    """
    ctx = dict(COMPANY_PROFILE)
    ctx["bank_accounts"] = []
    if profile is None:
        return ctx

    for key in ("name", "address", "city", "email", "phone", "owner"):
        value = getattr(profile, key, None)
        if value:
            ctx[key] = value

    for suffix in ("", "_2"):
        bank = getattr(profile, f"bank_name{suffix}", None)
        account = getattr(profile, f"bank_account{suffix}", None)
        if bank and account:
            ctx["bank_accounts"].append(
                {
                    "bank_name": bank,
                    "account_number": account,
                    "account_name": getattr(profile, f"account_name{suffix}", None) or ctx["name"],
                }
            )
    return ctx
