# hmjaya/services/company_profiles.py
from __future__ import annotations

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import CompanyProfile
from hmjaya.services import get_or_raise
from hmjaya.utils.parsers import clean_str, parse_bool

_FIELDS = {
    "code": 40,
    "name": 160,
    "address": 255,
    "city": 80,
    "phone": 30,
    "email": 120,
    "owner": 120,
    "bank_name": 80,
    "bank_account": 60,
    "account_name": 120,
    "bank_name_2": 80,
    "bank_account_2": 60,
    "account_name_2": 120,
}


def get_active_profile() -> CompanyProfile | None:
    return (
        CompanyProfile.query.filter(CompanyProfile.is_active.is_(True))
        .order_by(CompanyProfile.id.asc())
        .first()
    )


def list_profiles():
    return CompanyProfile.query.order_by(CompanyProfile.name.asc()).all()


def _apply(profile: CompanyProfile, data: dict, *, partial: bool) -> None:
    for field, maxlen in _FIELDS.items():
        if partial and field not in data:
            continue
        setattr(profile, field, clean_str(data.get(field), maxlen))
    if "is_active" in data:
        profile.is_active = parse_bool(data.get("is_active"), default=True)
    if not profile.code or not profile.name:
        raise ActionError("Company code and name are required")


def create_profile(data: dict) -> CompanyProfile:
    profile = CompanyProfile(is_active=True)
    _apply(profile, data, partial=False)
    db.session.add(profile)
    db.session.flush()
    return profile


def update_profile(profile_id: int, data: dict) -> CompanyProfile:
    profile = get_or_raise(CompanyProfile, profile_id, "Company profile")
    _apply(profile, data, partial=True)
    db.session.flush()
    return profile


def toggle_profile_status(profile_id: int) -> CompanyProfile:
    profile = get_or_raise(CompanyProfile, profile_id, "Company profile")
    profile.is_active = not profile.is_active
    db.session.flush()
    return profile


def delete_profile(profile_id: int) -> None:
    profile = get_or_raise(CompanyProfile, profile_id, "Company profile")
    db.session.delete(profile)
    db.session.flush()
