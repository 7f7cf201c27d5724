# hmjaya/management.py
from __future__ import annotations

from flask import Blueprint, current_app, request
from flask_login import current_user

from hmjaya.constants.roles import ADMIN, KEUANGAN, OWNER, WAREHOUSE
from hmjaya.models import CompanyProfile, Customer, Tax, User
from hmjaya.services import get_or_raise
from hmjaya.services.company_profiles import (
    create_profile,
    delete_profile,
    list_profiles,
    toggle_profile_status,
    update_profile,
)
from hmjaya.services.customers import (
    create_customer,
    delete_customer,
    search_customers,
    toggle_customer_status,
    update_customer,
)
from hmjaya.services.field_visits import list_visits
from hmjaya.services.products import create_category, list_categories, reprice_products, update_category
from hmjaya.services.receivables import receivables_report, revenue_summary
from hmjaya.services.targets import create_target, list_targets
from hmjaya.services.taxes import create_tax, delete_tax, get_active_tax, list_taxes, update_tax
from hmjaya.services.users import create_user, list_users, update_user
from hmjaya.utils.guards import owner_required, role_required
from hmjaya.utils.parsers import parse_bool, parse_int
from hmjaya.utils.responses import ok, request_data, run_action
from hmjaya.utils.serializers import (
    category_dict,
    customer_dict,
    field_visit_dict,
    profile_dict,
    target_dict,
    tax_dict,
    user_dict,
)

management_bp = Blueprint("management", __name__, url_prefix="/management")

STAFF = (OWNER, ADMIN)
FINANCE = (OWNER, KEUANGAN)


# =========================================================
# Customers (kustomer)
# =========================================================
@management_bp.route("/kustomer", methods=["GET"])
@role_required(*STAFF)
def customers_list():
    customers = search_customers(
        request.args.get("search"),
        include_inactive=parse_bool(request.args.get("includeInactive"), default=True),
    )
    return ok([customer_dict(c) for c in customers])


@management_bp.route("/kustomer", methods=["POST"])
@role_required(*STAFF)
def customers_create():
    data = request_data()
    return run_action("Create customer", lambda: create_customer(data), serialize=customer_dict, success_status=201)


@management_bp.route("/kustomer/<int:customer_id>", methods=["GET"])
@role_required(*STAFF)
def customers_detail(customer_id: int):
    return ok(customer_dict(get_or_raise(Customer, customer_id, "Customer")))


@management_bp.route("/kustomer/<int:customer_id>", methods=["PUT", "POST"])
@role_required(*STAFF)
def customers_update(customer_id: int):
    data = request_data()
    return run_action("Update customer", lambda: update_customer(customer_id, data), serialize=customer_dict)


@management_bp.route("/kustomer/<int:customer_id>/toggle", methods=["POST"])
@role_required(*STAFF)
def customers_toggle(customer_id: int):
    return run_action("Toggle customer status", lambda: toggle_customer_status(customer_id), serialize=customer_dict)


@management_bp.route("/kustomer/<int:customer_id>", methods=["DELETE"])
@role_required(*STAFF)
def customers_delete(customer_id: int):
    return run_action(
        "Delete customer",
        lambda: delete_customer(customer_id),
        message="Customer deleted successfully",
    )


# =========================================================
# Categories (kategori)
# =========================================================
@management_bp.route("/kategori", methods=["GET"])
@role_required(WAREHOUSE, OWNER)
def categories_list():
    include_inactive = parse_bool(request.args.get("includeInactive"))
    return ok([category_dict(c) for c in list_categories(include_inactive=include_inactive)])


@management_bp.route("/kategori", methods=["POST"])
@role_required(WAREHOUSE, OWNER)
def categories_create():
    data = request_data()
    return run_action("Create category", lambda: create_category(data), serialize=category_dict, success_status=201)


@management_bp.route("/kategori/<int:category_id>", methods=["PUT", "POST"])
@role_required(WAREHOUSE, OWNER)
def categories_update(category_id: int):
    data = request_data()
    return run_action("Update category", lambda: update_category(category_id, data), serialize=category_dict)


# =========================================================
# Taxes (pajak)
# =========================================================
def _reprice_if_active(tax: Tax) -> Tax:
    if tax.is_active:
        count = reprice_products()
        current_app.logger.info("Tax %s%% active, %s product prices updated", tax.nominal, count)
    return tax


@management_bp.route("/pajak", methods=["GET"])
@owner_required
def taxes_list():
    active = get_active_tax()
    return ok([tax_dict(t) for t in list_taxes()], active_id=active.id if active else None)


@management_bp.route("/pajak", methods=["POST"])
@owner_required
def taxes_create():
    data = request_data()
    return run_action(
        "Create tax",
        lambda: _reprice_if_active(create_tax(data)),
        serialize=tax_dict,
        success_status=201,
    )


@management_bp.route("/pajak/<int:tax_id>", methods=["GET"])
@owner_required
def taxes_detail(tax_id: int):
    return ok(tax_dict(get_or_raise(Tax, tax_id, "Tax")))


@management_bp.route("/pajak/<int:tax_id>", methods=["PUT", "POST"])
@owner_required
def taxes_update(tax_id: int):
    data = request_data()
    return run_action("Update tax", lambda: _reprice_if_active(update_tax(tax_id, data)), serialize=tax_dict)


@management_bp.route("/pajak/<int:tax_id>", methods=["DELETE"])
@owner_required
def taxes_delete(tax_id: int):
    return run_action("Delete tax", lambda: delete_tax(tax_id), message="Tax deleted successfully")


# =========================================================
# Company profiles (profil)
# =========================================================
@management_bp.route("/profil", methods=["GET"])
@owner_required
def profiles_list():
    return ok([profile_dict(p) for p in list_profiles()])


@management_bp.route("/profil", methods=["POST"])
@owner_required
def profiles_create():
    data = request_data()
    return run_action("Create company profile", lambda: create_profile(data), serialize=profile_dict, success_status=201)


@management_bp.route("/profil/<int:profile_id>", methods=["GET"])
@owner_required
def profiles_detail(profile_id: int):
    return ok(profile_dict(get_or_raise(CompanyProfile, profile_id, "Company profile")))


@management_bp.route("/profil/<int:profile_id>", methods=["PUT", "POST"])
@owner_required
def profiles_update(profile_id: int):
    data = request_data()
    return run_action("Update company profile", lambda: update_profile(profile_id, data), serialize=profile_dict)


@management_bp.route("/profil/<int:profile_id>/toggle", methods=["POST"])
@owner_required
def profiles_toggle(profile_id: int):
    return run_action("Toggle company profile", lambda: toggle_profile_status(profile_id), serialize=profile_dict)


@management_bp.route("/profil/<int:profile_id>", methods=["DELETE"])
@owner_required
def profiles_delete(profile_id: int):
    return run_action(
        "Delete company profile",
        lambda: delete_profile(profile_id),
        message="Company profile deleted successfully",
    )


# =========================================================
# Users
# =========================================================
@management_bp.route("/users", methods=["GET"])
@owner_required
def users_list():
    users = list_users(request.args.get("q"), request.args.get("role"), request.args.get("status"))
    return ok([user_dict(u) for u in users])


@management_bp.route("/users", methods=["POST"])
@owner_required
def users_create():
    data = request_data()
    return run_action("Create user", lambda: create_user(data), serialize=user_dict, success_status=201)


@management_bp.route("/users/<int:user_id>", methods=["GET"])
@owner_required
def users_detail(user_id: int):
    return ok(user_dict(get_or_raise(User, user_id, "User")))


@management_bp.route("/users/<int:user_id>", methods=["PUT", "POST"])
@owner_required
def users_update(user_id: int):
    data = request_data()
    return run_action(
        "Update user",
        lambda: update_user(user_id, data, current_user),
        serialize=user_dict,
    )


# =========================================================
# Sales targets + field visits (owner view)
# =========================================================
@management_bp.route("/sales-target", methods=["GET"])
@owner_required
def targets_list():
    return run_action(
        "List sales targets",
        lambda: list_targets(parse_int(request.args.get("userId")), request.args.get("period")),
        serialize=lambda targets: [target_dict(t) for t in targets],
    )


@management_bp.route("/sales-target", methods=["POST"])
@owner_required
def targets_create():
    data = request_data()
    return run_action("Create sales target", lambda: create_target(data), serialize=target_dict, success_status=201)


@management_bp.route("/field-visits", methods=["GET"])
@owner_required
def visits_list():
    visits = list_visits(parse_int(request.args.get("salesId")))
    return ok([field_visit_dict(v) for v in visits])


# =========================================================
# Finance
# =========================================================
@management_bp.route("/finance/piutang", methods=["GET"])
@role_required(*FINANCE)
def finance_receivables():
    return ok(
        receivables_report(
            year=parse_int(request.args.get("year")),
            month=parse_int(request.args.get("month")),
            category=request.args.get("category"),
        )
    )


@management_bp.route("/finance/revenue-analytics", methods=["GET"])
@role_required(*FINANCE)
def finance_revenue():
    return ok(revenue_summary(parse_int(request.args.get("year"))))
