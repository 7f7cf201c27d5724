# hmjaya/inventory.py
from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user

from hmjaya.constants.roles import OWNER, WAREHOUSE
from hmjaya.models import Product, StockMovement
from hmjaya.services import get_or_raise
from hmjaya.services.products import (
    create_product,
    delete_product,
    list_products,
    toggle_product_status,
    update_product,
    validate_product_data,
)
from hmjaya.services.taxes import active_tax_percentage
from hmjaya.utils.guards import role_required
from hmjaya.utils.parsers import parse_bool, parse_float, parse_int
from hmjaya.utils.responses import fail, ok, request_data, run_action
from hmjaya.utils.serializers import price_preview, product_dict, stock_movement_dict

inventory_bp = Blueprint("inventory", __name__, url_prefix="/inventory")

STOCK_ROLES = (WAREHOUSE, OWNER)


# =========================================================
# Products
# =========================================================
@inventory_bp.route("/produk", methods=["GET"])
@role_required(*STOCK_ROLES)
def products_list():
    include_inactive = parse_bool(request.args.get("includeInactive"), default=True)
    products = list_products(request.args.get("search"), include_inactive=include_inactive)
    return ok([product_dict(p) for p in products])


@inventory_bp.route("/produk/price-preview", methods=["GET", "POST"])
@role_required(*STOCK_ROLES)
def products_price_preview():
    data = request_data() if request.method == "POST" else request.args
    price = parse_float(data.get("price"))
    if price is None or price < 0:
        return fail("Price must be a non-negative number", 400)
    return ok(price_preview(price, active_tax_percentage()))


@inventory_bp.route("/produk/validate", methods=["POST"])
@role_required(*STOCK_ROLES)
def products_validate():
    errors = validate_product_data(request_data())
    return ok({"valid": not errors, "errors": errors})


@inventory_bp.route("/produk", methods=["POST"])
@role_required(*STOCK_ROLES)
def products_create():
    data = request_data()
    return run_action("Create product", lambda: create_product(data), serialize=product_dict, success_status=201)


@inventory_bp.route("/produk/<int:product_id>", methods=["GET"])
@role_required(*STOCK_ROLES)
def products_detail(product_id: int):
    return ok(product_dict(get_or_raise(Product, product_id, "Product")))


@inventory_bp.route("/produk/<int:product_id>", methods=["PUT", "POST"])
@role_required(*STOCK_ROLES)
def products_update(product_id: int):
    data = request_data()
    return run_action(
        "Update product",
        lambda: update_product(product_id, data, current_user),
        serialize=product_dict,
    )


@inventory_bp.route("/produk/<int:product_id>/toggle", methods=["POST"])
@role_required(*STOCK_ROLES)
def products_toggle(product_id: int):
    return run_action("Toggle product status", lambda: toggle_product_status(product_id), serialize=product_dict)


@inventory_bp.route("/produk/<int:product_id>", methods=["DELETE"])
@role_required(*STOCK_ROLES)
def products_delete(product_id: int):
    return run_action(
        "Delete product",
        lambda: delete_product(product_id),
        message="Product deleted successfully",
    )


# =========================================================
# Stock overview (produksi / manajemen stok)
# =========================================================
@inventory_bp.route("/produksi", methods=["GET"])
@role_required(*STOCK_ROLES)
def stock_overview():
    products = list_products(include_inactive=False)
    low = [p for p in products if (p.current_stock or 0) <= (p.min_stock or 0)]
    return ok(
        {
            "products": [product_dict(p) for p in products],
            "low_stock_count": len(low),
            "total_units": sum(int(p.current_stock or 0) for p in products),
        }
    )


@inventory_bp.route("/manajemen-stok", methods=["GET"])
@role_required(*STOCK_ROLES)
def stock_movements():
    qry = StockMovement.query
    product_id = parse_int(request.args.get("product_id"))
    if product_id:
        qry = qry.filter(StockMovement.product_id == product_id)
    limit = min(parse_int(request.args.get("limit")) or 100, 500)
    movements = qry.order_by(StockMovement.movement_date.desc(), StockMovement.id.desc()).limit(limit).all()
    return ok([stock_movement_dict(m) for m in movements])
