# hmjaya/services/products.py
from __future__ import annotations

import sqlalchemy as sa

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import Category, InvoiceItem, OrderItem, Product, StockMovement, StockMovementType
from hmjaya.services import get_or_raise
from hmjaya.services.pricing import calculate_selling_price
from hmjaya.services.stock import move_stock
from hmjaya.services.taxes import get_active_tax
from hmjaya.utils.parsers import clean_str, parse_bool, parse_float, parse_int

DESCRIPTION_MAXLEN = 500


def validate_product_data(data: dict) -> list[str]:
    """Returns the list of problems with a product form; empty means valid."""
    errors = []

    if not clean_str(data.get("code")):
        errors.append("Product code is required")

    name = clean_str(data.get("name")) or ""
    if len(name) < 2:
        errors.append("Product name must be at least 2 characters")

    if not clean_str(data.get("unit")):
        errors.append("Unit is required")

    price = parse_float(data.get("price"))
    if price is None or price <= 0:
        errors.append("Price must be greater than 0")

    cost = parse_float(data.get("cost"))
    if cost is not None and cost < 0:
        errors.append("Cost cannot be negative")

    for field, label in (("min_stock", "Minimum stock"), ("max_stock", "Maximum stock"), ("current_stock", "Current stock")):
        v = parse_int(data.get(field))
        if v is not None and v < 0:
            errors.append(f"{label} cannot be negative")

    if not parse_int(data.get("category_id")):
        errors.append("Category is required")

    description = data.get("description") or ""
    if len(description) > DESCRIPTION_MAXLEN:
        errors.append(f"Description must be at most {DESCRIPTION_MAXLEN} characters")

    bottles = data.get("bottles_per_crate")
    if bottles not in (None, ""):
        b = parse_int(bottles)
        if b is None or b <= 0:
            errors.append("Bottles per crate must be greater than 0")

    return errors


def _selling_price_for(price: float) -> tuple[float, int | None]:
    tax = get_active_tax()
    pct = tax.percentage if tax else 0.0
    return calculate_selling_price(price, pct), (tax.id if tax else None)


def list_products(search: str | None = None, include_inactive: bool = True):
    qry = Product.query
    if not include_inactive:
        qry = qry.filter(Product.is_active.is_(True))
    q = (search or "").strip()
    if q:
        like = f"%{q}%"
        qry = qry.filter(sa.or_(Product.name.ilike(like), Product.code.ilike(like)))
    return qry.order_by(Product.name.asc()).all()


def create_product(data: dict) -> Product:
    errors = validate_product_data(data)
    if errors:
        raise ActionError("; ".join(errors))

    get_or_raise(Category, parse_int(data.get("category_id")), "Category")

    price = parse_float(data.get("price"))
    selling_price, tax_id = _selling_price_for(price)

    product = Product(
        code=clean_str(data.get("code"), 40),
        name=clean_str(data.get("name"), 160),
        description=clean_str(data.get("description")),
        unit=clean_str(data.get("unit"), 20),
        price=price,
        cost=parse_float(data.get("cost")) or 0.0,
        selling_price=selling_price,
        min_stock=parse_int(data.get("min_stock")) or 0,
        max_stock=parse_int(data.get("max_stock")) or 0,
        current_stock=parse_int(data.get("current_stock")) or 0,
        bottles_per_crate=parse_int(data.get("bottles_per_crate")),
        category_id=parse_int(data.get("category_id")),
        tax_id=tax_id,
        is_active=parse_bool(data.get("is_active"), default=True),
    )
    db.session.add(product)
    db.session.flush()
    return product


def update_product(product_id: int, data: dict, user=None) -> Product:
    product = get_or_raise(Product, product_id, "Product")

    merged = {
        "code": product.code,
        "name": product.name,
        "unit": product.unit,
        "price": product.price,
        "cost": product.cost,
        "category_id": product.category_id,
        "description": product.description,
        "bottles_per_crate": product.bottles_per_crate,
        **data,
    }
    errors = validate_product_data(merged)
    if errors:
        raise ActionError("; ".join(errors))

    product.code = clean_str(merged.get("code"), 40)
    product.name = clean_str(merged.get("name"), 160)
    product.unit = clean_str(merged.get("unit"), 20)
    product.description = clean_str(merged.get("description"))
    product.cost = parse_float(merged.get("cost")) or 0.0
    product.bottles_per_crate = parse_int(merged.get("bottles_per_crate"))
    product.category_id = parse_int(merged.get("category_id"))
    for field in ("min_stock", "max_stock"):
        if field in data:
            setattr(product, field, parse_int(data.get(field)) or 0)
    if "is_active" in data:
        product.is_active = parse_bool(data.get("is_active"), default=True)

    new_price = parse_float(merged.get("price"))
    if new_price != product.price or product.selling_price is None:
        product.price = new_price
        product.selling_price, product.tax_id = _selling_price_for(new_price)

    # Manual stock corrections are logged as adjustments
    if "current_stock" in data:
        target = parse_int(data.get("current_stock")) or 0
        delta = target - int(product.current_stock or 0)
        if delta:
            move_stock(product, StockMovementType.ADJUSTMENT, delta, reference=product.code, user=user)

    db.session.flush()
    return product


def delete_product(product_id: int) -> None:
    product = get_or_raise(Product, product_id, "Product")
    for model in (OrderItem, InvoiceItem, StockMovement):
        if db.session.query(model.id).filter(model.product_id == product.id).first() is not None:
            raise ActionError("Product has orders, invoices or stock history. Deactivate it instead.")
    db.session.delete(product)
    db.session.flush()


def toggle_product_status(product_id: int) -> Product:
    product = get_or_raise(Product, product_id, "Product")
    product.is_active = not product.is_active
    db.session.flush()
    return product


def reprice_products() -> int:
    """Recompute selling prices after the active tax changed. Returns the number updated."""
    count = 0
    for product in Product.query.all():
        selling_price, tax_id = _selling_price_for(product.price)
        if selling_price != product.selling_price or tax_id != product.tax_id:
            product.selling_price = selling_price
            product.tax_id = tax_id
            count += 1
    db.session.flush()
    return count


# =========================================================
# Categories
# =========================================================
def list_categories(include_inactive: bool = False):
    qry = Category.query
    if not include_inactive:
        qry = qry.filter(Category.is_active.is_(True))
    return qry.order_by(Category.name.asc()).all()


def create_category(data: dict) -> Category:
    code = clean_str(data.get("code"), 40)
    name = clean_str(data.get("name"), 120)
    if not code or not name:
        raise ActionError("Category code and name are required")
    category = Category(code=code, name=name, description=clean_str(data.get("description")))
    db.session.add(category)
    db.session.flush()
    return category


def update_category(category_id: int, data: dict) -> Category:
    category = get_or_raise(Category, category_id, "Category")
    if "code" in data:
        category.code = clean_str(data.get("code"), 40) or category.code
    if "name" in data:
        category.name = clean_str(data.get("name"), 120) or category.name
    if "description" in data:
        category.description = clean_str(data.get("description"))
    if "is_active" in data:
        category.is_active = parse_bool(data.get("is_active"), default=True)
    db.session.flush()
    return category
