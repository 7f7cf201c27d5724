"""
Taxes, products, categories and customers.
"""

from __future__ import annotations

import pytest

from hmjaya.errors import ActionError, NotFoundError
from hmjaya.models import StockMovement, StockMovementType, Tax
from hmjaya.services.customers import create_customer, delete_customer, search_customers
from hmjaya.services.orders import create_order
from hmjaya.services.products import (
    create_product,
    delete_product,
    reprice_products,
    update_product,
    validate_product_data,
)
from hmjaya.services.taxes import active_tax_percentage, create_tax, delete_tax, update_tax


# =============================================================================
# Taxes
# =============================================================================


class TestTaxes:

    def test_only_one_tax_is_active(self, db, active_tax):
        newer = create_tax({"nominal": "12", "is_active": True})
        db.session.commit()

        active = Tax.query.filter_by(is_active=True).all()
        assert [t.id for t in active] == [newer.id]
        assert active_tax_percentage() == 12.0

    def test_activating_existing_tax_deactivates_others(self, db, active_tax):
        zero = create_tax({"nominal": "0"})
        update_tax(zero.id, {"is_active": True})
        db.session.commit()

        assert db.session.get(Tax, active_tax.id).is_active is False
        assert active_tax_percentage() == 0.0

    @pytest.mark.parametrize("nominal", ["abc", "-1", "101", None])
    def test_invalid_nominal_rejected(self, db, nominal):
        with pytest.raises(ActionError, match="between 0 and 100"):
            create_tax({"nominal": nominal})

    def test_nominal_is_normalised(self, db):
        assert create_tax({"nominal": "11.0"}).nominal == "11"

    def test_active_tax_cannot_be_deleted_while_others_exist(self, db, active_tax):
        create_tax({"nominal": "12"})
        with pytest.raises(ActionError, match="Activate another tax"):
            delete_tax(active_tax.id)

    def test_no_active_tax_means_zero(self, db):
        assert active_tax_percentage() == 0.0


# =============================================================================
# Products
# =============================================================================


class TestProducts:

    def test_selling_price_uses_active_tax(self, products, active_tax):
        small, large = products
        assert small.selling_price == 12000.0
        assert large.selling_price == 23000.0
        assert small.tax_id == active_tax.id

    def test_validation_collects_every_problem(self):
        errors = validate_product_data({"name": "A", "price": 0, "current_stock": -1})
        assert "Product code is required" in errors
        assert "Product name must be at least 2 characters" in errors
        assert "Price must be greater than 0" in errors
        assert "Current stock cannot be negative" in errors
        assert "Category is required" in errors

    def test_create_rejects_invalid_data(self, db, category):
        with pytest.raises(ActionError, match="Unit is required"):
            create_product({"code": "X", "name": "Produk", "price": 1000, "category_id": category.id})

    def test_unknown_category(self, db, category):
        with pytest.raises(NotFoundError, match="Category not found"):
            create_product({"code": "X", "name": "Produk", "unit": "Pcs", "price": 1000, "category_id": 999})

    def test_stock_correction_is_logged_as_adjustment(self, db, products, owner):
        small, _ = products
        update_product(small.id, {"current_stock": 45}, owner)
        db.session.commit()

        movement = StockMovement.query.filter_by(product_id=small.id).one()
        assert movement.type is StockMovementType.ADJUSTMENT
        assert (movement.previous_stock, movement.new_stock, movement.quantity) == (50, 45, 5)
        assert small.current_stock == 45

    def test_price_change_recomputes_selling_price(self, db, products):
        small, _ = products
        update_product(small.id, {"price": 15000})
        assert small.selling_price == 17000.0

    def test_reprice_after_tax_change(self, db, products, active_tax):
        small, large = products
        update_tax(active_tax.id, {"is_active": False})

        assert reprice_products() == 2
        assert small.selling_price == 10000.0
        assert large.selling_price == 20000.0
        assert small.tax_id is None

    def test_product_with_history_cannot_be_deleted(self, db, products, owner):
        small, _ = products
        update_product(small.id, {"current_stock": 40}, owner)
        with pytest.raises(ActionError, match="Deactivate it instead"):
            delete_product(small.id)


# =============================================================================
# Customers
# =============================================================================


class TestCustomers:

    def test_required_fields(self, db):
        with pytest.raises(ActionError, match="Customer address is required"):
            create_customer({"code": "C1", "name": "Toko", "city": "Bangkalan"})

    def test_search_hides_inactive_by_default(self, db, customer):
        customer.is_active = False
        db.session.commit()

        assert search_customers("Berkah") == []
        assert search_customers("Berkah", include_inactive=True) == [customer]

    def test_customer_without_transactions_can_be_deleted(self, db, customer):
        delete_customer(customer.id)
        db.session.commit()
        assert search_customers(include_inactive=True) == []

    def test_customer_with_orders_cannot_be_deleted(self, db, customer, products, sales_user):
        small, _ = products
        create_order({"customer_id": customer.id, "items": [{"product_id": small.id, "quantity": 1}]}, sales_user)
        db.session.commit()

        with pytest.raises(ActionError, match="has transactions"):
            delete_customer(customer.id)
