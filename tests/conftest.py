"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database and an app context.
Fixtures are opt-in: a test asks for the master data it needs.
"""

from __future__ import annotations

import pytest

from hmjaya import create_app
from hmjaya.constants.roles import ADMIN, HELPER, OWNER, SALES, WAREHOUSE
from hmjaya.extensions import db as _db
from hmjaya.services.customers import create_customer
from hmjaya.services.products import create_category, create_product
from hmjaya.services.taxes import create_tax
from hmjaya.services.users import create_user

TEST_PASSWORD = "rahasia123"


class TestConfig:
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    DEFAULT_NET_TERMS_DAYS = 30
    LOGIN_MAX_ATTEMPTS = 3
    LOGIN_LOCKOUT_MINUTES = 10


# ---------------------------------------------------------------------------
# App / database
# ---------------------------------------------------------------------------

@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["UPLOAD_DIR"] = str(tmp_path / "uploads")

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    def _make(role: str, email: str | None = None, **extra):
        user = create_user(
            {
                "name": extra.pop("name", role.title()),
                "email": email or f"{role.lower()}@hmjaya.test",
                "password": TEST_PASSWORD,
                "role": role,
                "must_change_password": False,
                **extra,
            }
        )
        db.session.commit()
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(OWNER)


@pytest.fixture
def admin(make_user):
    return make_user(ADMIN)


@pytest.fixture
def sales_user(make_user):
    return make_user(SALES)


@pytest.fixture
def helper(make_user):
    return make_user(HELPER)


@pytest.fixture
def warehouse(make_user):
    return make_user(WAREHOUSE)


@pytest.fixture
def login_as(client):
    def _login(user, password: str = TEST_PASSWORD):
        resp = client.post("/sign-in", json={"email": user.email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp

    return _login


# ---------------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------------

@pytest.fixture
def active_tax(db):
    tax = create_tax({"nominal": "11", "notes": "PPN 11%", "is_active": True})
    db.session.commit()
    return tax


@pytest.fixture
def category(db):
    cat = create_category({"code": "KTG-0001", "name": "Minyak"})
    db.session.commit()
    return cat


@pytest.fixture
def products(db, category, active_tax):
    """Two products: 10.000 -> 12.000 and 20.000 -> 23.000 selling price at 11%."""
    small = create_product(
        {
            "code": "PDK-0001", "name": "Minyak 250 ml", "unit": "Krat",
            "price": 10000, "cost": 9000, "current_stock": 50, "min_stock": 5,
            "category_id": category.id,
        }
    )
    large = create_product(
        {
            "code": "PDK-0002", "name": "Minyak 1 Liter", "unit": "Krat",
            "price": 20000, "cost": 18000, "current_stock": 30, "min_stock": 5,
            "category_id": category.id,
        }
    )
    db.session.commit()
    return small, large


@pytest.fixture
def customer(db):
    cust = create_customer(
        {"code": "CUST-001", "name": "Toko Berkah", "address": "Jl. Pasar 1", "city": "Bangkalan"}
    )
    db.session.commit()
    return cust


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@pytest.fixture
def make_invoice(db, owner, customer, products):
    """Direct invoice (no order) for `customer`; defaults to 2 x the first product."""
    from hmjaya.services.invoices import create_invoice

    def _make(items=None, **data):
        small, _ = products
        invoice = create_invoice(
            {
                "customer_id": customer.id,
                "items": items or [{"product_id": small.id, "quantity": 2}],
                "tax_percentage": 0,
                **data,
            },
            owner,
        )
        db.session.commit()
        return invoice

    return _make
