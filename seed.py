# seed.py
"""
Seed a fresh database with the owner account, taxes, the company profile and
a starter product range.

    flask --app hmjaya:create_app db upgrade
    python seed.py
"""
from __future__ import annotations

import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from hmjaya import create_app
from hmjaya.constants.roles import OWNER
from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import Category, CompanyProfile, Product, Tax, User
from hmjaya.services.company_profiles import create_profile
from hmjaya.services.products import create_category, create_product
from hmjaya.services.taxes import create_tax
from hmjaya.services.users import create_user

logger = logging.getLogger("hmjaya.seed")

OWNER_EMAIL = os.environ.get("SEED_OWNER_EMAIL", "owner@hmjaya.local")
OWNER_PASSWORD = os.environ.get("SEED_OWNER_PASSWORD", "gantiSaya123")

TAXES = [
    {"nominal": "0", "notes": "Bebas Pajak", "is_active": False},
    {"nominal": "11", "notes": "PPN 11%", "is_active": True},
    {"nominal": "12", "notes": "PPN 12%", "is_active": False},
]

COMPANY_PROFILE = {
    "code": "001",
    "name": "CV. HM Jaya Berkah",
    "address": "Jl. Raya Dumajah Timur Kec. Tanah Merah Kab. Bangkalan Jawa Timur",
    "city": "Bangkalan",
    "phone": "087753833139",
    "owner": "LAILATUL QAMARIYAH",
    "bank_name": "BCA",
    "bank_account": "1855999911",
    "account_name": "LAILATUL QAMARIYAH",
    "bank_name_2": "BRI",
    "bank_account_2": "1234567890",
    "account_name_2": "LAILATUL QAMARIYAH",
}

CATEGORY = {"code": "KTG-0001", "name": "Minyak", "description": "Berbagai jenis minyak goreng"}

# Crates of 12 bottles below 800 ml
PRODUCTS = [
    {"code": "PDK-0001", "name": "Minyak Indana 250 ml", "price": 60000, "cost": 54000, "bottles_per_crate": 12},
    {"code": "PDK-0002", "name": "Minyak Indana 500 ml", "price": 120000, "cost": 108000, "bottles_per_crate": 12},
    {"code": "PDK-0003", "name": "Minyak Indana 800 ml", "price": 192000, "cost": 172800, "bottles_per_crate": 12},
    {"code": "PDK-0004", "name": "Minyak Indana 1 Liter", "price": 180000, "cost": 162000, "bottles_per_crate": 6},
]


def seed_owner() -> None:
    if User.query.filter(db.func.lower(User.email) == OWNER_EMAIL.lower()).first():
        logger.info("Owner %s already exists", OWNER_EMAIL)
        return
    create_user(
        {
            "name": "Owner",
            "email": OWNER_EMAIL,
            "password": OWNER_PASSWORD,
            "role": OWNER,
            "must_change_password": True,
        }
    )
    logger.info("Owner created: %s", OWNER_EMAIL)


def seed_taxes() -> None:
    if Tax.query.count():
        logger.info("Taxes already present, skipping")
        return
    for tax in TAXES:
        create_tax(tax)
    logger.info("Created %s taxes", len(TAXES))


def seed_company_profile() -> None:
    if CompanyProfile.query.count():
        logger.info("Company profile already present, skipping")
        return
    create_profile(COMPANY_PROFILE)
    logger.info("Company profile %s created", COMPANY_PROFILE["name"])


def seed_products() -> None:
    category = Category.query.filter_by(code=CATEGORY["code"]).first() or create_category(CATEGORY)
    created = 0
    for row in PRODUCTS:
        if Product.query.filter_by(code=row["code"]).first():
            continue
        create_product(
            {
                **row,
                "description": f"Minyak goreng kemasan {row['name'].split('Indana ')[-1]}",
                "unit": "Krat",
                "min_stock": 20,
                "current_stock": 100,
                "category_id": category.id,
            }
        )
        created += 1
    logger.info("Created %s products", created)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = create_app()

    with app.app_context():
        try:
            seed_owner()
            seed_taxes()
            seed_company_profile()
            seed_products()
            db.session.commit()
        except (ActionError, SQLAlchemyError):
            db.session.rollback()
            logger.exception("Seeding failed")
            return 1

    logger.info("Seeding finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
