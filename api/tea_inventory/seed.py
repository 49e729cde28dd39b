# tea_inventory/seed.py
"""Default accounts and an optional sample catalogue."""
from __future__ import annotations

from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .constants import (
    MaterialCategory,
    MaterialUnit,
    ProductCategory,
    ProductSizeFormat,
    UserRole,
)
from .logging_config import get_logger
from .models import BillOfMaterial, Product, RawMaterial, User
from .security import hash_password

logger = get_logger(__name__)

# (username, email, password, role)
DEFAULT_USERS: List[Tuple[str, str, str, UserRole]] = [
    ("admin", "admin@teacompany.com", "admin123", UserRole.admin),
    ("fulfillment", "fulfillment@teacompany.com", "fulfillment123", UserRole.fulfillment),
    ("production", "production@teacompany.com", "production123", UserRole.production),
]

SAMPLE_MATERIALS = [
    dict(item_name="Earl Grey loose leaf", category=MaterialCategory.tea, unit=MaterialUnit.kg,
         count=12, reorder_threshold=5),
    dict(item_name="Tin 100g", category=MaterialCategory.tins, unit=MaterialUnit.pcs,
         count=400, reorder_threshold=150),
    dict(item_name="Tin label Earl Grey", category=MaterialCategory.tin_label, unit=MaterialUnit.rolls,
         count=3, quantity_per_unit=500, reorder_threshold=1),
    dict(item_name="Kraft pouch 250g", category=MaterialCategory.pouches, unit=MaterialUnit.boxes,
         count=4, quantity_per_unit=100, reorder_threshold=2),
]

SAMPLE_PRODUCTS = [
    dict(name="Earl Grey Tin", sku="EG-TIN-100", size_format=ProductSizeFormat.tin,
         stock_quantity=40, reorder_threshold=25, price=12.5,
         recipe={"Earl Grey loose leaf": 0.1, "Tin 100g": 1, "Tin label Earl Grey": 1}),
    dict(name="Earl Grey Pouch", sku="EG-POUCH-250", size_format=ProductSizeFormat.pouch,
         stock_quantity=10, reorder_threshold=20, price=18.0,
         recipe={"Earl Grey loose leaf": 0.25, "Kraft pouch 250g": 1}),
]


def seed_users(db: Session) -> List[User]:
    """Create the default accounts that do not exist yet (matched by email)."""
    created = []
    for username, email, password, role in DEFAULT_USERS:
        exists = db.execute(
            select(User.id).where((User.email == email) | (User.username == username))
        ).first()
        if exists:
            logger.debug("Seed user %s already present", username)
            continue
        u = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=role.value,
            is_active=True,
            created_by="seed",
        )
        db.add(u)
        created.append(u)
        logger.info("Seed user created: %s (%s)", email, role.value)
    db.commit()
    return created


def seed_samples(db: Session) -> Dict[str, int]:
    """Sample raw materials, products and recipes. Skipped if any product exists."""
    if db.execute(select(Product.id).limit(1)).first():
        logger.info("Catalogue not empty; sample data skipped")
        return {"materials": 0, "products": 0}

    materials = {}
    for row in SAMPLE_MATERIALS:
        m = RawMaterial(
            item_name=row["item_name"],
            category=row["category"].value,
            unit=row["unit"].value,
            count=row["count"],
            quantity_per_unit=row.get("quantity_per_unit"),
            reorder_threshold=row["reorder_threshold"],
        )
        db.add(m)
        materials[m.item_name] = m

    for row in SAMPLE_PRODUCTS:
        p = Product(
            name=row["name"],
            sku=row["sku"],
            category=ProductCategory.tea.value,
            size_format=row["size_format"].value,
            stock_quantity=row["stock_quantity"],
            reorder_threshold=row["reorder_threshold"],
            price=row["price"],
        )
        for item_name, qty in row["recipe"].items():
            p.bill_of_materials.append(
                BillOfMaterial(raw_material=materials[item_name], quantity_required=qty)
            )
        db.add(p)

    db.commit()
    logger.info("Sample catalogue created: %d materials, %d products",
                len(SAMPLE_MATERIALS), len(SAMPLE_PRODUCTS))
    return {"materials": len(SAMPLE_MATERIALS), "products": len(SAMPLE_PRODUCTS)}


def run_seed(db: Session, with_samples: bool = False) -> None:
    seed_users(db)
    if with_samples:
        seed_samples(db)
