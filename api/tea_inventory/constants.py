# tea_inventory/constants.py
"""
Domain enumerations.

These are the source of truth for every closed set of values the system
stores. The ORM keeps plain strings, so nothing here depends on the models.
"""
from __future__ import annotations

from enum import Enum
from typing import Tuple


class UserRole(str, Enum):
    admin = "admin"
    fulfillment = "fulfillment"
    production = "production"


class ProductCategory(str, Enum):
    tea = "tea"
    teaware = "teaware"
    accessory = "accessory"


class ProductSizeFormat(str, Enum):
    family = "family"
    pouch = "pouch"
    wholesale = "wholesale"
    tin = "tin"
    refill = "refill"


class MaterialCategory(str, Enum):
    tea = "tea"
    tins = "tins"
    tin_label = "tin_label"
    refill_label = "refill_label"
    pouch_label = "pouch_label"
    pouches = "pouches"
    boxes = "boxes"
    stickers = "stickers"
    teabags = "teabags"
    other = "other"


class MaterialUnit(str, Enum):
    boxes = "boxes"
    kg = "kg"
    pcs = "pcs"
    rolls = "rolls"
    teabags = "teabags"


class RequestStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class AuditAction(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"


# Names the import rewriter moves off the ORM module.
ENUM_NAMES: Tuple[str, ...] = (
    "UserRole",
    "ProductCategory",
    "ProductSizeFormat",
    "MaterialCategory",
    "MaterialUnit",
    "RequestStatus",
    "AuditAction",
)


# Inventory adjustment reasons (not part of the rewritten set above)
class AdjustmentType(str, Enum):
    received = "received"
    damage = "damage"
    sample = "sample"
    count_correction = "count_correction"
    other = "other"
