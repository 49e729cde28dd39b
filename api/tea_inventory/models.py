# tea_inventory/models.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .constants import ProductCategory, RequestStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- Base ---------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# --- Users --------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # UserRole value
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User username={self.username!r} role={self.role!r} active={self.is_active}>"


# --- Products -----------------------------------------------------------------


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProductCategory.tea.value
    )
    size_format: Mapped[str] = mapped_column(String(20), nullable=False)

    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    updated_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    updated_by: Mapped[Optional["User"]] = relationship("User")
    bill_of_materials: Mapped[list["BillOfMaterial"]] = relationship(
        "BillOfMaterial",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("reorder_threshold >= 0", name="ck_products_threshold_non_negative"),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity < self.reorder_threshold

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Product sku={self.sku!r} name={self.name!r}>"


# --- Raw materials ------------------------------------------------------------


class RawMaterial(Base):
    __tablename__ = "raw_materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)

    count: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    quantity_per_unit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    reorder_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    updated_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    updated_by: Mapped[Optional["User"]] = relationship("User")

    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_raw_materials_count_non_negative"),
        CheckConstraint(
            "reorder_threshold >= 0", name="ck_raw_materials_threshold_non_negative"
        ),
    )

    @property
    def total_quantity(self) -> float:
        if self.quantity_per_unit:
            return self.count * self.quantity_per_unit
        return self.count

    @property
    def is_low_stock(self) -> bool:
        return self.count < self.reorder_threshold

    def __repr__(self) -> str:  # pragma: no cover
        return f"<RawMaterial id={self.id} item_name={self.item_name!r}>"


# --- Bill of materials --------------------------------------------------------


class BillOfMaterial(Base):
    __tablename__ = "bill_of_materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    raw_material_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("raw_materials.id"), nullable=False
    )
    quantity_required: Mapped[float] = mapped_column(Float, nullable=False)
    unit_override: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    product: Mapped["Product"] = relationship("Product", back_populates="bill_of_materials")
    raw_material: Mapped["RawMaterial"] = relationship("RawMaterial")

    __table_args__ = (
        UniqueConstraint(
            "product_id", "raw_material_id", name="uq_bill_of_materials_product_material"
        ),
        CheckConstraint("quantity_required > 0", name="ck_bill_of_materials_qty_positive"),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<BillOfMaterial product_id={self.product_id} "
            f"raw_material_id={self.raw_material_id} qty={self.quantity_required}>"
        )


# --- Production requests ------------------------------------------------------


class ProductionRequest(Base):
    __tablename__ = "production_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_number: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)

    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False)
    quantity_requested: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.pending.value
    )

    requested_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    product: Mapped["Product"] = relationship("Product")
    requested_by: Mapped["User"] = relationship("User", foreign_keys=[requested_by_id])
    completed_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[completed_by_id])
    materials: Mapped[list["ProductionRequestMaterial"]] = relationship(
        "ProductionRequestMaterial",
        back_populates="request",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("quantity_requested > 0", name="ck_production_requests_qty_positive"),
    )

    @property
    def all_materials_available(self) -> bool:
        return all(m.is_available for m in self.materials)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ProductionRequest number={self.request_number!r} status={self.status!r}>"


class ProductionRequestMaterial(Base):
    __tablename__ = "production_request_materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("production_requests.id", ondelete="CASCADE"), nullable=False
    )
    raw_material_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("raw_materials.id"), nullable=False
    )
    quantity_consumed: Mapped[float] = mapped_column(Float, nullable=False)
    quantity_available_at_request: Mapped[float] = mapped_column(Float, nullable=False)

    request: Mapped["ProductionRequest"] = relationship(
        "ProductionRequest", back_populates="materials"
    )
    raw_material: Mapped["RawMaterial"] = relationship("RawMaterial")

    @property
    def is_available(self) -> bool:
        return self.quantity_consumed <= self.raw_material.count


# --- Inventory adjustments ----------------------------------------------------


class InventoryAdjustment(Base):
    __tablename__ = "inventory_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raw_material_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("raw_materials.id"), nullable=False
    )
    adjustment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    quantity_before: Mapped[float] = mapped_column(Float, nullable=False)
    quantity_after: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    adjusted_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    adjusted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    raw_material: Mapped["RawMaterial"] = relationship("RawMaterial")
    adjusted_by: Mapped["User"] = relationship("User")


# --- Audit trail (append-only) ------------------------------------------------


class AuditEntry(Base):
    __tablename__ = "audit_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # AuditAction value
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(50), nullable=False)

    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    before_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    after_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<AuditEntry {self.action} {self.entity_type}#{self.entity_id} "
            f"user_id={self.user_id}>"
        )


# --- Server-held sessions -----------------------------------------------------


class SessionRecord(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<SessionRecord id={self.id[:8]}... user_id={self.user_id}>"
