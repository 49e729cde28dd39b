# api/tea_inventory/routers/products.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..audit_logger import log_audit_event, snapshot
from ..constants import AuditAction, ProductCategory
from ..db import get_db
from ..errors import conflict, not_found, translate_integrity_error
from ..models import BillOfMaterial, Product, User
from ..schemas import (
    Pagination,
    ProductCreate,
    ProductDetailOut,
    ProductOption,
    ProductOptionsOut,
    ProductOut,
    ProductPage,
    ProductUpdate,
)
from ..security import get_current_user, require_product_editor
from ..utils.csv_export import csv_response, dated_filename

router = APIRouter(prefix="/api/products", tags=["products"])


def _filtered(stmt, search: Optional[str], category: Optional[ProductCategory], low_stock: bool):
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if category:
        stmt = stmt.where(Product.category == category.value)
    if low_stock:
        stmt = stmt.where(Product.stock_quantity < Product.reorder_threshold)
    return stmt


def _get_or_404(db: Session, product_id: int) -> Product:
    p = db.get(Product, product_id)
    if p is None:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")
    return p


@router.get("", response_model=ProductPage)
def list_products(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    search: Optional[str] = None,
    category: Optional[ProductCategory] = None,
    low_stock: bool = Query(False, alias="lowStock"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    stmt = _filtered(select(Product), search, category, low_stock)
    total = db.execute(
        _filtered(select(func.count(Product.id)), search, category, low_stock)
    ).scalar_one()

    stmt = (
        stmt.options(selectinload(Product.updated_by))
        .order_by(Product.updated_at.desc(), Product.id.desc())
        .offset(offset)
        .limit(limit)
    )
    products = db.execute(stmt).scalars().all()
    return ProductPage(
        products=[ProductOut.model_validate(p) for p in products],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.get("/all", response_model=ProductOptionsOut)
def list_product_options(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    products = db.execute(select(Product).order_by(Product.name.asc())).scalars().all()
    return ProductOptionsOut(products=[ProductOption.model_validate(p) for p in products])


@router.get("/export")
def export_products(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    search: Optional[str] = None,
    category: Optional[ProductCategory] = None,
    low_stock: bool = Query(False, alias="lowStock"),
):
    stmt = _filtered(select(Product), search, category, low_stock)
    products = db.execute(stmt.order_by(Product.category, Product.name)).scalars().all()

    header = ["Name", "SKU", "Size", "Price", "Stock Quantity", "Reorder Threshold", "Category", "Barcode", "Low Stock"]
    rows = [
        [
            p.name,
            p.sku,
            p.size_format,
            p.price,
            p.stock_quantity,
            p.reorder_threshold,
            p.category or "",
            p.barcode or "",
            "Yes" if p.is_low_stock else "No",
        ]
        for p in products
    ]
    return csv_response(dated_filename("product-inventory"), header, rows, quote_all=True)


@router.get("/by-sku/{sku}", response_model=ProductOut)
def get_product_by_sku(
    sku: str,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    p = db.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none()
    if p is None:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")
    return p


@router.get("/{product_id}", response_model=ProductDetailOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    p = db.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(
            selectinload(Product.bill_of_materials).selectinload(BillOfMaterial.raw_material),
            selectinload(Product.updated_by),
        )
    ).scalar_one_or_none()
    if p is None:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")
    return p


@router.post("", response_model=ProductOut, status_code=201)
def create_product(
    body: ProductCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_product_editor),
):
    sku = body.sku.strip()
    existing = db.execute(select(Product.id).where(Product.sku == sku)).first()
    if existing:
        raise conflict("PRODUCT_EXISTS", "Product with this SKU already exists")

    p = Product(
        name=body.name.strip(),
        sku=sku,
        category=body.category.value,
        size_format=body.size_format.value,
        stock_quantity=body.stock_quantity,
        reorder_threshold=body.reorder_threshold,
        price=body.price,
        barcode=body.barcode or None,
        updated_by_id=user.id,
    )
    db.add(p)
    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.create,
            entity_type="product",
            entity_id=p.id,
            actor=user,
            after_json=snapshot(p),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e, "PRODUCT_EXISTS")

    db.refresh(p)
    return p


@router.put("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_product_editor),
):
    p = _get_or_404(db, product_id)
    before_json = snapshot(p)

    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field != "barcode":
            continue
        if field in ("category", "size_format"):
            value = value.value
        setattr(p, field, value)
    p.updated_by_id = user.id

    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.update,
            entity_type="product",
            entity_id=p.id,
            actor=user,
            before_json=before_json,
            after_json=snapshot(p),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e)

    db.refresh(p)
    return p
