# api/tea_inventory/routers/raw_materials.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..audit_logger import log_audit_event, snapshot
from ..constants import AuditAction, MaterialCategory
from ..db import get_db
from ..errors import not_found, translate_integrity_error
from ..models import RawMaterial, User
from ..schemas import (
    Pagination,
    RawMaterialCreate,
    RawMaterialOut,
    RawMaterialPage,
    RawMaterialUpdate,
)
from ..security import get_current_user, require_material_editor
from ..utils.csv_export import csv_response, dated_filename

router = APIRouter(prefix="/api/raw-materials", tags=["raw-materials"])

ENUM_FIELDS = ("category", "unit")
NULLABLE_FIELDS = ("quantity_per_unit", "notes")


def _filtered(stmt, search: Optional[str], category: Optional[MaterialCategory], low_stock: bool):
    if search:
        stmt = stmt.where(RawMaterial.item_name.ilike(f"%{search}%"))
    if category:
        stmt = stmt.where(RawMaterial.category == category.value)
    if low_stock:
        stmt = stmt.where(RawMaterial.count < RawMaterial.reorder_threshold)
    return stmt


def get_material_or_404(db: Session, material_id: int) -> RawMaterial:
    m = db.get(RawMaterial, material_id)
    if m is None:
        raise not_found("MATERIAL_NOT_FOUND", "Raw material not found")
    return m


@router.get("", response_model=RawMaterialPage)
def list_raw_materials(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    search: Optional[str] = None,
    category: Optional[MaterialCategory] = None,
    low_stock: bool = Query(False, alias="lowStock"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    total = db.execute(
        _filtered(select(func.count(RawMaterial.id)), search, category, low_stock)
    ).scalar_one()

    stmt = (
        _filtered(select(RawMaterial), search, category, low_stock)
        .options(selectinload(RawMaterial.updated_by))
        .order_by(RawMaterial.category, RawMaterial.item_name, RawMaterial.id)
        .offset(offset)
        .limit(limit)
    )
    materials = db.execute(stmt).scalars().all()
    return RawMaterialPage(
        raw_materials=[RawMaterialOut.model_validate(m) for m in materials],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.get("/export")
def export_raw_materials(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    search: Optional[str] = None,
    category: Optional[MaterialCategory] = None,
    low_stock: bool = Query(False, alias="lowStock"),
):
    stmt = _filtered(select(RawMaterial), search, category, low_stock)
    materials = db.execute(stmt.order_by(RawMaterial.category, RawMaterial.item_name)).scalars().all()

    header = [
        "Name",
        "Category",
        "Count",
        "Unit",
        "Quantity Per Unit",
        "Total Quantity",
        "Reorder Threshold",
        "Low Stock",
        "Notes",
    ]
    rows = [
        [
            m.item_name,
            m.category,
            m.count,
            m.unit,
            m.quantity_per_unit if m.quantity_per_unit is not None else "",
            m.total_quantity,
            m.reorder_threshold,
            "Yes" if m.is_low_stock else "No",
            m.notes or "",
        ]
        for m in materials
    ]
    return csv_response(dated_filename("raw-materials"), header, rows, quote_all=True)


@router.get("/{material_id}", response_model=RawMaterialOut)
def get_raw_material(
    material_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return get_material_or_404(db, material_id)


@router.post("", response_model=RawMaterialOut, status_code=201)
def create_raw_material(
    body: RawMaterialCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_material_editor),
):
    m = RawMaterial(
        item_name=body.item_name.strip(),
        category=body.category.value,
        unit=body.unit.value,
        count=body.count,
        quantity_per_unit=body.quantity_per_unit,
        reorder_threshold=body.reorder_threshold,
        notes=body.notes,
        updated_by_id=user.id,
    )
    db.add(m)
    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.create,
            entity_type="raw_material",
            entity_id=m.id,
            actor=user,
            after_json=snapshot(m),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e)

    db.refresh(m)
    return m


@router.put("/{material_id}", response_model=RawMaterialOut)
def update_raw_material(
    material_id: int,
    body: RawMaterialUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_material_editor),
):
    m = get_material_or_404(db, material_id)
    before_json = snapshot(m)

    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field not in NULLABLE_FIELDS:
            continue
        if field in ENUM_FIELDS:
            value = value.value
        setattr(m, field, value)
    m.updated_by_id = user.id

    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.update,
            entity_type="raw_material",
            entity_id=m.id,
            actor=user,
            before_json=before_json,
            after_json=snapshot(m),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e)

    db.refresh(m)
    return m
