# api/tea_inventory/routers/bom.py
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..audit_logger import log_audit_event, snapshot
from ..constants import AuditAction
from ..db import get_db
from ..errors import conflict, not_found, translate_integrity_error
from ..models import BillOfMaterial, Product, RawMaterial, User
from ..schemas import BomCreate, BomOut, BomUpdate, ProductBomOut
from ..security import get_current_user, require_product_editor

router = APIRouter(prefix="/api/bom", tags=["bom"])


def _get_or_404(db: Session, bom_id: int) -> BillOfMaterial:
    bom = db.get(BillOfMaterial, bom_id)
    if bom is None:
        raise not_found("BOM_NOT_FOUND", "Bill of material entry not found")
    return bom


@router.get("/product/{product_id}", response_model=ProductBomOut)
def get_product_bom(
    product_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    product = db.get(Product, product_id)
    if product is None:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")

    lines = db.execute(
        select(BillOfMaterial)
        .where(BillOfMaterial.product_id == product_id)
        .options(selectinload(BillOfMaterial.raw_material))
        .order_by(BillOfMaterial.id)
    ).scalars().all()

    return ProductBomOut(
        product_id=product.id,
        product_name=product.name,
        materials=[BomOut.model_validate(b) for b in lines],
    )


@router.post("", response_model=BomOut, status_code=201)
def create_bom_line(
    body: BomCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_product_editor),
):
    if db.get(Product, body.product_id) is None:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")
    if db.get(RawMaterial, body.raw_material_id) is None:
        raise not_found("MATERIAL_NOT_FOUND", "Raw material not found")

    existing = db.execute(
        select(BillOfMaterial.id).where(
            BillOfMaterial.product_id == body.product_id,
            BillOfMaterial.raw_material_id == body.raw_material_id,
        )
    ).first()
    if existing:
        raise conflict("BOM_EXISTS", "This material is already in the product recipe")

    bom = BillOfMaterial(
        product_id=body.product_id,
        raw_material_id=body.raw_material_id,
        quantity_required=body.quantity_required,
        unit_override=body.unit_override,
    )
    db.add(bom)
    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.create,
            entity_type="bill_of_material",
            entity_id=bom.id,
            actor=user,
            after_json=snapshot(bom),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e, "BOM_EXISTS")

    db.refresh(bom)
    return bom


@router.put("/{bom_id}", response_model=BomOut)
def update_bom_line(
    bom_id: int,
    body: BomUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_product_editor),
):
    bom = _get_or_404(db, bom_id)
    before_json = snapshot(bom)

    bom.quantity_required = body.quantity_required
    if "unit_override" in body.model_fields_set:
        bom.unit_override = body.unit_override

    db.flush()
    log_audit_event(
        db,
        action=AuditAction.update,
        entity_type="bill_of_material",
        entity_id=bom.id,
        actor=user,
        before_json=before_json,
        after_json=snapshot(bom),
    )
    db.commit()
    db.refresh(bom)
    return bom


@router.delete("/{bom_id}", status_code=204)
def delete_bom_line(
    bom_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_product_editor),
) -> None:
    bom = _get_or_404(db, bom_id)
    before_json = snapshot(bom)

    log_audit_event(
        db,
        action=AuditAction.delete,
        entity_type="bill_of_material",
        entity_id=bom.id,
        actor=user,
        before_json=before_json,
    )
    db.delete(bom)
    db.commit()
    return None
