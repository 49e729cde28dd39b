# api/tea_inventory/routers/inventory_adjustments.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..audit_logger import log_audit_event, snapshot
from ..constants import AuditAction
from ..db import get_db
from ..errors import bad_request
from ..models import InventoryAdjustment, User
from ..schemas import AdjustmentCreate, AdjustmentOut, AdjustmentResult, RawMaterialOut
from ..security import get_current_user, require_material_editor
from .raw_materials import get_material_or_404

router = APIRouter(prefix="/api/inventory-adjustments", tags=["inventory-adjustments"])

HISTORY_LIMIT = 50


def _history(db: Session, *criteria) -> List[InventoryAdjustment]:
    stmt = select(InventoryAdjustment)
    if criteria:
        stmt = stmt.where(*criteria)
    stmt = (
        stmt.options(
            selectinload(InventoryAdjustment.adjusted_by),
            selectinload(InventoryAdjustment.raw_material),
        )
        .order_by(InventoryAdjustment.adjusted_at.desc(), InventoryAdjustment.id.desc())
        .limit(HISTORY_LIMIT)
    )
    return db.execute(stmt).scalars().all()


@router.post("", response_model=AdjustmentResult, status_code=201)
def create_adjustment(
    body: AdjustmentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_material_editor),
):
    material = get_material_or_404(db, body.raw_material_id)

    quantity_before = material.count
    quantity_after = quantity_before + body.adjustment_amount
    if quantity_after < 0:
        raise bad_request("INVALID_ADJUSTMENT", "Adjustment would result in negative stock")

    reason = body.reason.strip()
    if not reason:
        raise bad_request("VALIDATION_ERROR", "A reason is required for stock adjustments")

    before_json = snapshot(material)

    adjustment = InventoryAdjustment(
        raw_material_id=material.id,
        adjustment_type=body.adjustment_type.value,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        reason=reason,
        adjusted_by_id=user.id,
    )
    db.add(adjustment)

    material.count = quantity_after
    material.updated_by_id = user.id
    db.flush()

    log_audit_event(
        db,
        action=AuditAction.update,
        entity_type="raw_material",
        entity_id=material.id,
        actor=user,
        before_json=before_json,
        after_json=snapshot(material),
        reason=f"{body.adjustment_type.value}: {reason}",
    )
    db.commit()
    db.refresh(adjustment)

    return AdjustmentResult(
        adjustment=AdjustmentOut.model_validate(adjustment),
        material=RawMaterialOut.model_validate(material),
    )


@router.get("/material/{material_id}", response_model=List[AdjustmentOut])
def list_material_adjustments(
    material_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    get_material_or_404(db, material_id)
    return _history(db, InventoryAdjustment.raw_material_id == material_id)


@router.get("", response_model=List[AdjustmentOut])
def list_recent_adjustments(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return _history(db)
