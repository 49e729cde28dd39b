# api/tea_inventory/routers/production_requests.py
"""
Production requests.

Anyone signed in may raise a request for a product that has a bill of
materials; the material lines are snapshotted at that moment. Completing a
request consumes the raw materials and adds the finished quantity to the
product's stock in one transaction.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..audit_logger import log_audit_event, snapshot
from ..constants import AuditAction, RequestStatus, UserRole
from ..db import get_db
from ..errors import api_error, bad_request, not_found
from ..logging_config import get_logger
from ..models import (
    BillOfMaterial,
    Product,
    ProductionRequest,
    ProductionRequestMaterial,
    User,
    utcnow,
)
from ..schemas import (
    MaterialShortage,
    ProductionRequestComplete,
    ProductionRequestCreate,
    ProductionRequestOut,
    ProductionRequestUpdate,
)
from ..security import get_current_user, has_role, require_material_editor
from ..utils.audit_export import apply_date_range

logger = get_logger(__name__)

router = APIRouter(prefix="/api/production-requests", tags=["production-requests"])

ENTITY = "production_request"


def _with_relations(stmt):
    return stmt.options(
        selectinload(ProductionRequest.product),
        selectinload(ProductionRequest.requested_by),
        selectinload(ProductionRequest.completed_by),
        selectinload(ProductionRequest.materials).selectinload(ProductionRequestMaterial.raw_material),
    )


def _get_or_404(db: Session, request_id: int) -> ProductionRequest:
    pr = db.execute(
        _with_relations(select(ProductionRequest).where(ProductionRequest.id == request_id)),
        execution_options={"populate_existing": True},
    ).scalar_one_or_none()
    if pr is None:
        raise not_found("REQUEST_NOT_FOUND", "Production request not found")
    return pr


@router.get("", response_model=List[ProductionRequestOut])
def list_production_requests(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    product_id: Optional[int] = Query(None, alias="productId"),
    requested_by: Optional[int] = Query(None, alias="requestedBy"),
    date_from: Optional[str] = Query(None, alias="dateFrom", description="ISO datetime or YYYY-MM-DD (inclusive)"),
    date_to: Optional[str] = Query(None, alias="dateTo", description="ISO datetime or YYYY-MM-DD (inclusive)"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    stmt = select(ProductionRequest)
    if status_filter:
        stmt = stmt.where(ProductionRequest.status == status_filter.value)
    if product_id is not None:
        stmt = stmt.where(ProductionRequest.product_id == product_id)
    if requested_by is not None:
        stmt = stmt.where(ProductionRequest.requested_by_id == requested_by)
    stmt = apply_date_range(stmt, ProductionRequest.requested_at, date_from, date_to)

    stmt = (
        _with_relations(stmt)
        .order_by(ProductionRequest.requested_at.desc(), ProductionRequest.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return db.execute(stmt).scalars().all()


@router.get("/{request_id}", response_model=ProductionRequestOut)
def get_production_request(
    request_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return _get_or_404(db, request_id)


@router.post("", response_model=ProductionRequestOut, status_code=201)
def create_production_request(
    body: ProductionRequestCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = db.execute(
        select(Product)
        .where(Product.id == body.product_id)
        .options(selectinload(Product.bill_of_materials).selectinload(BillOfMaterial.raw_material))
    ).scalar_one_or_none()
    if product is None:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")

    if not product.bill_of_materials:
        raise bad_request(
            "NO_BOM",
            "Product has no bill of materials defined. "
            "Please add materials to this product before creating a production request.",
        )

    pr = ProductionRequest(
        product_id=product.id,
        quantity_requested=body.quantity_requested,
        status=RequestStatus.pending.value,
        requested_by_id=user.id,
        notes=body.notes,
    )
    for line in product.bill_of_materials:
        pr.materials.append(
            ProductionRequestMaterial(
                raw_material_id=line.raw_material_id,
                quantity_consumed=line.quantity_required * body.quantity_requested,
                quantity_available_at_request=line.raw_material.count,
            )
        )

    db.add(pr)
    db.flush()
    pr.request_number = f"PR-{pr.id:06d}"

    log_audit_event(
        db,
        action=AuditAction.create,
        entity_type=ENTITY,
        entity_id=pr.id,
        actor=user,
        after_json={
            **snapshot(pr),
            "materials": [snapshot(m) for m in pr.materials],
        },
    )
    db.commit()

    logger.info("Production request %s raised by %s for %s x%s",
                pr.request_number, user.username, product.sku, body.quantity_requested)
    return _get_or_404(db, pr.id)


@router.put("/{request_id}", response_model=ProductionRequestOut)
def update_production_request(
    request_id: int,
    body: ProductionRequestUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    pr = _get_or_404(db, request_id)

    if body.status == RequestStatus.in_progress and not has_role(user, UserRole.production, UserRole.admin):
        raise api_error(
            status.HTTP_403_FORBIDDEN,
            "FORBIDDEN",
            "Only production team can start production",
        )

    if pr.status == RequestStatus.completed.value:
        raise bad_request("REQUEST_COMPLETED", "Cannot modify completed requests")

    if body.status == RequestStatus.completed:
        raise bad_request(
            "INVALID_STATUS",
            "Requests are completed through the complete endpoint",
        )

    before_json = snapshot(pr)
    if body.status is not None:
        pr.status = body.status.value
    if "notes" in body.model_fields_set:
        pr.notes = body.notes

    db.flush()
    log_audit_event(
        db,
        action=AuditAction.update,
        entity_type=ENTITY,
        entity_id=pr.id,
        actor=user,
        before_json=before_json,
        after_json=snapshot(pr),
    )
    db.commit()
    return _get_or_404(db, pr.id)


@router.post("/{request_id}/complete", response_model=ProductionRequestOut)
def complete_production_request(
    request_id: int,
    body: Optional[ProductionRequestComplete] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_material_editor),
):
    pr = _get_or_404(db, request_id)

    if pr.status == RequestStatus.completed.value:
        raise bad_request("ALREADY_COMPLETED", "Request is already completed")
    if pr.status == RequestStatus.cancelled.value:
        raise bad_request("REQUEST_CANCELLED", "Cannot complete cancelled request")

    shortages = [
        MaterialShortage(
            item_name=line.raw_material.item_name,
            required=line.quantity_consumed,
            available=line.raw_material.count,
        )
        for line in pr.materials
        if line.raw_material.count < line.quantity_consumed
    ]
    if shortages:
        raise bad_request(
            "INSUFFICIENT_MATERIALS",
            "Insufficient raw materials",
            details={"insufficientMaterials": [s.model_dump(by_alias=True) for s in shortages]},
        )

    try:
        for line in pr.materials:
            material = line.raw_material
            before_json = snapshot(material)
            material.count = material.count - line.quantity_consumed
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
                reason=f"Consumed by production request {pr.request_number}",
            )

        product = pr.product
        before_json = snapshot(product)
        product.stock_quantity = product.stock_quantity + int(pr.quantity_requested)
        product.updated_by_id = user.id
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.update,
            entity_type="product",
            entity_id=product.id,
            actor=user,
            before_json=before_json,
            after_json=snapshot(product),
            reason=f"Produced by production request {pr.request_number}",
        )

        before_json = snapshot(pr)
        pr.status = RequestStatus.completed.value
        pr.completed_by_id = user.id
        pr.completed_at = utcnow()
        if body is not None and body.notes:
            pr.notes = body.notes
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.update,
            entity_type=ENTITY,
            entity_id=pr.id,
            actor=user,
            before_json=before_json,
            after_json=snapshot(pr),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Production request %s completed by %s", pr.request_number, user.username)
    return _get_or_404(db, pr.id)
