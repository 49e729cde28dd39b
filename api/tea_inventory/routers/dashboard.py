# api/tea_inventory/routers/dashboard.py
from datetime import datetime, time, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..constants import RequestStatus, UserRole
from ..db import get_db
from ..models import Product, ProductionRequest, RawMaterial, User, utcnow
from ..schemas import (
    CountStats,
    DashboardStats,
    DashboardStatsOut,
    LowStockMaterial,
    LowStockProduct,
    LowStockReport,
    RecentMaterialUpdate,
    RecentProductUpdate,
    RequestStats,
)
from ..security import get_current_user, has_role

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

RECENT_LIMIT = 5


def _count(db: Session, stmt) -> int:
    return db.execute(stmt).scalar_one()


@router.get("/stats", response_model=DashboardStatsOut, response_model_exclude_none=True)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> DashboardStatsOut:
    sees_materials = has_role(user, UserRole.production, UserRole.admin)
    sees_products = has_role(user, UserRole.fulfillment, UserRole.admin)

    # 1) Products (everyone)
    products = CountStats(
        total=_count(db, select(func.count(Product.id))),
        low_stock=_count(
            db,
            select(func.count(Product.id)).where(Product.stock_quantity < Product.reorder_threshold),
        ),
    )

    # 2) Raw materials (production/admin)
    raw_materials = None
    if sees_materials:
        raw_materials = CountStats(
            total=_count(db, select(func.count(RawMaterial.id))),
            low_stock=_count(
                db,
                select(func.count(RawMaterial.id)).where(RawMaterial.count < RawMaterial.reorder_threshold),
            ),
        )

    # 3) Production requests, "today" in UTC
    start_of_day = datetime.combine(utcnow().date(), time.min, tzinfo=timezone.utc)

    def by_status(s: RequestStatus):
        return select(func.count(ProductionRequest.id)).where(ProductionRequest.status == s.value)

    requests = RequestStats(
        pending=_count(db, by_status(RequestStatus.pending)),
        in_progress=_count(db, by_status(RequestStatus.in_progress)),
        completed_today=_count(
            db,
            by_status(RequestStatus.completed).where(ProductionRequest.completed_at >= start_of_day),
        ),
    )

    stats = DashboardStats(
        products=products,
        raw_materials=raw_materials,
        production_requests=requests,
    )

    # 4) Recent activity by role
    if sees_products:
        recent = db.execute(
            select(Product).order_by(Product.updated_at.desc()).limit(RECENT_LIMIT)
        ).scalars().all()
        stats.recent_product_updates = [RecentProductUpdate.model_validate(p) for p in recent]

    if sees_materials:
        recent = db.execute(
            select(RawMaterial).order_by(RawMaterial.updated_at.desc()).limit(RECENT_LIMIT)
        ).scalars().all()
        stats.recent_material_updates = [RecentMaterialUpdate.model_validate(m) for m in recent]

    return DashboardStatsOut(stats=stats)


@router.get("/low-stock", response_model=LowStockReport)
def get_low_stock_report(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> LowStockReport:
    products = db.execute(
        select(Product)
        .where(Product.stock_quantity < Product.reorder_threshold)
        .order_by(Product.stock_quantity.asc(), Product.id)
    ).scalars().all()

    materials = db.execute(
        select(RawMaterial)
        .where(RawMaterial.count < RawMaterial.reorder_threshold)
        .order_by(RawMaterial.count.asc(), RawMaterial.id)
    ).scalars().all()

    return LowStockReport(
        products=[
            LowStockProduct(
                id=p.id,
                name=p.name,
                sku=p.sku,
                size_format=p.size_format,
                stock_quantity=p.stock_quantity,
                reorder_threshold=p.reorder_threshold,
                deficit=p.reorder_threshold - p.stock_quantity,
            )
            for p in products
        ],
        raw_materials=[
            LowStockMaterial(
                id=m.id,
                item_name=m.item_name,
                category=m.category,
                count=m.count,
                unit=m.unit,
                reorder_threshold=m.reorder_threshold,
                deficit=m.reorder_threshold - m.count,
            )
            for m in materials
        ],
    )
