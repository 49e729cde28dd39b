# api/tea_inventory/routers/health.py
from fastapi import APIRouter

from ..models import utcnow
from ..schemas import HealthOut

router = APIRouter(tags=["health"])


@router.get("/api/health", response_model=HealthOut)
def health() -> HealthOut:
    return HealthOut(status="ok", message="Tea Inventory API is running", timestamp=utcnow())


@router.get("/health", response_model=HealthOut, include_in_schema=False)
def health_root() -> HealthOut:
    return health()
