# tea_inventory/schemas.py
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import (
    AdjustmentType,
    AuditAction,
    MaterialCategory,
    MaterialUnit,
    ProductCategory,
    ProductSizeFormat,
    RequestStatus,
    UserRole,
)


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------

class LoginRequest(ApiModel):
    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class UserBrief(ApiModel):
    id: int
    username: str


class UserPublic(ApiModel):
    id: int
    username: str
    email: str
    role: UserRole


class SessionUserOut(ApiModel):
    user: UserPublic


class MessageOut(ApiModel):
    message: str


class Pagination(ApiModel):
    limit: int
    offset: int
    total: int


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserOut(ApiModel):
    id: int
    username: str
    email: str
    role: UserRole
    is_active: bool
    created_at: datetime
    created_by: Optional[str] = None


class UserCreate(ApiModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(..., min_length=6)
    role: UserRole


class UserUpdate(ApiModel):
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)


# ---------------------------------------------------------------------------
# PRODUCTS
# ---------------------------------------------------------------------------

class ProductBase(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: ProductCategory = ProductCategory.tea
    size_format: ProductSizeFormat
    stock_quantity: int = Field(0, ge=0)
    reorder_threshold: int = Field(0, ge=0)
    price: float = Field(0.0, ge=0)
    barcode: Optional[str] = Field(None, max_length=100)


class ProductCreate(ProductBase):
    sku: str = Field(..., min_length=1, max_length=50, description="Stock-keeping unit, unique")


class ProductUpdate(ApiModel):
    """Partial update. The SKU is fixed once created."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[ProductCategory] = None
    size_format: Optional[ProductSizeFormat] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    reorder_threshold: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    barcode: Optional[str] = Field(None, max_length=100)


class ProductOut(ProductBase):
    id: int
    sku: str
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime
    updated_by: Optional[UserBrief] = None


class ProductPage(ApiModel):
    products: List[ProductOut]
    pagination: Pagination


class ProductOption(ApiModel):
    id: int
    name: str
    sku: str
    size_format: ProductSizeFormat
    category: ProductCategory
    stock_quantity: int
    reorder_threshold: int


class ProductOptionsOut(ApiModel):
    products: List[ProductOption]


# ---------------------------------------------------------------------------
# RAW MATERIALS
# ---------------------------------------------------------------------------

class RawMaterialBase(ApiModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    category: MaterialCategory
    unit: MaterialUnit
    count: float = Field(0, ge=0)
    quantity_per_unit: Optional[float] = Field(None, gt=0)
    reorder_threshold: float = Field(0, ge=0)
    notes: Optional[str] = None


class RawMaterialCreate(RawMaterialBase):
    pass


class RawMaterialUpdate(ApiModel):
    item_name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[MaterialCategory] = None
    unit: Optional[MaterialUnit] = None
    count: Optional[float] = Field(None, ge=0)
    quantity_per_unit: Optional[float] = Field(None, gt=0)
    reorder_threshold: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class RawMaterialOut(RawMaterialBase):
    id: int
    total_quantity: float
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime
    updated_by: Optional[UserBrief] = None


class RawMaterialPage(ApiModel):
    raw_materials: List[RawMaterialOut]
    pagination: Pagination


class RawMaterialBrief(ApiModel):
    id: int
    item_name: str
    unit: MaterialUnit


# ---------------------------------------------------------------------------
# BILL OF MATERIALS
# ---------------------------------------------------------------------------

class BomCreate(ApiModel):
    product_id: int
    raw_material_id: int
    quantity_required: float = Field(..., gt=0)
    unit_override: Optional[str] = Field(None, max_length=20)


class BomUpdate(ApiModel):
    quantity_required: float = Field(..., gt=0)
    unit_override: Optional[str] = Field(None, max_length=20)


class BomOut(ApiModel):
    id: int
    product_id: int
    raw_material_id: int
    quantity_required: float
    unit_override: Optional[str] = None
    raw_material: RawMaterialOut


class ProductDetailOut(ProductOut):
    bill_of_materials: List[BomOut] = []


class ProductBomOut(ApiModel):
    product_id: int
    product_name: str
    materials: List[BomOut]


# ---------------------------------------------------------------------------
# PRODUCTION REQUESTS
# ---------------------------------------------------------------------------

class ProductionRequestCreate(ApiModel):
    product_id: int
    quantity_requested: int = Field(..., gt=0, description="Finished units to produce")
    notes: Optional[str] = None


class ProductionRequestUpdate(ApiModel):
    status: Optional[RequestStatus] = None
    notes: Optional[str] = None


class ProductionRequestComplete(ApiModel):
    notes: Optional[str] = None


class RequestMaterialOut(ApiModel):
    id: int
    raw_material_id: int
    quantity_consumed: float
    quantity_available_at_request: float
    is_available: bool
    raw_material: RawMaterialOut


class ProductionRequestOut(ApiModel):
    id: int
    request_number: Optional[str] = None
    product_id: int
    quantity_requested: float
    status: RequestStatus
    requested_by_id: int
    requested_at: datetime
    completed_by_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    product: ProductOut
    requested_by: UserBrief
    completed_by: Optional[UserBrief] = None
    materials: List[RequestMaterialOut] = []
    all_materials_available: bool


class MaterialShortage(ApiModel):
    item_name: str
    required: float
    available: float


# ---------------------------------------------------------------------------
# INVENTORY ADJUSTMENTS
# ---------------------------------------------------------------------------

class AdjustmentCreate(ApiModel):
    raw_material_id: int
    adjustment_type: AdjustmentType
    adjustment_amount: float = Field(..., description="Signed change applied to the on-hand count")
    reason: str = Field(..., min_length=1, max_length=500)


class AdjustmentOut(ApiModel):
    id: int
    raw_material_id: int
    adjustment_type: AdjustmentType
    quantity_before: float
    quantity_after: float
    reason: str
    adjusted_by_id: int
    adjusted_at: datetime
    adjusted_by: Optional[UserBrief] = None
    raw_material: Optional[RawMaterialBrief] = None


class AdjustmentResult(ApiModel):
    adjustment: AdjustmentOut
    material: RawMaterialOut


# ---------------------------------------------------------------------------
# DASHBOARD
# ---------------------------------------------------------------------------

class CountStats(ApiModel):
    total: int
    low_stock: int


class RequestStats(ApiModel):
    pending: int
    in_progress: int
    completed_today: int


class RecentProductUpdate(ApiModel):
    id: int
    name: str
    size_format: ProductSizeFormat
    stock_quantity: int
    updated_at: datetime


class RecentMaterialUpdate(ApiModel):
    id: int
    item_name: str
    total_quantity: float
    unit: MaterialUnit
    updated_at: datetime


class DashboardStats(ApiModel):
    products: CountStats
    raw_materials: Optional[CountStats] = None
    production_requests: RequestStats
    recent_product_updates: Optional[List[RecentProductUpdate]] = None
    recent_material_updates: Optional[List[RecentMaterialUpdate]] = None


class DashboardStatsOut(ApiModel):
    stats: DashboardStats


class LowStockProduct(ApiModel):
    id: int
    name: str
    sku: str
    size_format: ProductSizeFormat
    stock_quantity: int
    reorder_threshold: int
    deficit: float


class LowStockMaterial(ApiModel):
    id: int
    item_name: str
    category: MaterialCategory
    count: float
    unit: MaterialUnit
    reorder_threshold: float
    deficit: float


class LowStockReport(ApiModel):
    products: List[LowStockProduct]
    raw_materials: List[LowStockMaterial]


# ---------------------------------------------------------------------------
# AUDIT FEED
# ---------------------------------------------------------------------------

class AuditEventOut(ApiModel):
    id: int
    action: AuditAction
    entity_type: str
    entity_id: str
    user_id: Optional[int] = None
    actor_username: Optional[str] = None
    actor_role: Optional[str] = None
    reason: Optional[str] = None
    before_json: Optional[Any] = None
    after_json: Optional[Any] = None
    created_at: datetime


# ---------------------------------------------------------------------------
# HEALTH
# ---------------------------------------------------------------------------

class HealthOut(ApiModel):
    status: str
    message: str
    timestamp: datetime
