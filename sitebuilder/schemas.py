# sitebuilder/schemas.py
"""
Schemas (Pydantic v2) de entrada e saída da API.

O JSON trafega em camelCase (``customerName``, ``totalAmount``); na entrada
também aceitamos snake_case.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .pix import PIX_KEY_MAX

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class OrderStatus(str, Enum):
    new = "new"
    preparing = "preparing"
    ready = "ready"
    delivered = "delivered"
    cancelled = "cancelled"


class DeliveryType(str, Enum):
    delivery = "delivery"
    pickup = "pickup"


class PixKeyType(str, Enum):
    cpf = "cpf"
    cnpj = "cnpj"
    email = "email"
    phone = "phone"
    random = "random"


class Schema(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


# -----------------------------------------------------------------------------
# Usuário
# -----------------------------------------------------------------------------
class UserOut(Schema):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------
class TemplateIn(Schema):
    name: str = Field(..., min_length=1, max_length=120)
    category: str = Field(..., min_length=1, max_length=60)
    description: Optional[str] = None
    image_url: Optional[str] = None
    html_content: str
    css_content: str
    js_content: Optional[str] = None
    config: Dict[str, Any]


class TemplateOut(TemplateIn):
    id: int
    created_at: Optional[datetime] = None


# -----------------------------------------------------------------------------
# Sites
# -----------------------------------------------------------------------------
class SiteIn(Schema):
    template_id: int
    name: str = Field(..., min_length=2, max_length=120)
    slug: str = Field(..., min_length=2, max_length=120, pattern=SLUG_PATTERN)
    whatsapp_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    config: Dict[str, Any] = {}
    pix_key: Optional[str] = Field(None, max_length=PIX_KEY_MAX)
    pix_key_type: Optional[PixKeyType] = None
    is_active: bool = True


class SiteUpdate(Schema):
    template_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    slug: Optional[str] = Field(None, min_length=2, max_length=120, pattern=SLUG_PATTERN)
    whatsapp_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    pix_key: Optional[str] = Field(None, max_length=PIX_KEY_MAX)
    pix_key_type: Optional[PixKeyType] = None
    is_active: Optional[bool] = None


class SiteOut(Schema):
    id: str
    user_id: str
    template_id: int
    name: str
    slug: str
    whatsapp_number: Optional[str] = None
    address: Optional[str] = None
    config: Dict[str, Any] = {}
    netlify_url: Optional[str] = None
    netlify_id: Optional[str] = None
    pix_key: Optional[str] = None
    pix_key_type: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DeployOut(Schema):
    success: bool
    url: str
    message: str


# -----------------------------------------------------------------------------
# Produtos
# -----------------------------------------------------------------------------
class ProductIn(Schema):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_available: bool = True


class ProductUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_available: Optional[bool] = None


class ProductOut(Schema):
    id: int
    site_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_available: bool = True
    created_at: Optional[datetime] = None


class PublicSiteOut(Schema):
    site: SiteOut
    products: List[ProductOut]


# -----------------------------------------------------------------------------
# Pedidos
# -----------------------------------------------------------------------------
class OrderItemIn(Schema):
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(..., ge=1)
    observations: Optional[str] = None
    product_id: Optional[int] = None


class OrderIn(Schema):
    customer_name: str = Field(..., min_length=1, max_length=120)
    customer_phone: str = Field(..., min_length=1, max_length=30)
    customer_address: Optional[str] = None
    delivery_type: DeliveryType
    items: List[OrderItemIn] = Field(..., min_length=1)
    total_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class OrderItemOut(Schema):
    name: str
    price: Decimal
    quantity: int
    observations: Optional[str] = None
    product_id: Optional[int] = None


class OrderOut(Schema):
    id: str
    site_id: str
    customer_name: str
    customer_phone: str
    customer_address: Optional[str] = None
    delivery_type: str
    items: List[OrderItemOut]
    total_amount: Decimal
    status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderCreatedOut(OrderOut):
    whatsapp_url: Optional[str] = None


class StatusChange(Schema):
    status: OrderStatus


class LinkOut(Schema):
    url: str


# -----------------------------------------------------------------------------
# Analytics / painel
# -----------------------------------------------------------------------------
class AnalyticsIn(Schema):
    date: date
    views: Optional[int] = Field(None, ge=0)
    orders: Optional[int] = Field(None, ge=0)
    revenue: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    conversion_rate: Optional[Decimal] = Field(None, ge=0, max_digits=5, decimal_places=2)


class AnalyticsOut(Schema):
    id: int
    site_id: str
    date: date
    views: int = 0
    orders: int = 0
    revenue: Decimal = Decimal("0")
    conversion_rate: Decimal = Decimal("0")


class DashboardStatsOut(Schema):
    total_sites: int
    total_orders: int
    total_revenue: Decimal
    total_views: int


class PixOut(Schema):
    code: str
    amount: Optional[Decimal] = None


class ProductStatOut(Schema):
    name: str
    quantity: int
    revenue: Decimal


class HourBucketOut(Schema):
    hour: int
    label: str
    orders: int


class DayTotalsOut(Schema):
    orders: int
    revenue: Decimal


class AnalyticsTotalsOut(Schema):
    views: int
    orders: int
    revenue: Decimal
    avg_conversion_rate: Decimal


class ReportOut(Schema):
    period: str
    timezone: str
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    status_counts: Dict[str, int]
    delivery_split: Dict[str, int]
    today: DayTotalsOut
    top_products: List[ProductStatOut]
    peak_hours: List[HourBucketOut]
    analytics: AnalyticsTotalsOut
