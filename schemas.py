"""
Database Schemas

MongoDB collection schemas as Pydantic models. Attributes are snake_case in
Python and camelCase in MongoDB and on the wire:
- Product -> "product" collection
- Order -> "order" collection
- HeroContent -> "hero_content" collection
- DashboardStats -> "dashboard_stats" collection (single document)
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
MEDIA_TYPES = ("image", "video")

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]
MediaType = Literal["image", "video"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------
# Catalog
# -----------------------------

class Product(CamelModel):
    """
    Products collection schema
    Collection: "product"
    """
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field("", description="Product description")
    price: float = Field(..., gt=0, description="Unit price")
    category: str = Field(..., min_length=1, description="Product category")
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    photos: List[str] = Field(..., min_length=1, description="Photo URLs, remote or /uploads/ paths")
    created_at: datetime = Field(default_factory=_now)


# -----------------------------
# Orders
# -----------------------------

class Order(CamelModel):
    """
    Orders collection schema
    Collection: "order"
    """
    product_id: str
    product_name: str
    product_price: float
    product_photos: List[str] = Field(default_factory=list)
    client_name: str
    wilaya: str
    address: str
    phone: str
    email: str
    color: Optional[str] = None
    size: Optional[str] = None
    quantity: int = Field(1, ge=1)
    status: OrderStatus = "pending"
    order_date: datetime = Field(default_factory=_now)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_verified: bool = False


class OrderPayload(CamelModel):
    """Public order form. Required fields are checked by the order service."""
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    product_price: Optional[float] = None
    product_photos: Optional[List[str]] = None
    client_name: Optional[str] = None
    wilaya: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    quantity: Optional[int] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


# -----------------------------
# Hero content
# -----------------------------

class HeroContent(CamelModel):
    """
    Hero content collection schema
    Collection: "hero_content"
    """
    title: str
    subtitle: str
    button_text: str = "Shop Now"
    theme: str = "light"
    order: int = 0
    media_type: MediaType
    media_url: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


# -----------------------------
# Dashboard
# -----------------------------

class MonthlyRevenue(BaseModel):
    month: str
    revenue: float


class DashboardStats(CamelModel):
    """
    Dashboard stats schema
    Collection: "dashboard_stats" (singleton)
    """
    total_revenue: float = 0
    total_orders: int = 0
    total_customers: int = 0
    pending_orders: int = 0
    total_products: int = 0
    monthly_revenue: List[MonthlyRevenue] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=_now)
