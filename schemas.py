"""
Store Schemas

Pydantic models for the three in-memory collections and for the request
bodies the API accepts.

Records travel over the wire in camelCase (``createdAt``, ``userId``...);
in Python they use snake_case field names.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


# -----------------------------
# Records
# -----------------------------

class OrderStatus(str, Enum):
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(StoreModel):
    """
    Users collection
    """
    id: int
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    age: Optional[int] = Field(None, ge=0, le=120, description="Age in years")
    city: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Product(StoreModel):
    """
    Products collection

    ``available`` is derived from ``stock`` and cannot drift from it.
    """
    id: int
    name: str = Field(..., description="Product name")
    price: float = Field(..., ge=0, description="Unit price")
    category: str = Field(..., description="Product category")
    description: str = ""
    stock: int = Field(0, ge=0, description="Units in stock")

    @computed_field
    @property
    def available(self) -> bool:
        return self.stock > 0


class LineItem(StoreModel):
    product_id: int
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0, description="Product price when the order was placed")


class Order(StoreModel):
    """
    Orders collection
    """
    id: int
    user_id: int
    line_items: List[LineItem]
    total: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PROCESSING
    created_at: datetime = Field(default_factory=utcnow)
    delivered_at: Optional[datetime] = None


# -----------------------------
# Request bodies
# -----------------------------
# Top-level payload fields are optional: required-field checks live in services, and
# partial updates apply only the names in ``model_fields_set``.

class UserPayload(StoreModel):
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=120)
    city: Optional[str] = None


class ProductPayload(StoreModel):
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)


class OrderItemPayload(StoreModel):
    product_id: int
    quantity: int = Field(..., gt=0)


class OrderPayload(StoreModel):
    user_id: Optional[int] = None
    line_items: Optional[List[OrderItemPayload]] = Field(
        None,
        validation_alias=AliasChoices("lineItems", "products", "line_items"),
    )


class OrderStatusPayload(StoreModel):
    status: Optional[str] = None


# -----------------------------
# Derived views
# -----------------------------

class StoreStats(StoreModel):
    total_users: int
    total_products: int
    total_orders: int
    total_revenue: float
    average_order_value: float
    orders_by_status: Dict[str, int]
