"""
Database Schemas for Farmspot orders

Each Pydantic model describes a document (or an embedded sub-document) in the
"order" collection. Documents are stored with snake_case keys; the API reads
and writes camelCase through the alias generator.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"
    PAYSTACK = "paystack"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


ORDER_STATUSES = frozenset(s.value for s in OrderStatus)
PAYMENT_STATUSES = frozenset(s.value for s in PaymentStatus)
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value})


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class GeoLocation(CamelModel):
    type: str = Field("Point", description="GeoJSON type")
    coordinates: Optional[List[float]] = Field(None, min_length=2, max_length=2, description="[lng, lat]")


class DeliveryAddress(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    location: Optional[GeoLocation] = Field(None, description="Dropped when coordinates are missing")


class DeliverySlot(CamelModel):
    date: datetime
    time_slot: str = Field(..., min_length=1, description="Slot label, e.g. 'morning'")


class OrderItem(CamelModel):
    product_id: str = Field(..., pattern=OBJECT_ID_PATTERN, description="Product ID")
    name: str = Field(..., min_length=1, description="Snapshot of product name at purchase time")
    price: float = Field(..., description="Unit price at purchase time")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    subtotal: float = Field(..., description="Line total as submitted by the client")


class TimelineEntry(CamelModel):
    status: str
    timestamp: datetime
    note: Optional[str] = None


class OrderCreate(CamelModel):
    customer_id: str = Field(..., pattern=OBJECT_ID_PATTERN, description="ID of the buying customer")
    farmer_id: str = Field(..., pattern=OBJECT_ID_PATTERN, description="ID of the selling farmer")
    items: List[OrderItem] = Field(..., min_length=1, description="Line items")
    total_amount: float = Field(..., description="Order total, trusted as submitted")
    payment_method: PaymentMethod
    delivery_address: DeliveryAddress
    delivery_slot: Optional[DeliverySlot] = None
    delivery_fee: float = Field(0, description="Delivery fee")
    notes: Optional[str] = None


class Order(CamelModel):
    id: str
    order_number: str
    customer_id: str
    farmer_id: str
    items: List[OrderItem]
    total_amount: float
    status: OrderStatus = OrderStatus.PENDING
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: Optional[str] = None
    delivery_address: DeliveryAddress
    delivery_slot: Optional[DeliverySlot] = None
    delivery_fee: float = 0
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    timeline: List[TimelineEntry] = Field(default_factory=list)
    version: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Order":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        return cls.model_validate(data)


class FarmerStats(CamelModel):
    total_orders: int = 0
    pending_orders: int = 0
    confirmed_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: float = 0
