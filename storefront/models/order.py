"""Order models"""

from datetime import datetime
from typing import Any, Optional

from pydantic import ConfigDict, Field, model_validator

from .base import Money, WireModel
from .cart import CartItem


class OrderItem(CartItem):
    """Item in an order, carrying its own fulfillment status"""
    status: Optional[str] = None


class Shipment(WireModel):
    """Per-vendor shipment attached to an order"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    vendor_id: Optional[str] = None
    vendor_name: Optional[str] = None
    status: Optional[str] = None
    tracking_number: Optional[str] = None


class StatusUpdate(WireModel):
    """Timestamped order-level status change"""
    status: str
    timestamp: Optional[datetime] = None


class Order(WireModel):
    """Placed order"""
    id: Optional[str] = None
    order_number: Optional[str] = None
    total_amount: Optional[Money] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    items: list[OrderItem] = Field(default_factory=list)
    shipments: list[Shipment] = Field(default_factory=list)
    status_updates: list[StatusUpdate] = Field(default_factory=list)
    customer_info: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_document_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and "id" not in data and "_id" in data:
            data = dict(data)
            data["id"] = str(data["_id"])
        return data


class OrderResponse(WireModel):
    """Single order API response"""
    success: bool = True
    order: Order


class OrderListResponse(WireModel):
    """Order listing API response"""
    success: bool = True
    orders: list[Order] = Field(default_factory=list)
    total: Optional[int] = None
    page: int = 1
    limit: int = 20
