"""Cart models"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, model_validator

from .base import Money, WireModel


class CartItem(WireModel):
    """Line item in a shopping cart. Display fields are copied at add time."""
    product_id: str
    name: str = ""
    vendor_id: Optional[str] = None
    vendor_name: str = "Unknown Vendor"
    material_type: str = "Unknown"
    pattern: str = "Unknown"
    image: str = ""
    base_price_per_unit: Money = Decimal("0")
    platform_fee_per_unit: Money = Decimal("0")
    quantity: int = Field(default=1, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _accept_catalog_shapes(cls, data: Any) -> Any:
        """Accept the catalog's legacy field names alongside the canonical ones"""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        if "productId" not in data and "product_id" not in data:
            product_id = data.get("id") or data.get("_id")
            if product_id is not None:
                data["productId"] = str(product_id)

        if "basePricePerUnit" not in data and "base_price_per_unit" not in data:
            price = data.get("pricePerYard", data.get("price"))
            if price is not None:
                data["basePricePerUnit"] = price

        if "platformFeePerUnit" not in data and "platform_fee_per_unit" not in data:
            fee = data.get("platformFeeAmount")
            if not fee and isinstance(data.get("platformFee"), dict):
                fee = data["platformFee"].get("amount")
            if fee:
                data["platformFeePerUnit"] = fee

        vendor = data.get("vendor")
        if isinstance(vendor, dict):
            data.setdefault("vendorId", vendor.get("id"))
            if vendor.get("name"):
                data.setdefault("vendorName", vendor["name"])

        if "image" not in data and data.get("imageUrl"):
            data["image"] = data["imageUrl"]

        return data


class Cart(WireModel):
    """Shopping cart as returned by the remote"""
    id: Optional[str] = None
    items: list[CartItem] = Field(default_factory=list)
    total_amount: Optional[Money] = None

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


class CartResponse(WireModel):
    """Cart API response"""
    success: bool = True
    cart: Cart = Field(default_factory=Cart)
    message: Optional[str] = None


class UpdateCartItemRequest(WireModel):
    """Request to update cart item quantity"""
    quantity: int = Field(ge=0)


class MergeCartRequest(WireModel):
    """Request to merge a guest cart into the authenticated user's cart"""
    guest_session_id: str
