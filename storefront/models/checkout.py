"""Checkout models"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field

from .base import Money, WireModel
from .cart import Cart
from .order import Order


class ShippingAddress(WireModel):
    """Delivery address collected at the shipping step"""
    street: str = ""
    house_no: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: Optional[str] = None
    country: str = "Nigeria"


class CustomerInfo(WireModel):
    """Contact details collected at the shipping step"""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""


class PaymentDetails(WireModel):
    """Payment gateway reference handed back to the storefront"""
    model_config = ConfigDict(extra="allow")

    reference: Optional[str] = None
    amount: Optional[Money] = None
    channel: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ConfirmOrderRequest(WireModel):
    """Step 3 -> 4 order confirmation payload"""
    shipping_address: ShippingAddress
    customer_info: CustomerInfo
    payment_details: PaymentDetails
    reservation_duration: int = Field(gt=0)
    # Guest checkout only
    cart_id: Optional[str] = None
    guest_checkout: Optional[bool] = None


class PaymentOutcome(WireModel):
    """Payment provider result reported alongside an order"""
    status: Optional[str] = None
    error: Optional[str] = None


class ConfirmOrderResponse(WireModel):
    """Response from order confirmation"""
    success: bool = False
    order: Optional[Order] = None
    payment: Optional[PaymentOutcome] = None
    message: Optional[str] = None

    @property
    def payment_error(self) -> Optional[str]:
        if self.payment and self.payment.error:
            return self.payment.error
        if self.message and "failed" in self.message.lower():
            return self.message
        return None

    @property
    def is_paid(self) -> bool:
        return (
            self.success
            and self.order is not None
            and (self.order.payment_status or "").upper() == "PAID"
            and self.payment_error is None
        )


class CheckoutReviewResponse(WireModel):
    """Step 1 review response"""
    success: bool = True
    cart: Cart = Field(default_factory=Cart)


class ShippingInfoRequest(WireModel):
    """Step 2 shipping details saved ahead of payment"""
    shipping_address: ShippingAddress
    customer_info: CustomerInfo


class ShippingInfoResponse(WireModel):
    """Shipping details as the remote stored them"""
    success: bool = True
    shipping_address: Optional[ShippingAddress] = None
    customer_info: Optional[CustomerInfo] = None
    message: Optional[str] = None


class TaxSettings(WireModel):
    """
    Marketplace tax configuration.

    tax_rate is a fraction (0.075); older payloads carry vat_rate as a
    percentage (7.5) instead.
    """
    tax_rate: Optional[Decimal] = Field(default=None, ge=0)
    vat_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_enabled: bool = True

    @property
    def rate(self) -> Optional[Decimal]:
        if not self.is_enabled:
            return Decimal("0")
        if self.tax_rate is not None:
            return self.tax_rate
        if self.vat_rate is not None:
            return self.vat_rate / 100
        return None


class TaxSettingsResponse(WireModel):
    """Tax settings API response"""
    success: bool = True
    data: TaxSettings = Field(default_factory=TaxSettings)
