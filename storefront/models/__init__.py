# Storefront wire models

from .base import Money, WireModel
from .cart import Cart, CartItem, CartResponse, UpdateCartItemRequest, MergeCartRequest
from .order import Order, OrderItem, Shipment, StatusUpdate, OrderResponse, OrderListResponse
from .checkout import (
    ShippingAddress,
    CustomerInfo,
    PaymentDetails,
    ConfirmOrderRequest,
    ConfirmOrderResponse,
    PaymentOutcome,
    CheckoutReviewResponse,
    ShippingInfoRequest,
    ShippingInfoResponse,
    TaxSettings,
    TaxSettingsResponse,
)

__all__ = [
    "Money",
    "WireModel",
    "Cart",
    "CartItem",
    "CartResponse",
    "UpdateCartItemRequest",
    "MergeCartRequest",
    "Order",
    "OrderItem",
    "Shipment",
    "StatusUpdate",
    "OrderResponse",
    "OrderListResponse",
    "ShippingAddress",
    "CustomerInfo",
    "PaymentDetails",
    "ConfirmOrderRequest",
    "ConfirmOrderResponse",
    "PaymentOutcome",
    "CheckoutReviewResponse",
    "ShippingInfoRequest",
    "ShippingInfoResponse",
    "TaxSettings",
    "TaxSettingsResponse",
]
