"""Checkout and order API routes for mock backend"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.models import (
    Cart,
    CheckoutReviewResponse,
    ConfirmOrderRequest,
    ConfirmOrderResponse,
    OrderListResponse,
    OrderResponse,
    PaymentOutcome,
    ShippingInfoRequest,
    ShippingInfoResponse,
)
from storefront.utils import validate_shipping

from ..database import CartDatabase, OrderDatabase, get_cart_db, get_order_db
from ..security.auth import Owner, require_guest, require_owner, require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])

# Payment references starting with this prefix are declined by the mock gateway
DECLINED_REFERENCE_PREFIX = "fail"


@router.get("/review", response_model=CheckoutReviewResponse)
async def review(
    owner: Owner = Depends(require_user),
    cart_db: CartDatabase = Depends(get_cart_db),
):
    """Step 1: the cart as checkout will price it"""
    cart = cart_db.get_cart(owner.key) or Cart(items=[])
    return CheckoutReviewResponse(cart=cart)


@router.post("/shipping", response_model=ShippingInfoResponse)
async def save_shipping(
    request: ShippingInfoRequest,
    owner: Owner = Depends(require_user),
    order_db: OrderDatabase = Depends(get_order_db),
):
    """Step 2: keep the user's validated shipping details until the order is placed"""
    errors = validate_shipping(request.shipping_address, request.customer_info)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors.values()))

    order_db.save_shipping(owner.key, request.shipping_address, request.customer_info)
    return ShippingInfoResponse(
        shipping_address=request.shipping_address,
        customer_info=request.customer_info,
        message="Shipping details saved",
    )


@router.post("/confirm-step", response_model=ConfirmOrderResponse)
async def confirm_order(
    request: ConfirmOrderRequest,
    owner: Owner = Depends(require_user),
    cart_db: CartDatabase = Depends(get_cart_db),
    order_db: OrderDatabase = Depends(get_order_db),
):
    """Place an order for the signed-in user's cart"""
    return _place_order(owner, request, cart_db, order_db)


@router.post("/guest-order", response_model=ConfirmOrderResponse)
async def confirm_guest_order(
    request: ConfirmOrderRequest,
    owner: Owner = Depends(require_guest),
    cart_db: CartDatabase = Depends(get_cart_db),
    order_db: OrderDatabase = Depends(get_order_db),
):
    """Place an order for a guest session's cart"""
    if not request.guest_checkout:
        raise HTTPException(status_code=400, detail="guestCheckout flag is required")

    cart = cart_db.get_cart(owner.key)
    if cart is not None and request.cart_id and request.cart_id != cart.id:
        raise HTTPException(status_code=400, detail="Cart does not belong to this session")

    return _place_order(owner, request, cart_db, order_db)


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    owner: Owner = Depends(require_user),
    order_db: OrderDatabase = Depends(get_order_db),
):
    """List the user's orders, newest first"""
    orders, total = order_db.list_orders(
        owner.key,
        page=page,
        limit=limit,
        status=status,
        payment_status=payment_status,
    )
    return OrderListResponse(orders=orders, total=total, page=page, limit=limit)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    owner: Owner = Depends(require_owner),
    order_db: OrderDatabase = Depends(get_order_db),
):
    """Get order details"""
    order = order_db.get_order(order_id, owner=owner.key)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse(order=order)


def _place_order(
    owner: Owner,
    request: ConfirmOrderRequest,
    cart_db: CartDatabase,
    order_db: OrderDatabase,
) -> ConfirmOrderResponse:
    cart = cart_db.get_cart(owner.key)
    if not cart or not cart.items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    errors = validate_shipping(request.shipping_address, request.customer_info)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors.values()))

    reference = request.payment_details.reference
    if not reference:
        raise HTTPException(status_code=400, detail="Payment reference is required")

    # Mock gateway verification
    paid = not reference.lower().startswith(DECLINED_REFERENCE_PREFIX)

    order = order_db.create_order(
        owner=owner.key,
        cart=cart,
        shipping_address=request.shipping_address,
        customer_info=request.customer_info,
        payment_details=request.payment_details,
        reservation_duration=request.reservation_duration,
        paid=paid,
    )

    if not paid:
        logger.info(f"Payment declined for order {order.order_number} (reference {reference})")
        return ConfirmOrderResponse(
            success=False,
            order=order,
            payment=PaymentOutcome(status="failed", error="Payment verification failed"),
            message="Payment verification failed",
        )

    # The cart is consumed by the order
    cart_db.delete_cart(owner.key)

    logger.info(
        f"Order {order.order_number} created: {order.total_amount} - "
        f"{'guest' if owner.is_guest else 'user'} checkout"
    )

    return ConfirmOrderResponse(
        success=True,
        order=order,
        payment=PaymentOutcome(status="success"),
        message="Order placed successfully",
    )
