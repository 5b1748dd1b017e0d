"""Cart API routes for mock backend"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from storefront.models import CartItem, CartResponse, MergeCartRequest, UpdateCartItemRequest

from ..database import CartDatabase, SessionDatabase, get_cart_db, get_session_db
from ..security.auth import Owner, require_owner, require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    owner: Owner = Depends(require_owner),
    cart_db: CartDatabase = Depends(get_cart_db),
):
    """Get the caller's cart"""
    cart = cart_db.get_cart(owner.key)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return CartResponse(cart=cart)


@router.post("/add", response_model=CartResponse)
async def add_to_cart(
    item: CartItem,
    owner: Owner = Depends(require_owner),
    cart_db: CartDatabase = Depends(get_cart_db),
):
    """Add an item to the cart"""
    cart = cart_db.add_item(owner.key, item)
    return CartResponse(
        cart=cart,
        message=f"Added {item.quantity}x {item.name or item.product_id} to cart",
    )


@router.put("/update/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str,
    request: UpdateCartItemRequest,
    owner: Owner = Depends(require_owner),
    cart_db: CartDatabase = Depends(get_cart_db),
):
    """Update item quantity in cart"""
    cart = cart_db.update_item_quantity(owner.key, product_id, request.quantity)
    if not cart:
        raise HTTPException(status_code=404, detail="Item not in cart")
    return CartResponse(cart=cart, message="Cart updated")


@router.delete("/remove/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: str,
    owner: Owner = Depends(require_owner),
    cart_db: CartDatabase = Depends(get_cart_db),
):
    """Remove an item from the cart"""
    cart = cart_db.remove_item(owner.key, product_id)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return CartResponse(cart=cart, message="Item removed")


@router.delete("/clear", response_model=CartResponse)
async def clear_cart(
    owner: Owner = Depends(require_owner),
    cart_db: CartDatabase = Depends(get_cart_db),
):
    """Clear all items from cart"""
    cart = cart_db.clear_cart(owner.key)
    return CartResponse(cart=cart, message="Cart cleared")


@router.post("/merge-guest", response_model=CartResponse)
async def merge_guest_cart(
    request: MergeCartRequest,
    owner: Owner = Depends(require_user),
    cart_db: CartDatabase = Depends(get_cart_db),
    sessions: SessionDatabase = Depends(get_session_db),
):
    """Fold a live guest session's cart into the signed-in user's cart, then end the session"""
    if not sessions.is_guest_session_active(request.guest_session_id):
        raise HTTPException(status_code=404, detail="Guest session not found or expired")

    cart = cart_db.merge_carts(f"guest:{request.guest_session_id}", owner.key)
    if not cart:
        raise HTTPException(status_code=404, detail="Guest cart not found")

    sessions.end_guest_session(request.guest_session_id)
    logger.info(f"Merged guest cart {request.guest_session_id[:8]} into {owner.key}")
    return CartResponse(cart=cart, message="Guest cart merged")
