"""Cart storage for mock backend"""

import uuid
from decimal import Decimal
from typing import Optional

from storefront.models import Cart, CartItem
from storefront.services.pricing import DEFAULT_TAX_RATE, cart_subtotal


class CartDatabase:
    """In-memory cart storage keyed by owner ("user:<id>" or "guest:<sessionId>")"""

    def __init__(self, tax_rate: Decimal = DEFAULT_TAX_RATE):
        self.tax_rate = tax_rate
        self.carts: dict[str, Cart] = {}

    def create_cart(self, owner: str) -> Cart:
        """Create a new cart"""
        cart = Cart(id=uuid.uuid4().hex, items=[], total_amount=Decimal("0"))
        self.carts[owner] = cart
        return cart

    def get_cart(self, owner: str) -> Optional[Cart]:
        """Get the owner's cart"""
        return self.carts.get(owner)

    def get_or_create_cart(self, owner: str) -> Cart:
        """Get existing cart or create new one"""
        cart = self.get_cart(owner)
        if cart is None:
            cart = self.create_cart(owner)
        return cart

    def add_item(self, owner: str, item: CartItem) -> Cart:
        """Add an item, incrementing the quantity if the product is already there"""
        cart = self.get_or_create_cart(owner)

        existing_item = self._find_item(cart, item.product_id)
        if existing_item:
            existing_item.quantity += item.quantity
        else:
            cart.items.append(item.model_copy(deep=True))

        self._recalculate_totals(cart)
        return cart

    def update_item_quantity(self, owner: str, product_id: str, quantity: int) -> Optional[Cart]:
        """Set item quantity; zero removes the item. None when the item is not in the cart."""
        cart = self.get_cart(owner)
        if not cart:
            return None

        item = self._find_item(cart, product_id)
        if not item:
            return None

        if quantity <= 0:
            cart.items = [i for i in cart.items if i.product_id != product_id]
        else:
            item.quantity = quantity

        self._recalculate_totals(cart)
        return cart

    def remove_item(self, owner: str, product_id: str) -> Optional[Cart]:
        """Remove an item from the cart"""
        cart = self.get_cart(owner)
        if not cart:
            return None

        cart.items = [i for i in cart.items if i.product_id != product_id]
        self._recalculate_totals(cart)
        return cart

    def clear_cart(self, owner: str) -> Cart:
        """Clear all items from cart"""
        cart = self.get_or_create_cart(owner)
        cart.items = []
        self._recalculate_totals(cart)
        return cart

    def delete_cart(self, owner: str) -> bool:
        """Delete a cart"""
        if owner in self.carts:
            del self.carts[owner]
            return True
        return False

    def merge_carts(self, source_owner: str, target_owner: str) -> Optional[Cart]:
        """
        Fold the source cart into the target cart and delete the source.

        Quantities of products present in both carts are summed.
        """
        source = self.get_cart(source_owner)
        if source is None:
            return None

        target = self.get_or_create_cart(target_owner)
        for item in source.items:
            existing_item = self._find_item(target, item.product_id)
            if existing_item:
                existing_item.quantity += item.quantity
            else:
                target.items.append(item.model_copy(deep=True))

        self.delete_cart(source_owner)
        self._recalculate_totals(target)
        return target

    @staticmethod
    def _find_item(cart: Cart, product_id: str) -> Optional[CartItem]:
        return next((item for item in cart.items if item.product_id == product_id), None)

    def _recalculate_totals(self, cart: Cart) -> None:
        cart.total_amount = cart_subtotal(cart.items, self.tax_rate)
