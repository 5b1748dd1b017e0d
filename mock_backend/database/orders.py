"""Order storage for mock backend"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from storefront.models import (
    Cart,
    CustomerInfo,
    Order,
    OrderItem,
    PaymentDetails,
    ShippingAddress,
    StatusUpdate,
)

PAID = "PAID"
FAILED = "FAILED"
INITIAL_STATUS = "PROCESSING"


class OrderDatabase:
    """In-memory order storage"""

    def __init__(self):
        self.orders: dict[str, Order] = {}
        self.owners: dict[str, str] = {}  # order id -> owner key
        self.reservations: dict[str, int] = {}  # order id -> seconds held
        self.shipping: dict[str, tuple[ShippingAddress, CustomerInfo]] = {}  # owner key -> saved details

    def create_order(
        self,
        owner: str,
        cart: Cart,
        shipping_address: ShippingAddress,
        customer_info: CustomerInfo,
        payment_details: PaymentDetails,
        reservation_duration: int,
        paid: bool = True,
    ) -> Order:
        """Create an order from a cart"""
        now = datetime.now(timezone.utc)

        order_items = [
            OrderItem(**item.model_dump(), status=INITIAL_STATUS)
            for item in cart.items
        ]

        order = Order(
            id=uuid.uuid4().hex,
            order_number=f"ORD-{uuid.uuid4().hex[:8].upper()}",
            total_amount=cart.total_amount,
            status=INITIAL_STATUS,
            payment_status=PAID if paid else FAILED,
            items=order_items,
            status_updates=[StatusUpdate(status=INITIAL_STATUS, timestamp=now)],
            customer_info={
                **customer_info.model_dump(by_alias=True, mode="json"),
                "shippingAddress": shipping_address.model_dump(by_alias=True, mode="json"),
                "paymentReference": payment_details.reference,
            },
            created_at=now,
        )

        self.orders[order.id] = order
        self.owners[order.id] = owner
        self.reservations[order.id] = reservation_duration
        self.shipping.pop(owner, None)
        return order

    def save_shipping(self, owner: str, shipping_address: ShippingAddress, customer_info: CustomerInfo) -> None:
        """Remember an owner's shipping step details"""
        self.shipping[owner] = (shipping_address, customer_info)

    def get_order(self, order_id: str, owner: Optional[str] = None) -> Optional[Order]:
        """Get an order by id or order number, optionally restricted to its owner"""
        order = self.orders.get(order_id) or next(
            (o for o in self.orders.values() if o.order_number == order_id),
            None,
        )
        if order is None:
            return None
        if owner is not None and self.owners.get(order.id) != owner:
            return None
        return order

    def update_status(self, order_id: str, status: str) -> Optional[Order]:
        """Update the order-level status and record it in the timeline"""
        order = self.get_order(order_id)
        if not order:
            return None

        order.status = status
        order.status_updates.append(StatusUpdate(status=status, timestamp=datetime.now(timezone.utc)))
        return order

    def update_item_status(self, order_id: str, product_id: str, status: str) -> Optional[Order]:
        """Update one item's fulfillment status"""
        order = self.get_order(order_id)
        if not order:
            return None

        for item in order.items:
            if item.product_id == product_id:
                item.status = status
        return order

    def list_orders(
        self,
        owner: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> tuple[list[Order], int]:
        """List an owner's orders, newest first. Returns (page of orders, total matching)."""
        orders = [o for o in self.orders.values() if self.owners.get(o.id) == owner]
        if status:
            orders = [o for o in orders if (o.status or "").upper() == status.upper()]
        if payment_status:
            orders = [o for o in orders if (o.payment_status or "").upper() == payment_status.upper()]
        orders.sort(key=lambda o: o.created_at, reverse=True)

        start = (max(page, 1) - 1) * limit
        return orders[start:start + limit], len(orders)
