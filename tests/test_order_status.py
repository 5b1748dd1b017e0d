"""
Tests for order status aggregation and tracking timeline.
"""

from datetime import datetime, timezone

import pytest

from storefront.models import Order, OrderItem, StatusUpdate
from storefront.services.order_status import (
    aggregate_status,
    build_timeline,
    display_label,
    normalize_status,
    progress_percentage,
    summarize,
)


def items(*statuses, vendor_id="vendor-1"):
    return [
        OrderItem(product_id=f"p{index}", status=status, vendor_id=vendor_id)
        for index, status in enumerate(statuses)
    ]


class TestNormalizeStatus:
    """Test status vocabulary normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("shipped", "SHIPPED"),
        ("in transit", "SHIPPED"),
        ("ready-for-pickup", "PICKUP_SCHEDULED"),
        ("Pickup Scheduled", "PICKUP_SCHEDULED"),
        ("pending", "PROCESSING"),
        ("DELIVERED", "DELIVERED"),
        ("returned", "RETURNED"),
    ])
    def test_aliases(self, raw, expected):
        """Test raw backend statuses map to canonical ones."""
        assert normalize_status(raw) == expected

    def test_empty(self):
        """Test missing statuses stay missing."""
        assert normalize_status(None) is None
        assert normalize_status("") is None


class TestAggregateStatus:
    """Test rolling item statuses up to one display status."""

    def test_uniform_status(self):
        """Test all items agreeing gives that status."""
        assert aggregate_status(items("DELIVERED", "DELIVERED")) == "DELIVERED"

    def test_any_shipped_wins(self):
        """Test any shipped item makes the order shipped."""
        assert aggregate_status(items("PROCESSING", "SHIPPED", "DELIVERED")) == "SHIPPED"

    def test_pickup_scheduled(self):
        """Test any pickup-scheduled item wins when none shipped."""
        assert aggregate_status(items("PROCESSING", "PICKUP_SCHEDULED")) == "PICKUP_SCHEDULED"

    def test_delivered_and_cancelled(self):
        """Test delivered plus cancelled reads as delivered."""
        assert aggregate_status(items("DELIVERED", "CANCELLED", "DELIVERED")) == "DELIVERED"

    def test_all_cancelled(self):
        """Test a fully cancelled order."""
        assert aggregate_status(items("cancelled", "CANCELLED")) == "CANCELLED"

    def test_mixed_falls_back_to_order_status(self):
        """Test an unresolved mix uses the order-level status."""
        assert aggregate_status(items("PROCESSING", "DELIVERED"), "confirmed") == "PROCESSING"

    def test_missing_item_status_inherits_order(self):
        """Test items without a status take the order status."""
        assert aggregate_status(items(None, None), "shipped") == "SHIPPED"

    def test_no_items(self):
        """Test an order without items or status is processing."""
        assert aggregate_status([]) == "PROCESSING"
        assert aggregate_status([], "DELIVERED") == "DELIVERED"


class TestTimeline:
    """Test tracking milestones and progress."""

    def test_completed_up_to_current(self):
        """Test milestones through the current status are completed."""
        timeline = build_timeline("SHIPPED")
        assert [step.completed for step in timeline] == [True, True, True, False]
        assert [step.label for step in timeline] == [
            "Processing Order",
            "Ready for pickup",
            "Order Dispatch",
            "Delivered",
        ]

    def test_cancelled_completes_nothing(self):
        """Test a cancelled order has no completed milestones."""
        assert not any(step.completed for step in build_timeline("CANCELLED"))

    def test_timestamps_from_updates(self):
        """Test milestone timestamps come from status updates."""
        processed = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        shipped = datetime(2024, 3, 3, 15, 30, tzinfo=timezone.utc)
        updates = [
            StatusUpdate(status="pending", timestamp=processed),
            StatusUpdate(status="in transit", timestamp=shipped),
        ]

        timeline = build_timeline("SHIPPED", updates)

        assert timeline[0].timestamp == processed
        assert timeline[1].timestamp is None
        assert timeline[2].timestamp == shipped
        assert timeline[3].timestamp is None

    @pytest.mark.parametrize("status, expected", [
        ("PROCESSING", 50),
        ("PICKUP_SCHEDULED", 60),
        ("SHIPPED", 75),
        ("DELIVERED", 100),
        ("CANCELLED", 0),
    ])
    def test_progress(self, status, expected):
        """Test progress bar percentages."""
        assert progress_percentage(status) == expected

    def test_display_label(self):
        """Test canonical statuses render as title case."""
        assert display_label("PICKUP_SCHEDULED") == "Pickup Scheduled"
        assert display_label(None) == "Processing"


class TestSummarize:
    """Test the order status view."""

    def test_vendor_filter(self):
        """Test a vendor sees only its own items rolled up."""
        order = Order(
            id="o1",
            order_number="ORD-1",
            status="PROCESSING",
            items=items("SHIPPED", vendor_id="vendor-1") + items("DELIVERED", vendor_id="vendor-2"),
        )

        view = summarize(order, vendor_id="vendor-2")

        assert view.aggregate_status == "DELIVERED"
        assert view.progress == 100
        assert list(view.items_by_status) == ["DELIVERED"]

    def test_reported_status_untouched(self):
        """Test the aggregate never overwrites the order's own status."""
        order = Order(id="o1", status="PROCESSING", items=items("SHIPPED", "PROCESSING"))

        view = summarize(order)

        assert view.aggregate_status == "SHIPPED"
        assert view.reported_status == "PROCESSING"
        assert order.status == "PROCESSING"
        assert set(view.items_by_status) == {"SHIPPED", "PROCESSING"}

    @pytest.mark.asyncio
    async def test_placed_order_status(self, storefront, backend, products, shipping):
        """Test fetching a placed order and rolling up vendor progress."""
        await storefront.cart.add_item(products["ankara"])
        await storefront.cart.add_item(products["lace"])
        await storefront.checkout.start()
        storefront.checkout.proceed_to_shipping()
        storefront.checkout.submit_shipping(*shipping)
        await storefront.checkout.confirm({"reference": "PSK-42"})
        placed = storefront.checkout.session.order

        backend.state.order_db.update_item_status(placed.id, "ankara-001", "in transit")

        order, view = await storefront.order_status(placed.id)

        assert order.order_number == placed.order_number
        assert view.aggregate_status == "SHIPPED"
        assert view.label == "Shipped"
        assert view.timeline[0].timestamp is not None
