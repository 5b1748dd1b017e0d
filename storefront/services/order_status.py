"""
Order Status Aggregator

Rolls per-item fulfillment statuses of a (possibly multi-vendor) order up
into one display status. This is a display heuristic only: it never
replaces the order's own status field.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from ..models import Order, OrderItem, StatusUpdate

PROCESSING = "PROCESSING"
PICKUP_SCHEDULED = "PICKUP_SCHEDULED"
SHIPPED = "SHIPPED"
DELIVERED = "DELIVERED"
CANCELLED = "CANCELLED"

STATUS_ALIASES = {
    "DRAFT": PROCESSING,
    "PENDING": PROCESSING,
    "CONFIRMED": PROCESSING,
    "READY": PICKUP_SCHEDULED,
    "READY_FOR_PICKUP": PICKUP_SCHEDULED,
    "DISPATCHED": SHIPPED,
    "IN_TRANSIT": SHIPPED,
    "OUT_FOR_DELIVERY": SHIPPED,
}

# Tracking milestones shown to the shopper, in order
TIMELINE_MILESTONES = [
    (PROCESSING, "Processing Order"),
    (PICKUP_SCHEDULED, "Ready for pickup"),
    (SHIPPED, "Order Dispatch"),
    (DELIVERED, "Delivered"),
]

PROGRESS_PERCENTAGES = {
    PROCESSING: 50,
    PICKUP_SCHEDULED: 60,
    SHIPPED: 75,
    DELIVERED: 100,
}


def normalize_status(status: Optional[str]) -> Optional[str]:
    """Map raw backend vocabulary onto the canonical status set"""
    if not status:
        return None
    key = status.strip().upper().replace(" ", "_").replace("-", "_")
    return STATUS_ALIASES.get(key, key)


def aggregate_status(items: Iterable[OrderItem], order_status: Optional[str] = None) -> str:
    """
    Collapse item statuses into one order-level display status.

    Items without a status inherit the order-level status. First match wins:
    a single shared status, then any SHIPPED, then any PICKUP_SCHEDULED,
    then DELIVERED for a delivered/cancelled mix, then all CANCELLED, else
    the order-level status (PROCESSING when absent).
    """
    fallback = normalize_status(order_status)
    statuses = [normalize_status(item.status) or fallback for item in items]
    statuses = [s for s in statuses if s]

    if not statuses:
        return fallback or PROCESSING

    distinct = set(statuses)
    if len(distinct) == 1:
        return statuses[0]
    if SHIPPED in distinct:
        return SHIPPED
    if PICKUP_SCHEDULED in distinct:
        return PICKUP_SCHEDULED
    if distinct == {DELIVERED, CANCELLED}:
        return DELIVERED
    if distinct == {CANCELLED}:
        return CANCELLED
    return fallback or PROCESSING


def display_label(status: Optional[str]) -> str:
    """'PICKUP_SCHEDULED' -> 'Pickup Scheduled'"""
    normalized = normalize_status(status) or PROCESSING
    return normalized.replace("_", " ").title()


def progress_percentage(status: Optional[str]) -> int:
    return PROGRESS_PERCENTAGES.get(normalize_status(status), 0)


@dataclass
class TimelineStep:
    """One milestone in the tracking timeline"""
    key: str
    label: str
    completed: bool
    timestamp: Optional[datetime] = None


def build_timeline(
    status: Optional[str],
    status_updates: Iterable[StatusUpdate] = (),
) -> list[TimelineStep]:
    """
    Tracking milestones for a display status.

    Milestones up to and including the current one are completed; a
    cancelled or unknown status completes none. Timestamps come from the
    first matching status update.
    """
    normalized = normalize_status(status)
    keys = [key for key, _ in TIMELINE_MILESTONES]
    current = keys.index(normalized) if normalized in keys else -1

    timestamps: dict[str, datetime] = {}
    for update in status_updates:
        key = normalize_status(update.status)
        if key and update.timestamp and key not in timestamps:
            timestamps[key] = update.timestamp

    return [
        TimelineStep(
            key=key,
            label=label,
            completed=index <= current,
            timestamp=timestamps.get(key) if index <= current else None,
        )
        for index, (key, label) in enumerate(TIMELINE_MILESTONES)
    ]


def items_for_vendor(order: Order, vendor_id: Optional[str]) -> list[OrderItem]:
    """Items shipped by one vendor; all items when vendor_id is None"""
    if vendor_id is None:
        return list(order.items)
    return [item for item in order.items if item.vendor_id == vendor_id]


def group_items_by_status(order: Order, vendor_id: Optional[str] = None) -> dict[str, list[OrderItem]]:
    """Bucket items by normalized status, falling back to the order status"""
    fallback = normalize_status(order.status) or PROCESSING
    groups: dict[str, list[OrderItem]] = {}
    for item in items_for_vendor(order, vendor_id):
        groups.setdefault(normalize_status(item.status) or fallback, []).append(item)
    return groups


@dataclass
class OrderStatusView:
    """Display-only rollup of an order's fulfillment state"""
    order_id: Optional[str]
    order_number: Optional[str]
    reported_status: Optional[str]
    aggregate_status: str
    label: str
    progress: int
    timeline: list[TimelineStep] = field(default_factory=list)
    items_by_status: dict[str, list[OrderItem]] = field(default_factory=dict)


def summarize(order: Order, vendor_id: Optional[str] = None) -> OrderStatusView:
    """Build the display view; the order itself is left untouched"""
    items = items_for_vendor(order, vendor_id)
    status = aggregate_status(items, order.status)
    return OrderStatusView(
        order_id=order.id,
        order_number=order.order_number,
        reported_status=order.status,
        aggregate_status=status,
        label=display_label(status),
        progress=progress_percentage(status),
        timeline=build_timeline(status, order.status_updates),
        items_by_status=group_items_by_status(order, vendor_id),
    )
