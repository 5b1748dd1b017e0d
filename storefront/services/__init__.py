# Cart & checkout services

from .api_client import StorefrontClient
from .cart_store import CartStore
from .guest_session import GuestSessionManager, extract_session_id
from .cart_merge import CartMergeCoordinator, MergeOutcome, MergeResult
from .checkout import CheckoutFlow, CheckoutSession, CheckoutStep
from .order_status import aggregate_status, normalize_status, summarize, OrderStatusView

__all__ = [
    "StorefrontClient",
    "CartStore",
    "GuestSessionManager",
    "extract_session_id",
    "CartMergeCoordinator",
    "MergeOutcome",
    "MergeResult",
    "CheckoutFlow",
    "CheckoutSession",
    "CheckoutStep",
    "aggregate_status",
    "normalize_status",
    "summarize",
    "OrderStatusView",
]
