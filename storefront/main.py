"""
Storefront Core

Wires the cart and checkout components around one API client and one set
of credentials. Callers hold a Storefront and hand its parts to whatever
needs them instead of reaching for module-level state.
"""

import logging
from typing import Optional

import httpx

from .core.config import Settings, settings as default_settings
from .core.session import Credentials
from .core.storage import LocalStore
from .models import Order
from .services.api_client import StorefrontClient
from .services.cart_merge import CartMergeCoordinator
from .services.cart_store import CartStore
from .services.checkout import CheckoutFlow
from .services.guest_session import GuestSessionManager
from .services.order_status import OrderStatusView, summarize

logger = logging.getLogger(__name__)


class Storefront:
    """Container for one shopper's cart, session and checkout components"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        store: Optional[LocalStore] = None,
    ):
        self.settings = settings or default_settings
        self.client = StorefrontClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout,
            transport=transport,
        )
        self.credentials = Credentials(
            store=store if store is not None else LocalStore(self.settings.storage_path),
        )
        self.guest_sessions = GuestSessionManager(self.client, self.credentials)
        self.cart = CartStore(
            self.client,
            self.credentials,
            self.guest_sessions,
            tax_rate=self.settings.tax_rate,
            tolerance=self.settings.total_mismatch_tolerance,
        )
        self.merge = CartMergeCoordinator(
            self.client,
            self.credentials,
            self.guest_sessions,
            self.cart,
        )
        self.checkout = CheckoutFlow(
            self.client,
            self.credentials,
            self.cart,
            reservation_duration=self.settings.reservation_duration,
            tolerance=self.settings.total_mismatch_tolerance,
        )
        logger.debug(f"Storefront core configured for {self.settings.api_base_url}")

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "Storefront":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def logout(self) -> None:
        """Forget the user and any guest state; the next cart access starts a new guest session"""
        self.checkout.discard()
        self.credentials.sign_out()
        self.guest_sessions.invalidate()
        self.cart.reset()

    async def order_status(self, order_id: str) -> tuple[Order, OrderStatusView]:
        """Fetch an order and its display status"""
        order = await self.client.get_order(self.credentials.bearer(), order_id)
        return order, summarize(order)
