"""
Cart Store

Owns the line items for the active identity (guest session or signed-in
user). Mutations apply to memory synchronously, persist locally, and are
then mirrored to the remote cart. The local cart stays the fallback of
record while the remote is unreachable.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Iterator, Optional, Union

from ..core.exceptions import (
    MutationInProgressError,
    RateLimitedError,
    RemoteUnavailableError,
    RemoteValidationError,
    SessionExpiredError,
    StorefrontError,
)
from ..core.session import Credentials
from ..core.storage import cart_key
from ..models import Cart, CartItem
from .api_client import StorefrontClient
from .guest_session import GuestSessionManager
from .pricing import (
    DEFAULT_TAX_RATE,
    DEFAULT_TOLERANCE,
    Reconciliation,
    cart_subtotal,
    reconcile_total,
)

logger = logging.getLogger(__name__)

CLEAR_REQUEST_KEY = "*clear*"

CartListener = Callable[["CartStore"], None]


class CartStore:
    """
    Cart for exactly one identity at a time.

    Only one remote mutation per product may be in flight; a second one is
    rejected with MutationInProgressError instead of being queued, so
    quantity updates can never reach the remote out of order.
    """

    def __init__(
        self,
        client: StorefrontClient,
        credentials: Credentials,
        guest_sessions: GuestSessionManager,
        tax_rate: Decimal = DEFAULT_TAX_RATE,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ):
        self.client = client
        self.credentials = credentials
        self.guest_sessions = guest_sessions
        self.tax_rate = tax_rate
        self.tolerance = tolerance

        self._items: dict[str, CartItem] = {}
        self._in_flight: set[str] = set()
        self._listeners: list[CartListener] = []

        self.cart_id: Optional[str] = None
        self.sync_error: Optional[StorefrontError] = None
        self.last_reconciliation: Optional[Reconciliation] = None

    # ==================== Read-only views ====================

    @property
    def owner_key(self) -> str:
        if self.credentials.is_authenticated:
            return f"user:{self.credentials.user_id}"
        session_id = self.guest_sessions.session_id
        if session_id:
            return f"guest:{session_id}"
        return "guest"

    @property
    def items(self) -> list[CartItem]:
        return list(self._items.values())

    @property
    def pending_product_ids(self) -> frozenset[str]:
        return frozenset(self._in_flight - {CLEAR_REQUEST_KEY})

    def is_in_cart(self, product_id: str) -> bool:
        return product_id in self._items

    def get_item(self, product_id: str) -> Optional[CartItem]:
        return self._items.get(product_id)

    def total_item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def is_empty(self) -> bool:
        return not self._items

    def subtotal(self, tax_rate: Optional[Decimal] = None) -> Decimal:
        """All-inclusive subtotal, always recomputed from the line items"""
        return cart_subtotal(self._items.values(), self.tax_rate if tax_rate is None else tax_rate)

    def snapshot(self) -> list[CartItem]:
        """Deep copy of the current items, taken synchronously"""
        return [item.model_copy(deep=True) for item in self._items.values()]

    # ==================== Listeners ====================

    def add_listener(self, callback: CartListener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: CartListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    # ==================== Loading ====================

    async def load(self) -> list[CartItem]:
        """Fetch the remote cart for the active identity"""
        try:
            token = await self._ensure_credential()
            cart = await self.client.get_cart(token)
        except RemoteUnavailableError as e:
            logger.warning(f"Cart fetch failed, using local cart: {e.message}")
            self.sync_error = e
            self._restore_local()
            return self.items
        except SessionExpiredError:
            self.credentials.expire()
            raise

        self.adopt(cart)
        return self.items

    def adopt(self, cart: Cart, keep_local: Iterable[str] = ()) -> None:
        """
        Replace the contents with a cart returned by the remote.

        Lines named in keep_local keep their local version (or stay absent
        if absent locally) whatever the remote reported for them.
        """
        items = {item.product_id: item for item in cart.items}
        for product_id in keep_local:
            local = self._items.get(product_id)
            if local is None:
                items.pop(product_id, None)
            else:
                items[product_id] = local
        self._items = items
        self.cart_id = cart.id
        self.sync_error = None
        self.last_reconciliation = reconcile_total(
            cart.total_amount,
            cart.items,
            tax_rate=self.tax_rate,
            tolerance=self.tolerance,
            context=f"cart {self.owner_key}",
        )
        self._changed()

    async def refresh_tax_rate(self) -> Decimal:
        """
        Load the marketplace tax rate for signed-in shoppers.

        Any failure keeps the current rate; 401/403 here mean the account
        may not read settings, not that the session expired.
        """
        token = self.credentials.auth_token
        if not token:
            return self.tax_rate

        try:
            settings = await self.client.get_tax_settings(token)
        except StorefrontError as e:
            logger.warning(f"Unable to fetch tax rate, using {self.tax_rate}: {e.message}")
            return self.tax_rate

        rate = settings.rate
        if rate is not None and rate != self.tax_rate:
            logger.info(f"Tax rate changed from {self.tax_rate} to {rate}")
            self.tax_rate = rate
            self._notify()
        return self.tax_rate

    def reset(self) -> None:
        """Forget in-memory contents without touching the remote"""
        self._items = {}
        self.cart_id = None
        self.sync_error = None
        self.last_reconciliation = None
        self._notify()

    # ==================== Mutations ====================

    async def add_item(
        self,
        product: Union[CartItem, dict[str, Any]],
        quantity: int = 1,
    ) -> list[CartItem]:
        """Add a product, incrementing the quantity if it is already present"""
        if quantity < 1:
            raise ValueError("Quantity to add must be at least 1")

        item = product if isinstance(product, CartItem) else CartItem.model_validate(product)
        product_id = item.product_id

        with self._guard(product_id):
            token = await self._credential_or_none()
            previous = self._items.get(product_id)

            if previous is not None:
                self._items[product_id] = previous.model_copy(
                    update={"quantity": previous.quantity + quantity}
                )
            else:
                self._items[product_id] = item.model_copy(update={"quantity": quantity})
            self._changed()
            logger.debug(f"Added {quantity}x {product_id} to cart {self.owner_key}")

            request_item = item.model_copy(update={"quantity": quantity})
            await self._mirror(
                "add item",
                token,
                lambda: self.client.add_to_cart(token, request_item),
                product_id,
                previous,
            )

        return self.items

    async def update_quantity(self, product_id: str, quantity: int) -> list[CartItem]:
        """Set a product's quantity; zero or less removes it, unknown ids are ignored"""
        if product_id not in self._items:
            return self.items
        if quantity <= 0:
            return await self.remove_item(product_id)

        with self._guard(product_id):
            token = await self._credential_or_none()
            previous = self._items.get(product_id)
            if previous is None:
                return self.items

            self._items[product_id] = previous.model_copy(update={"quantity": quantity})
            self._changed()

            await self._mirror(
                "update quantity",
                token,
                lambda: self.client.update_cart_item(token, product_id, quantity),
                product_id,
                previous,
            )

        return self.items

    async def remove_item(self, product_id: str) -> list[CartItem]:
        """Remove a product entirely"""
        if product_id not in self._items:
            return self.items

        with self._guard(product_id):
            token = await self._credential_or_none()
            previous = self._items.pop(product_id, None)
            if previous is None:
                return self.items
            self._changed()

            await self._mirror(
                "remove item",
                token,
                lambda: self.client.remove_from_cart(token, product_id),
                product_id,
                previous,
            )

        return self.items

    async def clear(self, remote: bool = True) -> None:
        """
        Empty the cart.

        After a confirmed order the server has already destroyed the cart,
        so callers pass remote=False.
        """
        with self._guard(CLEAR_REQUEST_KEY):
            self._items = {}
            self._changed()
            if not remote:
                return

            token = await self._credential_or_none()
            await self._mirror("clear cart", token, lambda: self.client.clear_cart(token))

    # ==================== Internals ====================

    @contextmanager
    def _guard(self, key: str) -> Iterator[None]:
        if key in self._in_flight:
            logger.debug(f"Duplicate cart request blocked: {key}")
            raise MutationInProgressError(key)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    async def _ensure_credential(self) -> str:
        token = self.credentials.bearer()
        if token:
            return token
        return await self.guest_sessions.get_or_create_session()

    async def _credential_or_none(self) -> Optional[str]:
        try:
            return await self._ensure_credential()
        except (RemoteUnavailableError, RateLimitedError) as e:
            logger.warning(f"Could not obtain a cart session, keeping change locally: {e.message}")
            self.sync_error = e
            return None

    async def _mirror(
        self,
        operation: str,
        token: Optional[str],
        call: Callable[[], Awaitable[Cart]],
        product_id: Optional[str] = None,
        previous: Optional[CartItem] = None,
    ) -> None:
        """Push a local change to the remote and adopt the remote result"""
        if token is None:
            return

        try:
            cart = await call()
        except RemoteUnavailableError as e:
            logger.warning(f"Remote cart {operation} failed, local change kept: {e.message}")
            self.sync_error = e
            return
        except RemoteValidationError:
            # The remote refused the change outright; put the line back.
            if product_id is not None:
                self._restore_item(product_id, previous)
            raise
        except SessionExpiredError:
            self.credentials.expire()
            raise

        # Other products still awaiting the remote keep their local lines.
        self.adopt(cart, keep_local=self.pending_product_ids - {product_id})

    def _restore_item(self, product_id: str, previous: Optional[CartItem]) -> None:
        if previous is None:
            self._items.pop(product_id, None)
        else:
            self._items[product_id] = previous
        self._changed()

    def _changed(self) -> None:
        self._persist()
        self._notify()

    def _persist(self) -> None:
        self.credentials.store.set(
            cart_key(self.owner_key),
            [item.model_dump(by_alias=True, mode="json") for item in self._items.values()],
        )

    def _restore_local(self) -> None:
        stored = self.credentials.store.get(cart_key(self.owner_key)) or []
        self._items = {}
        for raw in stored:
            item = CartItem.model_validate(raw)
            self._items[item.product_id] = item
        self._notify()
