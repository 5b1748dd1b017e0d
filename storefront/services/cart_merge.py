"""
Cart Merge Coordinator

Folds a guest cart into the freshly authenticated user's cart, once.

Login may clear guest state as a side effect, so the guest token is
captured into a session-scoped staging slot *before* authentication runs.
The slot is consumed on every outcome, which makes a repeated merge a no-op.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..core.exceptions import (
    MalformedTokenError,
    MergeAbortedError,
    StorefrontError,
)
from ..core.session import Credentials
from ..models import Cart
from .api_client import StorefrontClient
from .cart_store import CartStore
from .guest_session import GuestSessionManager, extract_session_id

logger = logging.getLogger(__name__)

# Resolves to (auth token, user id)
Authenticator = Callable[[], Awaitable[tuple[str, str]]]


class MergeOutcome(str, Enum):
    """How a merge attempt ended"""
    MERGED = "merged"
    ABORTED = "aborted"
    NOTHING_STAGED = "nothing_staged"


@dataclass
class MergeResult:
    """Result of a merge attempt"""
    outcome: MergeOutcome
    cart: Optional[Cart] = None
    error: Optional[MergeAbortedError] = None

    @property
    def merged(self) -> bool:
        return self.outcome == MergeOutcome.MERGED


class CartMergeCoordinator:
    """Runs the post-login guest cart merge"""

    def __init__(
        self,
        client: StorefrontClient,
        credentials: Credentials,
        guest_sessions: GuestSessionManager,
        cart_store: CartStore,
    ):
        self.client = client
        self.credentials = credentials
        self.guest_sessions = guest_sessions
        self.cart_store = cart_store

    def stage_guest_token(self) -> Optional[str]:
        """Capture the current guest token. Call before authenticating."""
        token = self.credentials.guest_token
        if token:
            self.credentials.stage_guest_token(token)
        return token

    async def login(self, authenticate: Authenticator) -> MergeResult:
        """
        Authenticate, then merge the guest cart into the user's cart.

        Args:
            authenticate: coroutine function performing the login call and
                returning (auth token, user id)

        Returns:
            The merge result; the cart store holds the user's cart either way
        """
        self.stage_guest_token()
        try:
            token, user_id = await authenticate()
        except Exception:
            # Failed login: nothing to merge into.
            self.credentials.clear_staged_guest_token()
            raise

        self.credentials.sign_in(token, user_id)
        result = await self.merge()
        if not result.merged:
            await self.cart_store.load()
        return result

    async def merge(self) -> MergeResult:
        """Merge the staged guest cart. Safe to call more than once."""
        # Taken before the first await so a concurrent call finds the slot empty.
        guest_token = self.credentials.take_staged_guest_token()
        if not guest_token:
            return MergeResult(outcome=MergeOutcome.NOTHING_STAGED)

        try:
            cart = await self._merge_staged(guest_token)
        except MergeAbortedError as e:
            logger.warning(e.message)
            return MergeResult(outcome=MergeOutcome.ABORTED, error=e)

        self.cart_store.adopt(cart)
        self.guest_sessions.invalidate()
        logger.info(f"Guest cart merged into {self.cart_store.owner_key} ({len(cart.items)} lines)")
        return MergeResult(outcome=MergeOutcome.MERGED, cart=cart)

    async def _merge_staged(self, guest_token: str) -> Cart:
        user_token = self.credentials.auth_token
        if not user_token:
            raise MergeAbortedError("user is not authenticated")

        try:
            guest_cart = await self.client.get_cart(guest_token)
        except StorefrontError as e:
            raise MergeAbortedError(f"guest cart could not be fetched ({e.message})") from e

        if guest_cart.is_empty:
            raise MergeAbortedError("guest cart is empty")

        try:
            session_id = extract_session_id(guest_token)
        except MalformedTokenError as e:
            raise MergeAbortedError(f"guest token unreadable ({e.message})") from e

        try:
            return await self.client.merge_guest_cart(user_token, session_id)
        except StorefrontError as e:
            # Not retried; the guest cart stays with the orphaned guest token.
            raise MergeAbortedError(f"merge request failed ({e.message})") from e
