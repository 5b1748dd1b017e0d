"""
Checkout Session State Machine

Review(1) -> Shipping(2) -> Payment(3) -> Confirmation(4).

Only n+1 and the explicit back steps 2->1 and 3->2 are reachable.
Confirmation is terminal. The session lives in memory only and is
discarded when the shopper leaves checkout.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import IntEnum
from typing import Any, Optional, Union

from ..core.exceptions import (
    InvalidTransitionError,
    RateLimitedError,
    RemoteUnavailableError,
    RemoteValidationError,
    SessionExpiredError,
    ValidationError,
)
from ..core.session import Credentials
from ..models import (
    Cart,
    CartItem,
    ConfirmOrderRequest,
    CustomerInfo,
    Order,
    PaymentDetails,
    ShippingAddress,
)
from ..utils.validators import ensure_valid_shipping, validate_shipping
from .api_client import StorefrontClient
from .cart_store import CartStore
from .pricing import DEFAULT_TOLERANCE, cart_subtotal, reconcile_total

logger = logging.getLogger(__name__)

EMPTY_CART_MESSAGE = "Your cart is empty"


class CheckoutStep(IntEnum):
    """Ordered checkout steps"""
    REVIEW = 1
    SHIPPING = 2
    PAYMENT = 3
    CONFIRMATION = 4


# Back-navigation is allowed only from these steps
BACK_TRANSITIONS = {
    CheckoutStep.SHIPPING: CheckoutStep.REVIEW,
    CheckoutStep.PAYMENT: CheckoutStep.SHIPPING,
}


@dataclass
class CheckoutSession:
    """In-memory state of one pass through checkout"""
    reservation_duration: int
    step: CheckoutStep = CheckoutStep.REVIEW
    review_cart: Optional[Cart] = None
    cart_snapshot: list[CartItem] = field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    customer_info: Optional[CustomerInfo] = None
    shipping_frozen: bool = False
    order: Optional[Order] = None
    pending: bool = False
    aborted: bool = False
    error: Optional[str] = None
    payment_error: Optional[str] = None
    field_errors: dict[str, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_complete(self) -> bool:
        return self.step == CheckoutStep.CONFIRMATION

    def snapshot_total(self, tax_rate: Decimal) -> Decimal:
        return cart_subtotal(self.cart_snapshot, tax_rate)


class CheckoutFlow:
    """
    Drives a CheckoutSession.

    Transition methods return True when the step changed, False when a
    local validation or a recoverable remote failure blocked it, and None
    when the request was ignored because another transition is pending.
    """

    def __init__(
        self,
        client: StorefrontClient,
        credentials: Credentials,
        cart_store: CartStore,
        reservation_duration: int = 1800,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ):
        self.client = client
        self.credentials = credentials
        self.cart_store = cart_store
        self.reservation_duration = reservation_duration
        self.tolerance = tolerance
        self.session: Optional[CheckoutSession] = None
        credentials.add_expiry_listener(self._on_credentials_expired)

    @property
    def tax_rate(self) -> Decimal:
        return self.cart_store.tax_rate

    @property
    def step(self) -> Optional[CheckoutStep]:
        return self.session.step if self.session else None

    # ==================== Lifecycle ====================

    async def start(self) -> Optional[CheckoutSession]:
        """Enter checkout at the review step with a refreshed cart"""
        if self.session and self.session.pending:
            return None

        session = CheckoutSession(reservation_duration=self.reservation_duration)
        self.session = session
        self.cart_store.remove_listener(self._on_cart_changed)
        self.cart_store.add_listener(self._on_cart_changed)

        session.pending = True
        try:
            cart = await self._fetch_review_cart()
        except RemoteUnavailableError as e:
            logger.warning(f"Checkout review failed, using local cart: {e.message}")
            session.error = e.message
            cart = None
        except SessionExpiredError:
            self._expire()
            raise
        finally:
            session.pending = False

        if cart is not None:
            self.cart_store.adopt(cart)
        self._guard_cart()

        session.review_cart = Cart(
            id=self.cart_store.cart_id,
            items=self.cart_store.snapshot(),
            total_amount=self.cart_store.subtotal(),
        )
        return session

    def discard(self) -> None:
        """Leave checkout. Nothing is held server-side before confirmation."""
        self.cart_store.remove_listener(self._on_cart_changed)
        self.session = None

    # ==================== Transitions ====================

    def can_advance(self) -> bool:
        """Completeness predicate for moving past the current step"""
        session = self.session
        if session is None or session.aborted or session.pending:
            return False
        if session.step == CheckoutStep.REVIEW:
            return not self.cart_store.is_empty()
        if session.step == CheckoutStep.SHIPPING:
            if session.shipping_address is None or session.customer_info is None:
                return False
            return not validate_shipping(session.shipping_address, session.customer_info)
        if session.step == CheckoutStep.PAYMENT:
            return session.shipping_frozen and not self.cart_store.is_empty()
        return False

    def go_to(self, step: Union[CheckoutStep, int]) -> Optional[bool]:
        """Move to an adjacent step; anything further away is rejected"""
        session = self._require_session()
        target = CheckoutStep(step)
        if session.pending:
            return None

        if BACK_TRANSITIONS.get(session.step) == target:
            return self.back()

        self._check_forward(session, target)
        if target == CheckoutStep.SHIPPING:
            return self.proceed_to_shipping()
        if target == CheckoutStep.PAYMENT:
            return self.submit_shipping()
        raise InvalidTransitionError("Order confirmation requires payment details; use confirm()")

    def back(self) -> Optional[bool]:
        """Step back from shipping to review, or from payment to shipping"""
        session = self._require_session()
        if session.pending:
            return None

        target = BACK_TRANSITIONS.get(session.step)
        if target is None:
            raise InvalidTransitionError(f"Cannot go back from step {session.step.name}")

        if session.step == CheckoutStep.PAYMENT:
            # Shipping data is editable again and must re-validate to advance.
            session.shipping_frozen = False
        self._set_step(session, target)
        return True

    def proceed_to_shipping(self) -> Optional[bool]:
        """1 -> 2: requires a non-empty cart, which is snapshotted here"""
        session = self._require_session()
        if session.pending:
            return None
        self._check_forward(session, CheckoutStep.SHIPPING)

        if not self._guard_cart():
            return False

        session.cart_snapshot = self.cart_store.snapshot()
        self._set_step(session, CheckoutStep.SHIPPING)
        return True

    def update_shipping(
        self,
        address: Union[ShippingAddress, dict[str, Any]],
        customer: Union[CustomerInfo, dict[str, Any]],
    ) -> None:
        """Store draft shipping data while on the shipping step"""
        session = self._require_session()
        if session.step != CheckoutStep.SHIPPING:
            raise InvalidTransitionError("Shipping details can only be edited on the shipping step")
        session.shipping_address = ShippingAddress.model_validate(address)
        session.customer_info = CustomerInfo.model_validate(customer)
        session.shipping_frozen = False

    def submit_shipping(
        self,
        address: Union[ShippingAddress, dict[str, Any], None] = None,
        customer: Union[CustomerInfo, dict[str, Any], None] = None,
    ) -> Optional[bool]:
        """2 -> 3: validate shipping and customer details locally, then freeze them"""
        session = self._require_session()
        if session.pending:
            return None
        self._check_forward(session, CheckoutStep.PAYMENT)

        if not self._validate_shipping(session, address, customer):
            return False
        if not self._guard_cart():
            return False

        self._freeze_shipping(session)
        return True

    async def save_shipping(
        self,
        address: Union[ShippingAddress, dict[str, Any], None] = None,
        customer: Union[CustomerInfo, dict[str, Any], None] = None,
    ) -> Optional[bool]:
        """
        2 -> 3 like submit_shipping, but signed-in shoppers also store the
        validated details with the remote before moving on.

        Guests skip the remote save; their details travel with the guest
        order at confirmation.

        Raises:
            RateLimitedError: the remote throttled the save
            SessionExpiredError: credentials rejected; the session is discarded
        """
        session = self._require_session()
        if session.pending:
            return None
        self._check_forward(session, CheckoutStep.PAYMENT)

        if not self._validate_shipping(session, address, customer):
            return False

        token = self.credentials.auth_token
        if token:
            session.pending = True
            session.error = None
            try:
                saved = await self.client.save_shipping_info(
                    token, session.shipping_address, session.customer_info
                )
            except SessionExpiredError:
                self._expire()
                raise
            except (RemoteValidationError, RemoteUnavailableError) as e:
                logger.warning(f"Saving shipping details failed: {e.message}")
                session.error = e.message
                return False
            finally:
                session.pending = False

            if saved.shipping_address is not None:
                session.shipping_address = saved.shipping_address
            if saved.customer_info is not None:
                session.customer_info = saved.customer_info

        if not self._guard_cart():
            return False

        self._freeze_shipping(session)
        return True

    async def confirm(
        self,
        payment_details: Union[PaymentDetails, dict[str, Any]],
        reservation_duration: Optional[int] = None,
    ) -> Optional[bool]:
        """
        3 -> 4: place the order with the remote.

        Not retried: rate limiting and payment failures go back to the
        shopper, who decides whether to try again.

        Raises:
            RateLimitedError: the remote throttled the confirmation
            SessionExpiredError: credentials rejected; the session is discarded
            ValueError: reservation_duration is not a positive number of seconds
        """
        session = self._require_session()
        if session.pending:
            return None
        self._check_forward(session, CheckoutStep.CONFIRMATION)

        if reservation_duration is None:
            reservation_duration = session.reservation_duration
        elif reservation_duration <= 0:
            raise ValueError("Reservation duration must be a positive number of seconds")

        payment = PaymentDetails.model_validate(payment_details)
        if not payment.reference:
            session.field_errors = {"reference": "Payment reference is required"}
            session.payment_error = "Payment reference is required"
            return False
        if not session.shipping_frozen:
            raise InvalidTransitionError("Shipping details must be confirmed before payment")
        if not self._guard_cart():
            return False

        request = ConfirmOrderRequest(
            shipping_address=session.shipping_address,
            customer_info=session.customer_info,
            payment_details=payment,
            reservation_duration=reservation_duration,
        )

        session.pending = True
        session.error = None
        session.payment_error = None
        session.field_errors = {}
        try:
            response = await self._submit_order(request)
        except RateLimitedError as e:
            session.payment_error = e.message
            raise
        except SessionExpiredError:
            self._expire()
            raise
        except (RemoteValidationError, RemoteUnavailableError) as e:
            logger.warning(f"Order confirmation failed: {e.message}")
            session.error = e.message
            session.payment_error = e.message
            return False
        finally:
            session.pending = False

        if not response.is_paid:
            # An order record without a successful payment is not a placed order.
            session.payment_error = (
                response.payment_error or response.message or "Payment was not completed"
            )
            logger.warning(f"Order not placed: {session.payment_error}")
            return False

        order = response.order
        reconcile_total(
            order.total_amount,
            session.cart_snapshot,
            tax_rate=self.tax_rate,
            tolerance=self.tolerance,
            context=f"order {order.order_number}",
        )
        session.order = order
        self._set_step(session, CheckoutStep.CONFIRMATION)
        await self.cart_store.clear(remote=False)
        logger.info(f"Order {order.order_number} placed")
        return True

    def clear_payment_error(self) -> None:
        if self.session:
            self.session.payment_error = None

    # ==================== Internals ====================

    def _require_session(self) -> CheckoutSession:
        if self.session is None:
            raise InvalidTransitionError("No active checkout session")
        if self.session.aborted:
            raise InvalidTransitionError("Checkout session was aborted")
        return self.session

    @staticmethod
    def _check_forward(session: CheckoutSession, target: CheckoutStep) -> None:
        if target != session.step + 1:
            raise InvalidTransitionError(
                f"Cannot move from step {session.step.name} to {target.name}"
            )

    @staticmethod
    def _set_step(session: CheckoutSession, step: CheckoutStep) -> None:
        session.step = step
        session.payment_error = None

    def _validate_shipping(
        self,
        session: CheckoutSession,
        address: Union[ShippingAddress, dict[str, Any], None],
        customer: Union[CustomerInfo, dict[str, Any], None],
    ) -> bool:
        if address is not None or customer is not None:
            self.update_shipping(
                address if address is not None else (session.shipping_address or ShippingAddress()),
                customer if customer is not None else (session.customer_info or CustomerInfo()),
            )

        if session.shipping_address is None or session.customer_info is None:
            self.update_shipping(
                session.shipping_address or ShippingAddress(),
                session.customer_info or CustomerInfo(),
            )
        try:
            ensure_valid_shipping(session.shipping_address, session.customer_info)
        except ValidationError as e:
            session.field_errors = e.field_errors
            logger.debug(f"Shipping step blocked: {sorted(e.field_errors)}")
            return False
        session.field_errors = {}
        return True

    def _freeze_shipping(self, session: CheckoutSession) -> None:
        session.shipping_address = session.shipping_address.model_copy(deep=True)
        session.customer_info = session.customer_info.model_copy(deep=True)
        session.shipping_frozen = True
        self._set_step(session, CheckoutStep.PAYMENT)

    def _guard_cart(self) -> bool:
        """Abort steps 1-3 when the cart has gone empty"""
        session = self.session
        if session is None or session.aborted:
            return False
        if session.step < CheckoutStep.CONFIRMATION and self.cart_store.is_empty():
            self._abort(EMPTY_CART_MESSAGE)
            return False
        return True

    def _on_cart_changed(self, store: CartStore) -> None:
        session = self.session
        if session is None or session.aborted or session.pending:
            return
        if session.step < CheckoutStep.CONFIRMATION and store.is_empty():
            self._abort(EMPTY_CART_MESSAGE)

    def _abort(self, reason: str) -> None:
        session = self.session
        session.aborted = True
        session.error = reason
        logger.info(f"Checkout aborted at step {session.step.name}: {reason}")

    def _on_credentials_expired(self) -> None:
        if self.session is not None:
            logger.info("Credentials expired, discarding checkout session")
        self.discard()

    def _expire(self) -> None:
        self.credentials.expire()
        self.discard()

    async def _fetch_review_cart(self) -> Optional[Cart]:
        if self.credentials.is_authenticated:
            return await self.client.review_checkout(self.credentials.auth_token)
        if self.credentials.guest_token:
            return await self.client.get_cart(self.credentials.guest_token)
        return None

    async def _submit_order(self, request: ConfirmOrderRequest):
        if self.credentials.is_authenticated:
            return await self.client.confirm_order(self.credentials.auth_token, request)

        guest_token = self.credentials.guest_token
        if not guest_token:
            raise SessionExpiredError("No session available to place the order")
        request.cart_id = self.cart_store.cart_id
        request.guest_checkout = True
        return await self.client.confirm_guest_order(guest_token, request)
