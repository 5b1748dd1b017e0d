"""
Storefront API Client

HTTP client for the marketplace cart, session and checkout APIs.
Translates remote status codes into the storefront error taxonomy so
callers never have to string-match error text.
"""

import logging
from typing import Optional, Any

import httpx

from ..core.exceptions import (
    NotFoundError,
    RateLimitedError,
    RemoteUnavailableError,
    RemoteValidationError,
    SessionExpiredError,
)
from ..models import (
    Cart,
    CartItem,
    CartResponse,
    CheckoutReviewResponse,
    ConfirmOrderRequest,
    ConfirmOrderResponse,
    CustomerInfo,
    MergeCartRequest,
    Order,
    OrderListResponse,
    OrderResponse,
    ShippingAddress,
    ShippingInfoRequest,
    ShippingInfoResponse,
    TaxSettings,
    TaxSettingsResponse,
    UpdateCartItemRequest,
)

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response"""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"Request failed: {response.status_code}"

    if isinstance(data, dict):
        for key in ("message", "detail", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                return str(value)
    return f"Request failed: {response.status_code}"


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class StorefrontClient:
    """
    Client for the marketplace remote API.

    Every call takes the bearer credential explicitly; the client itself
    holds no identity.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize storefront client.

        Args:
            base_url: Base URL of the marketplace API
            timeout: Per-request timeout in seconds
            transport: Optional transport override (tests, ASGI apps)
        """
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _generate_headers(self, token: Optional[str] = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make an HTTP request and map failures onto storefront errors"""
        url = f"{self.base_url}{path}"

        try:
            response = await self._http_client.request(
                method=method,
                url=url,
                headers=self._generate_headers(token),
                json=body,
                params=params,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {method} {path}")
            raise RemoteUnavailableError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            logger.error(f"Request failed: {method} {path} - {e}")
            raise RemoteUnavailableError(f"Could not reach the server: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"Request failed: {response.status_code} - {method} {path} - {message}")
            status = response.status_code
            if status in (400, 422):
                raise RemoteValidationError(message)
            if status in (401, 403):
                raise SessionExpiredError(message)
            if status == 404:
                raise NotFoundError(message)
            if status == 429:
                raise RateLimitedError(message, retry_after=_retry_after(response))
            raise RemoteUnavailableError(message)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailableError(f"Invalid response from {method} {path}") from e

    # ==================== Session APIs ====================

    async def create_guest_session(self) -> Optional[str]:
        """Create an anonymous session, returning its token"""
        data = await self._request("POST", "/api/session/guest-session")
        return data.get("token")

    async def validate_guest_session(self, token: str) -> bool:
        """Ask the remote whether a guest token is still valid"""
        try:
            data = await self._request("GET", "/api/session/guest-session/validate", token=token)
        except (SessionExpiredError, NotFoundError):
            return False
        return bool(data.get("valid", True))

    # ==================== Cart APIs ====================

    async def get_cart(self, token: Optional[str]) -> Cart:
        """Get the cart owned by the credential; a missing cart reads as empty"""
        try:
            data = await self._request("GET", "/api/cart", token=token)
        except NotFoundError:
            return Cart()
        return CartResponse.model_validate(data).cart

    async def add_to_cart(self, token: Optional[str], item: CartItem) -> Cart:
        """Add item to cart"""
        data = await self._request("POST", "/api/cart/add", token=token, body=item.to_wire())
        return CartResponse.model_validate(data).cart

    async def update_cart_item(self, token: Optional[str], product_id: str, quantity: int) -> Cart:
        """Update item quantity in cart"""
        data = await self._request(
            "PUT",
            f"/api/cart/update/{product_id}",
            token=token,
            body=UpdateCartItemRequest(quantity=quantity).to_wire(),
        )
        return CartResponse.model_validate(data).cart

    async def remove_from_cart(self, token: Optional[str], product_id: str) -> Cart:
        """Remove item from cart"""
        data = await self._request("DELETE", f"/api/cart/remove/{product_id}", token=token)
        return CartResponse.model_validate(data).cart

    async def clear_cart(self, token: Optional[str]) -> Cart:
        """Clear all items from cart"""
        data = await self._request("DELETE", "/api/cart/clear", token=token)
        return CartResponse.model_validate(data).cart

    async def merge_guest_cart(self, token: str, guest_session_id: str) -> Cart:
        """Merge the guest session's cart into the authenticated user's cart"""
        data = await self._request(
            "POST",
            "/api/cart/merge-guest",
            token=token,
            body=MergeCartRequest(guest_session_id=guest_session_id).to_wire(),
        )
        return CartResponse.model_validate(data).cart

    # ==================== Checkout APIs ====================

    async def review_checkout(self, token: str) -> Cart:
        """Step 1: fetch the cart as the checkout backend sees it"""
        data = await self._request("GET", "/api/checkout/review", token=token)
        return CheckoutReviewResponse.model_validate(data).cart

    async def save_shipping_info(
        self,
        token: str,
        shipping_address: ShippingAddress,
        customer_info: CustomerInfo,
    ) -> ShippingInfoResponse:
        """Step 2: store validated shipping details ahead of payment"""
        data = await self._request(
            "POST",
            "/api/checkout/shipping",
            token=token,
            body=ShippingInfoRequest(
                shipping_address=shipping_address,
                customer_info=customer_info,
            ).to_wire(),
        )
        return ShippingInfoResponse.model_validate(data)

    async def confirm_order(self, token: str, request: ConfirmOrderRequest) -> ConfirmOrderResponse:
        """
        Step 3 -> 4: place the order.

        Never retried here; a repeated payment confirmation can double-charge.
        """
        data = await self._request(
            "POST",
            "/api/checkout/confirm-step",
            token=token,
            body=request.to_wire(),
        )
        return ConfirmOrderResponse.model_validate(data)

    async def confirm_guest_order(self, token: str, request: ConfirmOrderRequest) -> ConfirmOrderResponse:
        """Guest variant of confirm_order, authorized by the guest token"""
        data = await self._request(
            "POST",
            "/api/checkout/guest-order",
            token=token,
            body=request.to_wire(),
        )
        return ConfirmOrderResponse.model_validate(data)

    # ==================== Order APIs ====================

    async def list_orders(
        self,
        token: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> OrderListResponse:
        """List the shopper's orders"""
        params: dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        if payment_status:
            params["paymentStatus"] = payment_status

        data = await self._request("GET", "/api/checkout/orders", token=token, params=params)
        return OrderListResponse.model_validate(data)

    async def get_order(self, token: str, order_id: str) -> Order:
        """Get order details"""
        data = await self._request("GET", f"/api/checkout/orders/{order_id}", token=token)
        return OrderResponse.model_validate(data).order

    # ==================== Settings APIs ====================

    async def get_tax_settings(self, token: str) -> TaxSettings:
        """Current marketplace tax configuration"""
        data = await self._request("GET", "/api/admin/tax/current", token=token)
        return TaxSettingsResponse.model_validate(data).data
