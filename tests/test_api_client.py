"""
Tests for remote status code translation in the API client.
"""

import json
from decimal import Decimal

import httpx
import pytest

from storefront.core.exceptions import (
    NotFoundError,
    RateLimitedError,
    RemoteUnavailableError,
    RemoteValidationError,
    SessionExpiredError,
)
from storefront.models import CartItem, CustomerInfo, ShippingAddress
from storefront.services.api_client import StorefrontClient


def client_for(handler) -> StorefrontClient:
    return StorefrontClient("http://testserver", transport=httpx.MockTransport(handler))


def respond(status_code, json=None, headers=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=json, headers=headers)
    return handler


class TestStatusMapping:
    """Test HTTP failures map onto the storefront error taxonomy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 422])
    async def test_client_errors_are_validation_errors(self, status_code):
        """Test 400/422 raise RemoteValidationError with the remote message."""
        async with client_for(respond(status_code, {"message": "Quantity exceeds stock"})) as client:
            with pytest.raises(RemoteValidationError) as exc_info:
                await client.add_to_cart("tok", CartItem(product_id="p1"))
        assert exc_info.value.message == "Quantity exceeds stock"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_errors_are_session_expiry(self, status_code):
        """Test 401/403 raise SessionExpiredError."""
        async with client_for(respond(status_code, {"detail": "Token expired"})) as client:
            with pytest.raises(SessionExpiredError):
                await client.clear_cart("tok")

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self):
        """Test 429 raises RateLimitedError with the Retry-After hint."""
        handler = respond(429, {"message": "Too many requests"}, headers={"Retry-After": "7"})
        async with client_for(handler) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client.review_checkout("tok")
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after(self):
        """Test a missing Retry-After header leaves retry_after unset."""
        async with client_for(respond(429, {"message": "slow down"})) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client.review_checkout("tok")
        assert exc_info.value.retry_after is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [500, 502, 503])
    async def test_server_errors_are_unavailable(self, status_code):
        """Test 5xx raise RemoteUnavailableError."""
        async with client_for(respond(status_code, {"error": "boom"})) as client:
            with pytest.raises(RemoteUnavailableError):
                await client.get_cart("tok")

    @pytest.mark.asyncio
    async def test_network_failure_is_unavailable(self):
        """Test transport errors raise RemoteUnavailableError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailableError):
                await client.get_cart("tok")

    @pytest.mark.asyncio
    async def test_invalid_json_is_unavailable(self):
        """Test an unparseable success body raises RemoteUnavailableError."""
        def handler(request):
            return httpx.Response(200, content=b"<html>gateway</html>")

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailableError):
                await client.get_cart("tok")

    @pytest.mark.asyncio
    async def test_missing_order_is_not_found(self):
        """Test 404 on an order raises NotFoundError."""
        async with client_for(respond(404, {"detail": "Order not found"})) as client:
            with pytest.raises(NotFoundError):
                await client.get_order("tok", "ORD-1")


class TestRequests:
    """Test request shapes and lenient reads."""

    @pytest.mark.asyncio
    async def test_missing_cart_reads_as_empty(self):
        """Test 404 on the cart is an empty cart, not an error."""
        async with client_for(respond(404, {"detail": "Cart not found"})) as client:
            cart = await client.get_cart("tok")
        assert cart.is_empty

    @pytest.mark.asyncio
    async def test_bearer_and_wire_names(self):
        """Test the credential header and camelCase body."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"success": True, "cart": {"id": "c1", "items": []}})

        async with client_for(handler) as client:
            await client.update_cart_item("tok-123", "p1", 4)

        assert seen["auth"] == "Bearer tok-123"
        assert seen["body"].replace(" ", "") == '{"quantity":4}'

    @pytest.mark.asyncio
    async def test_invalid_guest_session(self):
        """Test a rejected guest token validates as False."""
        async with client_for(respond(401, {"detail": "expired"})) as client:
            assert await client.validate_guest_session("tok") is False

    @pytest.mark.asyncio
    async def test_order_list_filters(self):
        """Test paging and filter query parameters."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "orders": [], "total": 0})

        async with client_for(handler) as client:
            result = await client.list_orders("tok", page=2, limit=5, payment_status="PAID")

        assert seen["params"] == {"page": "2", "limit": "5", "paymentStatus": "PAID"}
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_save_shipping_info_body(self):
        """Test shipping details are posted under their wire names."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, **seen["body"]})

        address = ShippingAddress(street="1 Allen Ave", city="Ikeja", state="Lagos", postal_code="100001")
        customer = CustomerInfo(first_name="Ada", last_name="Obi", email="ada@example.com", phone="08031234567")
        async with client_for(handler) as client:
            saved = await client.save_shipping_info("tok", address, customer)

        assert seen["path"] == "/api/checkout/shipping"
        assert seen["body"]["shippingAddress"]["postalCode"] == "100001"
        assert seen["body"]["customerInfo"]["firstName"] == "Ada"
        assert saved.customer_info.email == "ada@example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, rate",
        [
            ({"taxRate": 0.05, "isEnabled": True}, Decimal("0.05")),
            ({"vatRate": 7.5}, Decimal("0.075")),
            ({"taxRate": 0.05, "isEnabled": False}, Decimal("0")),
            ({}, None),
        ],
    )
    async def test_tax_settings_shapes(self, payload, rate):
        """Test fractional, percentage and disabled tax settings."""
        async with client_for(respond(200, {"success": True, "data": payload})) as client:
            settings = await client.get_tax_settings("tok")
        assert settings.rate == rate
