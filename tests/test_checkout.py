"""
Tests for the checkout step state machine.
"""

import asyncio
from decimal import Decimal

import pytest

from storefront.core.exceptions import (
    InvalidTransitionError,
    RateLimitedError,
    RemoteUnavailableError,
    SessionExpiredError,
)
from storefront.services import CheckoutStep


async def at_shipping(storefront, products):
    await storefront.cart.add_item(products["ankara"], quantity=2)
    await storefront.checkout.start()
    assert storefront.checkout.proceed_to_shipping() is True


async def at_payment(storefront, products, shipping):
    await at_shipping(storefront, products)
    address, customer = shipping
    assert storefront.checkout.submit_shipping(address, customer) is True


class TestHappyPath:
    """Test completing checkout end to end."""

    @pytest.mark.asyncio
    async def test_guest_checkout(self, storefront, backend, products, shipping):
        """Test a guest walks 1 -> 2 -> 3 -> 4 and the cart is consumed."""
        await at_payment(storefront, products, shipping)
        guest_owner = f"guest:{storefront.guest_sessions.session_id}"

        placed = await storefront.checkout.confirm({"reference": "PSK-123", "channel": "card"})

        session = storefront.checkout.session
        assert placed is True
        assert session.step == CheckoutStep.CONFIRMATION
        assert session.is_complete
        assert session.order.payment_status == "PAID"
        assert session.order.total_amount == Decimal("2310")
        assert session.aborted is False
        assert storefront.cart.is_empty()
        assert backend.state.cart_db.get_cart(guest_owner) is None

    @pytest.mark.asyncio
    async def test_user_checkout(self, storefront, backend, products, shipping, login):
        """Test a signed-in user checks out through the review endpoint."""
        await storefront.merge.login(login())
        await at_payment(storefront, products, shipping)

        assert await storefront.checkout.confirm({"reference": "PSK-456"}) is True

        order = storefront.checkout.session.order
        stored = backend.state.order_db.get_order(order.id)
        assert stored.customer_info["email"] == "ada@example.com"
        assert backend.state.order_db.reservations[order.id] == 1800

    @pytest.mark.asyncio
    async def test_review_cart_is_priced_locally(self, storefront, products):
        """Test the review step shows the recomputed subtotal."""
        await storefront.cart.add_item(products["ankara"], quantity=2)
        session = await storefront.checkout.start()

        assert session.step == CheckoutStep.REVIEW
        assert session.review_cart.total_amount == Decimal("2310")
        assert storefront.checkout.can_advance() is True

    @pytest.mark.asyncio
    async def test_snapshot_is_taken_on_leaving_review(self, storefront, products):
        """Test the cart snapshot is independent of later cart edits."""
        await at_shipping(storefront, products)
        await storefront.cart.add_item(products["lace"])

        snapshot = storefront.checkout.session.cart_snapshot
        assert [item.product_id for item in snapshot] == ["ankara-001"]
        assert storefront.checkout.session.snapshot_total(Decimal("0.075")) == Decimal("2310")


class TestTransitions:
    """Test step ordering rules."""

    @pytest.mark.asyncio
    async def test_cannot_skip_steps(self, storefront, products):
        """Test 1 -> 3 and 1 -> 4 are rejected."""
        await storefront.cart.add_item(products["ankara"])
        await storefront.checkout.start()

        with pytest.raises(InvalidTransitionError):
            storefront.checkout.go_to(CheckoutStep.PAYMENT)
        with pytest.raises(InvalidTransitionError):
            storefront.checkout.go_to(4)
        assert storefront.checkout.step == CheckoutStep.REVIEW

    @pytest.mark.asyncio
    async def test_no_back_from_review(self, storefront, products):
        """Test review is the first step."""
        await storefront.cart.add_item(products["ankara"])
        await storefront.checkout.start()

        with pytest.raises(InvalidTransitionError):
            storefront.checkout.back()

    @pytest.mark.asyncio
    async def test_back_from_payment_unfreezes_shipping(self, storefront, products, shipping):
        """Test 3 -> 2 makes shipping editable and re-validated."""
        await at_payment(storefront, products, shipping)
        assert storefront.checkout.session.shipping_frozen is True

        assert storefront.checkout.go_to(CheckoutStep.SHIPPING) is True
        assert storefront.checkout.step == CheckoutStep.SHIPPING
        assert storefront.checkout.session.shipping_frozen is False

        address, customer = shipping
        storefront.checkout.update_shipping(address, {**customer, "email": "bad"})
        assert storefront.checkout.submit_shipping() is False
        assert storefront.checkout.step == CheckoutStep.SHIPPING

    @pytest.mark.asyncio
    async def test_back_from_shipping(self, storefront, products):
        """Test 2 -> 1 is allowed."""
        await at_shipping(storefront, products)
        assert storefront.checkout.back() is True
        assert storefront.checkout.step == CheckoutStep.REVIEW

    @pytest.mark.asyncio
    async def test_confirmation_is_terminal(self, storefront, products, shipping):
        """Test nothing leaves step 4."""
        await at_payment(storefront, products, shipping)
        await storefront.checkout.confirm({"reference": "PSK-1"})

        with pytest.raises(InvalidTransitionError):
            storefront.checkout.back()

    @pytest.mark.asyncio
    async def test_shipping_edits_only_on_shipping_step(self, storefront, products, shipping):
        """Test shipping data cannot be changed from review."""
        await storefront.cart.add_item(products["ankara"])
        await storefront.checkout.start()

        with pytest.raises(InvalidTransitionError):
            storefront.checkout.update_shipping(*shipping)


class TestShippingValidation:
    """Test local validation at the shipping step."""

    @pytest.mark.asyncio
    async def test_missing_fields_block_advance(self, storefront, products):
        """Test empty forms report every required field."""
        await at_shipping(storefront, products)

        assert storefront.checkout.submit_shipping({}, {}) is False

        errors = storefront.checkout.session.field_errors
        assert set(errors) == {"firstName", "lastName", "email", "phone", "street", "city", "state"}
        assert storefront.checkout.step == CheckoutStep.SHIPPING

    @pytest.mark.asyncio
    async def test_bad_email_and_phone(self, storefront, products, shipping):
        """Test malformed contact details are field errors."""
        await at_shipping(storefront, products)
        address, customer = shipping

        assert storefront.checkout.submit_shipping(address, {**customer, "email": "ada@", "phone": "12"}) is False
        errors = storefront.checkout.session.field_errors
        assert set(errors) == {"email", "phone"}

    @pytest.mark.asyncio
    async def test_errors_clear_on_success(self, storefront, products, shipping):
        """Test a corrected form advances and clears errors."""
        await at_shipping(storefront, products)
        address, customer = shipping

        storefront.checkout.submit_shipping({**address, "city": ""}, customer)
        assert storefront.checkout.submit_shipping(address, customer) is True
        assert storefront.checkout.session.field_errors == {}
        assert storefront.checkout.step == CheckoutStep.PAYMENT


class TestSavedShipping:
    """Test storing shipping details with the remote before payment."""

    @pytest.mark.asyncio
    async def test_user_details_are_saved(self, storefront, backend, products, shipping, login):
        """Test a signed-in shopper's details reach the backend and the step advances."""
        await storefront.merge.login(login())
        await at_shipping(storefront, products)
        address, customer = shipping

        assert await storefront.checkout.save_shipping(address, customer) is True

        session = storefront.checkout.session
        assert session.step == CheckoutStep.PAYMENT
        assert session.shipping_frozen is True
        saved_address, saved_customer = backend.state.order_db.shipping[f"user:{storefront.credentials.user_id}"]
        assert saved_address.city == "Lagos"
        assert saved_customer.email == "ada@example.com"

    @pytest.mark.asyncio
    async def test_guest_skips_remote_save(self, storefront, products, shipping, monkeypatch):
        """Test guests advance without calling the shipping endpoint."""
        await at_shipping(storefront, products)
        calls = []

        async def save_shipping_info(token, address, customer):
            calls.append(token)

        monkeypatch.setattr(storefront.client, "save_shipping_info", save_shipping_info)

        assert await storefront.checkout.save_shipping(*shipping) is True
        assert calls == []
        assert storefront.checkout.step == CheckoutStep.PAYMENT

    @pytest.mark.asyncio
    async def test_invalid_details_are_not_sent(self, storefront, products, shipping, login, monkeypatch):
        """Test local validation runs before the remote save."""
        await storefront.merge.login(login())
        await at_shipping(storefront, products)
        address, customer = shipping
        calls = []

        async def save_shipping_info(token, address, customer):
            calls.append(token)

        monkeypatch.setattr(storefront.client, "save_shipping_info", save_shipping_info)

        assert await storefront.checkout.save_shipping(address, {**customer, "email": "ada@"}) is False
        assert calls == []
        assert set(storefront.checkout.session.field_errors) == {"email"}

    @pytest.mark.asyncio
    async def test_outage_stays_on_shipping(self, storefront, products, shipping, login, monkeypatch):
        """Test a failed save reports the error and keeps the details editable."""
        await storefront.merge.login(login())
        await at_shipping(storefront, products)

        async def save_shipping_info(token, address, customer):
            raise RemoteUnavailableError("Server error - please try again later")

        monkeypatch.setattr(storefront.client, "save_shipping_info", save_shipping_info)

        assert await storefront.checkout.save_shipping(*shipping) is False

        session = storefront.checkout.session
        assert session.step == CheckoutStep.SHIPPING
        assert session.shipping_frozen is False
        assert session.pending is False
        assert session.error == "Server error - please try again later"

    @pytest.mark.asyncio
    async def test_expiry_discards_checkout(self, storefront, products, shipping, login, monkeypatch):
        """Test a rejected credential during the save ends checkout."""
        await storefront.merge.login(login())
        await at_shipping(storefront, products)

        async def save_shipping_info(token, address, customer):
            raise SessionExpiredError("jwt expired")

        monkeypatch.setattr(storefront.client, "save_shipping_info", save_shipping_info)

        with pytest.raises(SessionExpiredError):
            await storefront.checkout.save_shipping(*shipping)

        assert storefront.checkout.session is None
        assert storefront.credentials.is_authenticated is False


class TestPayment:
    """Test the payment step."""

    @pytest.mark.asyncio
    async def test_declined_payment_stays_on_payment(self, storefront, products, shipping):
        """Test a failed payment does not advance and keeps the cart."""
        await at_payment(storefront, products, shipping)

        assert await storefront.checkout.confirm({"reference": "fail-001"}) is False

        session = storefront.checkout.session
        assert session.step == CheckoutStep.PAYMENT
        assert session.payment_error == "Payment verification failed"
        assert session.order is None
        assert storefront.cart.get_item("ankara-001").quantity == 2

    @pytest.mark.asyncio
    async def test_missing_reference(self, storefront, products, shipping):
        """Test confirmation requires a payment reference."""
        await at_payment(storefront, products, shipping)

        assert await storefront.checkout.confirm({}) is False
        assert "reference" in storefront.checkout.session.field_errors

    @pytest.mark.asyncio
    async def test_rate_limited_is_not_retried(self, storefront, products, shipping, monkeypatch):
        """Test a 429 surfaces once and leaves the step unchanged."""
        await at_payment(storefront, products, shipping)
        calls = []

        async def confirm_guest_order(token, request):
            calls.append(request)
            raise RateLimitedError("Too many requests", retry_after=30)

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)

        with pytest.raises(RateLimitedError) as exc_info:
            await storefront.checkout.confirm({"reference": "PSK-9"})

        assert exc_info.value.retry_after == 30
        assert len(calls) == 1
        session = storefront.checkout.session
        assert session.step == CheckoutStep.PAYMENT
        assert session.pending is False
        assert session.payment_error == "Too many requests"

    @pytest.mark.asyncio
    async def test_outage_reports_error(self, storefront, products, shipping, monkeypatch):
        """Test an unreachable remote blocks the step without raising."""
        await at_payment(storefront, products, shipping)

        async def confirm_guest_order(token, request):
            raise RemoteUnavailableError("Could not reach the server")

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)

        assert await storefront.checkout.confirm({"reference": "PSK-9"}) is False
        assert storefront.checkout.session.error == "Could not reach the server"

    @pytest.mark.asyncio
    async def test_session_expiry_discards_checkout(self, storefront, products, shipping, monkeypatch):
        """Test a rejected credential ends checkout and clears the session."""
        await at_payment(storefront, products, shipping)

        async def confirm_guest_order(token, request):
            raise SessionExpiredError("jwt expired")

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)

        with pytest.raises(SessionExpiredError):
            await storefront.checkout.confirm({"reference": "PSK-9"})

        assert storefront.checkout.session is None
        assert storefront.credentials.guest_token is None

    @pytest.mark.asyncio
    async def test_guest_request_carries_cart(self, storefront, products, shipping, monkeypatch):
        """Test guest confirmation sends the cart id and guest flag."""
        await at_payment(storefront, products, shipping)
        original = storefront.client.confirm_guest_order
        sent = []

        async def confirm_guest_order(token, request):
            sent.append(request)
            return await original(token, request)

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)
        cart_id = storefront.cart.cart_id
        await storefront.checkout.confirm({"reference": "PSK-2"})

        assert cart_id is not None
        assert sent[0].guest_checkout is True
        assert sent[0].cart_id == cart_id
        assert sent[0].reservation_duration == 1800

    @pytest.mark.asyncio
    async def test_explicit_reservation_duration_is_sent(self, storefront, products, shipping, monkeypatch):
        """Test a caller-supplied hold time overrides the session default."""
        await at_payment(storefront, products, shipping)
        original = storefront.client.confirm_guest_order
        sent = []

        async def confirm_guest_order(token, request):
            sent.append(request)
            return await original(token, request)

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)
        assert await storefront.checkout.confirm({"reference": "PSK-4"}, reservation_duration=600) is True

        assert sent[0].reservation_duration == 600

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, -30])
    async def test_non_positive_reservation_duration_rejected(
        self, storefront, products, shipping, monkeypatch, duration
    ):
        """Test a zero or negative hold time is refused, not replaced by the default."""
        await at_payment(storefront, products, shipping)
        sent = []

        async def confirm_guest_order(token, request):
            sent.append(request)

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)

        with pytest.raises(ValueError):
            await storefront.checkout.confirm({"reference": "PSK-5"}, reservation_duration=duration)

        assert sent == []
        assert storefront.checkout.step == CheckoutStep.PAYMENT
        assert storefront.checkout.session.pending is False


class TestCredentialExpiry:
    """Test checkout ends whenever the remote rejects the credential."""

    @pytest.mark.asyncio
    async def test_expiry_during_cart_update_discards_checkout(self, storefront, products, monkeypatch):
        """Test a 401 on a quantity change at step 2 drops the checkout session."""
        await at_shipping(storefront, products)

        async def update_cart_item(token, product_id, quantity):
            raise SessionExpiredError("jwt expired")

        monkeypatch.setattr(storefront.client, "update_cart_item", update_cart_item)

        with pytest.raises(SessionExpiredError):
            await storefront.cart.update_quantity("ankara-001", 3)

        assert storefront.checkout.session is None
        assert storefront.credentials.guest_token is None
        with pytest.raises(InvalidTransitionError):
            storefront.checkout.submit_shipping()

    @pytest.mark.asyncio
    async def test_expiry_during_cart_load_discards_checkout(self, storefront, products, monkeypatch):
        """Test a 401 on a cart refresh drops the checkout session."""
        await at_shipping(storefront, products)

        async def get_cart(token):
            raise SessionExpiredError("jwt expired")

        monkeypatch.setattr(storefront.client, "get_cart", get_cart)

        with pytest.raises(SessionExpiredError):
            await storefront.cart.load()

        assert storefront.checkout.session is None

    @pytest.mark.asyncio
    async def test_expiry_without_session_is_harmless(self, storefront):
        """Test expiring credentials outside checkout leaves the flow idle."""
        storefront.credentials.set_guest_token("stale")
        storefront.credentials.expire()

        assert storefront.checkout.session is None
        assert storefront.credentials.guest_token is None


class TestEmptyCartAbort:
    """Test checkout aborts when the cart empties before confirmation."""

    @pytest.mark.asyncio
    async def test_start_with_empty_cart(self, storefront):
        """Test checkout cannot begin on an empty cart."""
        session = await storefront.checkout.start()

        assert session.aborted is True
        assert session.error == "Your cart is empty"

    @pytest.mark.asyncio
    async def test_cart_emptied_mid_checkout(self, storefront, products, shipping):
        """Test removing the last item at step 2 aborts the session."""
        await at_shipping(storefront, products)

        await storefront.cart.remove_item("ankara-001")

        assert storefront.checkout.session.aborted is True
        with pytest.raises(InvalidTransitionError):
            storefront.checkout.submit_shipping(*shipping)

    @pytest.mark.asyncio
    async def test_clearing_after_confirmation_does_not_abort(self, storefront, products, shipping):
        """Test the post-order cart clear leaves step 4 intact."""
        await at_payment(storefront, products, shipping)
        await storefront.checkout.confirm({"reference": "PSK-3"})

        assert storefront.cart.is_empty()
        assert storefront.checkout.session.aborted is False
        assert storefront.checkout.step == CheckoutStep.CONFIRMATION


class TestPendingTransitions:
    """Test requests made while a transition is in flight."""

    @pytest.mark.asyncio
    async def test_navigation_ignored_while_confirming(self, storefront, products, shipping, monkeypatch):
        """Test back and repeat confirm are ignored during confirmation."""
        await at_payment(storefront, products, shipping)
        entered = asyncio.Event()
        release = asyncio.Event()
        original = storefront.client.confirm_guest_order

        async def confirm_guest_order(token, request):
            entered.set()
            await release.wait()
            return await original(token, request)

        monkeypatch.setattr(storefront.client, "confirm_guest_order", confirm_guest_order)

        task = asyncio.create_task(storefront.checkout.confirm({"reference": "PSK-7"}))
        await entered.wait()

        assert storefront.checkout.back() is None
        assert await storefront.checkout.confirm({"reference": "PSK-7"}) is None
        assert storefront.checkout.step == CheckoutStep.PAYMENT

        release.set()
        assert await task is True
        assert storefront.checkout.step == CheckoutStep.CONFIRMATION
