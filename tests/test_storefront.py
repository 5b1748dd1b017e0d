"""
Tests for the storefront container.
"""

import pytest


class TestStorefront:
    """Test wiring and session lifecycle."""

    @pytest.mark.asyncio
    async def test_logout_forgets_everything(self, storefront, products, login):
        """Test logout drops credentials, guest state and the in-memory cart."""
        await storefront.merge.login(login())
        await storefront.cart.add_item(products["ankara"])
        await storefront.checkout.start()

        await storefront.logout()

        assert storefront.credentials.is_authenticated is False
        assert storefront.credentials.guest_token is None
        assert storefront.cart.is_empty()
        assert storefront.checkout.session is None

    @pytest.mark.asyncio
    async def test_user_cart_survives_logout(self, storefront, products, login):
        """Test the remote keeps the user's cart for the next login."""
        await storefront.merge.login(login())
        await storefront.cart.add_item(products["lace"], quantity=2)
        await storefront.logout()

        await storefront.merge.login(login())

        assert storefront.cart.get_item("lace-002").quantity == 2

    @pytest.mark.asyncio
    async def test_settings_flow_into_components(self, storefront, settings):
        assert storefront.cart.tax_rate == settings.tax_rate
        assert storefront.checkout.reservation_duration == settings.reservation_duration
