"""
Shared fixtures.

The storefront core talks to a fresh in-memory mock backend per test over
httpx.ASGITransport, so every test sees the real wire contract.
"""

import httpx
import pytest

from mock_backend.config import Settings as BackendSettings
from mock_backend.main import create_app
from storefront import Storefront
from storefront.core.config import Settings
from storefront.core.storage import LocalStore

BASE_URL = "http://testserver"

SHIPPING_ADDRESS = {
    "street": "12 Marina Road",
    "houseNo": "4B",
    "city": "Lagos",
    "state": "Lagos",
    "postalCode": "101001",
}

CUSTOMER_INFO = {
    "firstName": "Ada",
    "lastName": "Obi",
    "email": "ada@example.com",
    "phone": "+234 803 123 4567",
}


@pytest.fixture
def backend():
    """Mock backend app with empty state and an ephemeral signing key"""
    return create_app(BackendSettings(signing_key_path=None))


@pytest.fixture
def transport(backend):
    return httpx.ASGITransport(app=backend)


@pytest.fixture
def settings():
    return Settings(api_base_url=BASE_URL)


@pytest.fixture
async def storefront(settings, transport):
    async with Storefront(settings=settings, transport=transport, store=LocalStore()) as sf:
        yield sf


@pytest.fixture
def login(transport):
    """Build an authenticate coroutine function for CartMergeCoordinator.login"""

    def make(email: str = "ada@example.com"):
        async def authenticate():
            async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
                response = await client.post("/api/auth/login", json={"email": email})
                response.raise_for_status()
                data = response.json()
                return data["token"], data["userId"]

        return authenticate

    return make


@pytest.fixture
def products():
    """Catalog entries in the shapes the product pages hand over"""
    return {
        "ankara": {
            "id": "ankara-001",
            "name": "Ankara Print Cotton",
            "vendor": {"id": "vendor-1", "name": "Kemi Fabrics"},
            "materialType": "Cotton",
            "pattern": "Geometric",
            "imageUrl": "https://cdn.example.com/ankara.jpg",
            "pricePerYard": 1000,
            "platformFee": {"amount": 80},
        },
        "lace": {
            "productId": "lace-002",
            "name": "French Lace",
            "vendorId": "vendor-2",
            "vendorName": "Lace House",
            "basePricePerUnit": "2500",
            "platformFeePerUnit": "150",
        },
        "aso-oke": {
            "_id": "aso-003",
            "name": "Aso Oke",
            "vendor": {"id": "vendor-1", "name": "Kemi Fabrics"},
            "price": 4000,
            "platformFeeAmount": 200,
        },
    }


@pytest.fixture
def guest_cart(backend):
    """Read the backend cart of the storefront's current guest session"""

    def read(sf: Storefront):
        return backend.state.cart_db.get_cart(f"guest:{sf.guest_sessions.session_id}")

    return read


@pytest.fixture
def shipping():
    """Valid (address, customer) pair for the shipping step"""
    return dict(SHIPPING_ADDRESS), dict(CUSTOMER_INFO)
