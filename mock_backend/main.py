"""
Storefront Mock Backend

An in-memory marketplace backend implementing the cart, guest session,
checkout and order endpoints the storefront core talks to. Used for local
development and as the remote the test suite drives the core against.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .config import Settings, get_settings
from .database import CartDatabase, OrderDatabase, SessionDatabase
from .routes import session_router, auth_router, cart_router, checkout_router, settings_router

# Load environment variables
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "config", ".env"))

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Mock backend starting up...")
    logger.info(f"Tax rate: {app.state.settings.tax_rate}")
    yield
    logger.info("Mock backend shutting down...")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build a backend with its own empty in-memory state"""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="In-memory marketplace backend for the storefront core",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.sessions = SessionDatabase(
        private_key_pem=settings.get_signing_key(),
        guest_ttl=settings.guest_session_ttl,
        user_ttl=settings.user_token_ttl,
    )
    app.state.cart_db = CartDatabase(tax_rate=settings.tax_rate)
    app.state.order_db = OrderDatabase()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(session_router)
    app.include_router(auth_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(settings_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "mock-backend"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mock_backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )
