# API Routes

from .session import router as session_router
from .auth import router as auth_router
from .cart import router as cart_router
from .checkout import router as checkout_router
from .settings import router as settings_router

__all__ = ["session_router", "auth_router", "cart_router", "checkout_router", "settings_router"]
