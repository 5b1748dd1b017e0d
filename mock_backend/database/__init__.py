# Database modules

from fastapi import Request

from .carts import CartDatabase
from .orders import OrderDatabase
from .sessions import SessionDatabase


def get_cart_db(request: Request) -> CartDatabase:
    return request.app.state.cart_db


def get_order_db(request: Request) -> OrderDatabase:
    return request.app.state.order_db


def get_session_db(request: Request) -> SessionDatabase:
    return request.app.state.sessions


__all__ = [
    "CartDatabase",
    "OrderDatabase",
    "SessionDatabase",
    "get_cart_db",
    "get_order_db",
    "get_session_db",
]
