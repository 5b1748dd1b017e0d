"""
Bearer Token Resolution

Turns the Authorization header into the owner of the cart or order being
acted on. Requests without a valid session token are rejected with 401,
which the storefront core reads as an expired session.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException, Request

from ..database.sessions import GUEST, USER, SessionDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Owner:
    """Identity a request acts for"""
    kind: str  # "user" or "guest"
    id: str

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"

    @property
    def is_guest(self) -> bool:
        return self.kind == GUEST


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an Authorization header value"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_owner(sessions: SessionDatabase, token: str) -> Optional[Owner]:
    """Owner for a token, or None when the token is invalid, expired or revoked"""
    try:
        claims = sessions.decode(token)
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected session token: {e}")
        return None

    kind = claims.get("type")
    if kind == USER and claims.get("userId"):
        return Owner(kind=USER, id=str(claims["userId"]))
    if kind == GUEST and claims.get("sessionId"):
        session_id = str(claims["sessionId"])
        if sessions.is_guest_session_active(session_id):
            return Owner(kind=GUEST, id=session_id)
    return None


class BearerDependency:
    """
    FastAPI dependency resolving the request owner.

    Use kind to restrict a route to signed-in users or to guests.
    """

    def __init__(self, kind: Optional[str] = None):
        """
        Args:
            kind: "user" or "guest" to restrict the route, None for either
        """
        self.kind = kind

    async def __call__(
        self,
        request: Request,
        authorization: Optional[str] = Header(None),
    ) -> Owner:
        token = bearer_token(authorization)
        if not token:
            raise HTTPException(status_code=401, detail="Authentication required")

        owner = resolve_owner(request.app.state.sessions, token)
        if owner is None:
            raise HTTPException(status_code=401, detail="Session is invalid or has expired")

        if self.kind and owner.kind != self.kind:
            raise HTTPException(
                status_code=403,
                detail=f"This endpoint requires a {self.kind} session",
            )
        return owner


# Dependency instances
require_owner = BearerDependency()
require_user = BearerDependency(kind=USER)
require_guest = BearerDependency(kind=GUEST)
