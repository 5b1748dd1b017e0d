"""
Guest Session Manager

Creates and revalidates the anonymous session credential used for guest
carts. The signing key never reaches the client, so a token is only reused
after the remote confirms it; decoding it locally is advisory.
"""

import logging
from typing import Optional

import jwt

from ..core.exceptions import MalformedTokenError, RemoteUnavailableError
from ..core.session import Credentials
from ..core.storage import cart_key
from .api_client import StorefrontClient

logger = logging.getLogger(__name__)


def extract_session_id(token: Optional[str]) -> str:
    """
    Read the sessionId claim from a guest token without verifying it.

    The result only tells the server which guest cart to act on; the server
    re-validates the token itself.

    Raises:
        MalformedTokenError: not three segments, undecodable payload,
            or no sessionId claim
    """
    if not token or not isinstance(token, str):
        raise MalformedTokenError("Guest token is missing")

    if len(token.split(".")) != 3:
        raise MalformedTokenError("Guest token must have exactly three segments")

    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise MalformedTokenError(f"Guest token payload could not be decoded: {e}") from e

    session_id = payload.get("sessionId")
    if not session_id:
        raise MalformedTokenError("Guest token has no sessionId claim")
    return str(session_id)


class GuestSessionManager:
    """Owns the stored guest token"""

    def __init__(self, client: StorefrontClient, credentials: Credentials):
        self.client = client
        self.credentials = credentials

    @property
    def token(self) -> Optional[str]:
        return self.credentials.guest_token

    @property
    def session_id(self) -> Optional[str]:
        """Advisory session id of the stored token, if it has one"""
        try:
            return extract_session_id(self.token)
        except MalformedTokenError:
            return None

    async def get_or_create_session(self) -> str:
        """Return a remotely valid guest token, requesting a new one if needed"""
        token = self.credentials.guest_token
        if token:
            if await self.client.validate_guest_session(token):
                return token
            logger.info("Guest session expired, creating new one")
            self.invalidate()

        token = await self.client.create_guest_session()
        if not token:
            raise RemoteUnavailableError("Invalid guest session response - no token received")

        self.credentials.set_guest_token(token)
        logger.info("Guest session created")
        return token

    def invalidate(self) -> None:
        """Forget the guest token and any cart cached under it"""
        session_id = self.session_id
        if session_id:
            self.credentials.store.delete(cart_key(f"guest:{session_id}"))
        self.credentials.clear_guest_token()
        logger.info("Guest session cleared")
