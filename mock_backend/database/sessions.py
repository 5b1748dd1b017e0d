"""Session token issuance for mock backend"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

logger = logging.getLogger(__name__)

ALGORITHM = "EdDSA"

GUEST = "guest"
USER = "user"


class SessionDatabase:
    """
    Issues and tracks signed session tokens.

    Guest tokens carry a sessionId claim, user tokens a userId claim. Both
    are EdDSA-signed JWTs; the key never leaves this process.
    """

    def __init__(
        self,
        private_key_pem: Optional[bytes] = None,
        guest_ttl: int = 7 * 24 * 3600,
        user_ttl: int = 24 * 3600,
    ):
        if private_key_pem:
            self._private_key = serialization.load_pem_private_key(private_key_pem, password=None)
            if not isinstance(self._private_key, ed25519.Ed25519PrivateKey):
                raise ValueError("Session signing key must be an Ed25519 key")
        else:
            logger.warning("No session signing key configured - using an ephemeral key")
            self._private_key = ed25519.Ed25519PrivateKey.generate()
        self._public_key = self._private_key.public_key()

        self.guest_ttl = guest_ttl
        self.user_ttl = user_ttl
        self.guest_sessions: dict[str, datetime] = {}
        self.users: dict[str, str] = {}  # email -> user id

    def create_guest_session(self, ttl: Optional[int] = None) -> tuple[str, str]:
        """Create a guest session, returning (token, session id)"""
        session_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        token = self._sign(
            {"sessionId": session_id, "type": GUEST},
            now,
            self.guest_ttl if ttl is None else ttl,
        )
        self.guest_sessions[session_id] = now
        return token, session_id

    def end_guest_session(self, session_id: str) -> bool:
        """Revoke a guest session before its token expires"""
        return self.guest_sessions.pop(session_id, None) is not None

    def is_guest_session_active(self, session_id: str) -> bool:
        return session_id in self.guest_sessions

    def login(self, email: str) -> tuple[str, str]:
        """Issue a user token, returning (token, user id). Users are created on first login."""
        user_id = self.users.setdefault(email.strip().lower(), uuid.uuid4().hex[:24])
        token = self._sign(
            {"userId": user_id, "type": USER},
            datetime.now(timezone.utc),
            self.user_ttl,
        )
        return token, user_id

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify and decode a session token.

        Raises:
            jwt.InvalidTokenError: bad signature, malformed, or expired
        """
        return jwt.decode(token, self._public_key, algorithms=[ALGORITHM])

    def _sign(self, claims: dict[str, Any], now: datetime, ttl: int) -> str:
        payload = {**claims, "iat": now, "exp": now + timedelta(seconds=ttl)}
        return jwt.encode(payload, self._private_key, algorithm=ALGORITHM)
