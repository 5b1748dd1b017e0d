"""Credential slots for the active shopper"""

import logging
from typing import Callable, Optional

from .storage import (
    LocalStore,
    AUTH_TOKEN_KEY,
    USER_ID_KEY,
    GUEST_TOKEN_KEY,
    MERGE_STAGING_KEY,
)

logger = logging.getLogger(__name__)


class Credentials:
    """
    Holds the bearer credentials the core sends to the remote.

    The authenticated token and the guest token live in the persistent
    store. The merge staging slot lives in a separate session-scoped store
    so it never outlives the running process.
    """

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        session_store: Optional[LocalStore] = None,
    ):
        self.store = store if store is not None else LocalStore()
        self.session_store = session_store if session_store is not None else LocalStore()
        self._expiry_listeners: list[Callable[[], None]] = []

    # ==================== Authenticated user ====================

    @property
    def auth_token(self) -> Optional[str]:
        return self.store.get(AUTH_TOKEN_KEY)

    @property
    def user_id(self) -> Optional[str]:
        return self.store.get(USER_ID_KEY)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.auth_token)

    def sign_in(self, token: str, user_id: str) -> None:
        """Record the credential issued by a successful login"""
        self.store.set(AUTH_TOKEN_KEY, token)
        self.store.set(USER_ID_KEY, str(user_id))
        logger.info(f"Signed in as user {user_id}")

    def sign_out(self) -> None:
        self.store.delete(AUTH_TOKEN_KEY)
        self.store.delete(USER_ID_KEY)

    # ==================== Guest ====================

    @property
    def guest_token(self) -> Optional[str]:
        return self.store.get(GUEST_TOKEN_KEY)

    def set_guest_token(self, token: str) -> None:
        self.store.set(GUEST_TOKEN_KEY, token)

    def clear_guest_token(self) -> None:
        self.store.delete(GUEST_TOKEN_KEY)

    # ==================== Merge staging ====================

    @property
    def staged_guest_token(self) -> Optional[str]:
        return self.session_store.get(MERGE_STAGING_KEY)

    def stage_guest_token(self, token: str) -> None:
        self.session_store.set(MERGE_STAGING_KEY, token)

    def clear_staged_guest_token(self) -> None:
        self.session_store.delete(MERGE_STAGING_KEY)

    def take_staged_guest_token(self) -> Optional[str]:
        """Empty the staging slot and return what it held"""
        return self.session_store.pop(MERGE_STAGING_KEY)

    # ==================== Request credential ====================

    def bearer(self) -> Optional[str]:
        """User token when signed in, otherwise the guest token"""
        return self.auth_token or self.guest_token

    def expire(self) -> None:
        """Drop the credential the remote just rejected and notify listeners"""
        if self.is_authenticated:
            logger.warning("Authenticated session expired, clearing credentials")
            self.sign_out()
        elif self.guest_token:
            logger.warning("Guest session expired, clearing guest token")
            self.clear_guest_token()
        for callback in list(self._expiry_listeners):
            callback()

    def add_expiry_listener(self, callback: Callable[[], None]) -> None:
        self._expiry_listeners.append(callback)

    def remove_expiry_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._expiry_listeners:
            self._expiry_listeners.remove(callback)
