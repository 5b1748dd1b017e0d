"""Local key-value persistence for tokens and cached carts"""

import json
import logging
import os
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Well-known keys
AUTH_TOKEN_KEY = "token"
USER_ID_KEY = "userId"
GUEST_TOKEN_KEY = "guestSessionToken"
MERGE_STAGING_KEY = "pendingGuestSessionToken"
CART_KEY_PREFIX = "cart:"


class LocalStore:
    """
    Small JSON key-value store.

    With a path, every write is flushed to disk so the data survives a
    process restart. Without one, the store lives in memory only, which is
    what session-scoped slots use.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._data: dict[str, Any] = {}
        if path and os.path.exists(path):
            with open(path, "r") as f:
                try:
                    self._data = json.load(f)
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring unreadable local store at {path}")
                    self._data = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> bool:
        """Delete a key, returning whether it was present"""
        if key in self._data:
            del self._data[key]
            self._flush()
            return True
        return False

    def pop(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key, default)
        self.delete(key)
        return value

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def _flush(self) -> None:
        if not self.path:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(self._data, f)
        os.replace(tmp_path, self.path)


def cart_key(owner_key: str) -> str:
    return f"{CART_KEY_PREFIX}{owner_key}"
