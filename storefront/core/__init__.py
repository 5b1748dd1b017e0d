# Core configuration, errors and credential storage

from .config import settings, get_settings, Settings
from .session import Credentials
from .storage import LocalStore

__all__ = ["settings", "get_settings", "Settings", "Credentials", "LocalStore"]
