# Fashion marketplace cart & checkout core

from .main import Storefront
from .core.config import Settings, get_settings
from .core.exceptions import (
    StorefrontError,
    ValidationError,
    RemoteValidationError,
    SessionExpiredError,
    RateLimitedError,
    RemoteUnavailableError,
    NotFoundError,
    MalformedTokenError,
    MergeAbortedError,
    MutationInProgressError,
    InvalidTransitionError,
    TotalMismatchWarning,
)

__all__ = [
    "Storefront",
    "Settings",
    "get_settings",
    "StorefrontError",
    "ValidationError",
    "RemoteValidationError",
    "SessionExpiredError",
    "RateLimitedError",
    "RemoteUnavailableError",
    "NotFoundError",
    "MalformedTokenError",
    "MergeAbortedError",
    "MutationInProgressError",
    "InvalidTransitionError",
    "TotalMismatchWarning",
]
