"""Storefront error taxonomy"""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for cart and checkout errors"""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    """Local, pre-network validation failure with field-level messages"""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__(
            "; ".join(f"{field}: {msg}" for field, msg in self.field_errors.items())
        )


class RemoteValidationError(StorefrontError):
    """The remote rejected the request as client-correctable (400/422)"""
    pass


class SessionExpiredError(StorefrontError):
    """Credential rejected by the remote; re-authentication is required"""
    pass


class RateLimitedError(StorefrontError):
    """The remote rate-limited the request (429). Never retried automatically."""

    def __init__(self, message: str = "", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class RemoteUnavailableError(StorefrontError):
    """Network, timeout or server failure. The user may retry."""
    pass


class NotFoundError(StorefrontError):
    """The requested remote resource does not exist (404)"""
    pass


class MalformedTokenError(StorefrontError):
    """Guest credential does not carry a readable sessionId claim"""
    pass


class MergeAbortedError(StorefrontError):
    """Guest cart merge skipped. Non-fatal: login proceeds."""

    def __init__(self, reason: str):
        super().__init__(f"Guest cart merge aborted: {reason}")
        self.reason = reason


class MutationInProgressError(StorefrontError):
    """A cart mutation for the same product is already in flight"""

    def __init__(self, product_id: str):
        super().__init__(f"Request already in progress for product {product_id}")
        self.product_id = product_id


class InvalidTransitionError(StorefrontError):
    """Checkout step transition not allowed from the current step"""
    pass


class TotalMismatchWarning(UserWarning):
    """Remote total disagrees with the locally recomputed total"""
    pass
