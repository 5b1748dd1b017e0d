# Request authentication

from .auth import Owner, BearerDependency, require_owner, require_user, require_guest, bearer_token

__all__ = ["Owner", "BearerDependency", "require_owner", "require_user", "require_guest", "bearer_token"]
