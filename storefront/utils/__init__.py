from .validators import is_valid_email, is_valid_phone, validate_shipping

__all__ = ["is_valid_email", "is_valid_phone", "validate_shipping"]
