"""Field validators for checkout forms"""

import re
from typing import Optional

from ..core.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Optional leading +, then 7-15 digits once spaces, dashes and brackets are stripped
PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


def clean_phone(phone: str) -> str:
    return re.sub(r"[\s\-\(\)]", "", phone or "")


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and PHONE_PATTERN.match(clean_phone(phone)) is not None


def require_text(errors: dict[str, str], field: str, value: Optional[str], label: str) -> None:
    """Record a 'required' error when value is blank"""
    if not value or not value.strip():
        errors[field] = f"{label} is required"


def validate_shipping(address, customer) -> dict[str, str]:
    """
    Field-presence and shape checks for the shipping step.

    Returns:
        Mapping of field name to message; empty when everything passes
    """
    errors: dict[str, str] = {}

    require_text(errors, "firstName", customer.first_name, "First name")
    require_text(errors, "lastName", customer.last_name, "Last name")
    require_text(errors, "email", customer.email, "Email")
    require_text(errors, "phone", customer.phone, "Phone number")

    if "email" not in errors and not is_valid_email(customer.email):
        errors["email"] = "Please enter a valid email address"
    if "phone" not in errors and not is_valid_phone(customer.phone):
        errors["phone"] = "Please enter a valid phone number"

    require_text(errors, "street", address.street, "Street address")
    require_text(errors, "city", address.city, "City")
    require_text(errors, "state", address.state, "State")

    return errors


def ensure_valid_shipping(address, customer) -> None:
    """
    Raises:
        ValidationError: carrying the field-level messages
    """
    errors = validate_shipping(address, customer)
    if errors:
        raise ValidationError(errors)
