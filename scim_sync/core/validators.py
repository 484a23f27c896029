"""Input validation for user and group records before they are stored."""
from __future__ import annotations
import re

USERNAME_MAX_LENGTH = 100
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255
PHONE_MAX_LENGTH = 20
DISPLAY_NAME_MAX_LENGTH = 100

_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._@+-]+$")
_PHONE_PATTERN = re.compile(r"^\+?[0-9 ()-]+$")


def validate_username(raw: str) -> str:
    """Trim and validate a userName.

    Raises:
        ValueError: If username is empty, too long or has invalid characters
    """
    username = (raw or "").strip()
    if not username:
        raise ValueError("userName is required")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValueError(f"userName must not exceed {USERNAME_MAX_LENGTH} characters")
    if not _USERNAME_PATTERN.match(username):
        raise ValueError("userName contains invalid characters")
    return username


def validate_email(email: str) -> str:
    """Validate an email address and return it lowercased."""
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValueError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError("Invalid email format")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValueError("Email exceeds maximum length")

    return email


def validate_name(name: str, field: str, max_length: int = NAME_MAX_LENGTH) -> str:
    """Validate a required name field (first/last/display name)."""
    name = (name or "").strip()
    if not name:
        raise ValueError(f"{field} is required")
    if len(name) > max_length:
        raise ValueError(f"{field} exceeds maximum length")
    if any(char in name for char in "<>\"`;|$"):
        raise ValueError(f"{field} contains invalid characters")
    return name


def validate_phone(phone: str | None) -> str | None:
    """Optional phone number; empty input becomes None."""
    if phone is None or not phone.strip():
        return None
    phone = phone.strip()
    if len(phone) > PHONE_MAX_LENGTH or not _PHONE_PATTERN.match(phone):
        raise ValueError("Invalid phone number")
    return phone
