"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import Optional

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number.

    Keeps a leading "+" and strips every other non-digit character.
    Salons book customers from anywhere, so only the length is checked
    (7 to 15 digits, the E.164 maximum).

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    phone = phone.strip()
    prefix = "+" if phone.startswith("+") else ""
    digits = re.sub(r"\D", "", phone)

    if not 7 <= len(digits) <= 15:
        raise ValueError("Phone number must contain between 7 and 15 digits")

    return f"{prefix}{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_time_hhmm(value: str) -> str:
    """Validate a 24h "HH:MM" string"""
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid time {value!r}. Expected HH:MM")
    return value.strip()


def validate_iso_date(value: str) -> date:
    """Parse a "YYYY-MM-DD" string"""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid date {value!r}. Expected YYYY-MM-DD") from None
