import html
import re
from typing import Optional

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Escape HTML special characters before a customer-supplied string is
    embedded in notification text. Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)


def clean_display_text(value: Optional[str], max_length: int = 255) -> str:
    """
    Normalize free text typed into the booking form (names, service labels).

    Strips control characters, collapses runs of whitespace and enforces a
    maximum length. Escaping is left to the point of display.

    Raises:
        ValueError: If the text is longer than max_length
    """
    if not value:
        return ""

    value = CONTROL_CHARS.sub("", str(value))
    value = " ".join(value.split())

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    return value
