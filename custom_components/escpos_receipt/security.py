"""
Input validation for the ESC/POS receipt integration.

Receipt text goes straight into a binary command stream, so anything that
could be read as a control sequence is stripped before composing. Sizes are
bounded to keep a single request from tying up the printer.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .const import MAX_TIMEOUT_MS, MIN_TIMEOUT_MS, USB_ADDRESS_PREFIX
from .errors import EncodingError

_LOGGER = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4000  # header/footer/total text
MAX_ITEM_NAME_LENGTH = 200
MAX_ITEMS = 500
MAX_QTY = 100000
MAX_LOGO_SIZE_MB = 5

# ESC, GS and the other C0 controls except TAB/LF/CR, plus DEL
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_USB_ADDRESS = re.compile(r"^([0-9a-fA-F]{1,4}):([0-9a-fA-F]{1,4})$")


def validate_text_input(text: Any, field: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Validate a receipt text field and strip control characters.

    Args:
        text: Input text to validate
        field: Field name used in error messages
        max_length: Maximum allowed length

    Returns:
        Sanitized text

    Raises:
        EncodingError: If validation fails
    """
    if not isinstance(text, str):
        raise EncodingError(f"{field} must be a string")

    if len(text) > max_length:
        raise EncodingError(f"{field} length exceeds maximum of {max_length} characters")

    sanitized = _CONTROL_CHARS.sub("", text)

    # Log without exposing the content
    if len(sanitized) != len(text):
        _LOGGER.warning("%s contained control characters that were removed", field)

    return sanitized


def validate_numeric_input(value: Any, min_val: int, max_val: int, field_name: str) -> int:
    """Validate an integer within bounds.

    Raises:
        EncodingError: If the value is not an integer or out of range
    """
    if isinstance(value, bool):
        raise EncodingError(f"{field_name} must be a valid integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise EncodingError(f"{field_name} must be a valid integer")
        value = int(value)
    try:
        num_value = int(value)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"{field_name} must be a valid integer") from e

    if not (min_val <= num_value <= max_val):
        raise EncodingError(f"{field_name} must be between {min_val} and {max_val}")

    return num_value


def validate_timeout_ms(timeout_ms: Any) -> int:
    """Validate a connect timeout in milliseconds."""
    return validate_numeric_input(timeout_ms, MIN_TIMEOUT_MS, MAX_TIMEOUT_MS, "timeoutMs")


def parse_usb_address(address: str) -> tuple[int, int]:
    """Parse a ``usb:<vid>:<pid>`` key (hex ids) into integers.

    Raises:
        EncodingError: If the key is malformed
    """
    if not isinstance(address, str):
        raise EncodingError("USB address must be a string")
    prefix, sep, rest = address.strip().partition(":")
    if prefix.lower() != USB_ADDRESS_PREFIX or not sep:
        raise EncodingError(f"Malformed USB address '{address}', expected usb:<vendorId>:<productId>")
    # Tolerate 0x prefixes on either id
    rest = re.sub(r"(^|:)0[xX]", r"\1", rest)
    match = _USB_ADDRESS.match(rest)
    if match is None:
        raise EncodingError(f"Malformed USB address '{address}', expected usb:<vendorId>:<productId>")
    return int(match.group(1), 16), int(match.group(2), 16)


def sanitize_log_message(message: str, sensitive_fields: list[str] | None = None) -> str:
    """Sanitize log messages to prevent information disclosure.

    Args:
        message: Log message to sanitize
        sensitive_fields: List of field names that should be redacted

    Returns:
        Sanitized log message
    """
    if sensitive_fields is None:
        sensitive_fields = ["logo", "header", "footer", "items", "total", "name", "price"]

    sanitized = message

    for field in sensitive_fields:
        # field=value as well as 'field': value in dict reprs
        sanitized = re.sub(rf"({field})=([^\s,)]+)", r"\1=[REDACTED]", sanitized, flags=re.IGNORECASE)
        sanitized = re.sub(
            rf"('{field}'): ('[^']*'|\[[^\]]*\]|[^\s,}}]+)",
            r"\1: '[REDACTED]'",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized
