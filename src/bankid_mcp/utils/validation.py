"""
Identity value validation for BankID orders.

Covers the local checks done before any request leaves the client:
- Personal identity number format (YYYYMMDDNNNN)
- End-user IP address syntax
- userVisibleData / userNonVisibleData encoding and size limits
"""

from __future__ import annotations

import base64
import ipaddress
from dataclasses import dataclass

from bankid_mcp.errors import ValidationError

PERSONAL_NUMBER_LENGTH = 12

# Service limits on the base64-encoded sign payloads
MAX_USER_VISIBLE_DATA = 40_000
MAX_USER_NON_VISIBLE_DATA = 200_000


def validate_personal_number(value: str) -> list[str]:
    """Validate a personal identity number, returning a list of problems."""
    errors = []
    if not value:
        errors.append("Personal number is required")
        return errors
    if len(value) != PERSONAL_NUMBER_LENGTH:
        errors.append(
            f"Personal number must be {PERSONAL_NUMBER_LENGTH} digits, got {len(value)}"
        )
    # str.isdigit() accepts non-ASCII digits such as "١"
    if not (value.isascii() and value.isdigit()):
        errors.append("Personal number must contain only digits 0-9")
    if errors:
        return errors

    month = int(value[4:6])
    day = int(value[6:8])
    if not 1 <= month <= 12:
        errors.append(f"Personal number month must be 01-12, got {value[4:6]}")
    if not 1 <= day <= 31:
        errors.append(f"Personal number day must be 01-31, got {value[6:8]}")
    return errors


@dataclass(frozen=True)
class PersonalNumber:
    """A Swedish personal identity number in 12-digit form."""

    year: int
    month: int
    day: int
    serial: int

    @classmethod
    def parse(cls, value: str) -> PersonalNumber:
        """
        Parse a 12-digit personal number.

        The date part is only range-checked (month 01-12, day 01-31); it is
        not validated against a calendar since coordination numbers and
        reserved ranges are legal.

        Args:
            value: Personal number as "YYYYMMDDNNNN"

        Returns:
            PersonalNumber

        Raises:
            ValidationError: if the value is malformed
        """
        errors = validate_personal_number(value)
        if errors:
            raise ValidationError("; ".join(errors))
        return cls(
            year=int(value[0:4]),
            month=int(value[4:6]),
            day=int(value[6:8]),
            serial=int(value[8:12]),
        )

    def __str__(self) -> str:
        return f"{self.year:04d}{self.month:02d}{self.day:02d}{self.serial:04d}"


def mask_personal_number(value: str | None) -> str:
    """Mask the serial part of a personal number for log output."""
    if not value:
        return "-"
    return value[:8] + "*" * max(len(value) - 8, 0)


def parse_end_user_ip(
    value: str | ipaddress.IPv4Address | ipaddress.IPv6Address,
) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Parse an end-user IPv4 or IPv6 address."""
    try:
        return ipaddress.ip_address(value)
    except ValueError as e:
        raise ValidationError(f"Invalid end-user IP address: {value!r}") from e


def encode_user_visible_data(text: str, max_length: int = MAX_USER_VISIBLE_DATA) -> str:
    """
    Encode text shown to the user during signing.

    Args:
        text: Plain text (or simpleMarkdownV1) to display
        max_length: Upper bound on the base64-encoded length

    Returns:
        Base64 of the UTF-8 encoded text
    """
    if not text:
        raise ValidationError("userVisibleData must not be empty")
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    check_encoded_length("userVisibleData", encoded, max_length)
    return encoded


def check_encoded_length(field: str, encoded: str, max_length: int) -> None:
    """Check that a base64 payload field is well-formed and within limits."""
    if len(encoded) > max_length:
        raise ValidationError(
            f"{field} is {len(encoded)} characters encoded (max {max_length})"
        )
    try:
        base64.b64decode(encoded, validate=True)
    except ValueError as e:
        raise ValidationError(f"{field} must be base64 encoded") from e
