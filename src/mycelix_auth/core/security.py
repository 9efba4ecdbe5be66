"""Constant-time comparison and address helpers shared by the auth components."""
from __future__ import annotations

import re
import secrets

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
ZERO_ADDRESS = "0x" + "0" * 40


def is_valid_address(value: object) -> bool:
    """Return True if `value` is a 0x-prefixed, 20-byte hex address."""
    return isinstance(value, str) and ADDRESS_PATTERN.fullmatch(value) is not None


def normalize_address(value: str) -> str:
    """Return the lowercase form of an address, validating its shape.

    Raises:
        ValueError: If the value is not a 0x-prefixed 40 hex digit string.
    """
    if not is_valid_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return value.lower()


def addresses_match(recovered: str, claimed: str) -> bool:
    """Compare two addresses case-insensitively in constant time."""
    try:
        left = normalize_address(recovered)
        right = normalize_address(claimed)
    except ValueError:
        return False
    return secrets.compare_digest(left.encode(), right.encode())


def keys_match(provided: str | None, expected: str | None) -> bool:
    """Return True if a provided shared secret equals the configured one.

    An unconfigured or empty secret never matches.
    """
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
