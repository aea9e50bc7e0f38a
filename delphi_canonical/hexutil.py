"""
Hex helpers for transporting signatures, keys and canonical messages.

Output is lowercase hex without a prefix. Input may carry a ``0x`` prefix,
which is how the on-chain tooling usually prints byte vectors.
"""

import re
from typing import Optional

_HEX_RE = re.compile(r"^[0-9a-fA-F]*\Z")


def hex_encode(data: bytes) -> str:
    return bytes(data).hex()


def hex_decode(value: str, expected_length: Optional[int] = None) -> bytes:
    """
    Decode a hex string, tolerating a leading ``0x``.

    Args:
        value: Hex string (even length, case-insensitive)
        expected_length: If given, the decoded byte length that must result

    Returns:
        Decoded bytes

    Raises:
        ValueError: If the string is not valid hex or has the wrong length
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected hex string, got {type(value).__name__}")

    cleaned = value[2:] if value[:2] in ("0x", "0X") else value
    if len(cleaned) % 2 != 0:
        raise ValueError(f"Hex string has odd length ({len(cleaned)})")

    if not _HEX_RE.match(cleaned):
        raise ValueError("Invalid hex string: non-hex character")
    data = bytes.fromhex(cleaned)

    if expected_length is not None and len(data) != expected_length:
        raise ValueError(f"Expected {expected_length} bytes, got {len(data)}")

    return data
