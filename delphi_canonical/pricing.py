"""
Fixed-point price helpers.

Prices are u64 integers scaled by 10^9. Conversions TRUNCATE excess
precision (never round up), so a threshold of 100000.9999999999 becomes
100000999999999 and cannot drift across the comparison boundary.
"""

import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from delphi_canonical.constants import PRICE_DECIMALS, PRICE_SCALE, U64_MAX
from delphi_canonical.errors import InvalidPrice
from delphi_canonical.types import is_plain_int

_DECIMAL_RE = re.compile(r"^[0-9]+(\.[0-9]+)?\Z")
_INTEGER_RE = re.compile(r"^[0-9]+\Z")
_QUANTUM = Decimal(1).scaleb(-PRICE_DECIMALS)
_MAX_WHOLE_UNITS = Decimal(U64_MAX // PRICE_SCALE + 1)


def _to_fixed_point(amount: Decimal) -> int:
    if amount.is_nan() or amount.is_infinite():
        raise InvalidPrice(f"Price must be finite, got {amount}")
    if amount < 0:
        raise InvalidPrice(f"Price cannot be negative, got {amount}")
    if amount > _MAX_WHOLE_UNITS:
        raise InvalidPrice(f"Price {amount} is too large to represent with {PRICE_DECIMALS} decimals")

    truncated = amount.quantize(_QUANTUM, rounding=ROUND_DOWN)
    scaled = int(truncated * PRICE_SCALE)
    if scaled > U64_MAX:
        raise InvalidPrice(f"Price {amount} is too large to represent with {PRICE_DECIMALS} decimals")
    return scaled


def scale_decimal_price(value: Union[str, int]) -> int:
    """
    Convert a human decimal price ("100000.5") to fixed point.

    >>> scale_decimal_price("100000.5")
    100000500000000
    """
    if is_plain_int(value):
        return _to_fixed_point(Decimal(value))
    if not isinstance(value, str) or not _DECIMAL_RE.match(value.strip()):
        raise InvalidPrice(f"Price must be a non-negative decimal string, got {value!r}")
    return _to_fixed_point(Decimal(value.strip()))


def parse_scaled_price(value: Union[str, int]) -> int:
    """
    Parse a price that is already 10^9-scaled (the transport form).

    Accepts a decimal-digit string or a non-negative integer.
    """
    if is_plain_int(value):
        scaled = value
    elif isinstance(value, str) and _INTEGER_RE.match(value):
        scaled = int(value)
    else:
        raise InvalidPrice(f"Price must be an integer string scaled by 1e9, got {value!r}")

    if not 0 <= scaled <= U64_MAX:
        raise InvalidPrice(f"Price {scaled} is outside the u64 range")
    return scaled


def usd_to_fixed_point(value: Union[float, int, str]) -> int:
    """
    Convert an upstream USD quote to fixed point.

    Floats go through ``repr`` so the shortest round-tripping decimal is used
    rather than the binary expansion (0.1 -> 100000000, not 100000000.0000000055...).
    """
    if isinstance(value, bool):
        raise InvalidPrice(f"Price must be numeric, got {value!r}")
    try:
        amount = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidPrice(f"Price must be numeric, got {value!r}") from e
    return _to_fixed_point(amount)


def format_fixed_point(price: int) -> str:
    """Render a fixed-point price as a plain decimal string."""
    whole, frac = divmod(price, PRICE_SCALE)
    if not frac:
        return str(whole)
    return f"{whole}.{frac:0{PRICE_DECIMALS}d}".rstrip("0")
