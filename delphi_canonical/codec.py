"""
Delphi Canonical Fact Codec
===========================

Deterministic serialization of an attested fact. The signer and EVERY
verifier MUST produce these bytes identically, so do NOT implement a second
version of this anywhere else.

PREIMAGE LAYOUT (BCS, little-endian, fixed field order):

    intent_scope   u8
    timestamp_ms   u64
    request_type   u64
    date           ULEB128 length || UTF-8
    coin           ULEB128 length || UTF-8
    comparator     u64
    price          u64
    result         u64

The intent scope comes first so that a signature made for one application
context never verifies in another: changing it changes every byte after it
as far as the signature is concerned.
"""

import struct
from typing import FrozenSet, Tuple

from delphi_canonical.constants import SUPPORTED_COINS, U8_MAX, U64_MAX
from delphi_canonical.errors import EncodingError
from delphi_canonical.types import (
    Comparator,
    FactPayload,
    FactRequestType,
    FactResult,
    is_plain_int,
    is_supported_coin,
    is_valid_date,
)

_U64 = struct.Struct("<Q")

# BCS caps sequence lengths at u32; ULEB128 of a u32 is at most 5 bytes
_MAX_ULEB128_BYTES = 5


# ============================================================================
# Primitive Writers
# ============================================================================

def _u8(value: int, field: str) -> bytes:
    if not is_plain_int(value) or not 0 <= value <= U8_MAX:
        raise EncodingError(f"{field} must be a u8, got {value!r}")
    return bytes((value,))


def _u64(value: int, field: str) -> bytes:
    if not is_plain_int(value) or not 0 <= value <= U64_MAX:
        raise EncodingError(f"{field} must be a u64, got {value!r}")
    return _U64.pack(value)


def _uleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _string(value: str, field: str) -> bytes:
    if not isinstance(value, str):
        raise EncodingError(f"{field} must be a string, got {type(value).__name__}")
    raw = value.encode("utf-8")
    return _uleb128(len(raw)) + raw


# ============================================================================
# Encoding
# ============================================================================

def encode_payload(payload: FactPayload, supported_coins: FrozenSet[str] = SUPPORTED_COINS) -> bytes:
    """
    Encode only the payload portion of the preimage.

    Raises:
        EncodingError: If any field breaks its constraint
    """
    if not is_plain_int(payload.request_type) or payload.request_type not in set(FactRequestType):
        raise EncodingError(f"request_type must be 1 or 2, got {payload.request_type!r}")
    if not is_plain_int(payload.comparator) or payload.comparator not in set(Comparator):
        raise EncodingError(f"comparator must be 1 or 2, got {payload.comparator!r}")
    if not is_plain_int(payload.result) or payload.result not in set(FactResult):
        raise EncodingError(f"result must be 0, 1 or 2, got {payload.result!r}")
    if not is_valid_date(payload.date):
        raise EncodingError(f"date must be DD-MM-YYYY, got {payload.date!r}")
    if not is_supported_coin(payload.coin, supported_coins):
        raise EncodingError(f"coin {payload.coin!r} is not supported")

    return b"".join((
        _u64(int(payload.request_type), "request_type"),
        _string(payload.date, "date"),
        _string(payload.coin, "coin"),
        _u64(int(payload.comparator), "comparator"),
        _u64(payload.price, "price"),
        _u64(int(payload.result), "result"),
    ))


def intent_message(intent_scope: int, timestamp_ms: int, payload_bytes: bytes) -> bytes:
    """Prefix already-encoded payload bytes with the intent header."""
    return _u8(intent_scope, "intent_scope") + _u64(timestamp_ms, "timestamp_ms") + bytes(payload_bytes)


def encode(
    intent_scope: int,
    timestamp_ms: int,
    payload: FactPayload,
    supported_coins: FrozenSet[str] = SUPPORTED_COINS,
) -> bytes:
    """
    Canonical bytes that get signed for ``payload``.

    Pure and total over valid input: identical logical input always yields
    identical bytes.

    Args:
        intent_scope: Domain-separation tag (u8)
        timestamp_ms: Signing time in milliseconds (u64)
        payload: The fact being attested
        supported_coins: Allowed coin symbols

    Returns:
        Preimage bytes

    Raises:
        EncodingError: If any field breaks its constraint
    """
    return intent_message(intent_scope, timestamp_ms, encode_payload(payload, supported_coins))


# ============================================================================
# Decoding (tests and debugging only)
# ============================================================================

class _Reader:
    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise EncodingError(
                f"Truncated message: need {n} bytes at offset {self.pos}, have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u64(self) -> int:
        return _U64.unpack(self.take(8))[0]

    def uleb128(self) -> int:
        value = 0
        for i in range(_MAX_ULEB128_BYTES):
            byte = self.u8()
            value |= (byte & 0x7F) << (7 * i)
            if not byte & 0x80:
                if byte == 0 and i > 0:
                    raise EncodingError("Non-canonical ULEB128 length")
                return value
        raise EncodingError("ULEB128 length too long")

    def string(self, field: str) -> str:
        raw = self.take(self.uleb128())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"{field} is not valid UTF-8") from e


def decode(data: bytes) -> Tuple[int, int, FactPayload]:
    """
    Structural inverse of ``encode``.

    Returns:
        (intent_scope, timestamp_ms, payload)

    Raises:
        EncodingError: On truncated input, trailing bytes, invalid UTF-8 or
            an unknown enum tag
    """
    reader = _Reader(data)
    intent_scope = reader.u8()
    timestamp_ms = reader.u64()
    raw_type = reader.u64()
    date = reader.string("date")
    coin = reader.string("coin")
    raw_comparator = reader.u64()
    price = reader.u64()
    result = reader.u64()

    if reader.pos != len(reader.data):
        raise EncodingError(f"{len(reader.data) - reader.pos} trailing bytes after payload")

    try:
        request_type = FactRequestType(raw_type)
        comparator = Comparator(raw_comparator)
    except ValueError as e:
        raise EncodingError(str(e)) from e

    payload = FactPayload(
        request_type=request_type,
        date=date,
        coin=coin,
        comparator=comparator,
        price=price,
        result=result,
    )
    return intent_scope, timestamp_ms, payload
