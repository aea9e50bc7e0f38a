"""
Delphi Canonical Data Model
===========================

Closed enumerations and immutable records shared by the signer, the gateway
and all verifiers.

FactPayload      - the fact being attested (one per request, never persisted)
AttestationBundle - signed fact plus the exact bytes that were signed

The transport JSON is loosely typed; these types are not. Unknown enum tags
are rejected rather than coerced.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, FrozenSet

from delphi_canonical.constants import (
    DATE_FORMAT,
    DATE_PATTERN,
    ED25519_PUBLIC_KEY_LENGTH,
    ED25519_SIGNATURE_LENGTH,
    SUPPORTED_COINS,
)
from delphi_canonical.errors import EncodingError
from delphi_canonical.hexutil import hex_decode, hex_encode

_DATE_RE = re.compile(DATE_PATTERN)
_DIGITS_RE = re.compile(r"^[0-9]+\Z")


# ============================================================================
# Enumerations
# ============================================================================

class FactRequestType(IntEnum):
    """Whether the attestation asks a question or settles one."""
    QUESTION = 1
    RESOLUTION = 2


class Comparator(IntEnum):
    """Relation applied as ``observed <op> threshold``."""
    LESS_OR_EQUAL = 1
    GREATER_OR_EQUAL = 2

    def holds(self, observed: int, threshold: int) -> bool:
        if self is Comparator.LESS_OR_EQUAL:
            return observed <= threshold
        if self is Comparator.GREATER_OR_EQUAL:
            return observed >= threshold
        raise AssertionError(f"unhandled comparator {self!r}")


class FactResult(IntEnum):
    UNSET = 0
    CONDITION_MET = 1
    CONDITION_NOT_MET = 2


# ============================================================================
# Field Checks
# ============================================================================

def is_valid_date(value: Any) -> bool:
    """True if ``value`` is an exact DD-MM-YYYY string naming a real day."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


def is_supported_coin(value: Any, supported: FrozenSet[str] = SUPPORTED_COINS) -> bool:
    return isinstance(value, str) and value in supported


def is_plain_int(value: Any) -> bool:
    """Integers only; ``bool`` is an ``int`` subclass and is rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class FactPayload:
    request_type: FactRequestType
    date: str
    coin: str
    comparator: Comparator
    price: int
    result: int = FactResult.UNSET

    def to_dict(self) -> Dict[str, Any]:
        """Transport shape. ``price`` is a string so JS clients keep precision."""
        return {
            "type": int(self.request_type),
            "date": self.date,
            "coin": self.coin,
            "comparator": int(self.comparator),
            "price": str(self.price),
            "result": int(self.result),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FactPayload":
        """
        Rebuild a payload from its transport shape.

        Raises:
            EncodingError: If a field is missing or carries an unknown tag
        """
        try:
            request_type = FactRequestType(_as_int(data["type"], "type"))
            comparator = Comparator(_as_int(data["comparator"], "comparator"))
            price = _as_int(data["price"], "price")
            result = _as_int(data["result"], "result")
            date = data["date"]
            coin = data["coin"]
        except KeyError as e:
            raise EncodingError(f"Payload missing field {e.args[0]!r}") from e
        except ValueError as e:
            raise EncodingError(f"Malformed payload: {e}") from e

        if not isinstance(date, str) or not isinstance(coin, str):
            raise EncodingError("Payload date and coin must be strings")

        return cls(
            request_type=request_type,
            date=date,
            coin=coin,
            comparator=comparator,
            price=price,
            result=result,
        )


@dataclass(frozen=True)
class AttestationBundle:
    """
    A signed fact.

    ``message_bytes`` is exactly what was signed and must equal
    ``codec.encode(intent_scope, timestamp_ms, payload)``. ``public_key`` is
    advisory: verifiers take authority from the key registry, not from here.
    """
    intent_scope: int
    timestamp_ms: int
    payload: FactPayload
    signature: bytes
    public_key: bytes
    message_bytes: bytes

    def __post_init__(self):
        if len(self.signature) != ED25519_SIGNATURE_LENGTH:
            raise EncodingError(
                f"Signature must be {ED25519_SIGNATURE_LENGTH} bytes, got {len(self.signature)}"
            )
        if len(self.public_key) != ED25519_PUBLIC_KEY_LENGTH:
            raise EncodingError(
                f"Public key must be {ED25519_PUBLIC_KEY_LENGTH} bytes, got {len(self.public_key)}"
            )

    def to_response(self) -> Dict[str, Any]:
        return {
            "intent_scope": int(self.intent_scope),
            "timestamp_ms": str(self.timestamp_ms),
            "payload": self.payload.to_dict(),
            "signature": hex_encode(self.signature),
            "public_key": hex_encode(self.public_key),
            "message_bcs": hex_encode(self.message_bytes),
        }

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "AttestationBundle":
        """
        Parse a bundle received over the wire.

        If ``message_bcs`` is absent the canonical bytes are recomputed, so
        a bundle stripped of its debug field still verifies.

        Raises:
            EncodingError: If the bundle is structurally malformed
        """
        if not isinstance(data, dict):
            raise EncodingError("Bundle must be a JSON object")
        try:
            intent_scope = _as_int(data["intent_scope"], "intent_scope")
            timestamp_ms = _as_int(data["timestamp_ms"], "timestamp_ms")
            payload_raw = data["payload"]
            signature = hex_decode(data["signature"], ED25519_SIGNATURE_LENGTH)
            public_key = hex_decode(data["public_key"], ED25519_PUBLIC_KEY_LENGTH)
            message_hex = data.get("message_bcs")
            message_bytes = hex_decode(message_hex) if message_hex is not None else None
        except KeyError as e:
            raise EncodingError(f"Bundle missing field {e.args[0]!r}") from e
        except ValueError as e:
            raise EncodingError(f"Malformed bundle: {e}") from e

        if not isinstance(payload_raw, dict):
            raise EncodingError("Bundle payload must be a JSON object")
        payload = FactPayload.from_dict(payload_raw)

        if message_bytes is None:
            from delphi_canonical.codec import encode
            message_bytes = encode(intent_scope, timestamp_ms, payload)

        return cls(
            intent_scope=intent_scope,
            timestamp_ms=timestamp_ms,
            payload=payload,
            signature=signature,
            public_key=public_key,
            message_bytes=message_bytes,
        )


def _as_int(value: Any, field: str) -> int:
    """Accept ints or decimal-digit strings (how u64 values travel in JSON)."""
    if is_plain_int(value):
        return value
    if isinstance(value, str) and _DIGITS_RE.match(value):
        return int(value)
    raise ValueError(f"{field} must be an integer, got {value!r}")

