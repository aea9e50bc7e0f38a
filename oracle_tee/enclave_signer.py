"""
Oracle Enclave Signer
=====================

This module runs inside the oracle enclave and handles:
- Ed25519 keypair loading / generation (once per process)
- Fact resolution (price lookup for resolution requests)
- Signing the canonical preimage of each fact

SECURITY MODEL:
- Keypair is loaded or generated once at boot and never mutated
- Private key NEVER leaves this module (no export, never logged)
- The signer only signs bytes it built itself through the canonical codec.
  There is NO generic sign(bytes) API, so callers cannot make the oracle
  sign arbitrary data.
- Every bundle carries the signer's public key so a verifier can find the
  matching registry record, but verifiers must trust the REGISTRY, not the
  embedded key.

KEY MATERIAL:
- ED25519_SEED (32-byte hex) -> deterministic key, same public key each boot
- no seed                    -> ephemeral key generated per boot
- malformed seed             -> KeyMaterialError (fatal, aborts startup)
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from delphi_canonical.codec import encode
from delphi_canonical.constants import (
    ED25519_SEED_LENGTH,
    INTENT_SCOPE_PROCESS_DATA,
    SUPPORTED_COINS,
    U64_MAX,
)
from delphi_canonical.errors import (
    InputValidationError,
    InvalidComparator,
    InvalidCoin,
    InvalidDate,
    InvalidPrice,
    InvalidRequestType,
    KeyMaterialError,
    SignatureError,
)
from delphi_canonical.hexutil import hex_decode
from delphi_canonical.types import (
    AttestationBundle,
    Comparator,
    FactPayload,
    FactRequestType,
    FactResult,
    is_plain_int,
    is_supported_coin,
    is_valid_date,
)
from oracle_tee.price_source import PriceSource

logger = logging.getLogger(__name__)


# ============================================================================
# Key Material
# ============================================================================

class EnclaveKeyPair:
    """Ed25519 keypair held in process memory."""

    def __init__(self, private_key: Ed25519PrivateKey, ephemeral: bool):
        self._private_key = private_key
        self.ephemeral = ephemeral
        self.public_key_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def generate(cls) -> "EnclaveKeyPair":
        return cls(Ed25519PrivateKey.generate(), ephemeral=True)

    @classmethod
    def from_seed_hex(cls, seed_hex: str) -> "EnclaveKeyPair":
        """
        Build the keypair from a 32-byte hex seed.

        Raises:
            KeyMaterialError: If the seed is not exactly 32 bytes of hex
        """
        try:
            seed = hex_decode(seed_hex.strip(), ED25519_SEED_LENGTH)
        except (AttributeError, ValueError) as e:
            raise KeyMaterialError(f"ED25519_SEED must be {ED25519_SEED_LENGTH} bytes of hex: {e}") from e
        return cls(Ed25519PrivateKey.from_private_bytes(seed), ephemeral=False)

    @property
    def public_key_hex(self) -> str:
        return self.public_key_bytes.hex()

    def _sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def describe(self) -> Dict[str, Any]:
        """Public state only. NEVER includes the private key."""
        return {
            "public_key_hex": self.public_key_hex,
            "ephemeral": self.ephemeral,
        }


def load_enclave_keypair(seed_hex: Optional[str]) -> EnclaveKeyPair:
    """
    Load the signing key once at process start.

    Returns:
        The keypair (deterministic if a seed is configured, else ephemeral)

    Raises:
        KeyMaterialError: If a seed is configured but malformed
    """
    if seed_hex:
        keypair = EnclaveKeyPair.from_seed_hex(seed_hex)
        logger.info(f"✅ Oracle keypair loaded from seed: {keypair.public_key_hex[:16]}...")
    else:
        keypair = EnclaveKeyPair.generate()
        logger.warning(
            f"⚠️ No ED25519_SEED configured - generated ephemeral keypair "
            f"{keypair.public_key_hex[:16]}... (register it before use)"
        )
    return keypair


# ============================================================================
# Sign Requests
# ============================================================================

@dataclass(frozen=True)
class SignRequest:
    """A fact request as the signer receives it (after transport parsing)."""
    request_type: int
    date: str
    coin: str
    comparator: int
    price: int
    result: int = FactResult.UNSET


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# ============================================================================
# Attestation Signer
# ============================================================================

class AttestationSigner:
    """
    Resolves and signs fact requests.

    Stateless per request: the only shared state is the keypair and the
    coin set, both fixed at construction, so concurrent ``sign`` calls need
    no locking.

    Args:
        keypair: Signing key (None means the key is unavailable)
        price_source: Authoritative historical price lookup
        intent_scope: Domain-separation tag written into every preimage
        supported_coins: Coins this oracle will attest to
        clock: Returns the current time in milliseconds
    """

    def __init__(
        self,
        keypair: Optional[EnclaveKeyPair],
        price_source: PriceSource,
        intent_scope: int = INTENT_SCOPE_PROCESS_DATA,
        supported_coins: FrozenSet[str] = SUPPORTED_COINS,
        clock: Callable[[], int] = _now_ms,
    ):
        self.keypair = keypair
        self.price_source = price_source
        self.intent_scope = intent_scope
        self.supported_coins = frozenset(supported_coins)
        self.clock = clock

    @property
    def public_key_bytes(self) -> bytes:
        if self.keypair is None:
            raise SignatureError("Oracle signing key not initialized")
        return self.keypair.public_key_bytes

    def validate(self, request: SignRequest) -> None:
        """
        Check a request before any lookup or signing happens.

        Raises:
            InputValidationError: Naming the first field that fails
        """
        if not is_supported_coin(request.coin, self.supported_coins):
            raise InvalidCoin(f"Unsupported coin {request.coin!r}")
        if not is_valid_date(request.date):
            raise InvalidDate(f"Invalid date {request.date!r} (expected DD-MM-YYYY)")
        if not is_plain_int(request.request_type) or request.request_type not in set(FactRequestType):
            raise InvalidRequestType(
                f"Invalid type: {request.request_type!r}. Type must be 1 (question) or 2 (resolution)"
            )
        if not is_plain_int(request.comparator) or request.comparator not in set(Comparator):
            raise InvalidComparator(
                f"Invalid comparator: {request.comparator!r}. "
                "Comparator must be 1 (less or equal) or 2 (greater or equal)"
            )
        if not is_plain_int(request.price) or not 0 <= request.price <= U64_MAX:
            raise InvalidPrice(f"Price must be a u64 scaled by 1e9, got {request.price!r}")
        if request.result != FactResult.UNSET:
            raise InputValidationError(f"Input result must be 0, got {request.result!r}")

    async def resolve(self, request: SignRequest) -> FactPayload:
        """
        Build the fact to be signed.

        QUESTION: no lookup, price 0, result UNSET.
        RESOLUTION: observed price from the price source, result MET / NOT_MET.

        Raises:
            UpstreamDataError: If the price source cannot answer
        """
        request_type = FactRequestType(request.request_type)
        comparator = Comparator(request.comparator)

        if request_type is FactRequestType.QUESTION:
            return FactPayload(
                request_type=request_type,
                date=request.date,
                coin=request.coin,
                comparator=comparator,
                price=0,
                result=FactResult.UNSET,
            )

        if request_type is FactRequestType.RESOLUTION:
            observed = await self.price_source.fetch_price(request.coin, request.date)
            met = comparator.holds(observed, request.price)
            logger.info(
                f"Resolved {request.coin} on {request.date}: observed={observed} "
                f"threshold={request.price} comparator={comparator.name} met={met}"
            )
            return FactPayload(
                request_type=request_type,
                date=request.date,
                coin=request.coin,
                comparator=comparator,
                price=observed,
                result=FactResult.CONDITION_MET if met else FactResult.CONDITION_NOT_MET,
            )

        raise AssertionError(f"unhandled request type {request_type!r}")

    def sign_payload(self, payload: FactPayload) -> AttestationBundle:
        """
        Sign an already-resolved payload with the current timestamp.

        Raises:
            SignatureError: If the signing key is unavailable
            EncodingError: If the payload fails canonical encoding
        """
        if self.keypair is None:
            raise SignatureError("Oracle signing key not initialized")

        timestamp_ms = self.clock()
        message_bytes = encode(self.intent_scope, timestamp_ms, payload, self.supported_coins)
        signature = self.keypair._sign(message_bytes)

        logger.info(
            f"✅ Signed fact: type={int(payload.request_type)} coin={payload.coin} "
            f"date={payload.date} result={int(payload.result)} ts={timestamp_ms}"
        )

        return AttestationBundle(
            intent_scope=self.intent_scope,
            timestamp_ms=timestamp_ms,
            payload=payload,
            signature=signature,
            public_key=self.keypair.public_key_bytes,
            message_bytes=message_bytes,
        )

    async def sign(self, request: SignRequest) -> AttestationBundle:
        """
        Validate, resolve and sign ``request``.

        Nothing is written or signed until resolution succeeds, so a failed
        or timed-out lookup leaves no partial state behind.

        Raises:
            InputValidationError, UpstreamDataError, EncodingError, SignatureError
        """
        if self.keypair is None:
            raise SignatureError("Oracle signing key not initialized")
        self.validate(request)
        payload = await self.resolve(request)
        return self.sign_payload(payload)


__all__ = [
    "AttestationSigner",
    "EnclaveKeyPair",
    "SignRequest",
    "load_enclave_keypair",
]
