"""
Delphi Attestation Verification
===============================

Checks that an AttestationBundle was signed by a trusted oracle key.

TRUST MODEL:
- The trusted public key comes from the enclave key registry, NEVER from the
  bundle itself. The key embedded in a bundle is advisory only.
- The signed bytes are RECOMPUTED from the bundle fields. If they differ from
  the bundle's declared ``message_bytes`` the bundle is rejected before the
  signature is even looked at.

VERIFICATION ORDER (MANDATORY):
1. Recompute canonical bytes from (intent_scope, timestamp_ms, payload)
2. Compare against the declared message bytes
3. Load the trusted key
4. Ed25519-verify the signature over the RECOMPUTED bytes

FAIL-CLOSED: every path returns a definite VALID / INVALID / ERROR outcome.
Nothing here raises to the caller.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from delphi_canonical.codec import encode, intent_message
from delphi_canonical.constants import ED25519_PUBLIC_KEY_LENGTH, ED25519_SIGNATURE_LENGTH, SUPPORTED_COINS
from delphi_canonical.errors import DelphiError, EncodingError, ErrorKind
from delphi_canonical.types import AttestationBundle

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    ERROR = "error"


@dataclass
class VerificationResult:
    status: VerificationStatus
    kind: Optional[str] = None
    reason: str = ""
    verification_steps: List[str] = field(default_factory=list)
    embedded_key_matches: Optional[bool] = None

    @property
    def is_valid(self) -> bool:
        return self.status is VerificationStatus.VALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "valid": self.is_valid,
            "kind": self.kind,
            "reason": self.reason,
            "verification_steps": list(self.verification_steps),
            "embedded_key_matches": self.embedded_key_matches,
        }


def _invalid(result: VerificationResult, kind: ErrorKind, reason: str) -> VerificationResult:
    result.status = VerificationStatus.INVALID
    result.kind = kind.value
    result.reason = reason
    result.verification_steps.append(f"✗ {reason}")
    return result


def _error(result: VerificationResult, kind: ErrorKind, reason: str) -> VerificationResult:
    result.status = VerificationStatus.ERROR
    result.kind = kind.value
    result.reason = reason
    result.verification_steps.append(f"✗ {reason}")
    return result


def _load_trusted_key(trusted_public_key: bytes) -> Ed25519PublicKey:
    if not isinstance(trusted_public_key, (bytes, bytearray)):
        raise ValueError(f"Trusted key must be bytes, got {type(trusted_public_key).__name__}")
    if len(trusted_public_key) != ED25519_PUBLIC_KEY_LENGTH:
        raise ValueError(
            f"Trusted key must be {ED25519_PUBLIC_KEY_LENGTH} bytes, got {len(trusted_public_key)}"
        )
    return Ed25519PublicKey.from_public_bytes(bytes(trusted_public_key))


# ============================================================================
# Bundle Verification
# ============================================================================

def verify(
    bundle: AttestationBundle,
    trusted_public_key: bytes,
    supported_coins: FrozenSet[str] = SUPPORTED_COINS,
) -> VerificationResult:
    """
    Verify ``bundle`` under ``trusted_public_key``.

    Args:
        bundle: Bundle received from the oracle
        trusted_public_key: 32-byte Ed25519 key resolved from the registry
        supported_coins: Coin set the canonical encoder accepts

    Returns:
        VerificationResult - VALID only if every step passes; INVALID for any
        structural or cryptographic mismatch; ERROR if the trusted key itself
        is unusable
    """
    result = VerificationResult(status=VerificationStatus.INVALID)

    # Step 1: recompute canonical bytes
    try:
        expected = encode(bundle.intent_scope, bundle.timestamp_ms, bundle.payload, supported_coins)
        result.verification_steps.append("✓ Canonical bytes recomputed")
    except EncodingError as e:
        return _invalid(result, ErrorKind.ENCODING, f"Bundle fields fail canonical encoding: {e.reason}")

    # Step 2: declared bytes must match exactly
    if expected != bytes(bundle.message_bytes):
        return _invalid(result, ErrorKind.ENCODING, "EncodingMismatch: declared message bytes differ from canonical bytes")
    result.verification_steps.append("✓ Declared message bytes match")

    # Step 3: trusted key
    try:
        public_key = _load_trusted_key(trusted_public_key)
        result.verification_steps.append("✓ Trusted key loaded")
    except ValueError as e:
        return _error(result, ErrorKind.VERIFICATION_FAILURE, f"Unusable trusted key: {e}")

    result.embedded_key_matches = bytes(bundle.public_key) == bytes(trusted_public_key)
    if not result.embedded_key_matches:
        # Advisory only; the signature check below is authoritative
        result.verification_steps.append("! Embedded public key differs from trusted key")

    # Step 4: signature over the recomputed bytes
    if len(bundle.signature) != ED25519_SIGNATURE_LENGTH:
        return _invalid(result, ErrorKind.VERIFICATION_FAILURE, "Signature has wrong length")
    try:
        public_key.verify(bytes(bundle.signature), expected)
    except InvalidSignature:
        return _invalid(result, ErrorKind.VERIFICATION_FAILURE, "Signature does not verify under trusted key")

    result.status = VerificationStatus.VALID
    result.verification_steps.append("✓ Signature verified")
    return result


def verify_with_registry(
    bundle: AttestationBundle,
    registry,
    enclave_id: str,
    supported_coins: FrozenSet[str] = SUPPORTED_COINS,
) -> VerificationResult:
    """
    Verify ``bundle`` against the key registered as ``enclave_id``.

    ``registry`` is anything with ``resolve(enclave_id) -> bytes`` that raises
    a DelphiError (NotFoundError / RevokedError) on a miss.
    """
    try:
        trusted_key = registry.resolve(enclave_id)
    except DelphiError as e:
        logger.warning(f"Trusted key lookup failed for {enclave_id}: {e.reason}")
        result = VerificationResult(status=VerificationStatus.ERROR)
        return _error(result, e.kind, e.reason)

    return verify(bundle, trusted_key, supported_coins)


# ============================================================================
# Downstream Call Surface
# ============================================================================

def verify_signed_data(
    registry,
    enclave_id: str,
    intent_scope: int,
    timestamp_ms: int,
    payload_bytes: bytes,
    signature: bytes,
) -> bool:
    """
    Boolean check used by consumers that already hold the encoded payload.

    Mirrors the on-chain ``verify_signature(enclave, intent, timestamp_ms,
    payload, signature)`` entry point: the preimage is rebuilt from the
    intent header and ``payload_bytes``, and verified under the registry key.
    Any failure (unknown or revoked enclave, bad header, bad signature) is False.
    """
    try:
        trusted_key = registry.resolve(enclave_id)
        message = intent_message(intent_scope, timestamp_ms, payload_bytes)
        _load_trusted_key(trusted_key).verify(bytes(signature), message)
    except (DelphiError, ValueError, TypeError, InvalidSignature) as e:
        logger.debug(f"verify_signed_data rejected: {e}")
        return False
    return True
