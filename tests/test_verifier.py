"""
Attestation verification tests.

Every single-bit tamper must flip a VALID bundle to INVALID, and keys must
come from the registry rather than the bundle.
"""

from dataclasses import replace

import pytest

from delphi_canonical.codec import encode, encode_payload
from delphi_canonical.types import AttestationBundle, FactResult
from delphi_canonical.verify import VerificationStatus, verify, verify_signed_data, verify_with_registry
from gateway.utils.registry import EnclaveKeyRegistry, sign_revocation
from oracle_tee.enclave_signer import EnclaveKeyPair, SignRequest

from conftest import FIXED_TIMESTAMP_MS, raw_public_key


def _request():
    return SignRequest(request_type=2, date="01-01-2024", coin="bitcoin", comparator=2, price=42_000_000_000_000)


def _flip_bit(data: bytes, index: int = 0) -> bytes:
    mutated = bytearray(data)
    mutated[index] ^= 0x01
    return bytes(mutated)


@pytest.mark.asyncio
async def test_valid_bundle(signer, keypair):
    bundle = await signer.sign(_request())
    result = verify(bundle, keypair.public_key_bytes)

    assert result.status is VerificationStatus.VALID, f"❌ FAIL: {result.reason}"
    assert result.is_valid
    assert result.embedded_key_matches is True
    assert result.kind is None


@pytest.mark.asyncio
async def test_flipped_signature_bit_is_invalid(signer, keypair):
    bundle = await signer.sign(_request())
    for index in (0, 31, 63):
        tampered = replace(bundle, signature=_flip_bit(bundle.signature, index))
        result = verify(tampered, keypair.public_key_bytes)
        assert result.status is VerificationStatus.INVALID
        assert result.kind == "VerificationFailure"


@pytest.mark.asyncio
async def test_tampered_payload_is_invalid(signer, keypair):
    """Changing a field without re-signing: declared bytes no longer match"""
    bundle = await signer.sign(_request())
    tampered = replace(bundle, payload=replace(bundle.payload, result=FactResult.CONDITION_NOT_MET))
    result = verify(tampered, keypair.public_key_bytes)

    assert result.status is VerificationStatus.INVALID
    assert result.reason.startswith("EncodingMismatch")


@pytest.mark.asyncio
async def test_tampered_payload_with_matching_bytes_is_invalid(signer, keypair):
    """Recomputing message bytes for a forged payload still fails the signature"""
    bundle = await signer.sign(_request())
    forged_payload = replace(bundle.payload, price=bundle.payload.price + 1)
    forged = replace(
        bundle,
        payload=forged_payload,
        message_bytes=encode(bundle.intent_scope, bundle.timestamp_ms, forged_payload),
    )
    result = verify(forged, keypair.public_key_bytes)
    assert result.status is VerificationStatus.INVALID
    assert result.kind == "VerificationFailure"


@pytest.mark.asyncio
async def test_tampered_header_is_invalid(signer, keypair):
    bundle = await signer.sign(_request())
    for tampered in (
        replace(bundle, intent_scope=1),
        replace(bundle, timestamp_ms=bundle.timestamp_ms ^ 1),
    ):
        assert verify(tampered, keypair.public_key_bytes).status is VerificationStatus.INVALID


@pytest.mark.asyncio
async def test_flipped_message_bit_is_invalid(signer, keypair):
    bundle = await signer.sign(_request())
    tampered = replace(bundle, message_bytes=_flip_bit(bundle.message_bytes, 20))
    assert verify(tampered, keypair.public_key_bytes).status is VerificationStatus.INVALID


@pytest.mark.asyncio
async def test_wrong_trusted_key_is_invalid(signer):
    bundle = await signer.sign(_request())
    other = EnclaveKeyPair.generate()
    result = verify(bundle, other.public_key_bytes)

    assert result.status is VerificationStatus.INVALID
    assert result.embedded_key_matches is False


@pytest.mark.asyncio
async def test_embedded_key_is_not_trusted(signer):
    """Swapping the embedded key for an attacker's key changes nothing"""
    bundle = await signer.sign(_request())
    attacker = EnclaveKeyPair.generate()
    forged = replace(bundle, public_key=attacker.public_key_bytes)
    assert verify(forged, attacker.public_key_bytes).status is VerificationStatus.INVALID


@pytest.mark.asyncio
async def test_unusable_trusted_key_is_error(signer):
    bundle = await signer.sign(_request())
    assert verify(bundle, b"\x00" * 31).status is VerificationStatus.ERROR
    assert verify(bundle, "not-bytes").status is VerificationStatus.ERROR


@pytest.mark.asyncio
async def test_bundle_survives_transport(signer, keypair):
    bundle = await signer.sign(_request())
    parsed = AttestationBundle.from_response(bundle.to_response())
    assert parsed == bundle
    assert verify(parsed, keypair.public_key_bytes).is_valid

    stripped = bundle.to_response()
    del stripped["message_bcs"]
    assert verify(AttestationBundle.from_response(stripped), keypair.public_key_bytes).is_valid


# ============================================================================
# Registry-backed verification
# ============================================================================

@pytest.mark.asyncio
async def test_verify_with_registry(signer, keypair, owner_key):
    bundle = await signer.sign(_request())
    registry = EnclaveKeyRegistry()
    record = registry.register(keypair.public_key_bytes, owner=raw_public_key(owner_key))

    assert verify_with_registry(bundle, registry, record.id).is_valid

    missing = verify_with_registry(bundle, registry, "no-such-enclave")
    assert missing.status is VerificationStatus.ERROR
    assert missing.kind == "NotFoundError"

    registry.revoke(record.id, sign_revocation(owner_key, record.id))
    revoked = verify_with_registry(bundle, registry, record.id)
    assert revoked.status is VerificationStatus.ERROR
    assert revoked.kind == "RevokedError"


@pytest.mark.asyncio
async def test_verify_signed_data(signer, keypair, owner_key):
    bundle = await signer.sign(_request())
    registry = EnclaveKeyRegistry()
    record = registry.register(keypair.public_key_bytes, owner=raw_public_key(owner_key))
    payload_bytes = encode_payload(bundle.payload)

    assert verify_signed_data(registry, record.id, 0, FIXED_TIMESTAMP_MS, payload_bytes, bundle.signature)
    assert not verify_signed_data(registry, record.id, 1, FIXED_TIMESTAMP_MS, payload_bytes, bundle.signature)
    assert not verify_signed_data(registry, record.id, 0, FIXED_TIMESTAMP_MS + 1, payload_bytes, bundle.signature)
    assert not verify_signed_data(registry, record.id, 0, FIXED_TIMESTAMP_MS, payload_bytes + b"\x00", bundle.signature)
    assert not verify_signed_data(registry, "unknown", 0, FIXED_TIMESTAMP_MS, payload_bytes, bundle.signature)
    assert not verify_signed_data(registry, record.id, 0, FIXED_TIMESTAMP_MS, payload_bytes, b"\x00" * 64)
    assert not verify_signed_data(registry, record.id, 256, FIXED_TIMESTAMP_MS, payload_bytes, bundle.signature)
