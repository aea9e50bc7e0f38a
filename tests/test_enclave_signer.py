"""
Attestation signer tests: key material, validation, resolution and signing.
"""

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from delphi_canonical.codec import decode, encode
from delphi_canonical.errors import (
    InputValidationError,
    InvalidCoin,
    InvalidComparator,
    InvalidDate,
    InvalidPrice,
    InvalidRequestType,
    KeyMaterialError,
    SignatureError,
    UpstreamUnavailable,
)
from delphi_canonical.types import FactRequestType, FactResult
from oracle_tee.enclave_signer import AttestationSigner, EnclaveKeyPair, SignRequest, load_enclave_keypair

from conftest import FIXED_TIMESTAMP_MS, PUBLIC_KEY_HEX, SEED_HEX, FakePriceSource


def _resolution(price=42_000_000_000_000, comparator=1, **overrides):
    fields = dict(request_type=2, date="01-01-2024", coin="bitcoin", comparator=comparator, price=price, result=0)
    fields.update(overrides)
    return SignRequest(**fields)


# ============================================================================
# Key material
# ============================================================================

def test_seeded_keypair_is_deterministic():
    keypair = EnclaveKeyPair.from_seed_hex(SEED_HEX)
    assert keypair.public_key_hex == PUBLIC_KEY_HEX
    assert keypair.ephemeral is False
    assert EnclaveKeyPair.from_seed_hex("0x" + SEED_HEX).public_key_hex == PUBLIC_KEY_HEX


def test_describe_never_exposes_private_key():
    described = EnclaveKeyPair.from_seed_hex(SEED_HEX).describe()
    assert set(described) == {"public_key_hex", "ephemeral"}
    assert SEED_HEX not in str(described)


@pytest.mark.parametrize("seed", ["abcd", "zz" * 32, SEED_HEX + "00", ""])
def test_malformed_seed_is_fatal(seed):
    with pytest.raises(KeyMaterialError):
        EnclaveKeyPair.from_seed_hex(seed)


def test_keypair_has_no_public_raw_sign():
    """Only canonical payloads are signed; raw bytes have no public entry point"""
    keypair = EnclaveKeyPair.from_seed_hex(SEED_HEX)
    assert not hasattr(keypair, "sign")


def test_load_without_seed_is_ephemeral():
    a = load_enclave_keypair(None)
    b = load_enclave_keypair("")
    assert a.ephemeral and b.ephemeral
    assert a.public_key_bytes != b.public_key_bytes


# ============================================================================
# Signing
# ============================================================================

@pytest.mark.asyncio
async def test_resolution_condition_met(signer, price_source):
    """Observed 42500 >= threshold 42000 with comparator >= -> result 1"""
    bundle = await signer.sign(_resolution(comparator=2))

    assert bundle.payload.price == 42_500_000_000_000, "❌ FAIL: observed price must be echoed"
    assert bundle.payload.result == FactResult.CONDITION_MET
    assert bundle.timestamp_ms == FIXED_TIMESTAMP_MS
    assert bundle.intent_scope == 0
    assert price_source.calls == [("bitcoin", "01-01-2024")]


@pytest.mark.asyncio
async def test_resolution_condition_not_met(signer):
    bundle = await signer.sign(_resolution(comparator=1))
    assert bundle.payload.result == FactResult.CONDITION_NOT_MET


@pytest.mark.asyncio
async def test_resolution_boundary_is_inclusive(keypair):
    source = FakePriceSource({("bitcoin", "01-01-2024"): 42_000_000_000_000})
    signer = AttestationSigner(keypair, source, clock=lambda: 1)
    assert (await signer.sign(_resolution(comparator=1))).payload.result == FactResult.CONDITION_MET
    assert (await signer.sign(_resolution(comparator=2))).payload.result == FactResult.CONDITION_MET


@pytest.mark.asyncio
async def test_bundle_signature_verifies(signer, keypair):
    """Signed resolution verifies under the signer's key over message_bytes"""
    bundle = await signer.sign(_resolution(comparator=2))

    assert bundle.message_bytes == encode(0, FIXED_TIMESTAMP_MS, bundle.payload)
    assert bundle.public_key == keypair.public_key_bytes
    assert len(bundle.signature) == 64

    # Raises InvalidSignature on failure
    Ed25519PublicKey.from_public_bytes(keypair.public_key_bytes).verify(bundle.signature, bundle.message_bytes)


@pytest.mark.asyncio
async def test_question_skips_lookup(signer, price_source):
    """Questions are signed with price 0, result 0, and no upstream call"""
    bundle = await signer.sign(_resolution(request_type=1, price=99_000_000_000))

    assert bundle.payload.request_type is FactRequestType.QUESTION
    assert bundle.payload.price == 0
    assert bundle.payload.result == FactResult.UNSET
    assert price_source.calls == []


@pytest.mark.asyncio
async def test_signing_is_deterministic_for_fixed_clock(signer):
    a = await signer.sign(_resolution())
    b = await signer.sign(_resolution())
    assert a.signature == b.signature
    assert a.message_bytes == b.message_bytes


@pytest.mark.asyncio
async def test_intent_scope_is_bound_into_preimage(keypair, price_source):
    signer = AttestationSigner(keypair, price_source, intent_scope=7, clock=lambda: 10)
    bundle = await signer.sign(_resolution())
    intent_scope, timestamp_ms, _ = decode(bundle.message_bytes)
    assert (intent_scope, timestamp_ms) == (7, 10)


@pytest.mark.asyncio
async def test_upstream_failure_signs_nothing(keypair):
    source = FakePriceSource(error=UpstreamUnavailable("Price source timed out after 10.0s"))
    signer = AttestationSigner(keypair, source)
    with pytest.raises(UpstreamUnavailable):
        await signer.sign(_resolution())


@pytest.mark.asyncio
async def test_missing_key_is_signature_error(price_source):
    signer = AttestationSigner(None, price_source)
    with pytest.raises(SignatureError):
        await signer.sign(_resolution())
    with pytest.raises(SignatureError):
        signer.public_key_bytes


# ============================================================================
# Validation
# ============================================================================

@pytest.mark.parametrize("overrides, error", [
    ({"coin": "BTC"}, InvalidCoin),
    ({"coin": "Bitcoin"}, InvalidCoin),
    ({"date": "2024-01-01"}, InvalidDate),
    ({"date": "32-01-2024"}, InvalidDate),
    ({"request_type": 3}, InvalidRequestType),
    ({"request_type": True}, InvalidRequestType),
    ({"comparator": 99}, InvalidComparator),
    ({"comparator": 0}, InvalidComparator),
    ({"price": -5}, InvalidPrice),
    ({"price": 2 ** 64}, InvalidPrice),
    ({"result": 1}, InputValidationError),
])
def test_validate_rejects(signer, overrides, error):
    with pytest.raises(error):
        signer.validate(_resolution(**overrides))


@pytest.mark.asyncio
async def test_rejected_request_never_reaches_price_source(signer, price_source):
    with pytest.raises(InvalidComparator):
        await signer.sign(_resolution(comparator=99))
    assert price_source.calls == []


def test_custom_supported_coins(keypair, price_source):
    signer = AttestationSigner(keypair, price_source, supported_coins=frozenset({"sui"}))
    signer.validate(_resolution(coin="sui"))
    with pytest.raises(InvalidCoin):
        signer.validate(_resolution(coin="bitcoin"))
