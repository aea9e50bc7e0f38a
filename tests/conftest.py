"""
Shared fixtures for the Delphi oracle tests.

Uses the RFC 8032 test-1 Ed25519 seed so public keys are known constants,
and an in-memory price source so no test touches the network.
"""

from typing import Dict, List, Optional, Tuple

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from delphi_canonical.errors import UpstreamUnavailable
from oracle_tee.enclave_signer import AttestationSigner, EnclaveKeyPair
from oracle_tee.price_source import PriceSource

# RFC 8032, section 7.1, TEST 1
SEED_HEX = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
PUBLIC_KEY_HEX = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"

# RFC 8032, section 7.1, TEST 2; registry owner key in tests
OWNER_SEED_HEX = "4ccd089b28ff96da9db6c346ec114e0f5b8a319f35aba624da8cf6ed4fb8a6fb"

FIXED_TIMESTAMP_MS = 1744038900000


class FakePriceSource(PriceSource):
    """Dictionary-backed price source that records every lookup."""

    def __init__(self, prices: Optional[Dict[Tuple[str, str], int]] = None, error: Optional[Exception] = None):
        self.prices = dict(prices or {})
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    async def fetch_price(self, coin: str, date: str) -> int:
        self.calls.append((coin, date))
        if self.error is not None:
            raise self.error
        try:
            return self.prices[(coin, date)]
        except KeyError:
            raise UpstreamUnavailable(f"No market data available for {coin} on {date}")


@pytest.fixture
def keypair():
    return EnclaveKeyPair.from_seed_hex(SEED_HEX)


@pytest.fixture
def price_source():
    return FakePriceSource({
        ("bitcoin", "01-01-2024"): 42_500_000_000_000,
        ("sui", "15-03-2025"): 2_345_678_901,
    })


@pytest.fixture
def signer(keypair, price_source):
    return AttestationSigner(
        keypair=keypair,
        price_source=price_source,
        clock=lambda: FIXED_TIMESTAMP_MS,
    )


def raw_public_key(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


@pytest.fixture
def owner_key():
    return Ed25519PrivateKey.from_private_bytes(bytes.fromhex(OWNER_SEED_HEX))
