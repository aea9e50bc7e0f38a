"""
Delphi Canonical Constants
==========================

Single source of truth for values that the signer, the gateway and every
verifier must agree on. Changing any of these changes the signed bytes.
"""

from typing import Dict, FrozenSet

# ============================================================================
# Intent Scopes
# ============================================================================

# IntentScope::ProcessData in the enclave framework. Prefixes every preimage.
INTENT_SCOPE_PROCESS_DATA = 0

U8_MAX = 0xFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF

# ============================================================================
# Fixed-Point Prices
# ============================================================================

PRICE_DECIMALS = 9
PRICE_SCALE = 10 ** PRICE_DECIMALS  # 1 USD == 1_000_000_000

# ============================================================================
# Dates
# ============================================================================

DATE_FORMAT = "%d-%m-%Y"  # DD-MM-YYYY, the format CoinGecko history expects
DATE_PATTERN = r"^[0-9]{2}-[0-9]{2}-[0-9]{4}\Z"

# ============================================================================
# Supported Coins
# ============================================================================

# Canonical lowercase symbols accepted in a fact payload
SUPPORTED_COINS: FrozenSet[str] = frozenset({
    "bitcoin",
    "sui",
    "ethereum",
    "solana",
    "cardano",
    "polkadot",
    "chainlink",
    "polygon",
    "avalanche",
    "litecoin",
    "dogecoin",
})

# Canonical symbol -> CoinGecko coin id, only where they differ
COINGECKO_IDS: Dict[str, str] = {
    "polygon": "matic-network",
    "avalanche": "avalanche-2",
}

# ============================================================================
# Ed25519
# ============================================================================

ED25519_PUBLIC_KEY_LENGTH = 32
ED25519_SIGNATURE_LENGTH = 64
ED25519_SEED_LENGTH = 32
