"""
Gateway Configuration
=====================

Configuration for the oracle gateway, built ONCE at startup and passed by
reference into the request router, signer and registry. Nothing reads the
environment after construction.

Values come from environment variables (a .env file in the project root is
loaded first), or from direct instantiation in tests.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from dotenv import load_dotenv

from delphi_canonical.constants import (
    ED25519_SEED_LENGTH,
    INTENT_SCOPE_PROCESS_DATA,
    SUPPORTED_COINS,
    U8_MAX,
)
from delphi_canonical.hexutil import hex_decode
from oracle_tee.price_source import DEFAULT_COINGECKO_BASE_URL, DEFAULT_TIMEOUT_SECONDS


def _parse_coins(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return SUPPORTED_COINS
    return frozenset(c.strip().lower() for c in raw.split(",") if c.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OracleConfig:
    """
    Oracle gateway configuration.

    Network and contract identifiers are opaque strings; the core never
    interprets them, it only reports them.
    """

    # =========================================================================
    # Build Info
    # =========================================================================
    BUILD_ID: str = "dev-local"
    GITHUB_COMMIT: str = "unknown"

    # =========================================================================
    # Signing
    # =========================================================================
    ED25519_SEED: Optional[str] = None  # 32-byte hex; None = ephemeral key per boot
    INTENT_SCOPE: int = INTENT_SCOPE_PROCESS_DATA

    # =========================================================================
    # Price Source
    # =========================================================================
    COINGECKO_API_KEY: Optional[str] = None
    COINGECKO_BASE_URL: str = DEFAULT_COINGECKO_BASE_URL
    PRICE_TIMEOUT_SECONDS: float = DEFAULT_TIMEOUT_SECONDS
    SUPPORTED_COINS: FrozenSet[str] = field(default_factory=lambda: SUPPORTED_COINS)

    # =========================================================================
    # Environment Identifiers (opaque)
    # =========================================================================
    NETWORK: str = "testnet"
    ENCLAVE_ID: Optional[str] = None
    ENCLAVE_PACKAGE_ID: Optional[str] = None
    DELPHI_PACKAGE_ID: Optional[str] = None
    DELPHI_CONFIG_OBJECT_ID: Optional[str] = None

    # =========================================================================
    # Key Registry
    # =========================================================================
    REGISTRY_PATH: Optional[str] = None  # JSON snapshot; None = in-memory only

    # =========================================================================
    # Server / Logging
    # =========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "OracleConfig":
        """Build the configuration from the process environment (after .env)."""
        load_dotenv(dotenv_path)
        return cls(
            BUILD_ID=os.getenv("BUILD_ID", "dev-local"),
            GITHUB_COMMIT=os.getenv("GITHUB_SHA", "unknown"),
            ED25519_SEED=os.getenv("ED25519_SEED") or None,
            INTENT_SCOPE=int(os.getenv("INTENT_SCOPE", str(INTENT_SCOPE_PROCESS_DATA))),
            COINGECKO_API_KEY=os.getenv("COINGECKO_API_KEY") or None,
            COINGECKO_BASE_URL=os.getenv("COINGECKO_BASE_URL", DEFAULT_COINGECKO_BASE_URL),
            PRICE_TIMEOUT_SECONDS=float(os.getenv("PRICE_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
            SUPPORTED_COINS=_parse_coins(os.getenv("SUPPORTED_COINS")),
            NETWORK=os.getenv("NETWORK", "testnet"),
            ENCLAVE_ID=os.getenv("ENCLAVE_ID") or None,
            ENCLAVE_PACKAGE_ID=os.getenv("ENCLAVE_PACKAGE_ID") or None,
            DELPHI_PACKAGE_ID=os.getenv("DELPHI_PACKAGE_ID") or None,
            DELPHI_CONFIG_OBJECT_ID=os.getenv("DELPHI_CONFIG_OBJECT_ID") or None,
            REGISTRY_PATH=os.getenv("REGISTRY_PATH") or None,
            HOST=os.getenv("HOST", "0.0.0.0"),
            PORT=int(os.getenv("PORT", "3000")),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_env_bool("LOG_JSON", False),
        )

    def validate(self) -> bool:
        """
        Check every setting and report all problems at once.

        Raises:
            ValueError: Listing each configuration error
        """
        errors: List[str] = []

        if not 0 <= self.INTENT_SCOPE <= U8_MAX:
            errors.append(f"INTENT_SCOPE must fit in a u8, got {self.INTENT_SCOPE}")
        if self.PRICE_TIMEOUT_SECONDS <= 0:
            errors.append("PRICE_TIMEOUT_SECONDS must be positive")
        if not self.SUPPORTED_COINS:
            errors.append("SUPPORTED_COINS is empty")
        for coin in sorted(self.SUPPORTED_COINS):
            if coin != coin.lower() or not coin:
                errors.append(f"Coin symbol {coin!r} must be lowercase")
        if self.ED25519_SEED is not None:
            try:
                hex_decode(self.ED25519_SEED.strip(), ED25519_SEED_LENGTH)
            except ValueError as e:
                errors.append(f"ED25519_SEED must be {ED25519_SEED_LENGTH} bytes of hex: {e}")
        if not 0 < self.PORT < 65536:
            errors.append(f"PORT out of range: {self.PORT}")

        if errors:
            raise ValueError("Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))
        return True

    def summary(self) -> Dict[str, Any]:
        """Configuration summary for logs. NEVER includes secrets."""
        return {
            "build_id": self.BUILD_ID,
            "github_commit": self.GITHUB_COMMIT,
            "network": self.NETWORK,
            "intent_scope": self.INTENT_SCOPE,
            "seeded_key": self.ED25519_SEED is not None,
            "coingecko_base_url": self.COINGECKO_BASE_URL,
            "coingecko_api_key": "set" if self.COINGECKO_API_KEY else "unset",
            "price_timeout_seconds": self.PRICE_TIMEOUT_SECONDS,
            "supported_coins": sorted(self.SUPPORTED_COINS),
            "enclave_id": self.ENCLAVE_ID,
            "enclave_package_id": self.ENCLAVE_PACKAGE_ID,
            "delphi_package_id": self.DELPHI_PACKAGE_ID,
            "delphi_config_object_id": self.DELPHI_CONFIG_OBJECT_ID,
            "registry_path": self.REGISTRY_PATH,
        }
