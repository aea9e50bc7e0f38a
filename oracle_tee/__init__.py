"""
Oracle TEE Module
=================

Provides the signing side of the Delphi price oracle.

This module runs INSIDE the oracle enclave and handles:
- Ed25519 keypair loading / generation and management
- Resolution of fact requests (historical price lookup)
- Signing the canonical fact preimage

SECURITY CONSTRAINTS:
- The oracle does NOT expose a generic sign(bytes) API
- Signing is constrained to facts built internally through delphi_canonical
- Each attestation is bound to its intent scope and signing timestamp

Usage:
    from oracle_tee import AttestationSigner, SignRequest, load_enclave_keypair
    from oracle_tee.price_source import CoinGeckoPriceSource
"""

from oracle_tee.enclave_signer import (
    AttestationSigner,
    EnclaveKeyPair,
    SignRequest,
    load_enclave_keypair,
)
from oracle_tee.price_source import CoinGeckoPriceSource, PriceSource

__all__ = [
    "AttestationSigner",
    "EnclaveKeyPair",
    "SignRequest",
    "load_enclave_keypair",
    "CoinGeckoPriceSource",
    "PriceSource",
]
