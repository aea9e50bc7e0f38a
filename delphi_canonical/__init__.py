"""
Delphi Canonical Module

Canonical implementations for everything the oracle signer, the gateway and
every verifier must agree on byte-for-byte.

CRITICAL: ALL components MUST import from this module. Do NOT implement
separate versions of encoding, price scaling or verification logic.

Module Structure:
    constants.py  - intent scopes, price scale, supported coins, key sizes
    errors.py     - error taxonomy (kind + reason) shared by all components
    types.py      - FactRequestType, Comparator, FactPayload, AttestationBundle
    codec.py      - encode / decode of the signed preimage (BCS layout)
    pricing.py    - 1e9 fixed-point conversions (truncating)
    hexutil.py    - hex transport helpers
    verify.py     - verify / verify_with_registry / verify_signed_data

Usage:
    # In oracle_tee/enclave_signer.py:
    from delphi_canonical.codec import encode

    # In any verifying service:
    from delphi_canonical.verify import verify_with_registry
"""

__version__ = "1.0.0"

from delphi_canonical.constants import (
    INTENT_SCOPE_PROCESS_DATA,
    PRICE_SCALE,
    SUPPORTED_COINS,
)
from delphi_canonical.types import (
    AttestationBundle,
    Comparator,
    FactPayload,
    FactRequestType,
    FactResult,
)

__all__ = [
    "__version__",
    "INTENT_SCOPE_PROCESS_DATA",
    "PRICE_SCALE",
    "SUPPORTED_COINS",
    "AttestationBundle",
    "Comparator",
    "FactPayload",
    "FactRequestType",
    "FactResult",
]
