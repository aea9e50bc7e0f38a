"""
Delphi Error Taxonomy
=====================

Every failure the oracle can report carries a stable ``kind`` (the external
vocabulary returned to callers) and a human-readable ``reason``.

Components raise these exceptions. The outer boundaries (the request router
and the attestation verifier) catch them and turn them into typed outcome
objects, so no caller ever sees an uncaught fault. The one exception is
``KeyMaterialError``, which is fatal and aborts initialization.
"""

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    """Stable external error vocabulary."""
    INPUT_VALIDATION = "InputValidationError"
    UPSTREAM_DATA = "UpstreamDataError"
    ENCODING = "EncodingError"
    SIGNATURE = "SignatureError"
    VERIFICATION_FAILURE = "VerificationFailure"
    AUTHORIZATION = "AuthorizationError"
    NOT_FOUND = "NotFoundError"
    REVOKED = "RevokedError"
    STORAGE = "StorageError"


class DelphiError(Exception):
    """Base class for all typed oracle failures."""

    kind: ErrorKind = ErrorKind.INPUT_VALIDATION

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind.value, "reason": self.reason}


# ============================================================================
# Input Validation
# ============================================================================

class InputValidationError(DelphiError):
    """Malformed coin, date, comparator, price or request shape."""
    kind = ErrorKind.INPUT_VALIDATION


class InvalidCoin(InputValidationError):
    pass


class InvalidDate(InputValidationError):
    pass


class InvalidComparator(InputValidationError):
    pass


class InvalidPrice(InputValidationError):
    pass


class InvalidRequestType(InputValidationError):
    pass


# ============================================================================
# Upstream Price Data
# ============================================================================

class UpstreamDataError(DelphiError):
    """External price source unreachable or missing data for the date."""
    kind = ErrorKind.UPSTREAM_DATA


class UpstreamUnavailable(UpstreamDataError):
    pass


# ============================================================================
# Encoding / Signing / Verification
# ============================================================================

class EncodingError(DelphiError):
    """A field fails its canonical-encoding constraint."""
    kind = ErrorKind.ENCODING


class EncodingMismatch(EncodingError):
    """Declared message bytes differ from the recomputed canonical bytes."""
    pass


class SignatureError(DelphiError):
    """Signing key unavailable."""
    kind = ErrorKind.SIGNATURE


class VerificationFailure(DelphiError):
    """Signature does not verify under the trusted key."""
    kind = ErrorKind.VERIFICATION_FAILURE


# ============================================================================
# Registry
# ============================================================================

class AuthorizationError(DelphiError):
    """Caller is not allowed to mutate the record."""
    kind = ErrorKind.AUTHORIZATION


class NotFoundError(DelphiError):
    kind = ErrorKind.NOT_FOUND


class RevokedError(DelphiError):
    kind = ErrorKind.REVOKED


class StorageError(DelphiError):
    """Registry snapshot could not be written; the change was not applied."""
    kind = ErrorKind.STORAGE


# ============================================================================
# Fatal
# ============================================================================

class KeyMaterialError(RuntimeError):
    """Corrupted or malformed key material at startup. Not recoverable."""
    pass
