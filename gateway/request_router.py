"""
Request Router
==============

Entry point for fact requests arriving over the transport.

Lifecycle of one request (explicit state machine):

    RECEIVED -> VALIDATED -> [PRICE_LOOKUP] -> SIGNED -> RETURNED
         \\          \\              \\            \\
          +----------+--------------+------------+--> FAILED(kind)

PRICE_LOOKUP is entered only for resolution requests. There is no retry loop
here; retrying is the caller's business. The router keeps no state between
requests and never raises: every request ends in a RouterOutcome carrying
either a bundle or an error kind + reason from the external vocabulary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError, field_validator

from delphi_canonical.errors import DelphiError, ErrorKind, InputValidationError, InvalidPrice, InvalidRequestType
from delphi_canonical.pricing import parse_scaled_price
from delphi_canonical.types import AttestationBundle, FactRequestType
from gateway.utils.logger import log_event
from oracle_tee.enclave_signer import AttestationSigner, SignRequest


# ============================================================================
# Transport Models
# ============================================================================

class FactRequestPayload(BaseModel):
    """``payload`` object of a /process_data request."""
    model_config = ConfigDict(extra="ignore")

    type: StrictInt
    date: StrictStr
    coin: StrictStr
    comparator: StrictInt
    price: Union[StrictStr, StrictInt]
    result: StrictInt

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        """Price must be an integer (or integer string) already scaled by 1e9."""
        try:
            return parse_scaled_price(v)
        except InvalidPrice as e:
            raise ValueError(e.reason)


class ProcessDataRequest(BaseModel):
    payload: FactRequestPayload


# ============================================================================
# State Machine
# ============================================================================

class RequestState(str, Enum):
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    PRICE_LOOKUP = "PRICE_LOOKUP"
    SIGNED = "SIGNED"
    RETURNED = "RETURNED"
    FAILED = "FAILED"


_TRANSITIONS = {
    RequestState.RECEIVED: {RequestState.VALIDATED, RequestState.FAILED},
    RequestState.VALIDATED: {RequestState.PRICE_LOOKUP, RequestState.SIGNED, RequestState.FAILED},
    RequestState.PRICE_LOOKUP: {RequestState.SIGNED, RequestState.FAILED},
    RequestState.SIGNED: {RequestState.RETURNED, RequestState.FAILED},
    RequestState.RETURNED: set(),
    RequestState.FAILED: set(),
}

# External error vocabulary -> HTTP status
ERROR_HTTP_STATUS: Dict[str, int] = {
    ErrorKind.INPUT_VALIDATION.value: 400,
    ErrorKind.UPSTREAM_DATA.value: 502,
    ErrorKind.ENCODING.value: 500,
    ErrorKind.SIGNATURE.value: 500,
    ErrorKind.VERIFICATION_FAILURE.value: 400,
    ErrorKind.AUTHORIZATION.value: 403,
    ErrorKind.NOT_FOUND.value: 404,
    ErrorKind.REVOKED.value: 410,
    ErrorKind.STORAGE.value: 503,
}


@dataclass
class RouterOutcome:
    """Terminal result of one request."""
    state: RequestState = RequestState.RECEIVED
    history: List[RequestState] = field(default_factory=lambda: [RequestState.RECEIVED])
    bundle: Optional[AttestationBundle] = None
    error_kind: Optional[str] = None
    error_reason: Optional[str] = None

    def advance(self, new_state: RequestState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal request transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: DelphiError) -> "RouterOutcome":
        self.error_kind = error.kind.value
        self.error_reason = error.reason
        self.advance(RequestState.FAILED)
        return self

    @property
    def ok(self) -> bool:
        return self.state is RequestState.RETURNED

    @property
    def http_status(self) -> int:
        if self.ok:
            return 200
        return ERROR_HTTP_STATUS.get(self.error_kind, 500)

    def to_response(self) -> Dict[str, Any]:
        if self.ok:
            return self.bundle.to_response()
        return {"error": self.error_reason, "kind": self.error_kind}


def _validation_reason(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}" if loc else str(item.get("msg")))
    return "; ".join(parts) or "Malformed request"


# ============================================================================
# Router
# ============================================================================

class RequestRouter:
    """
    Classifies, validates and dispatches fact requests to the signer.

    Args:
        signer: The attestation signer (built once at startup)
    """

    def __init__(self, signer: AttestationSigner):
        self.signer = signer

    def parse(self, raw: Any) -> SignRequest:
        """
        Structural validation of a transport request.

        Raises:
            InputValidationError: Missing fields or fields that do not parse
        """
        if not isinstance(raw, dict) or raw.get("payload") is None:
            raise InputValidationError("Missing payload")
        try:
            request = ProcessDataRequest.model_validate(raw)
        except ValidationError as e:
            raise InputValidationError(_validation_reason(e)) from e

        p = request.payload
        return SignRequest(
            request_type=p.type,
            date=p.date,
            coin=p.coin,
            comparator=p.comparator,
            price=p.price,
            result=p.result,
        )

    @staticmethod
    def classify(request: SignRequest) -> FactRequestType:
        """
        Raises:
            InvalidRequestType: Unknown request tag (never coerced)
        """
        try:
            return FactRequestType(request.request_type)
        except ValueError as e:
            raise InvalidRequestType(
                f"Invalid type: {request.request_type!r}. Type must be 1 (question) or 2 (resolution)"
            ) from e

    async def handle(self, raw: Any) -> RouterOutcome:
        """Run one request through the full lifecycle."""
        outcome = RouterOutcome()

        try:
            request = self.parse(raw)
            self.signer.validate(request)
            request_type = self.classify(request)
        except DelphiError as e:
            log_event("request_rejected", kind=e.kind.value, reason=e.reason)
            return outcome.fail(e)
        outcome.advance(RequestState.VALIDATED)

        try:
            if request_type is FactRequestType.RESOLUTION:
                outcome.advance(RequestState.PRICE_LOOKUP)
            payload = await self.signer.resolve(request)
            bundle = self.signer.sign_payload(payload)
        except DelphiError as e:
            log_event(
                "request_failed",
                kind=e.kind.value,
                reason=e.reason,
                stage=outcome.state.value,
                coin=request.coin,
                date=request.date,
            )
            return outcome.fail(e)

        outcome.advance(RequestState.SIGNED)
        outcome.bundle = bundle
        outcome.advance(RequestState.RETURNED)

        log_event(
            "request_signed",
            request_type=request_type.name,
            coin=request.coin,
            date=request.date,
            result=int(bundle.payload.result),
            timestamp_ms=bundle.timestamp_ms,
        )
        return outcome
