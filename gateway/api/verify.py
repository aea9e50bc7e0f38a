"""
Attestation Verification API

POST /verify - check a bundle against the key registered for an enclave id

The trusted key always comes from the registry. The bundle's embedded
public key is reported (embedded_key_matches) but never trusted.

Always answers 200 with a VALID / INVALID / ERROR status, except when the
bundle itself cannot be parsed (400).
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from delphi_canonical.errors import EncodingError
from delphi_canonical.types import AttestationBundle
from delphi_canonical.verify import verify_with_registry
from gateway.models.responses import ErrorResponse, VerifyRequest, VerifyResponse
from gateway.utils.logger import log_event

# Create router
router = APIRouter(tags=["Verification"])


@router.post("/verify", response_model=VerifyResponse, responses={400: {"model": ErrorResponse}})
async def verify_bundle(body: VerifyRequest, request: Request):
    state = request.app.state
    try:
        bundle = AttestationBundle.from_response(body.bundle)
    except EncodingError as e:
        return JSONResponse(status_code=400, content={"error": e.reason, "kind": e.kind.value})

    result = verify_with_registry(bundle, state.registry, body.enclave_id, state.config.SUPPORTED_COINS)

    log_event(
        "bundle_verified",
        enclave_id=body.enclave_id,
        status=result.status.value,
        kind=result.kind,
    )
    return result.to_dict()
