"""
Enclave Key Registry API

Endpoints for managing the registered oracle signer keys:
- POST /enclaves                      - register a public key under an owner key
- GET  /enclaves                      - list all records, revoked included
- GET  /enclaves/{enclave_id}         - one record
- POST /enclaves/{enclave_id}/revoke  - revoke (owner-signed, idempotent)

Records are never deleted. Verifiers resolve trusted keys through this
registry; a revoked record stops resolving immediately.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from delphi_canonical.errors import AuthorizationError, DelphiError, InputValidationError
from delphi_canonical.hexutil import hex_decode
from gateway.models.responses import (
    EnclaveListResponse,
    EnclaveRecordResponse,
    ErrorResponse,
    RegisterEnclaveRequest,
    RevokeRequest,
)
from gateway.request_router import ERROR_HTTP_STATUS
from gateway.utils.logger import log_event

# Create router
router = APIRouter(prefix="/enclaves", tags=["Enclave Registry"])


def _error_response(error: DelphiError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_HTTP_STATUS.get(error.kind.value, 500),
        content={"error": error.reason, "kind": error.kind.value},
    )


def _decode_key(value: str, field: str) -> bytes:
    try:
        return hex_decode(value.strip())
    except ValueError as e:
        raise InputValidationError(f"{field} is not valid hex: {e}") from e


@router.post(
    "",
    response_model=EnclaveRecordResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def register_enclave(body: RegisterEnclaveRequest, request: Request):
    """
    Register an oracle signer public key.

    ``owner`` is an Ed25519 public key. Only a signature from the matching
    private key can revoke the record later.
    """
    registry = request.app.state.registry
    try:
        public_key = _decode_key(body.public_key, "public_key")
        owner = _decode_key(body.owner, "owner")
        record = registry.register(public_key, owner)
    except DelphiError as e:
        return _error_response(e)

    log_event("enclave_registered", enclave_id=record.id, owner=record.owner_hex)
    return JSONResponse(status_code=201, content=record.to_dict())


@router.get("", response_model=EnclaveListResponse)
async def list_enclaves(request: Request):
    records = request.app.state.registry.records()
    return {"count": len(records), "enclaves": [r.to_dict() for r in records]}


@router.get(
    "/{enclave_id}",
    response_model=EnclaveRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_enclave(enclave_id: str, request: Request):
    try:
        record = request.app.state.registry.get(enclave_id)
    except DelphiError as e:
        return _error_response(e)
    return record.to_dict()


@router.post(
    "/{enclave_id}/revoke",
    response_model=EnclaveRecordResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def revoke_enclave(enclave_id: str, body: RevokeRequest, request: Request):
    """
    Revoke a registered key.

    The body carries the owner key's signature over ``revoke:{enclave_id}``.
    Revoking twice is a no-op that returns the already-revoked record.
    """
    try:
        try:
            signature = hex_decode(body.signature.strip())
        except ValueError as e:
            raise AuthorizationError(f"signature is not valid hex: {e}") from e
        record = request.app.state.registry.revoke(enclave_id, signature)
    except DelphiError as e:
        log_event("enclave_revoke_rejected", enclave_id=enclave_id, kind=e.kind.value)
        return _error_response(e)

    log_event("enclave_revoked", enclave_id=record.id)
    return record.to_dict()
