"""
Fact Attestation API

POST /process_data - resolve and sign one fact request

Request body:
    {"payload": {"type": 1|2, "date": "DD-MM-YYYY", "coin": "bitcoin",
                 "comparator": 1|2, "price": "<u64 scaled by 1e9>", "result": 0}}

Flow:
1. Structural validation (required fields, integer parsing)
2. Field validation (coin, date, type, comparator, price range, result == 0)
3. Resolution requests only: historical price lookup
4. Canonical encoding + Ed25519 signature
5. Return the attestation bundle

Failures return {"error": reason, "kind": kind} with the status mapped from
the error kind (400 input, 502 upstream, 500 encoding/signing).
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from delphi_canonical.errors import ErrorKind
from gateway.models.responses import ErrorResponse, ProcessDataResponse

# Create router
router = APIRouter(tags=["Attestation"])


@router.post(
    "/process_data",
    response_model=ProcessDataResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def process_data(request: Request):
    """
    Produce a signed attestation for a price fact.

    The body is read as raw JSON so malformed requests reach the router's
    own validation and come back in the InputValidationError vocabulary
    instead of FastAPI's 422 format.
    """
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={"error": "Request body is not valid JSON", "kind": ErrorKind.INPUT_VALIDATION.value},
        )

    outcome = await request.app.state.request_router.handle(body)
    return JSONResponse(status_code=outcome.http_status, content=outcome.to_response())
