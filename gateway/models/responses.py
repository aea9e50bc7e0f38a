"""
Gateway Response Models
======================

Pydantic models for API requests and responses.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any


class FactPayloadModel(BaseModel):
    """Fact payload as it travels in a response (price is a decimal string)"""

    type: int
    date: str
    coin: str
    comparator: int
    price: str
    result: int


class ProcessDataResponse(BaseModel):
    """Response from /process_data endpoint"""

    intent_scope: int
    timestamp_ms: str  # u64 as decimal string
    payload: FactPayloadModel
    signature: str  # 64-byte Ed25519 signature, lowercase hex
    public_key: str  # 32-byte signer public key, lowercase hex (advisory)
    message_bcs: str  # Exact signed bytes, lowercase hex


class ErrorResponse(BaseModel):
    """Error response"""

    error: str
    kind: str


class HealthResponse(BaseModel):
    """Health check response"""

    service: str
    status: str
    build_id: str
    github_commit: str
    network: str
    public_key: str
    timestamp: str


class PublicKeyResponse(BaseModel):
    """Response from /public_key endpoint"""

    public_key: str
    ephemeral: bool
    intent_scope: int


class RegisterEnclaveRequest(BaseModel):
    """Body of POST /enclaves"""

    public_key: str = Field(..., description="32-byte Ed25519 public key (hex)")
    owner: str = Field(..., description="Owner Ed25519 public key (hex); only its holder may revoke")


class RevokeRequest(BaseModel):
    """Body of POST /enclaves/{enclave_id}/revoke"""

    signature: str = Field(..., description="Owner key's Ed25519 signature over 'revoke:{enclave_id}' (hex)")


class EnclaveRecordResponse(BaseModel):
    """Registered oracle signer"""

    id: str
    public_key: str
    owner: str
    status: str
    registered_at: str
    revoked_at: Optional[str] = None


class EnclaveListResponse(BaseModel):
    """Response from GET /enclaves"""

    count: int
    enclaves: List[EnclaveRecordResponse]


class VerifyRequest(BaseModel):
    """Body of POST /verify"""

    enclave_id: str = Field(..., description="Registry id whose key must have signed the bundle")
    bundle: Dict[str, Any] = Field(..., description="Attestation bundle as returned by /process_data")


class VerifyResponse(BaseModel):
    """Outcome of verifying one bundle"""

    status: str
    valid: bool
    kind: Optional[str] = None
    reason: Optional[str] = None
    embedded_key_matches: Optional[bool] = None
    verification_steps: List[str]
