"""
Gateway API Endpoints

This package contains all FastAPI routers for the gateway:
- process_data: Fact attestation (POST /process_data)
- enclaves: Enclave key registry (POST/GET /enclaves, POST /enclaves/{id}/revoke)
- verify: Bundle verification against the registry (POST /verify)
"""
