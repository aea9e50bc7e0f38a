"""
Delphi Oracle Gateway
=====================

HTTP front end for the Delphi price oracle.

Features:
- Signed price attestations (Ed25519 over a BCS-compatible preimage)
- Question and resolution fact requests
- Enclave key registry with owner-only revocation
- Registry-backed bundle verification
"""

__version__ = "1.0.0"
__author__ = "Delphi Oracle Team"
