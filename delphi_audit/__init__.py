"""
Delphi Oracle Audit Tool

Offline command-line helpers for oracle operators and anyone auditing
attestations: key generation, canonical encode/decode, and bundle
verification against a known public key.
"""
