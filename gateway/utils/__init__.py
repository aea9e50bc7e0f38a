"""
Gateway utilities: structured logging and the enclave key registry.
"""
