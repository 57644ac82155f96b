"""Cosign trust-and-access layer.

API-key issuance and verification, CORS origin whitelisting and per-client
rate limiting for the Cosign sign-on campaign API.
"""

__version__ = "0.1.0"
