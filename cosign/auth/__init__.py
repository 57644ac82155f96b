"""Cosign API key package.

Public API:
  - KeyService            - issue / bootstrap / verify / revoke / list
  - parse_token()         - split "{id}.{secret}"
  - require_api_key()     - routing middleware guarding admin routes (401)
  - extract_bearer_token() - Authorization header parsing
"""

from __future__ import annotations

from cosign.auth.keys import KeyService, parse_token
from cosign.auth.middleware import extract_bearer_token, require_api_key

__all__ = [
    "KeyService",
    "extract_bearer_token",
    "parse_token",
    "require_api_key",
]
