"""CORS origin whitelist: service, middleware and admin routes."""

from __future__ import annotations

from cosign.cors.middleware import cors_headers, enforce_cors
from cosign.cors.service import CORSService

__all__ = ["CORSService", "cors_headers", "enforce_cors"]
