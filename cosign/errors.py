"""Error taxonomy for the Cosign trust-and-access layer.

Four kinds of outcome reach the HTTP layer:

  FormatError   - client-attributable malformed input (token, origin). HTTP 400.
  NotFoundError - unknown key id / unknown origin.                     HTTP 404.
  StorageError  - any persistence failure, wrapped with ``raise ... from``. HTTP 500
                  with a generic message; the cause is logged, never returned.
  Policy rejections (bad token, disallowed origin, rate limited) are NOT
  exceptions. They are plain ``False`` results turned into 401/403/429 by the
  middleware.
"""

from __future__ import annotations


class CosignError(Exception):
    """Base class for all Cosign errors. ``code`` is the machine-readable error code."""

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


# ─── Format errors (400) ─────────────────────────────────────────────────────


class FormatError(CosignError):
    code = "invalid_format"
    status_code = 400


class InvalidTokenFormatError(FormatError):
    """Raised when a token is not of the form ``{id}.{secret}``.

    Only ``KeyService.bootstrap()`` raises this; ``verify()`` reports a
    malformed token as a plain ``False``.
    """

    code = "invalid_token_format"

    def __init__(self, message: str = "API key must have the form '{id}.{secret}'") -> None:
        super().__init__(message)


class InvalidOriginError(FormatError):
    code = "invalid_origin"

    def __init__(self, message: str = "Origin cannot be empty") -> None:
        super().__init__(message)


# ─── Not-found errors (404) ──────────────────────────────────────────────────


class NotFoundError(CosignError):
    code = "not_found"
    status_code = 404


class KeyNotFoundError(NotFoundError):
    code = "key_not_found"

    def __init__(self, key_id: str) -> None:
        super().__init__(f"API key '{key_id}' not found")
        self.key_id = key_id


class OriginNotFoundError(NotFoundError):
    code = "origin_not_found"

    def __init__(self, origin: str) -> None:
        super().__init__(f"CORS origin '{origin}' not found")
        self.origin = origin


# ─── Storage errors (500) ────────────────────────────────────────────────────


class StorageError(CosignError):
    """Raised by store implementations when the underlying persistence fails.

    The public message returned to clients is always GENERIC_STORAGE_MESSAGE;
    ``str(exc)`` carries the internal detail for logs only.
    """

    code = "storage_error"
    status_code = 500


GENERIC_STORAGE_MESSAGE = "Internal server error"
