"""Programmatic uvicorn entry point for Cosign.

Reads host and port from the loaded config (127.0.0.1:8080 by default) and
starts uvicorn on the ``create_app`` factory with hardened defaults:

  --limit-concurrency 100  Max 100 concurrent connections; HTTP 503 when exceeded
  --backlog 50             OS connection queue depth; limits SYN flood exposure
  --timeout-keep-alive 5   Reduces the Slow Loris attack window

Usage:
    python -m cosign.run
    cosign                  # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import os

import uvicorn

from cosign.config import load_config

# ─── Uvicorn hardened defaults ───────────────────────────────────────────────

UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5

UVICORN_TIMEOUT_GRACEFUL_SHUTDOWN: int = 30


def main() -> None:
    """Start the Cosign server.

    Loads config first to read the binding host and port; the app factory
    loads it again inside the server process.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "cosign.main:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
        timeout_graceful_shutdown=UVICORN_TIMEOUT_GRACEFUL_SHUTDOWN,
    )


if __name__ == "__main__":
    main()
