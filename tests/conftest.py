"""Root test configuration for Cosign.

Every test app uses an in-memory SQLite database and a known bootstrap
token, so admin routes can be exercised without provisioning keys by hand.
"""

from __future__ import annotations

from typing import AsyncIterator, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from cosign.config import Config
from cosign.main import create_app, lifespan

BOOTSTRAP_TOKEN = "default.0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"

SEEDED_ORIGIN = "https://campaign.example.org"


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the slowapi storage between tests.

    Prevents test-to-test rate limit bleed where multiple tests hitting the
    admin key routes within the same minute would trigger a 429.
    """
    from cosign.auth.limiter import limiter, set_admin_rate_limit

    limiter._storage.reset()
    set_admin_rate_limit("20/minute")


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer config files and COSIGN_* variables out of the suite."""
    for name in (
        "COSIGN_CONFIG",
        "COSIGN_PORT",
        "COSIGN_DB",
        "COSIGN_BOOTSTRAP_TOKEN",
        "COSIGN_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("cosign.config.DEFAULT_CONFIG_PATHS", [])


@pytest.fixture
def bootstrap_token() -> str:
    return BOOTSTRAP_TOKEN


@pytest.fixture
def make_config() -> Callable[..., Config]:
    """Factory: default Config on an in-memory database with the test bootstrap token.

    Keyword arguments are per-section overrides, e.g.
    ``make_config(rate_limit={"burst": 2})``.
    """

    def _make(**sections: dict) -> Config:
        config = Config.defaults()
        config.database.path = ":memory:"
        config.auth.bootstrap_token = BOOTSTRAP_TOKEN
        config.cors.initial_origins = [SEEDED_ORIGIN]
        for section, values in sections.items():
            target = getattr(config, section)
            for key, value in values.items():
                setattr(target, key, value)
        return config

    return _make


@pytest.fixture
def config(make_config: Callable[..., Config]) -> Config:
    return make_config()


@pytest.fixture
async def app(config: Config) -> AsyncIterator[FastAPI]:
    """A started Cosign app (lifespan run: database open, bootstrap + seed applied)."""
    application = create_app(config)
    async with lifespan(application):
        yield application


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {BOOTSTRAP_TOKEN}"}
