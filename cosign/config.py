"""Config loading for Cosign.

Reads `.cosign/config.yaml` (or `~/.cosign/config.yaml`).
Raises SystemExit on parse errors, a missing or unsupported `version` field,
or invalid values. If no config file is found, returns defaults (safe to run
without config).

Config search order:
  1. `config_path` argument (if provided - for testing or explicit override)
  2. COSIGN_CONFIG environment variable (if set)
  3. `.cosign/config.yaml` (working directory - for development)
  4. `~/.cosign/config.yaml` (home directory - for production deployments)

Environment variable overrides (applied after the file):
  COSIGN_PORT             - server.port
  COSIGN_DB               - database.path
  COSIGN_BOOTSTRAP_TOKEN  - auth.bootstrap_token
  COSIGN_CORS_ORIGINS     - cors.initial_origins (comma separated)

Example:

    version: 1
    server:
      host: 127.0.0.1
      port: 8080
    database:
      path: ~/.cosign/cosign.db
      wal: true
    auth:
      bootstrap_token_file: /run/secrets/cosign_bootstrap
      admin_rate_limit: 20/minute
    cors:
      initial_origins:
        - https://campaign.example.org
    rate_limit:
      rate: 10
      burst: 20
      max_clients: 10000
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from cosign.constants import (
    DEFAULT_ADMIN_RATE_LIMIT,
    DEFAULT_BURST,
    DEFAULT_MAX_CLIENTS,
    DEFAULT_RATE_PER_SECOND,
)
from cosign.storage.database import DEFAULT_DB_PATH
from cosign.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (COSIGN_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".cosign/config.yaml",
    os.path.expanduser("~/.cosign/config.yaml"),
]


def _fail(msg: str) -> NoReturn:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    raise SystemExit(1)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class DatabaseConfig:
    """SQLite database location. ``:memory:`` is accepted (tests, demos)."""

    path: str = DEFAULT_DB_PATH
    wal: bool = False


@dataclass
class AuthConfig:
    """API key settings.

    bootstrap_token:      ``{id}.{secret}`` inserted once into an empty key store.
    bootstrap_token_file: Read the bootstrap token from this file instead
                          (e.g. a mounted secret). Ignored when bootstrap_token is set.
    admin_rate_limit:     slowapi limit string for the key-management routes.
    """

    bootstrap_token: Optional[str] = None
    bootstrap_token_file: Optional[str] = None
    admin_rate_limit: str = DEFAULT_ADMIN_RATE_LIMIT

    def resolve_bootstrap_token(self) -> Optional[str]:
        """Return the bootstrap token from config or file, or None if neither is set.

        Raises:
            SystemExit(1): If bootstrap_token_file is set but unreadable.
        """
        if self.bootstrap_token:
            return self.bootstrap_token.strip()
        if not self.bootstrap_token_file:
            return None
        path = os.path.expanduser(self.bootstrap_token_file)
        try:
            with open(path) as fh:
                token = fh.read().strip()
        except OSError as exc:
            _fail(f"Could not read auth.bootstrap_token_file {path}: {exc}")
        return token or None


@dataclass
class CORSConfig:
    """Origins seeded into an empty whitelist at startup."""

    initial_origins: list[str] = field(default_factory=list)


@dataclass
class RateLimitConfig:
    """Per-client token bucket for public mutation routes."""

    rate: float = DEFAULT_RATE_PER_SECOND
    burst: int = DEFAULT_BURST
    max_clients: int = DEFAULT_MAX_CLIENTS


@dataclass
class Config:
    """Root configuration object populated from .cosign/config.yaml.

    All fields have safe defaults; Cosign can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On a section that is not a mapping or an invalid value.
        """
        server_raw = _section(raw, "server")
        server = ServerConfig(
            host=str(server_raw.get("host", "127.0.0.1")),
            port=_int(server_raw.get("port", 8080), "server.port"),
        )

        database_raw = _section(raw, "database")
        database = DatabaseConfig(
            path=str(database_raw.get("path", DEFAULT_DB_PATH)),
            wal=bool(database_raw.get("wal", False)),
        )

        auth_raw = _section(raw, "auth")
        auth = AuthConfig(
            bootstrap_token=_optional_str(auth_raw.get("bootstrap_token"), "auth.bootstrap_token"),
            bootstrap_token_file=_optional_str(
                auth_raw.get("bootstrap_token_file"), "auth.bootstrap_token_file"
            ),
            admin_rate_limit=str(auth_raw.get("admin_rate_limit", DEFAULT_ADMIN_RATE_LIMIT)),
        )

        cors_raw = _section(raw, "cors")
        initial = cors_raw.get("initial_origins", [])
        if not isinstance(initial, list):
            _fail("cors.initial_origins must be a list of origins.")
        cors = CORSConfig(initial_origins=[str(o) for o in initial])

        rl_raw = _section(raw, "rate_limit")
        rate_limit = RateLimitConfig(
            rate=_positive_float(rl_raw.get("rate", DEFAULT_RATE_PER_SECOND), "rate_limit.rate"),
            burst=_positive_int(rl_raw.get("burst", DEFAULT_BURST), "rate_limit.burst"),
            max_clients=_positive_int(
                rl_raw.get("max_clients", DEFAULT_MAX_CLIENTS), "rate_limit.max_clients"
            ),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            database=database,
            auth=auth,
            cors=cors,
            rate_limit=rate_limit,
            path=path,
        )


# ─── Value helpers ───────────────────────────────────────────────────────────


def _section(raw: dict, name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _fail(f"'{name}' must be a mapping.")
    return value


def _optional_str(value: Any, name: str) -> Optional[str]:
    # YAML reads an all-digit token as an int
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        _fail(f"{name} must be a string.")
    return str(value)


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        _fail(f"{name} must be an integer, got {value!r}.")
    try:
        return int(value)
    except (TypeError, ValueError):
        _fail(f"{name} must be an integer, got {value!r}.")


def _positive_int(value: Any, name: str) -> int:
    result = _int(value, name)
    if result <= 0:
        _fail(f"{name} must be greater than zero, got {value!r}.")
    return result


def _positive_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        _fail(f"{name} must be a number, got {value!r}.")
    if result <= 0:
        _fail(f"{name} must be greater than zero, got {value!r}.")
    return result


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate Cosign configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises SystemExit(1).
    Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid values, or an invalid ``COSIGN_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("COSIGN_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"Failed to parse {found_path}: {exc}\n"
            "Cosign refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "Cosign is configured to bind on 0.0.0.0 (all interfaces). "
            "Rate limiting trusts X-Forwarded-For; run it behind a proxy that sets it."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        database=config.database.path,
        seeded_origins=len(config.cors.initial_origins),
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If COSIGN_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("COSIGN_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(f"COSIGN_PORT environment variable is not a valid integer: '{env_port}'")

    env_db = os.environ.get("COSIGN_DB")
    if env_db:
        config.database.path = env_db

    env_token = os.environ.get("COSIGN_BOOTSTRAP_TOKEN")
    if env_token:
        config.auth.bootstrap_token = env_token

    env_origins = os.environ.get("COSIGN_CORS_ORIGINS")
    if env_origins is not None:
        config.cors.initial_origins = [o.strip() for o in env_origins.split(",") if o.strip()]
