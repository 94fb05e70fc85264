"""
Runtime configuration for the Chlu query gateway.

Values come from environment variables (the CLI writes its flags into the
environment before the application is built). Config is loaded once per
process and immutable during runtime.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

__all__ = [
    "GatewayConfig",
    "IndexConfig",
    "load_gateway_config",
    "get_gateway_config",
    "reset_config_cache",
]

DEFAULT_PORT = 3005
DEFAULT_NETWORK = "experimental"
DEFAULT_DIRECTORY = Path.home() / ".chlu-query"


@dataclass(frozen=True)
class IndexConfig:
    """Relational index used for DID documents, relations and update pointers."""

    dialect: Literal["sqlite", "postgres"]
    host: str
    port: int
    database: str
    username: str
    password: str
    enable_writes: bool


@dataclass(frozen=True)
class GatewayConfig:
    host: str
    port: int
    network: str
    directory: Path
    store_backend: Literal["node", "memory"]
    seed_path: Path | None

    # IPFS HTTP API used by the node store
    ipfs_api_url: str
    ipfs_fetch_timeout_ms: int

    # Blockchain lookups (passed through, never used by the core)
    btc_token: str | None
    btc_network: str

    index: IndexConfig

    # Bounded wait for DID documents
    did_wait_timeout_ms: int
    did_poll_interval_ms: int

    @property
    def network_directory(self) -> Path:
        return self.directory / self.network


def _env_str(name: str, default: str) -> str:
    raw_val = os.getenv(name)
    if raw_val is None or not raw_val.strip():
        return default
    return raw_val.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw_val = os.getenv(name)
    if raw_val is None:
        return default
    val = raw_val.strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be boolean")


def _env_int(name: str, default: int, *, minimum: int) -> int:
    raw_val = os.getenv(name, "").strip()
    if not raw_val:
        return default
    try:
        value = int(raw_val)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def load_gateway_config() -> GatewayConfig:
    """
    Build the gateway configuration from the environment.

    Raises:
        ValueError: If a variable holds an invalid value.
    """
    store_backend = _env_str("CHLU_GATEWAY_STORE", "node").lower()
    if store_backend not in ("node", "memory"):
        raise ValueError("CHLU_GATEWAY_STORE must be node or memory")

    seed_raw = os.getenv("CHLU_GATEWAY_SEED", "").strip()
    seed_path = Path(seed_raw) if seed_raw else None

    ipfs_api_url = _env_str("IPFS_API_URL", "http://127.0.0.1:5001").rstrip("/")
    if urlparse(ipfs_api_url).scheme not in ("http", "https"):
        raise ValueError("IPFS_API_URL must be http(s)")

    dialect = _env_str("CHLU_INDEX_DIALECT", "sqlite").lower()
    if dialect not in ("sqlite", "postgres"):
        raise ValueError("CHLU_INDEX_DIALECT must be sqlite or postgres")

    btc_token = os.getenv("CHLU_BTC_TOKEN", "").strip() or None

    index = IndexConfig(
        dialect=dialect,  # type: ignore[arg-type]
        host=_env_str("CHLU_DB_HOST", "localhost"),
        port=_env_int("CHLU_DB_PORT", 5432, minimum=1),
        database=_env_str("CHLU_DB_NAME", "chlu"),
        username=_env_str("CHLU_DB_USER", "chlu"),
        password=os.getenv("CHLU_DB_PASSWORD", ""),
        enable_writes=_env_bool("CHLU_INDEX_WRITES", True),
    )

    return GatewayConfig(
        host=_env_str("CHLU_GATEWAY_HOST", "127.0.0.1"),
        port=_env_int("CHLU_GATEWAY_PORT", DEFAULT_PORT, minimum=1),
        network=_env_str("CHLU_NETWORK", DEFAULT_NETWORK),
        directory=Path(_env_str("CHLU_GATEWAY_DIRECTORY", str(DEFAULT_DIRECTORY))).expanduser(),
        store_backend=store_backend,  # type: ignore[arg-type]
        seed_path=seed_path,
        ipfs_api_url=ipfs_api_url,
        ipfs_fetch_timeout_ms=_env_int("IPFS_FETCH_TIMEOUT_MS", 10000, minimum=100),
        btc_token=btc_token,
        btc_network=_env_str("CHLU_BTC_NETWORK", "test3"),
        index=index,
        did_wait_timeout_ms=_env_int("CHLU_DID_WAIT_TIMEOUT_MS", 30000, minimum=0),
        did_poll_interval_ms=_env_int("CHLU_DID_POLL_INTERVAL_MS", 100, minimum=10),
    )


@lru_cache(maxsize=1)
def get_gateway_config() -> GatewayConfig:
    """
    Get cached gateway configuration.

    Loads once at first call, immutable thereafter.
    """
    return load_gateway_config()


def reset_config_cache() -> None:
    """Reset config cache. Only for testing."""
    get_gateway_config.cache_clear()
