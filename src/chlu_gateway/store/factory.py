from __future__ import annotations

from ..config import GatewayConfig
from ..ports.store_port import ReviewStore
from .base import ReviewIndex
from .memory import MemoryReviewStore
from .node import NodeReviewStore
from .postgres import PostgresReviewIndex
from .sqlite import SQLiteIndexConfig, SQLiteReviewIndex


def create_index(config: GatewayConfig) -> ReviewIndex:
    dialect = config.index.dialect
    if dialect == "sqlite":
        return SQLiteReviewIndex(
            SQLiteIndexConfig(
                db_path=config.network_directory / "index.sqlite",
                enable_writes=config.index.enable_writes,
            )
        )
    if dialect == "postgres":
        return PostgresReviewIndex(config.index)
    raise ValueError(f"unsupported index dialect: {dialect}")


def create_store(config: GatewayConfig) -> ReviewStore:
    wait_timeout_s = config.did_wait_timeout_ms / 1000.0
    if config.store_backend == "memory":
        if config.seed_path is not None:
            return MemoryReviewStore.from_seed_file(config.seed_path, wait_timeout_s=wait_timeout_s)
        return MemoryReviewStore(wait_timeout_s=wait_timeout_s)
    if config.store_backend == "node":
        return NodeReviewStore(
            index=create_index(config),
            ipfs_api_url=config.ipfs_api_url,
            fetch_timeout_s=config.ipfs_fetch_timeout_ms / 1000.0,
            wait_timeout_s=wait_timeout_s,
            poll_interval_s=config.did_poll_interval_ms / 1000.0,
        )
    raise ValueError(f"unsupported store backend: {config.store_backend}")
