from __future__ import annotations

import json
from typing import Any

import asyncpg

from ..config import IndexConfig

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS did_documents (
        did_id TEXT PRIMARY KEY,
        document_json TEXT NOT NULL,
        updated_at_utc TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS review_updates (
        multihash TEXT PRIMARY KEY,
        next_multihash TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS review_records (
        id BIGSERIAL PRIMARY KEY,
        multihash TEXT UNIQUE NOT NULL,
        author_did TEXT,
        subject_did TEXT,
        created_at_utc TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS review_records_author ON review_records(author_did)",
    "CREATE INDEX IF NOT EXISTS review_records_subject ON review_records(subject_did)",
)


class PostgresReviewIndex:
    """Review index backed by PostgreSQL, shared through one asyncpg pool."""

    def __init__(self, config: IndexConfig) -> None:
        self._config = config
        self._pool: asyncpg.Pool | None = None

    async def open(self) -> None:
        self._pool = await asyncpg.create_pool(
            host=self._config.host,
            port=self._config.port,
            database=self._config.database,
            user=self._config.username,
            password=self._config.password or None,
            min_size=1,
            max_size=10,
        )
        if self._config.enable_writes:
            async with self._pool.acquire() as conn:
                for statement in _SCHEMA:
                    await conn.execute(statement)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("postgres index is not open")
        return self._pool

    async def get_did_document(self, did_id: str) -> dict[str, Any] | None:
        value = await self._require_pool().fetchval(
            "SELECT document_json FROM did_documents WHERE did_id = $1",
            did_id,
        )
        return None if value is None else json.loads(value)

    async def get_next_version(self, multihash: str) -> str | None:
        return await self._require_pool().fetchval(
            "SELECT next_multihash FROM review_updates WHERE multihash = $1",
            multihash,
        )

    async def get_reviews_written_by_did(self, did_id: str) -> list[dict[str, Any]]:
        rows = await self._require_pool().fetch(
            "SELECT multihash FROM review_records WHERE author_did = $1 ORDER BY id ASC",
            did_id,
        )
        return [{"multihash": row["multihash"]} for row in rows]

    async def get_reviews_about_did(self, did_id: str) -> list[dict[str, Any]]:
        rows = await self._require_pool().fetch(
            "SELECT multihash FROM review_records WHERE subject_did = $1 ORDER BY id ASC",
            did_id,
        )
        return [{"multihash": row["multihash"]} for row in rows]
