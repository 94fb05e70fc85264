from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any


@dataclass(frozen=True)
class SQLiteIndexConfig:
    db_path: Path
    enable_writes: bool


class SQLiteReviewIndex:
    def __init__(self, config: SQLiteIndexConfig) -> None:
        self._db_path = config.db_path
        self._enable_writes = config.enable_writes
        self._lock = Lock()
        self._conn: sqlite3.Connection | None = None

    async def open(self) -> None:
        self._conn = self._connect()
        self._init_schema()

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connect(self) -> sqlite3.Connection:
        if not self._enable_writes and not self._db_path.exists():
            raise RuntimeError(f"sqlite index not found for read-only mode: {self._db_path}")
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        if not self._enable_writes:
            conn.execute("PRAGMA query_only=ON;")
        return conn

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("sqlite index is not open")
        return self._conn

    def _init_schema(self) -> None:
        if not self._enable_writes:
            return
        conn = self._require_conn()
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS did_documents (
                    did_id TEXT PRIMARY KEY,
                    document_json TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS review_updates (
                    multihash TEXT PRIMARY KEY,
                    next_multihash TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS review_records (
                    multihash TEXT PRIMARY KEY,
                    author_did TEXT,
                    subject_did TEXT,
                    created_at_utc TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS review_records_author ON review_records(author_did)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS review_records_subject ON review_records(subject_did)"
            )

    async def get_did_document(self, did_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._require_conn().execute(
                "SELECT document_json FROM did_documents WHERE did_id = ?",
                (did_id,),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def get_next_version(self, multihash: str) -> str | None:
        with self._lock:
            row = self._require_conn().execute(
                "SELECT next_multihash FROM review_updates WHERE multihash = ?",
                (multihash,),
            ).fetchone()
        return None if row is None else row[0]

    async def get_reviews_written_by_did(self, did_id: str) -> list[dict[str, Any]]:
        return self._relation("author_did", did_id)

    async def get_reviews_about_did(self, did_id: str) -> list[dict[str, Any]]:
        return self._relation("subject_did", did_id)

    def _relation(self, column: str, did_id: str) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._require_conn().execute(
                f"SELECT multihash FROM review_records WHERE {column} = ? ORDER BY rowid ASC",
                (did_id,),
            ).fetchall()
        return [{"multihash": row[0]} for row in rows]
