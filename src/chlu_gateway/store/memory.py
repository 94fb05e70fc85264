from __future__ import annotations

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Mapping

from ..ports.store_port import ValidateOptions
from .base import check_record, follow_updates


class MemoryReviewStore:
    """
    In-process review store.

    Holds review records, update pointers, DID documents and relations in
    dictionaries. Used for development and tests; ``put_did`` wakes any
    request waiting for that DID.
    """

    def __init__(
        self,
        *,
        reviews: Mapping[str, Any] | None = None,
        updates: Mapping[str, str] | None = None,
        dids: Mapping[str, dict[str, Any]] | None = None,
        reviews_written_by: Mapping[str, list[dict[str, Any]]] | None = None,
        reviews_about: Mapping[str, list[dict[str, Any]]] | None = None,
        wait_timeout_s: float = 30.0,
    ) -> None:
        self._reviews: dict[str, Any] = dict(reviews or {})
        self._updates: dict[str, str] = dict(updates or {})
        self._dids: dict[str, dict[str, Any]] = dict(dids or {})
        self._written_by: dict[str, list[dict[str, Any]]] = dict(reviews_written_by or {})
        self._about: dict[str, list[dict[str, Any]]] = dict(reviews_about or {})
        self._wait_timeout_s = wait_timeout_s
        self._cond = asyncio.Condition()
        self.started = False

    @classmethod
    def from_seed_file(cls, path: Path, *, wait_timeout_s: float = 30.0) -> "MemoryReviewStore":
        if not path.exists():
            raise FileNotFoundError(f"Seed file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, Mapping):
            raise ValueError("seed file must contain an object")
        return cls(
            reviews=raw.get("reviews"),
            updates=raw.get("updates"),
            dids=raw.get("dids"),
            reviews_written_by=raw.get("reviews_written_by"),
            reviews_about=raw.get("reviews_about"),
            wait_timeout_s=wait_timeout_s,
        )

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def put_did(self, did_id: str, document: dict[str, Any]) -> None:
        async with self._cond:
            self._dids[did_id] = document
            self._cond.notify_all()

    async def _next_version(self, multihash: str) -> str | None:
        return self._updates.get(multihash)

    async def read_review_record(
        self,
        multihash: str,
        *,
        get_latest_version: bool,
        validate: ValidateOptions,
    ) -> Any:
        if get_latest_version:
            multihash = await follow_updates(multihash, self._next_version)
        if multihash not in self._reviews:
            return None
        record = copy.deepcopy(self._reviews[multihash])
        return check_record(multihash, record, validate)

    async def get_did(self, did_id: str, wait_until_present: bool = False) -> dict[str, Any] | None:
        document = self._dids.get(did_id)
        if document is None and wait_until_present:
            async with self._cond:
                try:
                    await asyncio.wait_for(
                        self._cond.wait_for(lambda: did_id in self._dids),
                        timeout=self._wait_timeout_s,
                    )
                except asyncio.TimeoutError:
                    return None
                document = self._dids[did_id]
        return copy.deepcopy(document)

    async def get_reviews_written_by_did(self, did_id: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._written_by.get(did_id, []))

    async def get_reviews_about_did(self, did_id: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._about.get(did_id, []))
