from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from ..ports.store_port import ValidateOptions
from .base import (
    RecordValidationError,
    ReviewIndex,
    StoreError,
    check_record,
    follow_updates,
    poll_until_present,
)

_LOGGER = logging.getLogger(__name__)


class NodeReviewStore:
    """
    Review store backed by an IPFS node and a relational index.

    Content blobs are fetched through the IPFS HTTP API; DID documents,
    relations and update pointers come from the index.
    """

    def __init__(
        self,
        *,
        index: ReviewIndex,
        ipfs_api_url: str,
        fetch_timeout_s: float = 10.0,
        wait_timeout_s: float = 30.0,
        poll_interval_s: float = 0.1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._index = index
        self._ipfs_api_url = ipfs_api_url.rstrip("/")
        self._fetch_timeout_s = fetch_timeout_s
        self._wait_timeout_s = wait_timeout_s
        self._poll_interval_s = poll_interval_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        await self._index.open()
        self._client = httpx.AsyncClient(
            base_url=self._ipfs_api_url,
            timeout=self._fetch_timeout_s,
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self._index.close()

    async def read_review_record(
        self,
        multihash: str,
        *,
        get_latest_version: bool,
        validate: ValidateOptions,
    ) -> Any:
        if get_latest_version:
            multihash = await follow_updates(multihash, self._index.get_next_version)
        data = await self._cat(multihash)
        if data is None:
            return None
        try:
            record: Any = json.loads(data, parse_constant=_reject_constant)
        except ValueError as exc:
            if validate.get("throw_errors", True):
                raise RecordValidationError(multihash, [f"content is not JSON: {exc}"]) from exc
            record = data.decode("utf-8", errors="replace")
        return check_record(multihash, record, validate)

    async def get_did(self, did_id: str, wait_until_present: bool = False) -> dict[str, Any] | None:
        if not wait_until_present:
            return await self._index.get_did_document(did_id)
        return await poll_until_present(
            lambda: self._index.get_did_document(did_id),
            timeout_s=self._wait_timeout_s,
            interval_s=self._poll_interval_s,
        )

    async def get_reviews_written_by_did(self, did_id: str) -> list[dict[str, Any]]:
        return await self._index.get_reviews_written_by_did(did_id)

    async def get_reviews_about_did(self, did_id: str) -> list[dict[str, Any]]:
        return await self._index.get_reviews_about_did(did_id)

    async def _cat(self, multihash: str) -> bytes | None:
        if self._client is None:
            raise StoreError("review store is not started")
        start = time.perf_counter()
        try:
            resp = await self._client.post("/api/v0/cat", params={"arg": multihash})
        except httpx.TimeoutException as exc:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            _LOGGER.warning("ipfs.cat.timeout multihash=%s elapsed_ms=%d", multihash, elapsed_ms)
            raise StoreError(f"Timed out fetching {multihash}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"IPFS request failed: {exc}") from exc
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _LOGGER.debug(
            "ipfs.cat.done multihash=%s status=%s elapsed_ms=%d",
            multihash,
            resp.status_code,
            elapsed_ms,
        )
        if resp.status_code >= 400:
            message = _ipfs_error_message(resp)
            if "not found" in message.lower():
                return None
            raise StoreError(f"IPFS cat failed: {message}", status_code=resp.status_code)
        return resp.content


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def _ipfs_error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict) and isinstance(body.get("Message"), str):
        return body["Message"]
    return resp.text[:500]
