from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from ..ports.store_port import ValidateOptions

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

MAX_POLL_INTERVAL_S = 2.0
MAX_UPDATE_HOPS = 1000


class StoreError(Exception):
    """Review store fault (network, storage, index)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RecordValidationError(StoreError):
    def __init__(self, multihash: str, problems: list[str]) -> None:
        super().__init__(f"Review Record {multihash} is invalid: {'; '.join(problems)}")
        self.multihash = multihash
        self.problems = problems


class ReviewIndex(Protocol):
    """Relational index of DID documents, review relations and update pointers."""

    async def open(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def get_did_document(self, did_id: str) -> dict[str, Any] | None:
        ...

    async def get_next_version(self, multihash: str) -> str | None:
        ...

    async def get_reviews_written_by_did(self, did_id: str) -> list[dict[str, Any]]:
        ...

    async def get_reviews_about_did(self, did_id: str) -> list[dict[str, Any]]:
        ...


def check_record(multihash: str, record: Any, validate: ValidateOptions) -> Any:
    """Apply structural validation, raising only when ``throw_errors`` is set."""
    problems: list[str] = []
    if not isinstance(record, dict):
        problems.append("record must be a JSON object")
    if problems:
        if validate.get("throw_errors", True):
            raise RecordValidationError(multihash, problems)
        _LOGGER.warning("record.validate multihash=%s problems=%s", multihash, problems)
    return record


async def follow_updates(
    multihash: str,
    next_version: Callable[[str], Awaitable[str | None]],
) -> str:
    """Follow the update pointer chain from ``multihash`` to its head."""
    seen = {multihash}
    current = multihash
    for _ in range(MAX_UPDATE_HOPS):
        successor = await next_version(current)
        if successor is None:
            return current
        if successor in seen:
            raise StoreError(f"update chain for {multihash} contains a cycle at {successor}")
        seen.add(successor)
        current = successor
    raise StoreError(f"update chain for {multihash} exceeds {MAX_UPDATE_HOPS} hops")


async def poll_until_present(
    lookup: Callable[[], Awaitable[T | None]],
    *,
    timeout_s: float,
    interval_s: float,
) -> T | None:
    """
    Poll ``lookup`` until it returns a value or ``timeout_s`` elapses.

    The interval doubles after each miss, capped at MAX_POLL_INTERVAL_S.
    Returns None on timeout.
    """
    deadline = time.monotonic() + timeout_s
    while True:
        value = await lookup()
        if value is not None:
            return value
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval_s, remaining))
        interval_s = min(interval_s * 2, MAX_POLL_INTERVAL_S)
