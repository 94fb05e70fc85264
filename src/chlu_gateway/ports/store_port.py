from __future__ import annotations

from typing import Any, Protocol, TypedDict


class ValidateOptions(TypedDict):
    throw_errors: bool


class ReviewStore(Protocol):
    """
    Collaborator that performs the actual content and identity lookups.

    Implementations own networking, replication and validation. The gateway
    only reads through this interface and never mutates store state.
    """

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def read_review_record(
        self,
        multihash: str,
        *,
        get_latest_version: bool,
        validate: ValidateOptions,
    ) -> Any:
        """
        Read a review record.

        Args:
            multihash: Content identifier of the record.
            get_latest_version: Follow the update pointer chain to its head
                instead of returning the exact version named by ``multihash``.
            validate: With ``throw_errors`` false, validation problems are
                reported on the returned record rather than raised.

        Returns:
            The record, or None if the content is absent.
        """
        ...

    async def get_did(self, did_id: str, wait_until_present: bool = False) -> dict[str, Any] | None:
        """
        Return the DID document, or None when it is not visible locally.

        With ``wait_until_present`` the call waits for the document up to a
        store-defined timeout and returns None when the timeout elapses.
        """
        ...

    async def get_reviews_written_by_did(self, did_id: str) -> list[dict[str, Any]]:
        ...

    async def get_reviews_about_did(self, did_id: str) -> list[dict[str, Any]]:
        ...
