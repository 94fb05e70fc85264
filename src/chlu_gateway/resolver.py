"""
Query resolution for the Chlu gateway.

Each resolver gates its identifier, makes exactly one call into the review
store and returns a tagged outcome. Resolvers never raise for store faults;
any exception from the store becomes ``UpstreamError``. Cancellation is not
intercepted, so an aborted request cancels the awaited store call.
"""
from __future__ import annotations

import logging
from typing import Any

from .identifiers import is_content_identifier, is_did_identifier
from .outcome import Found, InvalidInput, NotFound, Outcome, UpstreamError, outcome_label
from .ports.store_port import ReviewStore, ValidateOptions

__all__ = [
    "resolve_record",
    "resolve_identity",
    "resolve_authored_by",
    "resolve_about",
]

_LOGGER = logging.getLogger(__name__)


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def _log_outcome(event: str, outcome: Outcome, **fields: Any) -> None:
    parts = " ".join(f"{key}={value}" for key, value in fields.items())
    label = outcome_label(outcome)
    if isinstance(outcome, UpstreamError):
        _LOGGER.warning("%s %s outcome=%s error=%s", event, parts, label, outcome.message)
    else:
        _LOGGER.info("%s %s outcome=%s", event, parts, label)


async def resolve_record(
    store: ReviewStore,
    multihash: str,
    *,
    get_latest_version: bool = True,
) -> Outcome:
    """
    Resolve a review record by content identifier.

    With ``get_latest_version`` the store follows the update chain to the
    current head; otherwise the exact version named by ``multihash`` is read.
    Validation is always reported, never raised, so a malformed record that
    could still be retrieved resolves to ``Found``.
    """
    fields = {"multihash": multihash, "get_latest_version": _yes_no(get_latest_version)}
    if not is_content_identifier(multihash):
        outcome: Outcome = InvalidInput(f"Multihash {multihash} is invalid")
        _log_outcome("record.resolve", outcome, **fields)
        return outcome

    validate: ValidateOptions = {"throw_errors": False}
    try:
        record = await store.read_review_record(
            multihash,
            get_latest_version=get_latest_version,
            validate=validate,
        )
    except Exception as exc:
        _LOGGER.exception("record.resolve.error multihash=%s", multihash)
        outcome = UpstreamError(str(exc) or None)
    else:
        outcome = NotFound() if record is None else Found(record)
    _log_outcome("record.resolve", outcome, **fields)
    return outcome


async def resolve_identity(
    store: ReviewStore,
    did_id: str,
    *,
    wait_until_present: bool = False,
) -> Outcome:
    fields = {"did": did_id, "wait_until_present": _yes_no(wait_until_present)}
    if not is_did_identifier(did_id):
        outcome: Outcome = InvalidInput(f"DID ID {did_id} is invalid")
        _log_outcome("did.resolve", outcome, **fields)
        return outcome

    try:
        document = await store.get_did(did_id, wait_until_present)
    except Exception as exc:
        _LOGGER.exception("did.resolve.error did=%s", did_id)
        outcome = UpstreamError(str(exc) or None)
    else:
        # An absent document may still be propagating; that is not an error.
        outcome = NotFound() if document is None else Found(document)
    _log_outcome("did.resolve", outcome, **fields)
    return outcome


async def _resolve_relation(store: ReviewStore, did_id: str, *, direction: str) -> Outcome:
    fields = {"did": did_id, "direction": direction}
    if not is_did_identifier(did_id):
        outcome: Outcome = InvalidInput(f"DID ID {did_id} is invalid")
        _log_outcome("relation.resolve", outcome, **fields)
        return outcome

    try:
        if direction == "writtenby":
            reviews = await store.get_reviews_written_by_did(did_id)
        else:
            reviews = await store.get_reviews_about_did(did_id)
    except Exception as exc:
        _LOGGER.exception("relation.resolve.error did=%s direction=%s", did_id, direction)
        outcome = UpstreamError(str(exc) or None)
    else:
        outcome = Found(list(reviews or []))
    _log_outcome("relation.resolve", outcome, **fields)
    return outcome


async def resolve_authored_by(store: ReviewStore, did_id: str) -> Outcome:
    """Reviews written by ``did_id``; an empty list is ``Found([])``."""
    return await _resolve_relation(store, did_id, direction="writtenby")


async def resolve_about(store: ReviewStore, did_id: str) -> Outcome:
    """Reviews whose subject is ``did_id``; an empty list is ``Found([])``."""
    return await _resolve_relation(store, did_id, direction="about")
