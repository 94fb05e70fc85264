"""
Response shaping: maps resolution outcomes onto HTTP responses.

Review records pass through a projection that drops caller-relative fields.
Those values are computed against the local node's identity, so they are
meaningless (and misleading) to any other requester.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi.responses import JSONResponse

from .outcome import Found, InvalidInput, NotFound, Outcome, UpstreamError

__all__ = [
    "CALLER_RELATIVE_FIELDS",
    "UNKNOWN_ERROR",
    "create_error",
    "strip_caller_relative",
    "shape_outcome",
    "to_response",
]

_LOGGER = logging.getLogger(__name__)

CALLER_RELATIVE_FIELDS: frozenset[str] = frozenset({"editable"})
UNKNOWN_ERROR = "Unknown Error"


def create_error(message: str) -> dict[str, str]:
    return {"message": message}


def strip_caller_relative(record: Any) -> Any:
    """Return ``record`` without top-level caller-relative keys. The input is not mutated."""
    if not isinstance(record, Mapping):
        return record
    return {key: value for key, value in record.items() if key not in CALLER_RELATIVE_FIELDS}


def shape_outcome(outcome: Outcome, *, resource: str, strip: bool = False) -> tuple[int, Any]:
    """
    Map an outcome to ``(status_code, body)``.

    Args:
        outcome: Result of a resolver.
        resource: Human label used in the not-found message, e.g. ``"DID did:chlu:abc"``.
        strip: Apply the caller-relative projection to a found value.
    """
    if isinstance(outcome, Found):
        body = strip_caller_relative(outcome.value) if strip else outcome.value
        return 200, body
    if isinstance(outcome, NotFound):
        return 404, create_error(f"{resource} not found")
    if isinstance(outcome, InvalidInput):
        return 400, create_error(outcome.reason)
    if isinstance(outcome, UpstreamError):
        return 500, create_error(outcome.message or UNKNOWN_ERROR)
    raise TypeError(f"unsupported outcome: {type(outcome).__name__}")


def to_response(outcome: Outcome, *, resource: str, strip: bool = False) -> JSONResponse:
    status_code, body = shape_outcome(outcome, resource=resource, strip=strip)
    try:
        return JSONResponse(status_code=status_code, content=body)
    except (TypeError, ValueError) as exc:
        # NaN, Infinity or non-JSON types in a retrieved value
        _LOGGER.warning("response.render_failed resource=%s error=%s", resource, exc)
        status_code, body = shape_outcome(
            UpstreamError(f"{resource} is not representable as JSON"), resource=resource
        )
        return JSONResponse(status_code=status_code, content=body)
