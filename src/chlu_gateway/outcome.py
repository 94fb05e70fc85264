from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

__all__ = [
    "Found",
    "NotFound",
    "InvalidInput",
    "UpstreamError",
    "Outcome",
    "outcome_label",
]


@dataclass(frozen=True)
class Found:
    value: Any


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class InvalidInput:
    reason: str


@dataclass(frozen=True)
class UpstreamError:
    message: str | None = None


Outcome = Union[Found, NotFound, InvalidInput, UpstreamError]


def outcome_label(outcome: Outcome) -> str:
    """Short tag used in resolution log lines."""
    if isinstance(outcome, Found):
        return "OK"
    if isinstance(outcome, NotFound):
        return "NOT_FOUND"
    if isinstance(outcome, InvalidInput):
        return "INVALID"
    if isinstance(outcome, UpstreamError):
        return "ERROR"
    raise TypeError(f"unsupported outcome: {type(outcome).__name__}")
