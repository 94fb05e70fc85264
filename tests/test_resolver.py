from __future__ import annotations

import asyncio

import pytest

from chlu_gateway.outcome import Found, InvalidInput, NotFound, UpstreamError
from chlu_gateway.resolver import (
    resolve_about,
    resolve_authored_by,
    resolve_identity,
    resolve_record,
)
from store_stub import VALID_MULTIHASH, RecordingStore


def test_invalid_multihash_short_circuits_without_store_call() -> None:
    store = RecordingStore()
    outcome = asyncio.run(resolve_record(store, "lol"))
    assert outcome == InvalidInput("Multihash lol is invalid")
    assert store.calls == []


def test_record_defaults_to_latest_version_and_reported_validation() -> None:
    store = RecordingStore(reviews={VALID_MULTIHASH: {"review": "hello world"}})
    outcome = asyncio.run(resolve_record(store, VALID_MULTIHASH))
    assert outcome == Found({"review": "hello world"})
    [(args, kwargs)] = store.calls_to("read_review_record")
    assert args == (VALID_MULTIHASH,)
    assert kwargs == {"get_latest_version": True, "validate": {"throw_errors": False}}


@pytest.mark.parametrize("flag", [True, False])
def test_record_passes_latest_version_flag_through(flag: bool) -> None:
    store = RecordingStore(reviews={VALID_MULTIHASH: {"review": "x"}})
    asyncio.run(resolve_record(store, VALID_MULTIHASH, get_latest_version=flag))
    [(_, kwargs)] = store.calls_to("read_review_record")
    assert kwargs["get_latest_version"] is flag


def test_record_absence_is_not_found() -> None:
    store = RecordingStore()
    assert asyncio.run(resolve_record(store, VALID_MULTIHASH)) == NotFound()


def test_record_keeps_caller_relative_fields_until_shaping() -> None:
    record = {"review": "hello world", "editable": True}
    store = RecordingStore(reviews={VALID_MULTIHASH: record})
    outcome = asyncio.run(resolve_record(store, VALID_MULTIHASH))
    assert outcome == Found(record)


def test_record_store_fault_is_upstream_error() -> None:
    store = RecordingStore(error=RuntimeError("ipfs unreachable"))
    outcome = asyncio.run(resolve_record(store, VALID_MULTIHASH))
    assert outcome == UpstreamError("ipfs unreachable")


def test_store_fault_without_message_has_no_message() -> None:
    store = RecordingStore(error=RuntimeError())
    assert asyncio.run(resolve_record(store, VALID_MULTIHASH)) == UpstreamError(None)


def test_record_resolution_is_repeatable() -> None:
    store = RecordingStore(reviews={VALID_MULTIHASH: {"review": "x"}})
    first = asyncio.run(resolve_record(store, VALID_MULTIHASH))
    second = asyncio.run(resolve_record(store, VALID_MULTIHASH))
    assert first == second


def test_cancellation_is_not_converted_to_upstream_error() -> None:
    store = RecordingStore(error=asyncio.CancelledError())
    with pytest.raises(asyncio.CancelledError):
        asyncio.run(resolve_record(store, VALID_MULTIHASH))


def test_identity_invalid_did_short_circuits() -> None:
    store = RecordingStore()
    outcome = asyncio.run(resolve_identity(store, "lol"))
    assert outcome == InvalidInput("DID ID lol is invalid")
    assert store.calls == []


def test_identity_found_and_not_found() -> None:
    store = RecordingStore(dids={"did:chlu:abc": {"content": "data"}})
    assert asyncio.run(resolve_identity(store, "did:chlu:abc")) == Found({"content": "data"})
    assert asyncio.run(resolve_identity(store, "did:chlu:notexists")) == NotFound()


def test_identity_passes_wait_flag() -> None:
    store = RecordingStore()
    asyncio.run(resolve_identity(store, "did:chlu:abc", wait_until_present=True))
    asyncio.run(resolve_identity(store, "did:chlu:abc"))
    assert store.calls_to("get_did") == [
        (("did:chlu:abc", True), {}),
        (("did:chlu:abc", False), {}),
    ]


def test_identity_store_fault_is_upstream_error() -> None:
    store = RecordingStore(error=ValueError("index offline"))
    assert asyncio.run(resolve_identity(store, "did:chlu:abc")) == UpstreamError("index offline")


def test_relations_empty_list_is_found() -> None:
    store = RecordingStore()
    assert asyncio.run(resolve_authored_by(store, "did:chlu:def")) == Found([])
    assert asyncio.run(resolve_about(store, "did:chlu:def")) == Found([])


def test_relations_use_matching_store_direction() -> None:
    store = RecordingStore(
        written_by={"did:chlu:abc": [{"multihash": "a"}]},
        about={"did:chlu:abc": [{"multihash": "b"}]},
    )
    assert asyncio.run(resolve_authored_by(store, "did:chlu:abc")) == Found([{"multihash": "a"}])
    assert asyncio.run(resolve_about(store, "did:chlu:abc")) == Found([{"multihash": "b"}])


def test_relations_reject_non_did_without_store_call() -> None:
    store = RecordingStore()
    assert isinstance(asyncio.run(resolve_authored_by(store, "lol")), InvalidInput)
    assert isinstance(asyncio.run(resolve_about(store, "lol")), InvalidInput)
    assert store.calls == []


def test_relations_store_fault_is_upstream_error() -> None:
    store = RecordingStore(error=RuntimeError("db down"))
    assert asyncio.run(resolve_about(store, "did:chlu:abc")) == UpstreamError("db down")
