from __future__ import annotations

from fastapi.testclient import TestClient

from chlu_gateway.app import create_app
from chlu_gateway.store.memory import MemoryReviewStore
from store_stub import VALID_MULTIHASH, RecordingStore


def _store() -> RecordingStore:
    return RecordingStore(
        reviews={VALID_MULTIHASH: {"review": "hello world", "editable": False}},
        dids={"did:chlu:abc": {"content": "data", "editable": True}},
        written_by={"did:chlu:abc": [{"content": "data"}]},
        about={"did:chlu:abc": [{"content": "data"}]},
    )


def test_lifespan_starts_and_stops_store() -> None:
    store = _store()
    app = create_app(store=store)
    with TestClient(app) as client:
        assert store.started is True
        assert store.stopped is False
        assert client.get("/healthz").json() == {"ok": True}
    assert store.stopped is True


def test_banner() -> None:
    with TestClient(create_app(store=_store())) as client:
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.text == "Chlu API Query"
        assert resp.headers["content-type"].startswith("text/plain")


def test_get_review_record() -> None:
    store = _store()
    with TestClient(create_app(store=store)) as client:
        assert client.get("/api/v1/reviews/lol").status_code == 400
        assert store.calls_to("read_review_record") == []

        resp = client.get(f"/api/v1/reviews/{VALID_MULTIHASH}")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"
        assert resp.json() == {"review": "hello world"}

        resp = client.get(f"/api/v1/reviews/{VALID_MULTIHASH}?getLatestVersion=false")
        assert resp.status_code == 200
        assert resp.json() == {"review": "hello world"}

    calls = store.calls_to("read_review_record")
    assert calls[0] == (
        (VALID_MULTIHASH,),
        {"get_latest_version": True, "validate": {"throw_errors": False}},
    )
    assert calls[1] == (
        (VALID_MULTIHASH,),
        {"get_latest_version": False, "validate": {"throw_errors": False}},
    )


def test_get_latest_version_only_disabled_by_literal_false() -> None:
    store = _store()
    with TestClient(create_app(store=store)) as client:
        for query in ("getLatestVersion=true", "getLatestVersion=0", "getLatestVersion=", "getLatestVersion=False"):
            assert client.get(f"/api/v1/reviews/{VALID_MULTIHASH}?{query}").status_code == 200
    flags = [kwargs["get_latest_version"] for _, kwargs in store.calls_to("read_review_record")]
    assert flags == [True, True, True, True]


def test_invalid_review_id_message() -> None:
    with TestClient(create_app(store=_store())) as client:
        resp = client.get("/api/v1/reviews/lol")
        assert resp.json() == {"message": "Multihash lol is invalid"}


def test_missing_review_record_is_404() -> None:
    missing = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
    with TestClient(create_app(store=_store())) as client:
        resp = client.get(f"/api/v1/reviews/{missing}")
        assert resp.status_code == 404
        assert resp.json() == {"message": f"Review Record {missing} not found"}


def test_upstream_error_is_opaque_500() -> None:
    store = RecordingStore(error=RuntimeError("ipfs unreachable"))
    with TestClient(create_app(store=store)) as client:
        resp = client.get(f"/api/v1/reviews/{VALID_MULTIHASH}")
        assert resp.status_code == 500
        assert resp.json() == {"message": "ipfs unreachable"}
        resp = client.get("/api/v1/dids/did:chlu:abc")
        assert resp.status_code == 500


def test_upstream_error_without_message() -> None:
    store = RecordingStore(error=RuntimeError())
    with TestClient(create_app(store=store)) as client:
        resp = client.get("/api/v1/dids/did:chlu:abc/reviews/about")
        assert resp.status_code == 500
        assert resp.json() == {"message": "Unknown Error"}


def test_get_did() -> None:
    store = _store()
    with TestClient(create_app(store=store)) as client:
        assert client.get("/api/v1/dids/lol").status_code == 400
        resp = client.get("/api/v1/dids/did:chlu:notexists")
        assert resp.status_code == 404
        assert resp.json() == {"message": "DID did:chlu:notexists not found"}
        resp = client.get("/api/v1/dids/did:chlu:abc")
        assert resp.status_code == 200
        assert resp.json() == {"content": "data", "editable": True}
    assert (("did:chlu:abc", False), {}) in store.calls_to("get_did")


def test_wait_until_present_only_enabled_by_literal_true() -> None:
    store = _store()
    with TestClient(create_app(store=store)) as client:
        client.get("/api/v1/dids/did:chlu:abc?waitUntilPresent=true")
        client.get("/api/v1/dids/did:chlu:abc?waitUntilPresent=1")
    flags = [args[1] for args, _ in store.calls_to("get_did")]
    assert flags == [True, False]


def test_get_reviews_written_by() -> None:
    with TestClient(create_app(store=_store())) as client:
        assert client.get("/api/v1/dids/lol/reviews/writtenby").status_code == 400
        resp = client.get("/api/v1/dids/did:chlu:abc/reviews/writtenby")
        assert resp.status_code == 200
        assert resp.json() == [{"content": "data"}]
        resp = client.get("/api/v1/dids/did:chlu:def/reviews/writtenby")
        assert resp.status_code == 200
        assert resp.json() == []


def test_get_reviews_about() -> None:
    with TestClient(create_app(store=_store())) as client:
        assert client.get("/api/v1/dids/lol/reviews/about").status_code == 400
        resp = client.get("/api/v1/dids/did:chlu:abc/reviews/about")
        assert resp.status_code == 200
        assert resp.json() == [{"content": "data"}]
        resp = client.get("/api/v1/dids/did:chlu:def/reviews/about")
        assert resp.status_code == 200
        assert resp.json() == []


def test_cors_headers_present() -> None:
    with TestClient(create_app(store=_store())) as client:
        resp = client.get("/api/v1/dids/did:chlu:abc", headers={"origin": "https://example.org"})
        assert resp.headers["access-control-allow-origin"] == "*"


def test_request_id_is_echoed() -> None:
    with TestClient(create_app(store=_store())) as client:
        resp = client.get("/healthz", headers={"x-request-id": "req-1"})
        assert resp.headers["x-request-id"] == "req-1"


def test_memory_store_end_to_end_follows_updates() -> None:
    latest = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
    store = MemoryReviewStore(
        reviews={
            VALID_MULTIHASH: {"review": "v1", "editable": True},
            latest: {"review": "v2", "editable": True},
        },
        updates={VALID_MULTIHASH: latest},
    )
    with TestClient(create_app(store=store)) as client:
        assert client.get(f"/api/v1/reviews/{VALID_MULTIHASH}").json() == {"review": "v2"}
        resp = client.get(f"/api/v1/reviews/{VALID_MULTIHASH}?getLatestVersion=false")
        assert resp.json() == {"review": "v1"}


def test_record_with_nan_returns_json_error_body() -> None:
    store = MemoryReviewStore(reviews={VALID_MULTIHASH: {"rating": float("nan"), "editable": True}})
    with TestClient(create_app(store=store)) as client:
        resp = client.get(f"/api/v1/reviews/{VALID_MULTIHASH}")
        assert resp.status_code == 500
        assert resp.headers["content-type"] == "application/json"
        assert resp.json() == {
            "message": f"Review Record {VALID_MULTIHASH} is not representable as JSON"
        }
