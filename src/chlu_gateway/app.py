from __future__ import annotations

import argparse
import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import GatewayConfig, get_gateway_config, reset_config_cache
from .ports.store_port import ReviewStore
from .resolver import resolve_about, resolve_authored_by, resolve_identity, resolve_record
from .shaping import to_response
from .store.factory import create_store

_LOGGER = logging.getLogger("chlu_gateway")

BANNER = "Chlu API Query"


def _configure_logging() -> None:
    if _LOGGER.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _LOGGER.addHandler(handler)
    _LOGGER.setLevel(logging.INFO)


def _log_json(level: int, message: str, **fields: Any) -> None:
    payload = {"message": message, **fields}
    _LOGGER.log(level, json.dumps(payload, ensure_ascii=True))


def _get_version() -> str:
    try:
        return version("chlu-gateway")
    except PackageNotFoundError:
        return "unknown"


def create_app(
    *,
    store: ReviewStore | None = None,
    config: GatewayConfig | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    The review store is started before the first request is served and
    stopped on shutdown. Pass ``store`` to run against a fake collaborator.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _configure_logging()
        cfg = config or get_gateway_config()
        app.state.config = cfg
        app.state.store = store if store is not None else create_store(cfg)
        if not cfg.btc_token:
            _log_json(
                logging.WARNING,
                "startup.btc_access_missing",
                detail="BTC blockchain access through BlockCypher is strongly suggested",
            )
        _log_json(
            logging.INFO,
            "store.starting",
            backend=cfg.store_backend if store is None else type(store).__name__,
            network=cfg.network,
        )
        await app.state.store.start()
        app.state.start_time = time.monotonic()
        _log_json(logging.INFO, "store.started")
        try:
            yield
        finally:
            _log_json(logging.INFO, "store.stopping")
            await app.state.store.stop()

    app = FastAPI(title=BANNER, version=_get_version(), lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id", "").strip() or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.monotonic() - start) * 1000)
            _log_json(
                logging.ERROR,
                "request.failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                latency_ms=latency_ms,
            )
            raise
        latency_ms = int((time.monotonic() - start) * 1000)
        response.headers["x-request-id"] = request_id
        _log_json(
            logging.INFO,
            "request.completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return response

    @app.get("/", response_class=PlainTextResponse)
    async def banner() -> str:
        return BANNER

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(_build_api_v1(), prefix="/api/v1")
    return app


def get_store(request: Request) -> ReviewStore:
    return request.app.state.store


def _build_api_v1() -> APIRouter:
    api = APIRouter()

    @api.get("/reviews/{multihash}")
    async def review_record(
        multihash: str,
        get_latest_version: str | None = Query(None, alias="getLatestVersion"),
        store: ReviewStore = Depends(get_store),
    ) -> JSONResponse:
        outcome = await resolve_record(
            store,
            multihash,
            get_latest_version=get_latest_version != "false",
        )
        return to_response(outcome, resource=f"Review Record {multihash}", strip=True)

    @api.get("/dids/{did_id}")
    async def did_document(
        did_id: str,
        wait_until_present: str | None = Query(None, alias="waitUntilPresent"),
        store: ReviewStore = Depends(get_store),
    ) -> JSONResponse:
        outcome = await resolve_identity(
            store,
            did_id,
            wait_until_present=wait_until_present == "true",
        )
        return to_response(outcome, resource=f"DID {did_id}")

    @api.get("/dids/{did_id}/reviews/writtenby")
    async def reviews_written_by(
        did_id: str,
        store: ReviewStore = Depends(get_store),
    ) -> JSONResponse:
        outcome = await resolve_authored_by(store, did_id)
        return to_response(outcome, resource=f"Reviews by DID {did_id}")

    @api.get("/dids/{did_id}/reviews/about")
    async def reviews_about(
        did_id: str,
        store: ReviewStore = Depends(get_store),
    ) -> JSONResponse:
        outcome = await resolve_about(store, did_id)
        return to_response(outcome, resource=f"Reviews about DID {did_id}")

    return api


_CLI_ENV = {
    "host": "CHLU_GATEWAY_HOST",
    "port": "CHLU_GATEWAY_PORT",
    "network": "CHLU_NETWORK",
    "directory": "CHLU_GATEWAY_DIRECTORY",
    "store": "CHLU_GATEWAY_STORE",
    "seed": "CHLU_GATEWAY_SEED",
    "ipfs_api": "IPFS_API_URL",
    "btc": "CHLU_BTC_TOKEN",
    "btc_network": "CHLU_BTC_NETWORK",
    "database_host": "CHLU_DB_HOST",
    "database_port": "CHLU_DB_PORT",
    "database_db": "CHLU_DB_NAME",
    "database_user": "CHLU_DB_USER",
    "database_password": "CHLU_DB_PASSWORD",
}


def _apply_cli_env(args: argparse.Namespace) -> None:
    for attr, env_name in _CLI_ENV.items():
        value = getattr(args, attr, None)
        if value is not None:
            os.environ[env_name] = str(value)
    if args.postgres:
        os.environ["CHLU_INDEX_DIALECT"] = "postgres"
    if not args.write:
        os.environ["CHLU_INDEX_WRITES"] = "0"


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command != "start":
        parser.print_help()
        return
    _apply_cli_env(args)
    reset_config_cache()
    config = get_gateway_config()
    _configure_logging()
    _log_json(logging.INFO, "gateway.starting", host=config.host, port=config.port)
    uvicorn.run(create_app(config=config), host=config.host, port=config.port, reload=False)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chlu-gateway",
        description="Reference implementation of the Chlu Query API. http://chlu.io",
    )
    parser.add_argument("--version", action="version", version=_get_version())
    sub = parser.add_subparsers(dest="command")
    start = sub.add_parser("start", help="run the Chlu Query API server")
    start.add_argument("--host")
    start.add_argument("--port", type=int)
    start.add_argument("-n", "--network", help="use a custom Chlu network instead of experimental")
    start.add_argument("-d", "--directory", help="where to store Chlu data, defaults to ~/.chlu-query")
    start.add_argument("--store", choices=("node", "memory"))
    start.add_argument("--seed", help="JSON seed file for the memory store")
    start.add_argument("--ipfs-api", help="IPFS HTTP API base URL")
    start.add_argument("--btc", help="turn on BTC blockchain access using a BlockCypher API token")
    start.add_argument("--btc-network", help="BTC network to connect to, defaults to test3")
    start.add_argument("--postgres", action="store_true", help="use a PostgreSQL index instead of SQLite")
    start.add_argument(
        "--no-write",
        dest="write",
        action="store_false",
        help="open the index read-only, useful if a collector writes to the same database",
    )
    start.add_argument("--database-host")
    start.add_argument("--database-port", type=int)
    start.add_argument("--database-db")
    start.add_argument("--database-user")
    start.add_argument("--database-password")
    return parser


app = create_app()
