#!/usr/bin/env python3
import asyncio
import base64
import binascii
import functools
import hmac
import logging
import os
import time
from typing import Any

import anyio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from app.pixabay.client import PixabayClient
from catalog.counters import CounterService
from catalog.errors import CatalogError, FeedCancelled, ValidationError
from catalog.feed import FanInAggregator
from catalog.inverted_index import InvertedIndex
from catalog.normalize import normalize_hit
from catalog.types import MediaType
from catalog.writer import CatalogWriter
from config.settings import (
    APP_NAME,
    APP_NS,
    BASIC_AUTH_PASS,
    BASIC_AUTH_USER,
    CORS_ORIGINS,
    FEED_COALESCE,
    FEED_DEFAULT_LIMIT,
    FEED_WAIT_SECONDS,
    INDEX_MAX_ENTRIES_PER_TERM,
    INDEX_PRUNE_INTERVAL_MINUTES,
    PORT,
    STORE_BACKEND,
)
from db.memory_store import MemoryStore
from db.sqlite_store import SqliteStore
from db.store import StoreNamespace
from engine.json_utils import safe_json_dumps
from engine.paths import DB_PATH, LOG_DIR, ensure_dir
from engine.runtime import get_runtime_info
from scheduler.jobs.index_prune import schedule_index_prune

DEFAULT_QUERY = "nature"
DEFAULT_PER_PAGE = {MediaType.IMAGE: 24, MediaType.VIDEO: 12}
DISCONNECT_POLL_SECONDS = 0.05
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_BASIC_AUTH_ENABLED = bool(BASIC_AUTH_USER and BASIC_AUTH_PASS)

access_logger = logging.getLogger("media_explorer.access")


def _check_basic_auth(header_value):
    if not header_value or not header_value.startswith("Basic "):
        return False
    token = header_value[6:].strip()
    try:
        decoded = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    if ":" not in decoded:
        return False
    user, password = decoded.split(":", 1)
    return hmac.compare_digest(user, BASIC_AUTH_USER) and hmac.compare_digest(password, BASIC_AUTH_PASS)


def _setup_logging(log_dir):
    ensure_dir(log_dir)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, "media_explorer.log")
    formatter = logging.Formatter(LOG_FORMAT)
    root.setLevel(logging.INFO)
    has_file = any(
        isinstance(handler, logging.FileHandler)
        and os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path)
        for handler in root.handlers
    )
    # FileHandler subclasses StreamHandler; only a plain StreamHandler counts as console.
    has_console = any(type(handler) is logging.StreamHandler for handler in root.handlers)
    if not has_file:
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.INFO)
        root.addHandler(file_handler)
    if not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console.setLevel(logging.INFO)
        root.addHandler(console)


def _build_store(backend):
    if backend == "memory":
        return MemoryStore()
    if backend == "sqlite":
        return SqliteStore(str(DB_PATH))
    raise ValueError(f"Unsupported store backend: {backend!r}")


def _text_param(*values, default=""):
    for value in values:
        if value is not None and str(value) != "":
            return str(value)
    return default


def _int_param(name, raw, default):
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc
    if value < 0:
        raise ValidationError(f"{name} must be non-negative")
    return value


def _body_field(payload, name):
    value = getattr(payload, name, None) if payload is not None else None
    # Only scalar ids count; objects, lists and booleans are treated as missing.
    if value is None or isinstance(value, bool) or not isinstance(value, (str, int)):
        return ""
    return str(value).strip()


def _unexpected_error(action, exc):
    message = str(exc) or exc.__class__.__name__
    return CatalogError(f"{action} failed: {message}")


class CounterRequest(BaseModel):
    id: Any = None
    uid: Any = None


class SafeJSONResponse(JSONResponse):
    def render(self, content):
        return safe_json_dumps(content).encode("utf-8")


app = FastAPI(
    title=APP_NAME,
    description="Media catalog API: provider search ingestion, term feeds, likes and downloads.",
    default_response_class=SafeJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def basic_auth_middleware(request: Request, call_next):
    if not _BASIC_AUTH_ENABLED:
        return await call_next(request)
    if request.method == "OPTIONS":
        return await call_next(request)
    auth_header = request.headers.get("authorization")
    if not _check_basic_auth(auth_header):
        return PlainTextResponse(
            "Unauthorized",
            status_code=401,
            headers={"WWW-Authenticate": "Basic"},
        )
    return await call_next(request)


@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    started = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - started) * 1000
    access_logger.info("%s %s %s %.1f ms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return SafeJSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = errors[0].get("msg", "invalid request") if errors else "invalid request"
    logging.info("%s %s rejected: %s", request.method, request.url.path, detail)
    return SafeJSONResponse(status_code=400, content={"ok": False, "error": f"invalid request: {detail}"})


@app.on_event("startup")
async def startup():
    _setup_logging(LOG_DIR)
    app.state.store = _build_store(STORE_BACKEND)
    app.state.namespace = StoreNamespace(app.state.store, APP_NS)
    app.state.writer = CatalogWriter(app.state.namespace)
    app.state.index = InvertedIndex(app.state.namespace)
    app.state.counters = CounterService(app.state.namespace)
    app.state.feed = FanInAggregator(
        app.state.index,
        app.state.writer,
        wait_seconds=FEED_WAIT_SECONDS,
        coalesce=FEED_COALESCE,
    )
    app.state.provider = PixabayClient()
    app.state.shutdown_event = asyncio.Event()
    app.state.scheduler = AsyncIOScheduler(timezone="UTC")
    schedule_index_prune(
        app.state.scheduler,
        app.state.index,
        max_entries=INDEX_MAX_ENTRIES_PER_TERM,
        interval_minutes=INDEX_PRUNE_INTERVAL_MINUTES,
    )
    app.state.scheduler.start()
    logging.info("%s ready (store=%s namespace=%s port=%s)", APP_NAME, STORE_BACKEND, APP_NS, PORT)


@app.on_event("shutdown")
async def shutdown():
    app.state.shutdown_event.set()
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
    provider = getattr(app.state, "provider", None)
    if provider is not None and hasattr(provider, "close"):
        provider.close()
    store = getattr(app.state, "store", None)
    if store is not None:
        store.close()


async def _cancel_on_disconnect(request: Request, cancel: asyncio.Event):
    shutdown_event = app.state.shutdown_event
    while not cancel.is_set():
        if shutdown_event.is_set() or await request.is_disconnected():
            cancel.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@app.get("/api/health")
async def api_health():
    return {"ok": True, "service": APP_NAME, "runtime": get_runtime_info()}


@app.get("/api/search")
async def api_search(
    query: str | None = None,
    q: str | None = None,
    media_type: str | None = Query(default=None, alias="type"),
    category: str | None = None,
    orientation: str | None = None,
    safesearch: str | None = None,
    per_page: str | None = None,
):
    search_query = _text_param(query, q, default=DEFAULT_QUERY)
    try:
        kind = MediaType(_text_param(media_type, default=MediaType.IMAGE.value).lower())
    except ValueError as exc:
        raise ValidationError("type must be 'image' or 'video'") from exc
    page_size = _int_param("per_page", per_page, DEFAULT_PER_PAGE[kind])

    term = search_query.lower()
    items = []
    try:
        hits = await anyio.to_thread.run_sync(
            functools.partial(
                app.state.provider.search,
                search_query,
                kind,
                category=_text_param(category),
                orientation=_text_param(orientation),
                safesearch=_text_param(safesearch, default="true"),
                per_page=page_size,
            )
        )
        for hit in hits:
            record = normalize_hit(hit, kind)
            if not record.id:
                logging.warning("Skipping provider hit without id for query=%r", search_query)
                continue
            stored = await app.state.writer.put(record)
            await app.state.index.index(term, stored.id)
            items.append(stored.to_dict())
    except CatalogError:
        raise
    except Exception as exc:
        raise _unexpected_error("search", exc) from exc
    return {"ok": True, "count": len(items), "query": search_query, "type": kind.value, "items": items}


@app.get("/api/feed")
async def api_feed(
    request: Request,
    query: str | None = None,
    q: str | None = None,
    limit: str | None = None,
):
    term = _text_param(query, q, default=DEFAULT_QUERY).lower()
    max_items = _int_param("limit", limit, FEED_DEFAULT_LIMIT)
    cancel = asyncio.Event()
    watcher = asyncio.ensure_future(_cancel_on_disconnect(request, cancel))
    try:
        items = await app.state.feed.list_by_term(term, max_items, cancel=cancel)
    except FeedCancelled:
        logging.info("Feed request for term=%r aborted before completion", term)
        raise
    except CatalogError:
        raise
    except Exception as exc:
        raise _unexpected_error("feed", exc) from exc
    finally:
        watcher.cancel()
    return {"ok": True, "count": len(items), "query": term, "items": items}


@app.get("/api/media")
async def api_media(media_id: str | None = Query(default=None, alias="id")):
    media_id = _text_param(media_id).strip()
    if not media_id:
        raise ValidationError("id is required")
    item = await app.state.writer.get_with_counters(media_id)
    return {"ok": True, "item": item}


@app.post("/api/like")
async def api_like(payload: CounterRequest | None = Body(default=None)):
    media_id, uid = _body_field(payload, "id"), _body_field(payload, "uid")
    if not media_id or not uid:
        raise ValidationError("id and uid required")
    result = await app.state.counters.like(media_id, uid)
    return {"ok": True, **result}


@app.post("/api/unlike")
async def api_unlike(payload: CounterRequest | None = Body(default=None)):
    media_id, uid = _body_field(payload, "id"), _body_field(payload, "uid")
    if not media_id or not uid:
        raise ValidationError("id and uid required")
    result = await app.state.counters.unlike(media_id, uid)
    return {"ok": True, **result}


@app.post("/api/download")
async def api_download(payload: CounterRequest | None = Body(default=None)):
    media_id = _body_field(payload, "id")
    if not media_id:
        raise ValidationError("id required")
    downloads = await app.state.counters.download(media_id)
    return {"ok": True, "downloads": downloads}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
