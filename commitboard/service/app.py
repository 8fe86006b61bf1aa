"""FastAPI application exposing the commitboard leaderboard, votes and sync."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import AliasChoices, BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import CommitboardConfig, default_config
from ..errors import CommitboardError, InvalidRequest, MissingCredentials, RateLimitExceeded
from ..github.oauth import OAuthClient
from ..ledger import VoteLedger
from ..logging import JsonlLogSink, PeriodicFlusher, configure_logging, get_logger
from ..models import CollectionKind
from ..orchestrator import PaginatorFactory, SyncOrchestrator
from ..ranking import RankingView
from ..stores import JsonStore
from .ratelimit import SlidingWindowLimiter, client_address

T = TypeVar("T")

GENERAL_LIMIT_MESSAGE = "Too many requests, please try again later."
VOTE_LIMIT_MESSAGE = "Vote limit exceeded, please try again later."
SYNC_LIMIT_MESSAGE = "Sync limit exceeded, please try again later."

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'; base-uri 'self'; frame-ancestors 'self'; object-src 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
}

_INDEX_HTML = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>commitboard</title></head>
<body>
<h1>commitboard</h1>
<p>Upvote leaderboard for mirrored GitHub commits and pull requests.</p>
<ul>
<li><code>GET /api/commits?search=</code> ranked commits</li>
<li><code>GET /api/pulls?search=</code> ranked pull requests</li>
<li><code>POST /api/votes</code> <code>{"itemId", "voterId"}</code></li>
<li><code>POST /api/sync</code> <code>{"token", "kind"}</code></li>
<li><code>GET /auth/github?code=</code> OAuth code exchange</li>
</ul>
</body>
</html>
"""


class VoteRequest(BaseModel):
    item_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("itemId", "commitId"))
    voter_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("voterId", "userId"))


class VoteResponse(BaseModel):
    success: bool


class SyncRequest(BaseModel):
    token: Optional[str] = None
    kind: Optional[str] = None


class SyncResponse(BaseModel):
    success: bool
    count: int


class HealthResponse(BaseModel):
    status: str


async def _run_blocking(func: Callable[[], T]) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def create_app(
    config: CommitboardConfig | None = None,
    *,
    store: JsonStore | None = None,
    paginator_factory: PaginatorFactory | None = None,
    oauth_client: OAuthClient | None = None,
    clock: Callable[[], datetime] | None = None,
    limiter_clock: Callable[[], float] = time.monotonic,
    log_sink: JsonlLogSink | None = None,
) -> FastAPI:
    """Create the FastAPI application wired to the configured components."""

    config = config or default_config()
    logger = get_logger("service")
    store = store or JsonStore(config.storage.data_dir, on_corrupt=config.storage.on_corrupt)
    ledger = VoteLedger(store, clock=clock) if clock is not None else VoteLedger(store)
    ranking = RankingView(store)
    orchestrator = SyncOrchestrator(store, paginator_factory, github_config=config.github)
    oauth = oauth_client or OAuthClient(config.github)

    limits = config.rate_limits
    general_limiter = SlidingWindowLimiter.from_rule(limits.general, clock=limiter_clock)
    vote_limiter = SlidingWindowLimiter.from_rule(limits.votes, clock=limiter_clock)
    sync_limiter = SlidingWindowLimiter.from_rule(limits.sync, clock=limiter_clock)

    def _client(request: Request) -> str:
        return client_address(request, trust_proxy=limits.trust_proxy)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        flusher: PeriodicFlusher | None = None
        if log_sink is not None:
            flusher = PeriodicFlusher(log_sink, config.logging.flush_interval)
            flusher.start()
        logger.info(
            "Server started",
            extra={"meta": {"port": config.server.port, "repository": config.github.repository}},
        )
        try:
            yield
        finally:
            if flusher is not None:
                flusher.stop()

    app = FastAPI(title="commitboard", version="1.0.0", lifespan=lifespan)
    app.state.store = store
    app.state.ledger = ledger
    app.state.ranking = ranking
    app.state.orchestrator = orchestrator
    app.state.limiters = {"general": general_limiter, "votes": vote_limiter, "sync": sync_limiter}

    # Middleware registered first runs innermost.
    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        logger.info(
            "Incoming %s request",
            request.method,
            extra={
                "meta": {
                    "url": str(request.url.path),
                    "ip": _client(request),
                    "userAgent": request.headers.get("user-agent"),
                }
            },
        )
        response = await call_next(request)
        duration = int((time.perf_counter() - started) * 1000)
        logger.log(
            logging.ERROR if response.status_code >= 400 else logging.INFO,
            "Request completed in %dms",
            duration,
            extra={
                "meta": {
                    "method": request.method,
                    "url": str(request.url.path),
                    "statusCode": response.status_code,
                    "duration": duration,
                }
            },
        )
        return response

    @app.middleware("http")
    async def general_rate_limit(request: Request, call_next):  # type: ignore[no-untyped-def]
        key = _client(request)
        if not general_limiter.hit(key):
            logger.warning("Rate limit exceeded for IP: %s", key)
            response: Any = JSONResponse(status_code=429, content={"error": GENERAL_LIMIT_MESSAGE})
        else:
            response = await call_next(request)
            if response.status_code >= 400:
                # Failed requests do not count against the general window.
                general_limiter.release(key)
        response.headers["RateLimit-Limit"] = str(general_limiter.max_requests)
        response.headers["RateLimit-Remaining"] = str(general_limiter.remaining(key))
        response.headers["RateLimit-Reset"] = str(int(general_limiter.reset_after(key) + 0.999))
        return response

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):  # type: ignore[no-untyped-def]
        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > config.server.max_body_bytes:
            return JSONResponse(status_code=413, content={"error": "Request body too large"})
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        max_age=600,
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):  # type: ignore[no-untyped-def]
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    def _limit(limiter: SlidingWindowLimiter, message: str, label: str) -> Callable[[Request], Any]:
        async def _check(request: Request) -> None:
            key = _client(request)
            if not limiter.hit(key):
                logger.warning("%s rate limit exceeded for IP: %s", label, key)
                raise RateLimitExceeded(message)

        return _check

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return _INDEX_HTML

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/auth/github")
    async def github_auth(code: Optional[str] = Query(default=None)) -> Dict[str, Any]:
        if not code:
            logger.warning("GitHub auth attempted without code")
            raise InvalidRequest("No code provided")
        return await _run_blocking(lambda: oauth.exchange_code(code))

    async def _ranked(kind: CollectionKind, search: Optional[str]) -> List[Dict[str, Any]]:
        ranked = await _run_blocking(lambda: ranking.list(kind, search))
        return [entry.to_dict() for entry in ranked]

    @app.get("/api/commits")
    async def list_commits(search: Optional[str] = Query(default=None)) -> List[Dict[str, Any]]:
        return await _ranked(CollectionKind.COMMITS, search)

    @app.get("/api/pulls")
    async def list_pulls(search: Optional[str] = Query(default=None)) -> List[Dict[str, Any]]:
        return await _ranked(CollectionKind.PULLS, search)

    @app.post(
        "/api/votes",
        response_model=VoteResponse,
        dependencies=[Depends(_limit(vote_limiter, VOTE_LIMIT_MESSAGE, "Vote"))],
    )
    async def cast_vote(request: Request, payload: Optional[VoteRequest] = None) -> VoteResponse:
        body = payload or VoteRequest()
        origin = _client(request)
        await _run_blocking(lambda: ledger.record(body.item_id, body.voter_id, origin))
        return VoteResponse(success=True)

    @app.post(
        "/api/sync",
        response_model=SyncResponse,
        dependencies=[Depends(_limit(sync_limiter, SYNC_LIMIT_MESSAGE, "Sync"))],
    )
    async def sync(payload: Optional[SyncRequest] = None) -> SyncResponse:
        body = payload or SyncRequest()
        if not body.token:
            logger.warning("Sync attempted without token")
            raise MissingCredentials()
        try:
            kind = CollectionKind.parse(body.kind or CollectionKind.COMMITS.value)
        except ValueError as exc:
            raise InvalidRequest(str(exc)) from exc
        token = body.token
        count = await _run_blocking(lambda: orchestrator.sync_all(kind, token))
        return SyncResponse(success=True, count=count)

    @app.exception_handler(CommitboardError)
    async def commitboard_error_handler(_: Request, exc: CommitboardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc, extra={"meta": {"error": str(exc)}})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Rejected malformed request body", extra={"meta": {"errors": exc.errors()}})
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - last resort
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Server error"})

    return app


def run_service(config: CommitboardConfig) -> None:  # pragma: no cover - integration path
    """Run the service under uvicorn with the JSONL log sink enabled."""
    sink = JsonlLogSink(config.logging.log_dir) if config.logging.log_dir else None
    configure_logging(verbose=config.logging.verbose, sink=sink)
    app = create_app(config, log_sink=sink)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


__all__ = ["create_app", "run_service"]
