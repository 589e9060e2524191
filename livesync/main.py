import asyncio
from contextlib import asynccontextmanager

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator

from livesync.api.dependencies import NO_CACHE_HEADERS
from livesync.api.router import api_router
from livesync.core.config import settings
from livesync.core.logger import configure_logging, get_logger
from livesync.domain.change_detection import ChangeDetector
from livesync.infrastructure.clickhouse.source import ClickHouseDataSource, create_client
from livesync.infrastructure.redis.notifier import ChangeNotifier
from livesync.realtime.orchestrator import RefreshOrchestrator
from livesync.realtime.stream_store import StreamStore
from livesync.services.history_warming import HistoryWarmingService
from livesync.utils.concurrency import run_blocking
from livesync.utils.retry import retry_async

# Configure logging once and get service logger
configure_logging()
logger = get_logger("livesync.main")


def build_store() -> StreamStore:
    store = StreamStore(capacity=settings.history_capacity)
    for stream in settings.streams:
        store.register(stream)
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("livesync_starting", extra={"streams": settings.streams})
    app.state.store = build_store()
    app.state.ready_event = asyncio.Event()
    app.state.source = await _init_source_with_retry()
    app.state.redis = (
        await _init_redis_with_retry() if settings.change_notify_enabled else None
    )

    if settings.history_warming_enabled:
        seeded = await HistoryWarmingService(app.state.source, app.state.store).warm()
        if any(seeded.values()):
            app.state.ready_event.set()

    app.state.orchestrator = RefreshOrchestrator(
        source=app.state.source,
        store=app.state.store,
        detector=ChangeDetector(settings.change_primary_fields),
        period_s=settings.refresh_period_seconds,
        fetch_timeout_s=settings.fetch_timeout_seconds,
        notifier=ChangeNotifier(app.state.redis) if app.state.redis else None,
        ready_event=app.state.ready_event,
    )
    app.state.refresh_task = asyncio.create_task(app.state.orchestrator.run())
    try:
        yield
    finally:
        logger.info("livesync_stopping")
        app.state.orchestrator.stop()
        try:
            await app.state.refresh_task
        except Exception:  # noqa
            logger.exception("refresh_task_failed")
        app.state.source.close()
        if app.state.redis is not None:
            await app.state.redis.close()


app = FastAPI(title="Live Metrics Sync", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)
app.include_router(api_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    response = await request_validation_exception_handler(request, exc)
    if request.url.path.startswith("/api"):
        response.headers.update(NO_CACHE_HEADERS)
    return response


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/docs", "/openapi.json", "/metrics", "/healthz", "/readyz"],
).instrument(app)


async def _log_retry(attempt: int, exc: BaseException, sleep_for: float):
    logger.warning(
        "connect_retry",
        extra={
            "attempt": attempt,
            "error": str(exc),
            "sleep_for": round(sleep_for, 2),
        },
    )


async def _init_source_with_retry() -> ClickHouseDataSource:
    async def _connect():
        client = await run_blocking(create_client)
        return ClickHouseDataSource(
            client, transactions_limit=settings.recent_transactions_limit
        )

    source = await retry_async(
        _connect, retries=6, base_delay=0.5, max_delay=8.0, jitter=0.2, on_retry=_log_retry
    )
    logger.info("clickhouse_connected", extra={"host": settings.clickhouse_host})
    return source


async def _init_redis_with_retry():
    async def _connect():
        r = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            decode_responses=True,
        )
        await r.ping()
        return r

    r = await retry_async(
        _connect, retries=6, base_delay=0.5, max_delay=8.0, jitter=0.2, on_retry=_log_retry
    )
    logger.info("redis_connected")
    return r


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def run() -> None:
    """Serve the read API; uvicorn turns SIGTERM/SIGINT into lifespan shutdown."""
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)
