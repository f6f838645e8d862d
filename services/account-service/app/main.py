"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from psycopg_pool import ConnectionPool

from .api.internal import router as internal_router
from .api.responses import register_error_handlers
from .api.routes import router as v1_router
from .config import get_settings
from .container import Services, build_services
from .messaging.rabbitmq import RabbitMQTransport
from .repository import AccountRepository

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the process-wide pool, cache client and broker connection for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    cache_client = redis.from_url(settings.redis_url)
    transport = RabbitMQTransport(
        settings.rabbitmq_url,
        exchange=settings.events_exchange,
        reconnect_interval=settings.broker_reconnect_seconds,
    )
    if not transport.connect():
        logger.warning("starting without rabbitmq; events will be dropped until it reconnects")

    app.state.pool = pool
    app.state.services = build_services(
        settings,
        repository=AccountRepository(pool),
        cache_client=cache_client,
        bus=transport,
    )
    logger.info("%s %s started", settings.app_name, settings.version)
    try:
        yield
    finally:
        transport.close()
        cache_client.close()
        pool.close()
        pool.wait_close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )


@app.middleware("http")
async def correlation_id(request: Request, call_next) -> Response:
    """Echo ``X-Correlation-ID`` (generating one when absent) on every response."""
    value = request.headers.get("x-correlation-id") or str(uuid.uuid4())
    request.state.correlation_id = value
    response = await call_next(request)
    response.headers["x-correlation-id"] = value
    return response


register_error_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/health", tags=["health"])
def health(request: Request) -> dict[str, object]:
    """Report connectivity of the database, cache and message broker."""
    services: Services = request.app.state.services
    database = services.store.repository.ping()
    cache = services.store.cache.ping()
    broker = services.publisher.is_healthy()
    return {
        "status": "healthy" if database and cache and broker else "unhealthy",
        "service": settings.app_name,
        "version": settings.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "connected" if database else "disconnected",
            "cache": "connected" if cache else "disconnected",
            "message_broker": "connected" if broker else "disconnected",
        },
    }


app.include_router(v1_router)
app.include_router(internal_router)


# Prometheus metrics endpoint for Prometheus scrapes
try:
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
except ImportError:  # pragma: no cover - metrics are optional in dev
    pass
