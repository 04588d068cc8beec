"""FastAPI application entrypoint: lifespan, routers, middleware."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from farmdiary.config import StoreBackend, get_settings
from farmdiary.database import async_session_factory, engine
from farmdiary.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from farmdiary.routes import crops, fields, journal, logbook, photos, reference, tasks
from farmdiary.services.record_store import build_record_store
from farmdiary.services.repository import EntityRepository
from farmdiary.services.seed_data import seed_demo_data

logger = logging.getLogger("farmdiary")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Connect the configured record store (memory, Redis or SQL)
      3. Run pending schema migrations on the stored collections
      4. Optionally seed the demo diary

    Shutdown:
      1. Close Redis connection pool
      2. Dispose SQLAlchemy engine
    """
    configure_structured_logging()
    settings = get_settings()
    logger.info(
        "Farm diary starting",
        extra={
            "store_backend": settings.store_backend.value,
            "diary_timezone": settings.diary_timezone,
        },
    )

    redis: Redis | None = None
    try:
        if settings.store_backend == StoreBackend.redis:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
            app.state.redis = redis

        store = build_record_store(
            settings,
            redis_client=redis,
            session_factory=async_session_factory if settings.store_backend == StoreBackend.sql else None,
        )
        repository = EntityRepository(store, settings.store_namespace)
        app.state.schema_version = await repository.initialize()
        if settings.seed_demo_data:
            app.state.seeded = await seed_demo_data(repository)
        app.state.repository = repository
    except Exception as exc:
        logger.exception("startup failure", extra={"error": str(exc)})
        raise

    yield

    logger.info("Farm diary shutting down")
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="Farm Diary API",
    description=(
        "Offline-first farm diary: fields, areas and crop plantings with "
        "recurring care tasks, an append-only activity log and a logbook "
        "query engine for filtering, totals and export."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check: verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "farm-diary",
        "version": "0.1.0",
    }


# ── Router registration ────────────────────────────────────────────────────
app.include_router(fields.router, prefix="/api/v1")
app.include_router(fields.areas_router, prefix="/api/v1")
app.include_router(crops.router, prefix="/api/v1")
app.include_router(crops.library_router, prefix="/api/v1")
app.include_router(tasks.router, prefix="/api/v1")
app.include_router(logbook.router, prefix="/api/v1")
app.include_router(photos.router, prefix="/api/v1")
app.include_router(journal.notes_router, prefix="/api/v1")
app.include_router(journal.weather_router, prefix="/api/v1")
app.include_router(reference.router, prefix="/api/v1")
