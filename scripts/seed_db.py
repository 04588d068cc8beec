"""Load the demo diary into the configured record store.

Usage:
    python -m scripts.seed_db [--backend sql] [--namespace localDB] [--force]

Seeding is skipped when the store already holds the current demo data
version; ``--force`` rewrites every collection regardless.
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence

import structlog
from redis.asyncio import Redis

from farmdiary.config import Settings, StoreBackend, get_settings
from farmdiary.database import async_session_factory, engine
from farmdiary.middleware.logging import configure_structured_logging
from farmdiary.services.record_store import build_record_store
from farmdiary.services.repository import EntityRepository
from farmdiary.services.seed_data import DATA_VERSION, DEMO_DATA, seed_demo_data

logger = structlog.get_logger("farmdiary.scripts.seed")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the farm diary demo dataset")
    parser.add_argument(
        "--backend",
        choices=[backend.value for backend in StoreBackend],
        default=None,
        help="Override STORE_BACKEND for this run",
    )
    parser.add_argument("--namespace", default=None, help="Override STORE_NAMESPACE for this run")
    parser.add_argument("--force", action="store_true", help="Rewrite data even when the version matches")
    return parser.parse_args(argv)


def _effective_settings(args: argparse.Namespace, base: Settings) -> Settings:
    """Apply command-line overrides on top of the environment settings."""
    overrides: dict[str, object] = {}
    if args.backend is not None:
        overrides["store_backend"] = StoreBackend(args.backend)
    if args.namespace:
        overrides["store_namespace"] = args.namespace
    return base.model_copy(update=overrides) if overrides else base


def _summarize(counts: dict[str, int]) -> str:
    if not counts:
        return f"demo data already at version {DATA_VERSION}; nothing written"
    parts = ", ".join(f"{name}={count}" for name, count in sorted(counts.items()))
    return f"seeded version {DATA_VERSION}: {parts}"


def _expected_counts() -> dict[str, int]:
    return {collection.value: len(items) for collection, items in DEMO_DATA.items()}


async def _run(settings: Settings, force: bool) -> dict[str, int]:
    redis: Redis | None = None
    try:
        if settings.store_backend == StoreBackend.redis:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
        store = build_record_store(
            settings,
            redis_client=redis,
            session_factory=async_session_factory if settings.store_backend == StoreBackend.sql else None,
        )
        repository = EntityRepository(store, settings.store_namespace)
        await repository.initialize()
        return await seed_demo_data(repository, force=force)
    finally:
        if redis is not None:
            await redis.aclose()
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    configure_structured_logging()
    args = _parse_args(argv)
    settings = _effective_settings(args, get_settings())
    if settings.store_backend == StoreBackend.memory:
        logger.warning("memory_backend_selected", detail="seeded data is discarded when the script exits")

    counts = asyncio.run(_run(settings, args.force))
    if counts and counts != _expected_counts():
        logger.error("seed_incomplete", written=counts, expected=_expected_counts())
        return 1
    logger.info("seed_complete", summary=_summarize(counts))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
