"""Async engine, session factory and request-scoped service dependencies."""

from __future__ import annotations

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from farmdiary.config import get_settings
from farmdiary.services.repository import EntityRepository
from farmdiary.services.timeutil import Clock, system_clock

engine: AsyncEngine = create_async_engine(get_settings().database_url, pool_pre_ping=True)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_repository(request: Request) -> EntityRepository:
	"""Repository built during application startup."""
	repository = getattr(request.app.state, "repository", None)
	if repository is None:
		raise RuntimeError("Entity repository is not initialized")
	return repository


async def get_clock(request: Request) -> Clock:
	"""Clock pinned on ``app.state.clock``, else wall time in the diary timezone."""
	clock = getattr(request.app.state, "clock", None)
	return clock or system_clock(get_settings().tzinfo)
