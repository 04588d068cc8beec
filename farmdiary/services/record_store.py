"""Durable key → string stores backing the entity repository.

Every backend honours the same contract: ``read`` returns ``None`` when the key
is absent or the backend fails, ``write`` replaces the whole value and reports
success as a boolean. Failures are logged, never raised.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farmdiary.config import Settings, StoreBackend
from farmdiary.models.store import StoredRecord

logger = structlog.get_logger("farmdiary.store")


@runtime_checkable
class RecordStore(Protocol):
	async def read(self, key: str) -> str | None: ...

	async def write(self, key: str, value: str) -> bool: ...


class MemoryRecordStore:
	"""Process-local store; contents vanish with the process."""

	def __init__(self, initial: dict[str, str] | None = None):
		self._data: dict[str, str] = dict(initial or {})

	async def read(self, key: str) -> str | None:
		return self._data.get(key)

	async def write(self, key: str, value: str) -> bool:
		self._data[key] = value
		return True

	def keys(self) -> list[str]:
		return sorted(self._data)


class RedisRecordStore:
	"""Plain string keys on a redis.asyncio client (``decode_responses=True``)."""

	def __init__(self, redis_client: Redis):
		self.redis_client = redis_client

	async def read(self, key: str) -> str | None:
		try:
			value = await self.redis_client.get(key)
		except RedisError as exc:
			logger.warning("record_store_read_failed", backend="redis", key=key, error=str(exc))
			return None
		if value is None:
			return None
		return value.decode("utf-8") if isinstance(value, bytes) else str(value)

	async def write(self, key: str, value: str) -> bool:
		try:
			await self.redis_client.set(key, value)
		except RedisError as exc:
			logger.error("record_store_write_failed", backend="redis", key=key, error=str(exc))
			return False
		return True


class SqlRecordStore:
	"""One ``record_store`` row per key, written in its own transaction."""

	def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
		self.session_factory = session_factory

	async def read(self, key: str) -> str | None:
		try:
			async with self.session_factory() as session:
				row = await session.execute(select(StoredRecord.value).where(StoredRecord.key == key))
				return row.scalar_one_or_none()
		except SQLAlchemyError as exc:
			logger.warning("record_store_read_failed", backend="sql", key=key, error=str(exc))
			return None

	async def write(self, key: str, value: str) -> bool:
		try:
			async with self.session_factory() as session:
				record = await session.get(StoredRecord, key)
				if record is None:
					session.add(StoredRecord(key=key, value=value))
				else:
					record.value = value
				await session.commit()
		except SQLAlchemyError as exc:
			logger.error("record_store_write_failed", backend="sql", key=key, error=str(exc))
			return False
		return True


def build_record_store(
	settings: Settings,
	redis_client: Redis | None = None,
	session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> RecordStore:
	"""Instantiate the backend named by ``settings.store_backend``."""
	if settings.store_backend == StoreBackend.redis:
		if redis_client is None:
			raise ValueError("redis backend selected but no redis client was provided")
		return RedisRecordStore(redis_client)
	if settings.store_backend == StoreBackend.sql:
		if session_factory is None:
			raise ValueError("sql backend selected but no session factory was provided")
		return SqlRecordStore(session_factory)
	return MemoryRecordStore()
