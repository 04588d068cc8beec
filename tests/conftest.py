"""Shared pytest fixtures: in-memory diary, pinned clock, async test client."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from farmdiary.database import get_repository
from farmdiary.main import app
from farmdiary.services.record_store import MemoryRecordStore
from farmdiary.services.repository import EntityRepository

NOW = datetime(2025, 9, 15, 9, 0, tzinfo=UTC)
OWNER = "user-1"
OTHER_OWNER = "user-2"
OWNER_HEADERS = {"x-owner-id": OWNER}


class FakeRedis:
	"""Dict-backed stand-in for ``redis.asyncio.Redis`` GET/SET."""

	def __init__(self, fail: bool = False) -> None:
		self.data: dict[str, str] = {}
		self.fail = fail

	async def get(self, key: str) -> str | None:
		if self.fail:
			raise RedisConnectionError("redis unavailable")
		return self.data.get(key)

	async def set(self, key: str, value: str) -> bool:
		if self.fail:
			raise RedisConnectionError("redis unavailable")
		self.data[key] = value
		return True


class FailingStore:
	"""Record store whose backend is permanently down."""

	def __init__(self) -> None:
		self.writes = 0

	async def read(self, key: str) -> str | None:
		return None

	async def write(self, key: str, value: str) -> bool:
		self.writes += 1
		return False


class KeyFailingStore:
	"""Delegates to ``inner`` but rejects every write to ``failing_keys``."""

	def __init__(self, inner: MemoryRecordStore, *failing_keys: str) -> None:
		self.inner = inner
		self.failing_keys = set(failing_keys)
		self.rejected: list[str] = []

	async def read(self, key: str) -> str | None:
		return await self.inner.read(key)

	async def write(self, key: str, value: str) -> bool:
		if key in self.failing_keys:
			self.rejected.append(key)
			return False
		return await self.inner.write(key, value)


def diary_data() -> dict[str, list[dict[str, Any]]]:
	"""Two owners, three fields; user-1's tomato bed carries most of the history."""
	return {
		"statusCodes": [
			{"id": "status-planned", "name": "planned", "priority": 1},
			{"id": "status-due", "name": "due", "priority": 4},
			{"id": "status-overdue", "name": "overdue", "priority": 5},
			{"id": "status-completed", "name": "completed", "priority": 2},
			{"id": "status-skipped", "name": "skipped", "priority": 1},
			{"id": "status-snoozed", "name": "snoozed", "priority": 3},
		],
		"units": [
			{"id": "u-L", "symbol": "L", "name": "litre", "type": "volume", "conversionFactorToBase": 1},
			{"id": "u-ml", "symbol": "ml", "name": "millilitre", "type": "volume", "conversionFactorToBase": 0.001},
			{"id": "u-kg", "symbol": "kg", "name": "kilogram", "type": "weight", "conversionFactorToBase": 1},
			{"id": "u-g", "symbol": "g", "name": "gram", "type": "weight", "conversionFactorToBase": 0.001},
			{"id": "u-pc", "symbol": "pc", "name": "pieces", "type": "count", "conversionFactorToBase": 1},
		],
		"taskTypes": [
			{"id": "ttype-watering", "nameEn": "Watering", "defaultUnitId": "u-L", "icon": "droplet", "requiresQuantity": True},
			{"id": "ttype-fertilize", "nameEn": "Fertilize", "defaultUnitId": "u-kg", "icon": "sprout"},
			{"id": "ttype-harvest", "nameEn": "Harvest", "defaultUnitId": "u-kg", "icon": "basket"},
		],
		"taskTemplates": [
			{
				"id": "tt-water",
				"name": "Water tomatoes",
				"taskTypeId": "ttype-watering",
				"defaultUnitId": "u-L",
				"defaultIntervalDays": 2,
				"requiresQuantity": True,
				"recommendedQuantity": 5,
				"icon": "droplet",
			},
			{"id": "tt-fert", "name": "Feed", "taskTypeId": "ttype-fertilize", "defaultIntervalDays": 14},
			{"id": "tt-harvest", "name": "Pick fruit", "taskTypeId": "ttype-harvest", "defaultIntervalDays": 3},
		],
		"reasonCodes": [
			{"id": "reason-rain", "name": "rain"},
			{"id": "reason-other", "name": "other"},
		],
		"libraryCrops": [
			{
				"id": "lc-tomato",
				"cropId": "tomato",
				"nameEn": "Tomato",
				"category": "vegetable",
				"daysToMaturity": 75,
				"defaultCareTemplateId": "tt-water",
				"version": "1.2",
			},
			{"id": "lc-basil", "cropId": "basil", "nameEn": "Basil", "category": "herb", "daysToMaturity": 40},
		],
		"fields": [
			{"id": "f-1", "ownerId": OWNER, "name": "North Plot", "size": 1200, "sizeUnit": "m2"},
			{"id": "f-2", "ownerId": OWNER, "name": "South Plot", "size": 300, "sizeUnit": "m2"},
			{"id": "f-9", "ownerId": OTHER_OWNER, "name": "Back Garden", "size": 80, "sizeUnit": "m2"},
		],
		"areas": [
			{"id": "a-1", "fieldId": "f-1", "ownerId": OWNER, "name": "Tomato Bed", "typeId": "atype-bed"},
			{"id": "a-2", "fieldId": "f-2", "ownerId": OWNER, "name": "Herb Bed"},
			{"id": "a-9", "fieldId": "f-9", "ownerId": OTHER_OWNER, "name": "Pots"},
		],
		"cropInstances": [
			{
				"id": "ci-1",
				"ownerId": OWNER,
				"areaId": "a-1",
				"libraryCropId": "lc-tomato",
				"name": "Tomato",
				"startDate": "2025-09-01T00:00:00Z",
				"daysToMaturity": 70,
				"appliedTemplateVersion": "1.0",
				"overrides": [{"key": "daysToMaturity", "value": "70"}],
			},
			{"id": "ci-2", "ownerId": OWNER, "areaId": "a-2", "name": "Basil", "startDate": "2025-08-20T00:00:00Z"},
			{"id": "ci-9", "ownerId": OTHER_OWNER, "areaId": "a-9", "name": "Chilli", "startDate": "2025-08-01T00:00:00Z"},
		],
		"taskOccurrences": [
			{
				"id": "to-1",
				"ownerId": OWNER,
				"cropInstanceId": "ci-1",
				"templateId": "tt-water",
				"dueDate": "2025-09-15T00:00:00Z",
				"statusId": "status-due",
				"priority": 4,
			},
			{
				"id": "to-2",
				"ownerId": OWNER,
				"cropInstanceId": "ci-1",
				"templateId": "tt-fert",
				"dueDate": "2025-09-13T00:00:00Z",
				"statusId": "status-overdue",
				"priority": 5,
			},
			{
				"id": "to-3",
				"ownerId": OWNER,
				"cropInstanceId": "ci-2",
				"templateId": "tt-water",
				"dueDate": "2025-09-18T00:00:00Z",
				"statusId": "status-planned",
				"priority": 1,
			},
			{
				"id": "to-4",
				"ownerId": OWNER,
				"cropInstanceId": "ci-1",
				"templateId": "tt-harvest",
				"dueDate": "2025-09-10T00:00:00Z",
				"statusId": "status-completed",
				"priority": 2,
				"lastCompletedAt": "2025-09-10T08:00:00.000Z",
			},
			{
				"id": "to-9",
				"ownerId": OTHER_OWNER,
				"cropInstanceId": "ci-9",
				"templateId": "tt-water",
				"dueDate": "2025-09-15T00:00:00Z",
				"statusId": "status-due",
				"priority": 4,
			},
		],
		"logs": [
			{
				"id": "log-1",
				"ownerId": OWNER,
				"taskOccurrenceId": "to-4",
				"cropInstanceId": "ci-1",
				"action": "completed",
				"timestamp": "2025-09-10T08:00:00Z",
				"quantity": 2500,
				"unitId": "u-g",
				"photoIds": ["p-1"],
			},
			{
				"id": "log-2",
				"ownerId": OWNER,
				"taskOccurrenceId": "to-2",
				"cropInstanceId": "ci-1",
				"action": "completed",
				"timestamp": "2025-09-12T07:00:00Z",
				"quantity": 500,
				"unitId": "u-g",
				"photoIds": ["p-1", "p-2"],
			},
			{
				"id": "log-3",
				"ownerId": OWNER,
				"taskOccurrenceId": "to-3",
				"cropInstanceId": "ci-2",
				"action": "completed",
				"timestamp": "2025-09-14T06:30:00Z",
				"quantity": 5,
				"unitId": "u-L",
			},
			{
				"id": "log-4",
				"ownerId": OWNER,
				"taskOccurrenceId": "to-3",
				"cropInstanceId": "ci-2",
				"action": "skipped",
				"timestamp": "2025-09-11T06:00:00Z",
				"skipReasonId": "reason-rain",
				"notes": "Heavy rain",
			},
			{
				"id": "log-9",
				"ownerId": OTHER_OWNER,
				"taskOccurrenceId": "to-9",
				"cropInstanceId": "ci-9",
				"action": "completed",
				"timestamp": "2025-09-14T05:00:00Z",
				"quantity": 3,
				"unitId": "u-L",
			},
		],
		"photos": [
			{"id": "p-1", "ownerId": OWNER, "storageRef": "local://p-1.jpg", "mimeType": "image/jpeg", "sizeBytes": 1000},
			{"id": "p-2", "ownerId": OWNER, "storageRef": "local://p-2.jpg", "mimeType": "image/jpeg", "sizeBytes": 2000},
		],
	}


def store_with(data: dict[str, list[dict[str, Any]]], namespace: str = "localDB") -> MemoryRecordStore:
	return MemoryRecordStore({f"{namespace}:{name}": json.dumps(items) for name, items in data.items()})


@pytest.fixture
def clock() -> Callable[[], datetime]:
	"""Pinned to 2025-09-15 09:00 UTC."""
	return lambda: NOW


@pytest.fixture
def store() -> MemoryRecordStore:
	return store_with(diary_data())


@pytest.fixture
def repository(store: MemoryRecordStore) -> EntityRepository:
	return EntityRepository(store)


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
async def client(
	repository: EntityRepository,
	clock: Callable[[], datetime],
) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and the repository pinned to the fixture diary."""

	async def override_repository() -> EntityRepository:
		return repository

	app.dependency_overrides[get_repository] = override_repository
	app.state.clock = clock
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.state.clock = None
	app.dependency_overrides.clear()
