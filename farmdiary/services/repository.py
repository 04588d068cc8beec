"""Whole-collection repository over a key/value record store.

Collections are read and written as complete JSON arrays under
``<namespace>:<collection>``. There is no per-record update: callers load a
collection, build the new sequence, and hand it back to ``save_all``.

Stored items that fail validation are invisible to ``load`` but never lost:
``save_all`` carries them over at their original positions.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from farmdiary.models.enums import CollectionName, SyncStatus
from farmdiary.schemas.common import coerce_identifier
from farmdiary.schemas.records import (
	COLLECTION_MODELS,
	AreaRecord,
	CropInstanceRecord,
	FieldRecord,
	LibraryCropRecord,
	LogRecord,
	OwnedRecord,
	PhotoRecord,
	ReasonCodeRecord,
	RecordModel,
	StatusCodeRecord,
	SyncQueueRecord,
	TaskOccurrenceRecord,
	TaskTemplateRecord,
	TaskTypeRecord,
	UnitRecord,
)
from farmdiary.services.record_store import RecordStore

SCHEMA_VERSION = 1
_SCHEMA_VERSION_KEY = "__schemaVersion__"

RecordT = TypeVar("RecordT", bound=RecordModel)

logger = structlog.get_logger("farmdiary.repository")


class StorageFailure(RuntimeError):
	"""A collection write was rejected by the record store."""

	def __init__(self, collection: CollectionName):
		super().__init__(f"Could not save {collection.value}; storage is unavailable")
		self.collection = collection


def new_id(prefix: str) -> str:
	return f"{prefix}-{uuid.uuid4().hex[:12]}"


def index_by_id(records: Sequence[RecordT]) -> dict[str, RecordT]:
	return {record.id: record for record in records}


@dataclass(slots=True)
class DiaryIndex:
	"""Id → record maps for every joinable collection, built once per query."""

	fields: dict[str, FieldRecord] = field(default_factory=dict)
	areas: dict[str, AreaRecord] = field(default_factory=dict)
	crop_instances: dict[str, CropInstanceRecord] = field(default_factory=dict)
	library_crops: dict[str, LibraryCropRecord] = field(default_factory=dict)
	task_templates: dict[str, TaskTemplateRecord] = field(default_factory=dict)
	task_types: dict[str, TaskTypeRecord] = field(default_factory=dict)
	task_occurrences: dict[str, TaskOccurrenceRecord] = field(default_factory=dict)
	units: dict[str, UnitRecord] = field(default_factory=dict)
	status_codes: dict[str, StatusCodeRecord] = field(default_factory=dict)
	reason_codes: dict[str, ReasonCodeRecord] = field(default_factory=dict)
	photos: dict[str, PhotoRecord] = field(default_factory=dict)
	logs: list[LogRecord] = field(default_factory=list)
	occurrences: list[TaskOccurrenceRecord] = field(default_factory=list)


class EntityRepository:
	"""Typed access to named collections in a ``RecordStore``."""

	def __init__(self, store: RecordStore, namespace: str = "localDB"):
		self.store = store
		self.namespace = namespace
		self._write_lock = asyncio.Lock()

	def key_for(self, collection: CollectionName | str) -> str:
		return f"{self.namespace}:{CollectionName(collection).value}"

	@property
	def schema_version_key(self) -> str:
		return f"{self.namespace}:{_SCHEMA_VERSION_KEY}"

	# ── Lifecycle ───────────────────────────────────────────────────────────

	async def initialize(self) -> int:
		"""Bring stored data up to ``SCHEMA_VERSION`` and heal malformed collections.

		Returns the version the store held before initialization (0 when unset).
		"""
		raw_version = await self.store.read(self.schema_version_key)
		try:
			stored_version = int(raw_version) if raw_version is not None else 0
		except ValueError:
			stored_version = 0

		if stored_version < SCHEMA_VERSION:
			await self._migrate(stored_version)
			await self.store.write(self.schema_version_key, str(SCHEMA_VERSION))

		for collection in CollectionName:
			raw = await self.store.read(self.key_for(collection))
			if raw is None:
				continue
			if not isinstance(_decode(raw), list):
				logger.warning("collection_reset_malformed", collection=collection.value)
				await self.store.write(self.key_for(collection), "[]")
		return stored_version

	async def _migrate(self, from_version: int) -> None:
		"""Upgrade hook for stored data written by older schema versions."""
		logger.info("schema_migration", from_version=from_version, to_version=SCHEMA_VERSION)

	# ── Collections ─────────────────────────────────────────────────────────

	async def load(self, collection: CollectionName) -> list[Any]:
		"""Ordered records of ``collection``; ``[]`` when absent or malformed."""
		raw = await self.store.read(self.key_for(collection))
		if raw is None:
			return []
		payload = _decode(raw)
		if not isinstance(payload, list):
			return []

		model = COLLECTION_MODELS[collection]
		records: list[Any] = []
		dropped = 0
		for item in payload:
			try:
				records.append(model.model_validate(item))
			except ValidationError:
				dropped += 1
		if dropped:
			logger.warning("malformed_records_dropped", collection=collection.value, count=dropped)
		return records

	async def save_all(self, collection: CollectionName, records: Sequence[RecordModel]) -> bool:
		"""Replace ``collection`` with ``records`` in a single store write."""
		items: list[Any] = [record.to_record() for record in records]
		written_ids = {item["id"] for item in items}
		unreadable = await self._unreadable_items(collection)
		for position, raw in unreadable:
			if isinstance(raw, dict) and coerce_identifier(raw.get("id")) in written_ids:
				continue
			items.insert(min(position, len(items)), raw)

		payload = json.dumps(items, ensure_ascii=False)
		ok = await self.store.write(self.key_for(collection), payload)
		if not ok:
			logger.error("collection_save_failed", collection=collection.value, count=len(records))
		elif unreadable:
			logger.info("unreadable_records_kept", collection=collection.value, count=len(unreadable))
		return ok

	async def commit(self, collection: CollectionName, records: Sequence[RecordModel]) -> None:
		"""``save_all`` for mutations: a rejected write raises ``StorageFailure``."""
		if not await self.save_all(collection, records):
			raise StorageFailure(collection)

	async def _unreadable_items(self, collection: CollectionName) -> list[tuple[int, Any]]:
		raw = await self.store.read(self.key_for(collection))
		payload = _decode(raw) if raw is not None else None
		if not isinstance(payload, list):
			return []
		model = COLLECTION_MODELS[collection]
		unreadable: list[tuple[int, Any]] = []
		for position, item in enumerate(payload):
			try:
				model.model_validate(item)
			except ValidationError:
				unreadable.append((position, item))
		return unreadable

	async def enqueue_sync(
		self,
		entity_type: CollectionName,
		created: Sequence[OwnedRecord],
		payloads: Sequence[dict[str, Any]] | None = None,
	) -> None:
		"""Queue one pending ``create`` outbox entry per created record."""
		queue = await self.load(CollectionName.sync_queue)
		for position, record in enumerate(created):
			body = payloads[position] if payloads is not None else record.to_record()
			queue.append(
				SyncQueueRecord(
					id=f"sq-{record.id}",
					owner_id=record.owner_id,
					entity_type=entity_type.value,
					entity_id=record.id,
					operation="create",
					payload=json.dumps(body),
					created_at=getattr(record, "created_at", None),
					status=SyncStatus.pending.value,
				)
			)
		await self.commit(CollectionName.sync_queue, queue)

	async def find(self, collection: CollectionName, record_id: str) -> Any | None:
		for record in await self.load(collection):
			if record.id == record_id:
				return record
		return None

	@asynccontextmanager
	async def writing(self) -> AsyncIterator[None]:
		"""Serialize read-modify-write sequences within this process."""
		async with self._write_lock:
			yield

	async def build_index(self) -> DiaryIndex:
		occurrences = await self.load(CollectionName.task_occurrences)
		return DiaryIndex(
			fields=index_by_id(await self.load(CollectionName.fields)),
			areas=index_by_id(await self.load(CollectionName.areas)),
			crop_instances=index_by_id(await self.load(CollectionName.crop_instances)),
			library_crops=index_by_id(await self.load(CollectionName.library_crops)),
			task_templates=index_by_id(await self.load(CollectionName.task_templates)),
			task_types=index_by_id(await self.load(CollectionName.task_types)),
			task_occurrences=index_by_id(occurrences),
			units=index_by_id(await self.load(CollectionName.units)),
			status_codes=index_by_id(await self.load(CollectionName.status_codes)),
			reason_codes=index_by_id(await self.load(CollectionName.reason_codes)),
			photos=index_by_id(await self.load(CollectionName.photos)),
			logs=await self.load(CollectionName.logs),
			occurrences=occurrences,
		)


def _decode(raw: str) -> Any:
	try:
		return json.loads(raw)
	except (TypeError, ValueError):
		return None
