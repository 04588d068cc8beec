from __future__ import annotations

import json

import pytest

from farmdiary.models.enums import CollectionName
from farmdiary.schemas.records import AreaRecord, CropInstanceRecord, FieldRecord, SyncQueueRecord
from farmdiary.services.record_store import MemoryRecordStore
from farmdiary.services.repository import SCHEMA_VERSION, EntityRepository, StorageFailure
from tests.conftest import FailingStore


@pytest.mark.asyncio
async def test_initialize_records_schema_version_and_heals_collections() -> None:
	store = MemoryRecordStore({"localDB:fields": '{"not": "a list"}', "localDB:areas": "[]"})
	repository = EntityRepository(store)

	assert await repository.initialize() == 0
	assert await store.read("localDB:__schemaVersion__") == str(SCHEMA_VERSION)
	assert await store.read("localDB:fields") == "[]"
	assert await store.read("localDB:areas") == "[]"

	assert await repository.initialize() == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_load_absent_or_malformed_collection_is_empty() -> None:
	repository = EntityRepository(MemoryRecordStore({"localDB:logs": "not json"}))

	assert await repository.load(CollectionName.fields) == []
	assert await repository.load(CollectionName.logs) == []


@pytest.mark.asyncio
async def test_load_drops_records_that_fail_validation() -> None:
	raw = [{"id": "f-1", "name": "North"}, {"name": "no id"}, {"id": ""}, "junk"]
	repository = EntityRepository(MemoryRecordStore({"localDB:fields": json.dumps(raw)}))

	fields = await repository.load(CollectionName.fields)
	assert [field.id for field in fields] == ["f-1"]


@pytest.mark.asyncio
async def test_save_all_preserves_unknown_keys_and_order() -> None:
	raw = [
		{"id": "f-2", "name": "South", "colour": "green"},
		{"id": "f-1", "userId": "legacy-owner", "name": "North"},
	]
	store = MemoryRecordStore({"localDB:fields": json.dumps(raw)})
	repository = EntityRepository(store)

	fields = await repository.load(CollectionName.fields)
	assert fields[1].owner_id == "legacy-owner"
	assert await repository.save_all(CollectionName.fields, fields) is True

	stored = json.loads(await store.read("localDB:fields"))
	assert [item["id"] for item in stored] == ["f-2", "f-1"]
	assert stored[0]["colour"] == "green"
	assert stored[1]["ownerId"] == "legacy-owner"
	assert "userId" not in stored[1]


@pytest.mark.asyncio
async def test_save_all_carries_unreadable_items_at_their_positions() -> None:
	raw = [{"id": "f-1", "name": "North"}, {"name": "no id"}, "junk", {"id": "f-2", "name": "South"}]
	store = MemoryRecordStore({"localDB:fields": json.dumps(raw)})
	repository = EntityRepository(store)

	fields = await repository.load(CollectionName.fields)
	assert await repository.save_all(CollectionName.fields, [*fields, FieldRecord(id="f-3", name="East")]) is True

	stored = json.loads(await store.read("localDB:fields"))
	assert stored[1:3] == [{"name": "no id"}, "junk"]
	assert [item["id"] for item in stored if isinstance(item, dict) and "id" in item] == ["f-1", "f-2", "f-3"]


@pytest.mark.asyncio
async def test_save_all_replaces_unreadable_item_with_same_id() -> None:
	store = MemoryRecordStore({"localDB:syncQueue": json.dumps([{"id": "sq-1", "payload": "{}"}])})
	repository = EntityRepository(store)
	assert await repository.load(CollectionName.sync_queue) == []

	entry = SyncQueueRecord(id="sq-1", entity_type="logs", entity_id="log-1", operation="create")
	await repository.save_all(CollectionName.sync_queue, [entry])

	stored = json.loads(await store.read("localDB:syncQueue"))
	assert [item["entityId"] for item in stored] == ["log-1"]


def test_numeric_identifiers_load_as_text() -> None:
	area = AreaRecord.model_validate({"id": 7, "userId": 42, "fieldId": 3, "name": "Pots"})

	assert area.id == "7"
	assert area.owner_id == "42"
	assert area.field_id == "3"
	assert area.to_record()["ownerId"] == "42"


@pytest.mark.asyncio
async def test_commit_raises_when_the_store_rejects_the_write() -> None:
	repository = EntityRepository(FailingStore())

	with pytest.raises(StorageFailure) as excinfo:
		await repository.commit(CollectionName.fields, [FieldRecord(id="f-1", name="North")])
	assert excinfo.value.collection == CollectionName.fields


@pytest.mark.asyncio
async def test_storage_failure_degrades_to_empty_reads_and_false_writes() -> None:
	store = FailingStore()
	repository = EntityRepository(store)

	assert await repository.load(CollectionName.fields) == []
	assert await repository.save_all(CollectionName.fields, [FieldRecord(id="f-1", name="North")]) is False
	assert store.writes == 1


@pytest.mark.asyncio
async def test_namespace_prefixes_every_key() -> None:
	store = MemoryRecordStore()
	repository = EntityRepository(store, namespace="farmA")

	await repository.save_all(CollectionName.task_occurrences, [])
	assert repository.key_for(CollectionName.task_occurrences) == "farmA:taskOccurrences"
	assert store.keys() == ["farmA:taskOccurrences"]


@pytest.mark.asyncio
async def test_build_index_maps_records_by_id(repository: EntityRepository) -> None:
	index = await repository.build_index()

	assert index.crop_instances["ci-1"].name == "Tomato"
	assert index.units["u-g"].conversion_factor_to_base == 0.001
	assert [occ.id for occ in index.occurrences] == ["to-1", "to-2", "to-3", "to-4", "to-9"]
	assert len(index.logs) == 5


def test_override_entries_are_unique_and_textual() -> None:
	crop = CropInstanceRecord.model_validate(
		{
			"id": "ci-1",
			"overrides": [
				{"key": "defaultIntervalDays", "value": "3"},
				{"key": "defaultIntervalDays", "value": 4},
				{"key": "shade", "value": "partial"},
				{"key": "", "value": "dropped"},
			],
		}
	)

	assert [(entry.key, entry.value) for entry in crop.overrides] == [
		("defaultIntervalDays", "4"),
		("shade", "partial"),
	]


def test_typed_overrides_coerce_known_keys() -> None:
	crop = CropInstanceRecord.model_validate(
		{"id": "ci-1", "overrides": {"recommendedQuantity": "2.5", "daysToMaturity": "soon", "mulch": "straw"}}
	)
	overrides = crop.typed_overrides()

	assert overrides.recommended_quantity == 2.5
	assert overrides.days_to_maturity is None
	assert overrides.has("daysToMaturity") is True
	assert overrides.has("defaultIntervalDays") is False
	assert overrides.extra == {"mulch": "straw"}
	assert overrides.to_map() == {"recommendedQuantity": 2.5, "daysToMaturity": None, "mulch": "straw"}
