from __future__ import annotations

import json
from collections.abc import Callable
from datetime import date, datetime

import pytest

from farmdiary.auth.dependencies import SessionContext
from farmdiary.models.enums import CollectionName, LogAction, StatusName
from farmdiary.schemas.records import ReasonCodeRecord
from farmdiary.schemas.tasks import LogCreate, TaskCompletion
from farmdiary.services.lifecycle_service import (
	TaskLifecycleService,
	derive_initial_status,
	resolve_reason_id,
)
from farmdiary.services.record_store import MemoryRecordStore
from farmdiary.services.repository import EntityRepository, StorageFailure
from tests.conftest import OTHER_OWNER, OWNER, KeyFailingStore, diary_data, store_with


@pytest.fixture
def lifecycle(repository: EntityRepository, clock: Callable[[], datetime]) -> TaskLifecycleService:
	return TaskLifecycleService(repository, clock=clock)


async def _occurrence(repository: EntityRepository, occurrence_id: str):
	return await repository.find(CollectionName.task_occurrences, occurrence_id)


@pytest.mark.parametrize(
	("due_day", "expected"),
	[
		(date(2025, 9, 14), StatusName.overdue),
		(date(2025, 9, 15), StatusName.due),
		(date(2025, 9, 16), StatusName.planned),
	],
)
def test_derive_initial_status(due_day: date, expected: StatusName) -> None:
	assert derive_initial_status(due_day, date(2025, 9, 15)) == expected


@pytest.mark.asyncio
async def test_mark_complete_updates_occurrence_and_appends_log(
	repository: EntityRepository, lifecycle: TaskLifecycleService
) -> None:
	log_id = await lifecycle.mark_complete(
		"to-1", TaskCompletion(quantity=5, unit_id="u-L", notes="morning", photo_ids=["p-2"])
	)

	occurrence = await _occurrence(repository, "to-1")
	assert occurrence.status_id == "status-completed"
	assert occurrence.last_completed_at == "2025-09-15T09:00:00.000Z"
	assert occurrence.snooze_until is None
	assert occurrence.updated_at == "2025-09-15T09:00:00.000Z"

	logs = await repository.load(CollectionName.logs)
	assert len(logs) == 6
	log = logs[-1]
	assert log.id == log_id
	assert log.action == LogAction.completed
	assert log.owner_id == OWNER
	assert log.crop_instance_id == "ci-1"
	assert log.quantity == 5
	assert log.unit_id == "u-L"
	assert log.photo_ids == ["p-2"]


@pytest.mark.asyncio
async def test_mark_complete_without_payload_logs_null_quantity(
	repository: EntityRepository, lifecycle: TaskLifecycleService
) -> None:
	await lifecycle.mark_complete("to-3")

	log = (await repository.load(CollectionName.logs))[-1]
	assert log.quantity is None
	assert log.unit_id is None
	assert log.photo_ids == []


@pytest.mark.asyncio
async def test_transition_on_missing_occurrence_writes_nothing(
	store: MemoryRecordStore, lifecycle: TaskLifecycleService
) -> None:
	before = {key: await store.read(key) for key in store.keys()}

	with pytest.raises(LookupError):
		await lifecycle.mark_complete("to-missing")
	with pytest.raises(LookupError):
		await lifecycle.skip("to-missing", "reason-rain")
	with pytest.raises(LookupError):
		await lifecycle.snooze("to-missing", "2025-09-20")

	assert {key: await store.read(key) for key in store.keys()} == before


@pytest.mark.asyncio
async def test_skip_appends_exactly_one_log(repository: EntityRepository, lifecycle: TaskLifecycleService) -> None:
	logs_before = await repository.load(CollectionName.logs)

	log_id = await lifecycle.skip("to-1", "reason-other", "too windy")

	occurrence = await _occurrence(repository, "to-1")
	assert occurrence.status_id == "status-skipped"
	assert occurrence.snooze_until is None

	logs_after = await repository.load(CollectionName.logs)
	new_logs = [log for log in logs_after if log.id not in {log.id for log in logs_before}]
	assert [log.id for log in new_logs] == [log_id]
	assert new_logs[0].action == LogAction.skipped
	assert new_logs[0].skip_reason_id == "reason-other"
	assert new_logs[0].notes == "too windy"
	assert [log.to_record() for log in logs_after[: len(logs_before)]] == [log.to_record() for log in logs_before]


@pytest.mark.asyncio
async def test_snooze_moves_due_date_and_replans(repository: EntityRepository, lifecycle: TaskLifecycleService) -> None:
	await lifecycle.snooze("to-2", "2025-09-20")

	occurrence = await _occurrence(repository, "to-2")
	assert occurrence.status_id == "status-planned"
	assert occurrence.due_date == "2025-09-20T00:00:00.000Z"
	assert occurrence.snooze_until == "2025-09-20T00:00:00.000Z"
	assert (await repository.load(CollectionName.logs))[-1].action == LogAction.snoozed


@pytest.mark.asyncio
async def test_snooze_rejects_unparsable_date(store: MemoryRecordStore, lifecycle: TaskLifecycleService) -> None:
	before = {key: await store.read(key) for key in store.keys()}

	with pytest.raises(ValueError):
		await lifecycle.snooze("to-2", "next tuesday")

	assert {key: await store.read(key) for key in store.keys()} == before


@pytest.mark.asyncio
async def test_bulk_complete_is_idempotent(repository: EntityRepository, lifecycle: TaskLifecycleService) -> None:
	first = await lifecycle.bulk_complete("a-1", "ttype-watering")
	second = await lifecycle.bulk_complete("a-1", "ttype-watering")

	assert first.completed_count == 1
	assert second.completed_count == 0
	assert (await _occurrence(repository, "to-1")).status_id == "status-completed"
	assert (await _occurrence(repository, "to-2")).status_id == "status-overdue"


@pytest.mark.asyncio
async def test_bulk_complete_leaves_closed_occurrences_alone(
	repository: EntityRepository, lifecycle: TaskLifecycleService
) -> None:
	await lifecycle.skip("to-2", None)
	logs_before = len(await repository.load(CollectionName.logs))

	result = await lifecycle.bulk_complete("a-1", "ttype-fertilize")

	assert result.completed_count == 0
	assert (await _occurrence(repository, "to-2")).status_id == "status-skipped"
	assert len(await repository.load(CollectionName.logs)) == logs_before


@pytest.mark.asyncio
async def test_bulk_complete_requires_area(lifecycle: TaskLifecycleService) -> None:
	with pytest.raises(LookupError):
		await lifecycle.bulk_complete("a-missing", "ttype-watering")


@pytest.mark.asyncio
async def test_rain_skip_only_touches_owner_tasks_due_that_day(
	repository: EntityRepository, lifecycle: TaskLifecycleService
) -> None:
	result = await lifecycle.skip_tasks_for_rain(SessionContext(owner_id=OWNER), "2025-09-15", ["to-1", "to-3", "to-9"])

	assert result.skipped_count == 1
	assert (await _occurrence(repository, "to-1")).status_id == "status-skipped"
	assert (await _occurrence(repository, "to-3")).status_id == "status-planned"
	assert (await _occurrence(repository, "to-9")).status_id == "status-due"

	log = (await repository.load(CollectionName.logs))[-1]
	assert log.skip_reason_id == "reason-rain"
	assert log.notes == "Skipped due to rain on 2025-09-15"


@pytest.mark.asyncio
async def test_rain_skip_rejects_bad_date(lifecycle: TaskLifecycleService) -> None:
	with pytest.raises(ValueError):
		await lifecycle.skip_tasks_for_rain(SessionContext(owner_id=OTHER_OWNER), "yesterday", ["to-9"])


@pytest.mark.asyncio
async def test_create_task_log_infers_owner_and_crop(
	repository: EntityRepository, lifecycle: TaskLifecycleService
) -> None:
	log_id = await lifecycle.create_task_log("to-3", LogCreate(action=LogAction.completed, quantity=2, unit_id="u-L"))

	log = await repository.find(CollectionName.logs, log_id)
	assert log.owner_id == OWNER
	assert log.crop_instance_id == "ci-2"
	assert log.timestamp == "2025-09-15T09:00:00.000Z"
	assert (await _occurrence(repository, "to-3")).status_id == "status-planned"


@pytest.mark.asyncio
async def test_new_logs_are_queued_for_sync(repository: EntityRepository, lifecycle: TaskLifecycleService) -> None:
	log_id = await lifecycle.mark_complete("to-1")

	queue = await repository.load(CollectionName.sync_queue)
	assert len(queue) == 1
	entry = queue[0]
	assert entry.entity_type == "logs"
	assert entry.entity_id == log_id
	assert entry.operation == "create"
	assert entry.status == "pending"
	assert json.loads(entry.payload)["id"] == log_id


def test_resolve_reason_id_fallbacks() -> None:
	codes = [
		ReasonCodeRecord(id="reason-rain", name="rain"),
		ReasonCodeRecord(id="reason-pest-low", name="pest_pressure_low"),
		ReasonCodeRecord(id="reason-other", name="other"),
	]

	assert resolve_reason_id("Rain", codes) == "reason-rain"
	assert resolve_reason_id("pest", codes) == "reason-pest-low"
	assert resolve_reason_id("hail", codes) == "reason-other"


@pytest.mark.asyncio
async def test_transition_keeps_sibling_logs_it_cannot_model(clock: Callable[[], datetime]) -> None:
	data = diary_data()
	legacy = {
		"id": "log-legacy",
		"userId": 42,
		"taskOccurrenceId": "to-4",
		"action": "completed",
		"timestamp": "2025-09-01T07:00:00Z",
	}
	data["logs"] = [*data["logs"], legacy, "junk", {"notes": "entry without id"}]
	store = store_with(data)
	repository = EntityRepository(store)

	await TaskLifecycleService(repository, clock=clock).mark_complete("to-2")

	stored = json.loads(await store.read("localDB:logs"))
	assert "junk" in stored
	assert {"notes": "entry without id"} in stored
	kept = next(item for item in stored if isinstance(item, dict) and item.get("id") == "log-legacy")
	assert kept["ownerId"] == "42"
	assert len(stored) == 9
	assert (await repository.find(CollectionName.logs, "log-legacy")).owner_id == "42"


@pytest.mark.asyncio
async def test_failed_occurrence_write_appends_no_log(clock: Callable[[], datetime]) -> None:
	store = KeyFailingStore(store_with(diary_data()), "localDB:taskOccurrences")
	repository = EntityRepository(store)
	lifecycle = TaskLifecycleService(repository, clock=clock)

	with pytest.raises(StorageFailure):
		await lifecycle.mark_complete("to-2")

	assert store.rejected == ["localDB:taskOccurrences"]
	assert len(await repository.load(CollectionName.logs)) == 5
	assert await repository.load(CollectionName.sync_queue) == []
	assert (await _occurrence(repository, "to-2")).status_id == "status-overdue"


@pytest.mark.asyncio
async def test_failed_log_write_raises_after_occurrence_update(clock: Callable[[], datetime]) -> None:
	store = KeyFailingStore(store_with(diary_data()), "localDB:logs")
	repository = EntityRepository(store)

	with pytest.raises(StorageFailure) as excinfo:
		await TaskLifecycleService(repository, clock=clock).skip("to-1", "reason-rain")

	assert excinfo.value.collection == CollectionName.logs
	assert await repository.load(CollectionName.sync_queue) == []
