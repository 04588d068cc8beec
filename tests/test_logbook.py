from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime

import pytest

from farmdiary.auth.dependencies import SessionContext
from farmdiary.models.enums import CollectionName
from farmdiary.schemas.logbook import ExportPayload, ExportSummary, LogFilters, PhotoCreate
from farmdiary.services.logbook_service import LogbookService, export_body, page_slice, round1
from farmdiary.services.repository import EntityRepository
from tests.conftest import OWNER, diary_data, store_with

FILTER_CASES = [
	LogFilters(),
	LogFilters(field_id="f-1"),
	LogFilters(area_id="a-2"),
	LogFilters(crop_instance_id="ci-1"),
	LogFilters(task_type_id="ttype-watering"),
	LogFilters(status_id="status-completed"),
	LogFilters(start_date="2025-09-11", end_date="2025-09-12"),
	LogFilters(field_id="f-1", task_type_id="ttype-fertilize"),
	LogFilters(field_id="f-missing"),
]


@pytest.fixture
def logbook(repository: EntityRepository, clock: Callable[[], datetime]) -> LogbookService:
	return LogbookService(repository, clock=clock)


@pytest.mark.asyncio
async def test_list_logs_newest_first(logbook: LogbookService) -> None:
	page = await logbook.list_logs()

	assert page.total_count == 5
	assert [log.id for log in page.logs] == ["log-3", "log-9", "log-2", "log-4", "log-1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("filters", FILTER_CASES)
async def test_total_count_matches_unpaged_result(logbook: LogbookService, filters: LogFilters) -> None:
	page = await logbook.list_logs(filters, page=1, page_size=100)

	assert page.total_count == len(page.logs)


@pytest.mark.asyncio
@pytest.mark.parametrize("filters", FILTER_CASES)
async def test_pages_past_the_end_are_short_not_errors(logbook: LogbookService, filters: LogFilters) -> None:
	total = (await logbook.list_logs(filters, page=1, page_size=100)).total_count
	page_size = 2
	last_page = max(1, -(-total // page_size))

	for page_number in (last_page, last_page + 1, last_page + 5):
		page = await logbook.list_logs(filters, page=page_number, page_size=page_size)
		assert page.total_count == total
		assert len(page.logs) <= page_size
		if page_number * page_size > total:
			assert len(page.logs) < page_size


@pytest.mark.asyncio
@pytest.mark.parametrize(
	("filters", "expected"),
	[
		(LogFilters(field_id="f-1"), {"log-1", "log-2"}),
		(LogFilters(area_id="a-2"), {"log-3", "log-4"}),
		(LogFilters(task_type_id="ttype-watering"), {"log-3", "log-9"}),
		(LogFilters(status_id="status-completed"), {"log-1"}),
		(LogFilters(start_date="2025-09-11", end_date="2025-09-12"), {"log-2", "log-4"}),
		(LogFilters(start_date="2025-09-14"), {"log-3", "log-9"}),
		(LogFilters(field_id="", area_id="  "), {"log-1", "log-2", "log-3", "log-4", "log-9"}),
		(LogFilters(start_date="garbage", end_date="2025-09-10"), {"log-1"}),
	],
)
async def test_filters_narrow_through_joins(logbook: LogbookService, filters: LogFilters, expected: set[str]) -> None:
	page = await logbook.list_logs(filters)

	assert {log.id for log in page.logs} == expected


def test_page_slice_clamps_to_first_page() -> None:
	assert page_slice(0, 10, 50) == (0, 10)
	assert page_slice(-3, -1, 50) == (0, 1)
	assert page_slice(None, None, 50) == (0, 50)
	assert page_slice(3, 2, 50) == (4, 6)


@pytest.mark.asyncio
async def test_aggregate_totals_by_bucket(logbook: LogbookService) -> None:
	totals = await logbook.aggregate()

	assert totals.total_water_l == 8.0
	assert totals.total_fertilizer_kg == 0.5
	assert totals.total_harvest_kg == 2.5
	assert totals.total_logs == 5


@pytest.mark.asyncio
async def test_aggregate_converts_to_base_units(clock: Callable[[], datetime]) -> None:
	data = diary_data()
	data["logs"] = [
		{"id": "log-a", "taskOccurrenceId": "to-1", "cropInstanceId": "ci-1", "action": "completed", "quantity": 5, "unitId": "u-L"},
		{"id": "log-b", "taskOccurrenceId": "to-2", "cropInstanceId": "ci-1", "action": "completed", "quantity": 500, "unitId": "u-g"},
	]
	service = LogbookService(EntityRepository(store_with(data)), clock=clock)

	totals = await service.aggregate()

	assert totals.total_water_l == 5.0
	assert totals.total_fertilizer_kg == 0.5
	assert totals.total_harvest_kg == 0.0


@pytest.mark.asyncio
async def test_aggregate_skips_mismatched_unit_categories(clock: Callable[[], datetime]) -> None:
	data = diary_data()
	data["logs"] = [
		{"id": "log-a", "taskOccurrenceId": "to-1", "cropInstanceId": "ci-1", "action": "completed", "quantity": 2, "unitId": "u-kg"},
		{"id": "log-b", "taskOccurrenceId": "to-1", "cropInstanceId": "ci-1", "action": "completed", "quantity": 1500, "unitId": "u-ml"},
		{"id": "log-c", "taskOccurrenceId": "to-4", "cropInstanceId": "ci-1", "action": "completed", "quantity": 4, "unitId": "u-pc"},
		{"id": "log-d", "taskOccurrenceId": "to-2", "cropInstanceId": "ci-1", "action": "completed", "quantity": 3},
	]
	service = LogbookService(EntityRepository(store_with(data)), clock=clock)

	totals = await service.aggregate()

	assert totals.total_water_l == 1.5
	assert totals.total_fertilizer_kg == 0.0
	assert totals.total_harvest_kg == 0.0
	assert totals.total_logs == 4


def test_round1_rounds_half_up() -> None:
	assert round1(2.25) == 2.3
	assert round1(0.04) == 0.0
	assert round1(7.96) == 8.0


@pytest.mark.asyncio
async def test_export_summary_estimates_serialized_size(logbook: LogbookService) -> None:
	summary = await logbook.export_logs(LogFilters(field_id="f-1"))

	assert isinstance(summary, ExportSummary)
	assert summary.log_count == 2
	assert summary.estimated_size_kb > 0

	full = await logbook.export_logs(LogFilters(field_id="f-1"), include_photos=False)
	serialized = json.dumps(export_body(full), separators=(",", ":"), ensure_ascii=False)
	assert summary.estimated_size_kb == pytest.approx(len(serialized) / 1024)


@pytest.mark.asyncio
async def test_export_full_payload_deduplicates_photos(logbook: LogbookService) -> None:
	payload = await logbook.export_logs(LogFilters(crop_instance_id="ci-1"), include_photos=True)

	assert isinstance(payload, ExportPayload)
	assert payload.metadata.log_count == 2
	assert payload.metadata.exported_at == "2025-09-15T09:00:00.000Z"
	assert payload.metadata.filters == {"cropInstanceId": "ci-1"}
	assert [photo.id for photo in payload.photos or []] == ["p-1", "p-2"]


@pytest.mark.asyncio
async def test_export_without_photos_omits_photo_key(logbook: LogbookService) -> None:
	payload = await logbook.export_logs(include_photos=False)

	body = export_body(payload)
	assert "photos" not in body
	assert body["metadata"]["logCount"] == 5


@pytest.mark.asyncio
async def test_filter_options_lists_pickers(logbook: LogbookService) -> None:
	options = await logbook.filter_options()

	assert [item.id for item in options.field_options] == ["f-1", "f-2", "f-9"]
	assert options.crops[0].name == "Tomato"
	assert options.task_types[0].name_en == "Watering"
	assert "fields" in options.model_dump(by_alias=True)


@pytest.mark.asyncio
async def test_get_photo(logbook: LogbookService) -> None:
	photo = await logbook.get_photo("p-2")

	assert photo is not None and photo.size_bytes == 2000
	assert await logbook.get_photo("p-missing") is None
	assert await logbook.get_photo("") is None


@pytest.mark.asyncio
async def test_create_photo_records_metadata_and_queues_sync(
	logbook: LogbookService, repository: EntityRepository
) -> None:
	photo = await logbook.create_photo(
		SessionContext(owner_id=OWNER),
		PhotoCreate(storage_ref="local://p-new.jpg", width=1280, height=720, size_bytes=4096, preset_id="pp-1280"),
	)

	stored = await logbook.get_photo(photo.id)
	assert stored is not None
	assert photo.id.startswith("p-")
	assert stored.owner_id == OWNER
	assert stored.mime_type == "image/jpeg"
	assert stored.created_at == "2025-09-15T09:00:00.000Z"

	queue = await repository.load(CollectionName.sync_queue)
	assert [entry.entity_id for entry in queue] == [photo.id]
	assert queue[0].id == f"sq-{photo.id}"
	assert queue[0].entity_type == "photos"
	assert json.loads(queue[0].payload) == {"id": photo.id, "ownerId": OWNER, "presetId": "pp-1280"}
