"""Logbook queries (filtering, pagination, unit-aware totals, export) and photo metadata."""

from __future__ import annotations

import json
import math
from datetime import UTC, datetime, tzinfo
from typing import Any

import structlog

from farmdiary.auth.dependencies import SessionContext
from farmdiary.config import get_settings
from farmdiary.models.enums import CollectionName, UnitType
from farmdiary.schemas.logbook import (
	AggregateTotals,
	EnrichedLog,
	ExportMetadata,
	ExportPayload,
	ExportSummary,
	FilterOptions,
	LogFilters,
	LogPage,
	NamedOption,
	PhotoCreate,
	PhotoSummary,
	TaskTypeOption,
)
from farmdiary.schemas.records import LogRecord, PhotoRecord, UnitRecord
from farmdiary.services import enrichment
from farmdiary.services.repository import DiaryIndex, EntityRepository, new_id
from farmdiary.services.timeutil import Clock, end_of_day, parse_day, parse_instant, start_of_day, system_clock, to_iso

WATERING_TASK_TYPE_ID = "ttype-watering"
FERTILIZE_TASK_TYPE_ID = "ttype-fertilize"
HARVEST_TASK_TYPE_ID = "ttype-harvest"

logger = structlog.get_logger("farmdiary.logbook")

# task type id → (bucket, unit category the bucket accepts)
_AGGREGATE_BUCKETS: dict[str, tuple[str, UnitType]] = {
	WATERING_TASK_TYPE_ID: ("water", UnitType.volume),
	FERTILIZE_TASK_TYPE_ID: ("fertilizer", UnitType.weight),
	HARVEST_TASK_TYPE_ID: ("harvest", UnitType.weight),
}


def round1(value: float) -> float:
	"""Round half up to one decimal place."""
	return math.floor(value * 10 + 0.5) / 10


def to_base(quantity: float, unit: UnitRecord) -> float:
	factor = unit.conversion_factor_to_base if unit.conversion_factor_to_base is not None else 1
	return quantity * factor


def page_slice(page: int | None, page_size: int | None, default_size: int) -> tuple[int, int]:
	"""Clamp a 1-based page request and return the ``[start, end)`` slice bounds."""
	current = max(1, int(page or 1))
	size = max(1, int(page_size or default_size))
	start = (current - 1) * size
	return start, start + size


class DateBounds:
	"""Inclusive ``[start of first day, end of last day]`` window; open sides are unbounded."""

	def __init__(self, start_date: str | None, end_date: str | None, tz: tzinfo):
		start_day = parse_day(start_date) if start_date else None
		end_day = parse_day(end_date) if end_date else None
		self.active = bool(start_date or end_date)
		self.start = start_of_day(start_day, tz) if start_day else None
		self.end = end_of_day(end_day, tz) if end_day else None

	def contains(self, moment: datetime | None) -> bool:
		if moment is None:
			return False
		if self.start is not None and moment < self.start:
			return False
		if self.end is not None and moment > self.end:
			return False
		return True


def log_matches(index: DiaryIndex, log: LogRecord, filters: LogFilters, bounds: DateBounds) -> bool:
	if bounds.active and not bounds.contains(parse_instant(log.timestamp)):
		return False
	if filters.crop_instance_id and log.crop_instance_id != filters.crop_instance_id:
		return False
	if filters.area_id or filters.field_id:
		crop = enrichment.crop_for(index, log.crop_instance_id)
		if crop is None:
			return False
		if filters.area_id and crop.area_id != filters.area_id:
			return False
		if filters.field_id:
			area = enrichment.area_for(index, crop)
			if area is None or area.field_id != filters.field_id:
				return False
	if filters.task_type_id:
		task_type = enrichment.task_type_for_log(index, log)
		if task_type is None or task_type.id != filters.task_type_id:
			return False
	if filters.status_id:
		occurrence = index.task_occurrences.get(log.task_occurrence_id or "")
		if occurrence is None or occurrence.status_id != filters.status_id:
			return False
	return True


_EPOCH_FLOOR = datetime.min.replace(tzinfo=UTC)


def _newest_first(log: LogRecord) -> datetime:
	return parse_instant(log.timestamp) or _EPOCH_FLOOR


class LogbookService:
	"""Read-side queries over enriched logs."""

	def __init__(
		self,
		repository: EntityRepository,
		clock: Clock | None = None,
		default_page_size: int | None = None,
	):
		settings = get_settings()
		self.repository = repository
		self.clock = clock or system_clock(settings.tzinfo)
		self.default_page_size = default_page_size or settings.default_page_size

	@property
	def tz(self) -> tzinfo:
		return self.clock().tzinfo or get_settings().tzinfo

	async def list_logs(
		self,
		filters: LogFilters | None = None,
		page: int | None = 1,
		page_size: int | None = None,
	) -> LogPage:
		index = await self.repository.build_index()
		matching = self._select(index, filters or LogFilters())
		matching.sort(key=_newest_first, reverse=True)

		start, end = page_slice(page, page_size, self.default_page_size)
		return LogPage(
			logs=[enrichment.enrich_log(index, log) for log in matching[start:end]],
			total_count=len(matching),
		)

	async def aggregate(self, filters: LogFilters | None = None) -> AggregateTotals:
		index = await self.repository.build_index()
		matching = self._select(index, filters or LogFilters())

		totals = {"water": 0.0, "fertilizer": 0.0, "harvest": 0.0}
		for log in matching:
			if log.quantity is None or not log.unit_id:
				continue
			task_type = enrichment.task_type_for_log(index, log)
			if task_type is None or task_type.id not in _AGGREGATE_BUCKETS:
				continue
			bucket, unit_type = _AGGREGATE_BUCKETS[task_type.id]
			unit = index.units.get(log.unit_id)
			if unit is None or unit.type != unit_type.value:
				continue
			totals[bucket] += to_base(log.quantity, unit)

		return AggregateTotals(
			total_water_l=round1(totals["water"]),
			total_fertilizer_kg=round1(totals["fertilizer"]),
			total_harvest_kg=round1(totals["harvest"]),
			total_logs=len(matching),
		)

	async def export_logs(
		self,
		filters: LogFilters | None = None,
		include_photos: bool | None = None,
	) -> ExportSummary | ExportPayload:
		"""Size estimate when ``include_photos`` is ``None``, full payload otherwise."""
		filters = filters or LogFilters()
		index = await self.repository.build_index()
		enriched = [enrichment.enrich_log(index, log) for log in self._select(index, filters)]
		metadata = ExportMetadata(
			exported_at=to_iso(self.clock()),
			log_count=len(enriched),
			filters=filters.as_metadata(),
		)

		if include_photos is None:
			body = {
				"metadata": metadata.model_dump(by_alias=True),
				"logs": [log.model_dump(by_alias=True) for log in enriched],
			}
			serialized = json.dumps(body, separators=(",", ":"), ensure_ascii=False)
			return ExportSummary(log_count=len(enriched), estimated_size_kb=len(serialized) / 1024)

		payload = ExportPayload(metadata=metadata, logs=enriched)
		if include_photos:
			photos = self._referenced_photos(index, enriched)
			if photos:
				payload.photos = photos
		return payload

	async def filter_options(self) -> FilterOptions:
		fields = await self.repository.load(CollectionName.fields)
		areas = await self.repository.load(CollectionName.areas)
		crops = await self.repository.load(CollectionName.crop_instances)
		task_types = await self.repository.load(CollectionName.task_types)
		return FilterOptions(
			field_options=[NamedOption(id=item.id, name=item.name) for item in fields],
			areas=[NamedOption(id=item.id, name=item.name) for item in areas],
			crops=[NamedOption(id=item.id, name=item.name) for item in crops],
			task_types=[TaskTypeOption(id=item.id, name_en=item.name_en) for item in task_types],
		)

	async def get_photo(self, photo_id: str) -> PhotoRecord | None:
		if not photo_id:
			return None
		return await self.repository.find(CollectionName.photos, photo_id)

	async def create_photo(self, session: SessionContext, payload: PhotoCreate) -> PhotoRecord:
		"""Record photo metadata and queue it for sync; the bytes are stored elsewhere."""
		photo = PhotoRecord(
			id=new_id("p"),
			owner_id=session.owner_id,
			storage_ref=payload.storage_ref,
			mime_type=payload.mime_type or "image/jpeg",
			width=payload.width,
			height=payload.height,
			size_bytes=payload.size_bytes,
			preset_id=payload.preset_id or None,
			created_at=to_iso(self.clock()),
		)
		async with self.repository.writing():
			photos = await self.repository.load(CollectionName.photos)
			await self.repository.commit(CollectionName.photos, [*photos, photo])
			await self.repository.enqueue_sync(
				CollectionName.photos,
				[photo],
				[{"id": photo.id, "ownerId": photo.owner_id, "presetId": photo.preset_id}],
			)
		logger.info("photo_recorded", photo_id=photo.id, owner_id=session.owner_id)
		return photo

	def _select(self, index: DiaryIndex, filters: LogFilters) -> list[LogRecord]:
		bounds = DateBounds(filters.start_date, filters.end_date, self.tz)
		return [log for log in index.logs if log_matches(index, log, filters, bounds)]

	@staticmethod
	def _referenced_photos(index: DiaryIndex, logs: list[EnrichedLog]) -> list[PhotoSummary]:
		seen: dict[str, None] = {}
		for log in logs:
			for photo_id in log.photo_ids:
				seen.setdefault(photo_id, None)

		photos: list[PhotoSummary] = []
		for photo_id in seen:
			photo = index.photos.get(photo_id)
			if photo is None:
				continue
			photos.append(
				PhotoSummary(
					id=photo.id,
					storage_ref=photo.storage_ref,
					mime_type=photo.mime_type or None,
					width=photo.width or None,
					height=photo.height or None,
					size_bytes=photo.size_bytes or None,
					created_at=photo.created_at or None,
				)
			)
		return photos


def export_body(result: ExportSummary | ExportPayload) -> dict[str, Any]:
	"""JSON body for an export result; ``photos`` appears only when populated."""
	if isinstance(result, ExportPayload) and result.photos is None:
		return result.model_dump(by_alias=True, exclude={"photos"})
	return result.model_dump(by_alias=True)
