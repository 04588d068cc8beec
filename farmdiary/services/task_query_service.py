"""Owner-scoped task listings, stats and calendar queries over occurrences."""

from __future__ import annotations

from datetime import UTC, date, datetime, tzinfo

from farmdiary.auth.dependencies import SessionContext
from farmdiary.config import get_settings
from farmdiary.models.enums import CollectionName, LogAction, StatusName
from farmdiary.schemas.records import LogRecord, TaskOccurrenceRecord
from farmdiary.schemas.tasks import (
	CalendarTask,
	TaskDetail,
	TaskFilters,
	TaskList,
	TaskStats,
	TaskView,
	UpcomingTask,
	WateringTask,
)
from farmdiary.services import enrichment
from farmdiary.services.repository import DiaryIndex, EntityRepository
from farmdiary.services.timeutil import (
	Clock,
	add_days,
	end_of_day,
	parse_day,
	parse_instant,
	start_of_day,
	system_clock,
	to_iso,
)

STATUS_WEIGHTS: dict[str, int] = {
	StatusName.overdue: 3,
	StatusName.due: 2,
	StatusName.planned: 1,
	StatusName.snoozed: 0,
	StatusName.skipped: -1,
	StatusName.completed: -2,
}

_UPCOMING_STATUSES = (StatusName.planned, StatusName.due, StatusName.overdue)
_WATERING_TASK_TYPE_ID = "ttype-watering"
_FAR_FUTURE = datetime.max.replace(tzinfo=UTC)
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def task_sort_key(task: TaskView) -> tuple:
	"""Status weight desc, priority desc, due date asc (unparsable last), then id."""
	due = parse_instant(task.due_date)
	return (
		-STATUS_WEIGHTS.get(task.status, 0),
		-(task.priority or 0),
		due or _FAR_FUTURE,
		task.id,
	)


def _due_then_priority(due_date: str | None, priority: int | float | None) -> tuple:
	return (
		parse_instant(due_date) or _EPOCH,
		-priority if priority is not None else float("inf"),
	)


def is_watering_type(task_type_id: str, name_en: str | None) -> bool:
	return (
		task_type_id == _WATERING_TASK_TYPE_ID
		or task_type_id.endswith("watering")
		or (name_en or "").lower() == "watering"
	)


class TaskQueryService:
	"""Read-side queries over task occurrences."""

	def __init__(self, repository: EntityRepository, clock: Clock | None = None):
		self.repository = repository
		self.clock = clock or system_clock(get_settings().tzinfo)

	@property
	def tz(self) -> tzinfo:
		return self.clock().tzinfo or get_settings().tzinfo

	def today(self) -> date:
		return self.clock().date()

	async def list_tasks(self, session: SessionContext) -> TaskList:
		index = await self.repository.build_index()
		tasks = [
			enrichment.enrich_task(index, occurrence)
			for occurrence in index.occurrences
			if occurrence.owner_id == session.owner_id
		]
		tasks.sort(key=task_sort_key)
		return TaskList(tasks=tasks)

	async def task_stats(self, session: SessionContext) -> TaskStats:
		index = await self.repository.build_index()
		today = self.today()
		week_start = start_of_day(today, self.tz)
		week_end = end_of_day(add_days(today, 7), self.tz)

		stats = TaskStats()
		for occurrence in index.occurrences:
			if occurrence.owner_id != session.owner_id:
				continue
			status = enrichment.status_name(index, occurrence.status_id)
			if status == StatusName.overdue:
				stats.overdue += 1
			elif status == StatusName.due:
				stats.due_today += 1
			elif status == StatusName.planned:
				due = parse_instant(occurrence.due_date)
				if due is not None and week_start <= due <= week_end:
					stats.this_week += 1

		for log in index.logs:
			if log.owner_id != session.owner_id or log.action != LogAction.completed:
				continue
			stamp = parse_instant(log.timestamp)
			if stamp is not None and stamp.astimezone(self.tz).date() == today:
				stats.completed += 1
		return stats

	async def task_detail(self, occurrence_id: str) -> TaskDetail | None:
		index = await self.repository.build_index()
		occurrence = index.task_occurrences.get(occurrence_id)
		if occurrence is None:
			return None
		return enrichment.task_detail(index, occurrence)

	async def recent_logs(self, crop_instance_id: str | None, limit: int = 5) -> list[LogRecord]:
		"""Newest logs recorded against a crop instance."""
		logs = [log for log in await self.repository.load(CollectionName.logs) if log.crop_instance_id == crop_instance_id]
		logs.sort(key=lambda log: parse_instant(log.timestamp) or _EPOCH, reverse=True)
		return logs[: max(0, int(limit))]

	async def upcoming_for_area(self, area_id: str) -> list[UpcomingTask]:
		index = await self.repository.build_index()
		crops = {crop.id: crop for crop in index.crop_instances.values() if crop.area_id == area_id}
		if not crops:
			return []

		open_ids = {enrichment.status_id_for(index, name) for name in _UPCOMING_STATUSES}
		now_iso = to_iso(self.clock())
		items: list[UpcomingTask] = []
		for occurrence in index.occurrences:
			if occurrence.crop_instance_id not in crops or occurrence.status_id not in open_ids:
				continue
			template = enrichment.template_for(index, occurrence)
			priority = occurrence.priority
			if priority is None:
				priority = enrichment.status_priority(index, occurrence.status_id)
			items.append(
				UpcomingTask(
					crop_instance_id=occurrence.crop_instance_id,
					task_occurrence_id=occurrence.id,
					crop_name=crops[occurrence.crop_instance_id].name or "Crop",
					task_name=(template.name if template is not None else None) or enrichment.DEFAULT_TASK_NAME,
					due_date=occurrence.due_date or occurrence.scheduled_date or now_iso,
					priority=priority,
					status_name=enrichment.status_name(index, occurrence.status_id),
				)
			)
		items.sort(key=lambda item: _due_then_priority(item.due_date, item.priority))
		return items

	async def overdue_count_for_area(self, area_id: str) -> int:
		index = await self.repository.build_index()
		crop_ids = {crop.id for crop in index.crop_instances.values() if crop.area_id == area_id}
		if not crop_ids:
			return 0
		overdue_id = enrichment.status_id_for(index, StatusName.overdue)
		return sum(
			1
			for occurrence in index.occurrences
			if occurrence.status_id == overdue_id and occurrence.crop_instance_id in crop_ids
		)

	async def occurrences_in_range(
		self,
		start: str,
		end: str,
		filters: TaskFilters | None = None,
		session: SessionContext | None = None,
	) -> list[CalendarTask]:
		"""Occurrences due within ``[start, end]`` (inclusive local days), joined for display."""
		start_day, end_day = parse_day(start), parse_day(end)
		if start_day is None or end_day is None:
			raise ValueError(f"Invalid date range: {start!r} to {end!r}")
		window_start = start_of_day(start_day, self.tz)
		window_end = end_of_day(end_day, self.tz)
		filters = filters or TaskFilters()

		index = await self.repository.build_index()
		entries: list[CalendarTask] = []
		for occurrence in index.occurrences:
			if session is not None and not _visible_to(index, occurrence, session):
				continue
			due = parse_instant(occurrence.due_date)
			if due is None or not window_start <= due <= window_end:
				continue
			entry = enrichment.calendar_entry(index, occurrence)
			if _calendar_matches(entry, filters):
				entries.append(entry)
		entries.sort(key=lambda entry: _due_then_priority(entry.due_date, entry.priority))
		return entries

	async def watering_due_on(self, on_date: str, session: SessionContext) -> list[WateringTask]:
		day = parse_day(on_date)
		if day is None:
			raise ValueError(f"Invalid date: {on_date!r}")

		index = await self.repository.build_index()
		watering_ids = {
			task_type.id for task_type in index.task_types.values() if is_watering_type(task_type.id, task_type.name_en)
		}
		open_ids = {
			enrichment.status_id_for(index, StatusName.due),
			enrichment.status_id_for(index, StatusName.overdue),
		}

		results: list[WateringTask] = []
		for occurrence in index.occurrences:
			if occurrence.owner_id != session.owner_id or parse_day(occurrence.due_date) != day:
				continue
			template = enrichment.template_for(index, occurrence)
			if template is None or template.task_type_id not in watering_ids:
				continue
			if occurrence.status_id not in open_ids:
				continue
			crop = enrichment.crop_for(index, occurrence.crop_instance_id)
			area = enrichment.area_for(index, crop)
			results.append(
				WateringTask(
					task_id=occurrence.id,
					crop_name=(crop.name if crop is not None else "") or enrichment.UNKNOWN_CROP,
					area_name=(area.name if area is not None else "") or enrichment.UNKNOWN_AREA,
				)
			)
		return results


def _visible_to(index: DiaryIndex, occurrence: TaskOccurrenceRecord, session: SessionContext) -> bool:
	"""Owner check; unowned occurrences fall back to their crop's owner."""
	if occurrence.owner_id:
		return occurrence.owner_id == session.owner_id
	crop = enrichment.crop_for(index, occurrence.crop_instance_id)
	return crop is None or not crop.owner_id or crop.owner_id == session.owner_id


def _calendar_matches(entry: CalendarTask, filters: TaskFilters) -> bool:
	if filters.field_id and (entry.field is None or entry.field.id != filters.field_id):
		return False
	if filters.area_id and (entry.area is None or entry.area.id != filters.area_id):
		return False
	if filters.crop_instance_id and entry.crop_instance_id != filters.crop_instance_id:
		return False
	if filters.task_type_id and (entry.task_type is None or entry.task_type.id != filters.task_type_id):
		return False
	if filters.status_id and entry.status_id != filters.status_id:
		return False
	return True
