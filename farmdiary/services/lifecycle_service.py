"""Task occurrence status transitions and their append-only log entries."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

import structlog

from farmdiary.auth.dependencies import SessionContext
from farmdiary.config import get_settings
from farmdiary.models.enums import CollectionName, LogAction, StatusName
from farmdiary.schemas.records import (
	LogRecord,
	ReasonCodeRecord,
	StatusCodeRecord,
	TaskOccurrenceRecord,
)
from farmdiary.schemas.tasks import (
	BulkCompleteResult,
	LogCreate,
	RainSkipResult,
	TaskCompletion,
)
from farmdiary.services.repository import EntityRepository, new_id
from farmdiary.services.timeutil import Clock, parse_day, parse_instant, system_clock, to_iso

OPEN_STATUSES = frozenset({StatusName.planned, StatusName.due, StatusName.overdue})

logger = structlog.get_logger("farmdiary.lifecycle")


def derive_initial_status(due_day: date, today: date) -> StatusName:
	"""Status of a newly generated occurrence, fixed once at creation."""
	if due_day < today:
		return StatusName.overdue
	if due_day == today:
		return StatusName.due
	return StatusName.planned


def status_ids(codes: Iterable[StatusCodeRecord]) -> dict[StatusName, str]:
	"""Stored id per status name; unknown names use ``status-<name>``."""
	by_name = {code.name: code.id for code in codes}
	return {name: by_name.get(name.value, name.status_id) for name in StatusName}


def resolve_reason_id(reason_name: str, reason_codes: Iterable[ReasonCodeRecord]) -> str:
	"""Reason code id by name, then by id containing the name, then ``reason-other``."""
	codes = list(reason_codes)
	wanted = (reason_name or "").lower()
	for code in codes:
		if code.name.lower() == wanted:
			return code.id
	if wanted:
		for code in codes:
			if wanted in code.id.lower():
				return code.id
	for code in codes:
		if code.id == "reason-other":
			return code.id
	return wanted or "other"


class TaskLifecycleService:
	"""Applies user actions to occurrences; each action appends exactly one log."""

	def __init__(self, repository: EntityRepository, clock: Clock | None = None):
		self.repository = repository
		self.clock = clock or system_clock(get_settings().tzinfo)

	async def mark_complete(self, occurrence_id: str, completion: TaskCompletion | None = None) -> str:
		completion = completion or TaskCompletion()
		async with self.repository.writing():
			occurrences, occurrence = await self._require_occurrence(occurrence_id)
			ids = status_ids(await self.repository.load(CollectionName.status_codes))
			now_iso = to_iso(self.clock())

			updated = occurrence.model_copy(
				update={
					"status_id": ids[StatusName.completed],
					"last_completed_at": now_iso,
					"snooze_until": None,
					"updated_at": now_iso,
				}
			)
			await self._replace_occurrences(occurrences, {updated.id: updated})
			log = await self._append_logs(
				[
					self._build_log(
						updated,
						LogAction.completed,
						now_iso,
						quantity=completion.quantity,
						unit_id=completion.unit_id,
						notes=completion.notes,
						photo_ids=completion.photo_ids,
					)
				]
			)
		logger.info("task_completed", occurrence_id=occurrence_id, log_id=log[0].id)
		return log[0].id

	async def skip(self, occurrence_id: str, reason_id: str | None, notes: str = "") -> str:
		async with self.repository.writing():
			occurrences, occurrence = await self._require_occurrence(occurrence_id)
			ids = status_ids(await self.repository.load(CollectionName.status_codes))
			now_iso = to_iso(self.clock())

			updated = occurrence.model_copy(
				update={
					"status_id": ids[StatusName.skipped],
					"snooze_until": None,
					"updated_at": now_iso,
				}
			)
			await self._replace_occurrences(occurrences, {updated.id: updated})
			log = await self._append_logs(
				[self._build_log(updated, LogAction.skipped, now_iso, notes=notes, skip_reason_id=reason_id or None)]
			)
		logger.info("task_skipped", occurrence_id=occurrence_id, reason_id=reason_id, log_id=log[0].id)
		return log[0].id

	async def snooze(self, occurrence_id: str, new_due: str) -> str:
		"""Move the due date and return the occurrence to ``planned``."""
		parsed = parse_instant(new_due)
		if parsed is None:
			raise ValueError(f"Invalid snooze date: {new_due!r}")

		async with self.repository.writing():
			occurrences, occurrence = await self._require_occurrence(occurrence_id)
			ids = status_ids(await self.repository.load(CollectionName.status_codes))
			now_iso = to_iso(self.clock())
			due_iso = to_iso(parsed)

			updated = occurrence.model_copy(
				update={
					"due_date": due_iso,
					"snooze_until": due_iso,
					"status_id": ids[StatusName.planned],
					"updated_at": now_iso,
				}
			)
			await self._replace_occurrences(occurrences, {updated.id: updated})
			log = await self._append_logs([self._build_log(updated, LogAction.snoozed, now_iso, notes="Snoozed")])
		logger.info("task_snoozed", occurrence_id=occurrence_id, due_date=due_iso, log_id=log[0].id)
		return log[0].id

	async def create_task_log(self, occurrence_id: str, payload: LogCreate) -> str:
		"""Append a log for an occurrence without changing its status."""
		async with self.repository.writing():
			_, occurrence = await self._require_occurrence(occurrence_id)
			now_iso = to_iso(self.clock())
			log = self._build_log(
				occurrence,
				payload.action,
				payload.timestamp or now_iso,
				owner_id=payload.owner_id,
				crop_instance_id=payload.crop_instance_id,
				quantity=payload.quantity,
				unit_id=payload.unit_id,
				notes=payload.notes,
				photo_ids=payload.photo_ids,
				skip_reason_id=payload.skip_reason_id,
				created_at=now_iso,
			)
			await self._append_logs([log])
		return log.id

	async def bulk_complete(self, area_id: str, task_type_id: str) -> BulkCompleteResult:
		"""Complete every open occurrence of one task type across an area's crops."""
		async with self.repository.writing():
			areas = await self.repository.load(CollectionName.areas)
			if not any(area.id == area_id for area in areas):
				raise LookupError(f"Area {area_id} not found")

			crops = {
				crop.id: crop
				for crop in await self.repository.load(CollectionName.crop_instances)
				if crop.area_id == area_id
			}
			if not crops:
				return BulkCompleteResult(completed_count=0, message="No crop instances in area")

			occurrences = await self.repository.load(CollectionName.task_occurrences)
			templates = {tpl.id: tpl for tpl in await self.repository.load(CollectionName.task_templates)}
			ids = status_ids(await self.repository.load(CollectionName.status_codes))
			open_ids = {ids[name] for name in OPEN_STATUSES}
			now_iso = to_iso(self.clock())

			updates: dict[str, TaskOccurrenceRecord] = {}
			for occurrence in occurrences:
				if occurrence.crop_instance_id not in crops or occurrence.status_id not in open_ids:
					continue
				template = templates.get(occurrence.template_id or "")
				if template is None or template.task_type_id != task_type_id:
					continue
				updates[occurrence.id] = occurrence.model_copy(
					update={
						"status_id": ids[StatusName.completed],
						"last_completed_at": now_iso,
						"snooze_until": None,
						"updated_at": now_iso,
					}
				)

			if not updates:
				return BulkCompleteResult(completed_count=0, message="No matching tasks to complete")

			await self._replace_occurrences(occurrences, updates)
			await self._append_logs(
				[
					self._build_log(
						occurrence,
						LogAction.completed,
						now_iso,
						owner_id=crops[occurrence.crop_instance_id].owner_id,
					)
					for occurrence in updates.values()
				]
			)
		logger.info("tasks_bulk_completed", area_id=area_id, task_type_id=task_type_id, count=len(updates))
		return BulkCompleteResult(completed_count=len(updates))

	async def skip_tasks_for_rain(
		self,
		session: SessionContext,
		on_date: str,
		task_ids: list[str],
		skip_reason: str = "rain",
	) -> RainSkipResult:
		"""Skip the owner's listed occurrences due on ``on_date`` with a weather reason."""
		day = parse_day(on_date)
		if day is None:
			raise ValueError(f"Invalid date: {on_date!r}")

		async with self.repository.writing():
			occurrences = await self.repository.load(CollectionName.task_occurrences)
			ids = status_ids(await self.repository.load(CollectionName.status_codes))
			reason_id = resolve_reason_id(skip_reason, await self.repository.load(CollectionName.reason_codes))
			now_iso = to_iso(self.clock())
			wanted = set(task_ids)
			reason = skip_reason or "rain"

			updates: dict[str, TaskOccurrenceRecord] = {}
			for occurrence in occurrences:
				if occurrence.id not in wanted or occurrence.owner_id != session.owner_id:
					continue
				if parse_day(occurrence.due_date) != day:
					continue
				if occurrence.status_id == ids[StatusName.skipped]:
					continue
				updates[occurrence.id] = occurrence.model_copy(
					update={"status_id": ids[StatusName.skipped], "snooze_until": None, "updated_at": now_iso}
				)

			if updates:
				await self._replace_occurrences(occurrences, updates)
				await self._append_logs(
					[
						self._build_log(
							occurrence,
							LogAction.skipped,
							now_iso,
							notes=f"Skipped due to {reason} on {day.isoformat()}",
							skip_reason_id=reason_id,
						)
						for occurrence in updates.values()
					]
				)
		logger.info("tasks_skipped_for_rain", owner_id=session.owner_id, date=day.isoformat(), count=len(updates))
		return RainSkipResult(skipped_count=len(updates))

	# ── Internals ───────────────────────────────────────────────────────────

	async def _require_occurrence(
		self, occurrence_id: str
	) -> tuple[list[TaskOccurrenceRecord], TaskOccurrenceRecord]:
		occurrences = await self.repository.load(CollectionName.task_occurrences)
		for occurrence in occurrences:
			if occurrence.id == occurrence_id:
				return occurrences, occurrence
		raise LookupError(f"Task occurrence {occurrence_id} not found")

	async def _replace_occurrences(
		self,
		occurrences: list[TaskOccurrenceRecord],
		updates: dict[str, TaskOccurrenceRecord],
	) -> None:
		merged = [updates.get(occurrence.id, occurrence) for occurrence in occurrences]
		await self.repository.commit(CollectionName.task_occurrences, merged)

	def _build_log(
		self,
		occurrence: TaskOccurrenceRecord,
		action: LogAction,
		timestamp: str,
		*,
		owner_id: str | None = None,
		crop_instance_id: str | None = None,
		quantity: float | None = None,
		unit_id: str | None = None,
		notes: str | None = "",
		photo_ids: list[str] | None = None,
		skip_reason_id: str | None = None,
		created_at: str | None = None,
	) -> LogRecord:
		stamp = created_at or timestamp
		return LogRecord(
			id=new_id("log"),
			owner_id=owner_id or occurrence.owner_id,
			task_occurrence_id=occurrence.id,
			crop_instance_id=crop_instance_id or occurrence.crop_instance_id,
			action=action.value,
			timestamp=timestamp,
			quantity=quantity,
			unit_id=unit_id or None,
			notes=notes or "",
			photo_ids=list(photo_ids or []),
			skip_reason_id=skip_reason_id,
			created_at=stamp,
			updated_at=stamp,
		)

	async def _append_logs(self, new_logs: list[LogRecord]) -> list[LogRecord]:
		logs = await self.repository.load(CollectionName.logs)
		await self.repository.commit(CollectionName.logs, [*logs, *new_logs])
		await self.repository.enqueue_sync(CollectionName.logs, new_logs)
		return new_logs
