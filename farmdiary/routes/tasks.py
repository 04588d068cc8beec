"""Task occurrence queries and lifecycle actions."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from farmdiary.auth.dependencies import SessionContext, get_session_context
from farmdiary.database import get_clock, get_repository
from farmdiary.schemas.records import LogRecord
from farmdiary.schemas.tasks import (
	CalendarTask,
	CalendarView,
	LogCreate,
	LogCreated,
	RainSkipRequest,
	RainSkipResult,
	TaskCompletion,
	TaskDetail,
	TaskFilters,
	TaskList,
	TaskSkip,
	TaskSnooze,
	TaskStats,
	WateringTask,
)
from farmdiary.services.journal_service import JournalService
from farmdiary.services.lifecycle_service import TaskLifecycleService
from farmdiary.services.repository import EntityRepository, StorageFailure
from farmdiary.services.task_query_service import TaskQueryService
from farmdiary.services.timeutil import Clock

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StorageFailure):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected task service failure",
	)


def task_filters(
	field_id: str | None = Query(default=None, alias="fieldId"),
	area_id: str | None = Query(default=None, alias="areaId"),
	crop_instance_id: str | None = Query(default=None, alias="cropInstanceId"),
	task_type_id: str | None = Query(default=None, alias="taskTypeId"),
	status_id: str | None = Query(default=None, alias="statusId"),
) -> TaskFilters:
	return TaskFilters(
		field_id=field_id,
		area_id=area_id,
		crop_instance_id=crop_instance_id,
		task_type_id=task_type_id,
		status_id=status_id,
	)


# ── Queries ─────────────────────────────────────────────────────────────────


@router.get("", response_model=TaskList)
async def list_tasks(
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> TaskList:
	try:
		return await TaskQueryService(repository, clock=clock).list_tasks(session)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/stats", response_model=TaskStats)
async def task_stats(
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> TaskStats:
	try:
		return await TaskQueryService(repository, clock=clock).task_stats(session)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/calendar", response_model=list[CalendarTask] | CalendarView)
async def calendar(
	start: str = Query(min_length=1),
	end: str = Query(min_length=1),
	include_weather: bool = Query(default=False, alias="includeWeather"),
	filters: TaskFilters = Depends(task_filters),
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[CalendarTask] | CalendarView:
	"""Occurrences in range; with ``includeWeather`` the range's weather events come along."""
	try:
		tasks = await TaskQueryService(repository, clock=clock).occurrences_in_range(start, end, filters, session)
		if not include_weather:
			return tasks
		events = await JournalService(repository, clock=clock).weather_events_in_range(start, end, session)
		return CalendarView(tasks=tasks, weather_events=events)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/watering-due", response_model=list[WateringTask])
async def watering_due(
	on_date: str = Query(alias="date", min_length=1),
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[WateringTask]:
	try:
		return await TaskQueryService(repository, clock=clock).watering_due_on(on_date, session)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{occurrence_id}", response_model=TaskDetail)
async def task_detail(
	occurrence_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> TaskDetail:
	try:
		detail = await TaskQueryService(repository, clock=clock).task_detail(occurrence_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	if detail is None:
		raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task occurrence {occurrence_id} not found")
	return detail


@router.get("/{occurrence_id}/recent-logs", response_model=list[LogRecord])
async def recent_logs(
	occurrence_id: str,
	limit: int = Query(default=5),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[LogRecord]:
	service = TaskQueryService(repository, clock=clock)
	try:
		detail = await service.task_detail(occurrence_id)
		if detail is None:
			raise LookupError(f"Task occurrence {occurrence_id} not found")
		return await service.recent_logs(detail.task_occurrence.crop_instance_id, limit)
	except Exception as exc:
		raise _map_error(exc) from exc


# ── Actions ─────────────────────────────────────────────────────────────────


@router.post("/rain-skip", response_model=RainSkipResult)
async def rain_skip(
	payload: RainSkipRequest,
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> RainSkipResult:
	try:
		return await TaskLifecycleService(repository, clock=clock).skip_tasks_for_rain(
			session, payload.date, payload.task_ids, payload.skip_reason
		)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{occurrence_id}/complete", response_model=LogCreated)
async def complete_task(
	occurrence_id: str,
	payload: TaskCompletion | None = Body(default=None),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LogCreated:
	try:
		log_id = await TaskLifecycleService(repository, clock=clock).mark_complete(occurrence_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return LogCreated(id=log_id)


@router.post("/{occurrence_id}/skip", response_model=LogCreated)
async def skip_task(
	occurrence_id: str,
	payload: TaskSkip,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LogCreated:
	try:
		log_id = await TaskLifecycleService(repository, clock=clock).skip(occurrence_id, payload.reason_id, payload.notes)
	except Exception as exc:
		raise _map_error(exc) from exc
	return LogCreated(id=log_id)


@router.post("/{occurrence_id}/snooze", response_model=LogCreated)
async def snooze_task(
	occurrence_id: str,
	payload: TaskSnooze,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LogCreated:
	try:
		log_id = await TaskLifecycleService(repository, clock=clock).snooze(occurrence_id, payload.new_due)
	except Exception as exc:
		raise _map_error(exc) from exc
	return LogCreated(id=log_id)


@router.post("/{occurrence_id}/logs", response_model=LogCreated, status_code=status.HTTP_201_CREATED)
async def create_task_log(
	occurrence_id: str,
	payload: LogCreate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LogCreated:
	try:
		log_id = await TaskLifecycleService(repository, clock=clock).create_task_log(occurrence_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return LogCreated(id=log_id)
