"""Field and area routes, including cascading deletes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from farmdiary.auth.dependencies import SessionContext, get_session_context
from farmdiary.database import get_clock, get_repository
from farmdiary.schemas.fields import (
	AreaCreate,
	AreaUpdate,
	CascadeResult,
	FieldCreate,
	FieldUpdate,
	FieldWithStats,
)
from farmdiary.schemas.records import AreaRecord, CropInstanceRecord, FieldRecord
from farmdiary.schemas.tasks import BulkCompleteRequest, BulkCompleteResult, OverdueCount, UpcomingTask
from farmdiary.services.cascade_service import CascadeService
from farmdiary.services.field_service import FieldService
from farmdiary.services.lifecycle_service import TaskLifecycleService
from farmdiary.services.repository import EntityRepository, StorageFailure
from farmdiary.services.task_query_service import TaskQueryService
from farmdiary.services.timeutil import Clock

router = APIRouter(prefix="/fields", tags=["fields"])
areas_router = APIRouter(prefix="/areas", tags=["areas"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StorageFailure):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected field service failure",
	)


# ── Fields ──────────────────────────────────────────────────────────────────


@router.get("", response_model=list[FieldWithStats])
async def list_fields(
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[FieldWithStats]:
	try:
		return await FieldService(repository, clock=clock).fields_with_stats(session)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("", response_model=FieldRecord, status_code=status.HTTP_201_CREATED)
async def create_field(
	payload: FieldCreate,
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> FieldRecord:
	try:
		return await FieldService(repository, clock=clock).create_field(session, payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{field_id}", response_model=FieldRecord)
async def get_field(
	field_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> FieldRecord:
	try:
		field = await FieldService(repository, clock=clock).get_field(field_id)
		if field is None:
			raise LookupError(f"Field {field_id} not found")
	except Exception as exc:
		raise _map_error(exc) from exc
	return field


@router.patch("/{field_id}", response_model=FieldRecord)
async def update_field(
	field_id: str,
	payload: FieldUpdate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> FieldRecord:
	try:
		return await FieldService(repository, clock=clock).update_field(field_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.delete("/{field_id}", response_model=CascadeResult)
async def delete_field(
	field_id: str,
	repository: EntityRepository = Depends(get_repository),
) -> CascadeResult:
	try:
		return await CascadeService(repository).delete_field(field_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{field_id}/areas", response_model=list[AreaRecord])
async def list_field_areas(
	field_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[AreaRecord]:
	try:
		return await FieldService(repository, clock=clock).areas_for_field(field_id)
	except Exception as exc:
		raise _map_error(exc) from exc


# ── Areas ───────────────────────────────────────────────────────────────────


@areas_router.post("", response_model=AreaRecord, status_code=status.HTTP_201_CREATED)
async def create_area(
	payload: AreaCreate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> AreaRecord:
	try:
		return await FieldService(repository, clock=clock).create_area(payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@areas_router.get("/{area_id}", response_model=AreaRecord)
async def get_area(
	area_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> AreaRecord:
	try:
		area = await FieldService(repository, clock=clock).get_area(area_id)
		if area is None:
			raise LookupError(f"Area {area_id} not found")
	except Exception as exc:
		raise _map_error(exc) from exc
	return area


@areas_router.patch("/{area_id}", response_model=AreaRecord)
async def update_area(
	area_id: str,
	payload: AreaUpdate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> AreaRecord:
	try:
		return await FieldService(repository, clock=clock).update_area(area_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@areas_router.delete("/{area_id}", response_model=CascadeResult)
async def delete_area(
	area_id: str,
	repository: EntityRepository = Depends(get_repository),
) -> CascadeResult:
	try:
		return await CascadeService(repository).delete_area(area_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@areas_router.get("/{area_id}/crops", response_model=list[CropInstanceRecord])
async def list_area_crops(
	area_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[CropInstanceRecord]:
	try:
		return await FieldService(repository, clock=clock).crops_for_area(area_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@areas_router.get("/{area_id}/upcoming-tasks", response_model=list[UpcomingTask])
async def upcoming_tasks(
	area_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[UpcomingTask]:
	try:
		return await TaskQueryService(repository, clock=clock).upcoming_for_area(area_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@areas_router.get("/{area_id}/overdue-count", response_model=OverdueCount)
async def overdue_count(
	area_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> OverdueCount:
	try:
		count = await TaskQueryService(repository, clock=clock).overdue_count_for_area(area_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return OverdueCount(area_id=area_id, overdue_count=count)


@areas_router.post("/{area_id}/bulk-complete", response_model=BulkCompleteResult)
async def bulk_complete(
	area_id: str,
	payload: BulkCompleteRequest,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> BulkCompleteResult:
	try:
		return await TaskLifecycleService(repository, clock=clock).bulk_complete(area_id, payload.task_type_id)
	except Exception as exc:
		raise _map_error(exc) from exc
