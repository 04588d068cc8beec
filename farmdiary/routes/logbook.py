"""Logbook listing, totals and export routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from farmdiary.database import get_clock, get_repository
from farmdiary.schemas.logbook import AggregateTotals, FilterOptions, LogFilters, LogPage
from farmdiary.services.logbook_service import LogbookService, export_body
from farmdiary.services.repository import EntityRepository, StorageFailure
from farmdiary.services.timeutil import Clock

router = APIRouter(prefix="/logbook", tags=["logbook"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StorageFailure):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected logbook service failure",
	)


def log_filters(
	field_id: str | None = Query(default=None, alias="fieldId"),
	area_id: str | None = Query(default=None, alias="areaId"),
	crop_instance_id: str | None = Query(default=None, alias="cropInstanceId"),
	task_type_id: str | None = Query(default=None, alias="taskTypeId"),
	start_date: str | None = Query(default=None, alias="startDate"),
	end_date: str | None = Query(default=None, alias="endDate"),
	status_id: str | None = Query(default=None, alias="statusId"),
) -> LogFilters:
	return LogFilters(
		field_id=field_id,
		area_id=area_id,
		crop_instance_id=crop_instance_id,
		task_type_id=task_type_id,
		start_date=start_date,
		end_date=end_date,
		status_id=status_id,
	)


def _service(repository: EntityRepository, clock: Clock) -> LogbookService:
	return LogbookService(repository, clock=clock)


@router.get("/logs", response_model=LogPage)
async def list_logs(
	filters: LogFilters = Depends(log_filters),
	page: int = Query(default=1),
	page_size: int | None = Query(default=None, alias="pageSize"),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LogPage:
	try:
		return await _service(repository, clock).list_logs(filters, page, page_size)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/aggregate", response_model=AggregateTotals)
async def aggregate_logs(
	filters: LogFilters = Depends(log_filters),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> AggregateTotals:
	try:
		return await _service(repository, clock).aggregate(filters)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/export")
async def export_logs(
	filters: LogFilters = Depends(log_filters),
	include_photos: bool | None = Query(default=None, alias="includePhotos"),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> dict[str, Any]:
	"""Size estimate without ``includePhotos``; the full payload when it is given."""
	try:
		result = await _service(repository, clock).export_logs(filters, include_photos)
	except Exception as exc:
		raise _map_error(exc) from exc
	return export_body(result)


@router.get("/filter-options", response_model=FilterOptions)
async def filter_options(
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> FilterOptions:
	try:
		return await _service(repository, clock).filter_options()
	except Exception as exc:
		raise _map_error(exc) from exc
