"""Crop instance and crop library routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from farmdiary.database import get_clock, get_repository
from farmdiary.schemas.crops import (
	AppliedVersion,
	CropInstanceCreate,
	CropInstanceDetail,
	CropInstanceUpdate,
	CropLog,
	LibraryCropCreate,
	LibraryCropDetail,
	ScheduledTask,
	TemplateCreated,
)
from farmdiary.schemas.records import CropInstanceRecord, LibraryCropRecord, TaskTemplateRecord
from farmdiary.services.crop_service import CropService
from farmdiary.services.repository import EntityRepository, StorageFailure
from farmdiary.services.timeutil import Clock

router = APIRouter(prefix="/crops", tags=["crops"])
library_router = APIRouter(prefix="/library", tags=["library"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StorageFailure):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected crop service failure",
	)


@router.post("", response_model=CropInstanceRecord, status_code=status.HTTP_201_CREATED)
async def create_crop_instance(
	payload: CropInstanceCreate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> CropInstanceRecord:
	try:
		return await CropService(repository, clock=clock).create_crop_instance(payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{crop_instance_id}", response_model=CropInstanceDetail)
async def get_crop_instance(
	crop_instance_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> CropInstanceDetail:
	try:
		detail = await CropService(repository, clock=clock).get_crop_instance(crop_instance_id)
		if detail is None:
			raise LookupError(f"Crop instance {crop_instance_id} not found")
	except Exception as exc:
		raise _map_error(exc) from exc
	return detail


@router.patch("/{crop_instance_id}", response_model=CropInstanceRecord)
async def update_crop_instance(
	crop_instance_id: str,
	payload: CropInstanceUpdate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> CropInstanceRecord:
	try:
		return await CropService(repository, clock=clock).update_crop_instance(crop_instance_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.put("/{crop_instance_id}/overrides", response_model=CropInstanceDetail)
async def update_overrides(
	crop_instance_id: str,
	overrides: dict[str, Any] = Body(...),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> CropInstanceDetail:
	try:
		return await CropService(repository, clock=clock).update_overrides(crop_instance_id, overrides)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{crop_instance_id}/scheduled-tasks", response_model=list[ScheduledTask])
async def scheduled_tasks(
	crop_instance_id: str,
	days_window: int | None = Query(default=None, alias="daysWindow"),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[ScheduledTask]:
	try:
		return await CropService(repository, clock=clock).scheduled_tasks(crop_instance_id, days_window)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{crop_instance_id}/logs", response_model=list[CropLog])
async def crop_logs(
	crop_instance_id: str,
	limit: int = Query(default=20),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[CropLog]:
	try:
		return await CropService(repository, clock=clock).logs_for_crop(crop_instance_id, limit)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{crop_instance_id}/save-template", response_model=TemplateCreated, status_code=status.HTTP_201_CREATED)
async def save_as_template(
	crop_instance_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> TemplateCreated:
	try:
		template_id = await CropService(repository, clock=clock).save_as_my_template(crop_instance_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return TemplateCreated(template_id=template_id)


@router.post("/{crop_instance_id}/apply-library-updates", response_model=AppliedVersion)
async def apply_library_updates(
	crop_instance_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> AppliedVersion:
	try:
		version = await CropService(repository, clock=clock).apply_library_updates(crop_instance_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return AppliedVersion(applied_template_version=version)


# ── Library ─────────────────────────────────────────────────────────────────


@library_router.get("", response_model=list[LibraryCropRecord])
async def list_library_crops(
	category: str | None = Query(default=None),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[LibraryCropRecord]:
	try:
		return await CropService(repository, clock=clock).list_library_crops(category)
	except Exception as exc:
		raise _map_error(exc) from exc


@library_router.post("", response_model=LibraryCropRecord, status_code=status.HTTP_201_CREATED)
async def add_custom_library_crop(
	payload: LibraryCropCreate,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LibraryCropRecord:
	try:
		return await CropService(repository, clock=clock).add_custom_library_crop(payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@library_router.get("/templates", response_model=list[TaskTemplateRecord])
async def list_task_templates(
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> list[TaskTemplateRecord]:
	"""Templates available as a library crop's default care template."""
	try:
		return await CropService(repository, clock=clock).list_task_templates()
	except Exception as exc:
		raise _map_error(exc) from exc


@library_router.get("/{library_crop_id}", response_model=LibraryCropDetail)
async def get_library_crop(
	library_crop_id: str,
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> LibraryCropDetail:
	try:
		crop = await CropService(repository, clock=clock).get_library_crop(library_crop_id)
		if crop is None:
			raise LookupError(f"Library crop {library_crop_id} not found")
	except Exception as exc:
		raise _map_error(exc) from exc
	return crop
