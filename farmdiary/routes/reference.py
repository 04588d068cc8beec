"""Read-only reference lists for pickers."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from farmdiary.database import get_repository
from farmdiary.schemas.records import ReasonCodeRecord, StatusCodeRecord, TaskTypeRecord, UnitRecord
from farmdiary.services.crop_service import ReferenceService
from farmdiary.services.repository import EntityRepository

router = APIRouter(prefix="/reference", tags=["reference"])


@router.get("/units", response_model=list[UnitRecord])
async def list_units(repository: EntityRepository = Depends(get_repository)) -> list[UnitRecord]:
	return await ReferenceService(repository).units()


@router.get("/reason-codes", response_model=list[ReasonCodeRecord])
async def list_reason_codes(repository: EntityRepository = Depends(get_repository)) -> list[ReasonCodeRecord]:
	return await ReferenceService(repository).reason_codes()


@router.get("/status-codes", response_model=list[StatusCodeRecord])
async def list_status_codes(repository: EntityRepository = Depends(get_repository)) -> list[StatusCodeRecord]:
	return await ReferenceService(repository).status_codes()


@router.get("/task-types", response_model=list[TaskTypeRecord])
async def list_task_types(repository: EntityRepository = Depends(get_repository)) -> list[TaskTypeRecord]:
	return await ReferenceService(repository).task_types()
