"""Photo metadata routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from farmdiary.auth.dependencies import SessionContext, get_session_context
from farmdiary.database import get_clock, get_repository
from farmdiary.schemas.logbook import PhotoCreate
from farmdiary.schemas.records import PhotoRecord
from farmdiary.services.cascade_service import CascadeService
from farmdiary.services.logbook_service import LogbookService
from farmdiary.services.repository import EntityRepository, StorageFailure
from farmdiary.services.timeutil import Clock

router = APIRouter(prefix="/photos", tags=["photos"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StorageFailure):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected photo service failure",
	)


@router.post("", response_model=PhotoRecord, status_code=status.HTTP_201_CREATED)
async def create_photo(
	payload: PhotoCreate,
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> PhotoRecord:
	try:
		return await LogbookService(repository, clock=clock).create_photo(session, payload)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{photo_id}", response_model=PhotoRecord)
async def get_photo(
	photo_id: str,
	repository: EntityRepository = Depends(get_repository),
) -> PhotoRecord:
	photo = await LogbookService(repository).get_photo(photo_id)
	if photo is None:
		raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Photo {photo_id} not found")
	return photo


@router.delete("/{photo_id}")
async def delete_photo(
	photo_id: str,
	repository: EntityRepository = Depends(get_repository),
) -> dict[str, bool]:
	"""Idempotent: succeeds whether or not the photo exists."""
	try:
		deleted = await CascadeService(repository).delete_photo(photo_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return {"deleted": deleted}
