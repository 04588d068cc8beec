"""Quick note and weather event routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from farmdiary.auth.dependencies import SessionContext, get_session_context
from farmdiary.database import get_clock, get_repository
from farmdiary.schemas.journal import EntityCreated, NoteCreate, WeatherEventCreate
from farmdiary.services.journal_service import JournalService
from farmdiary.services.repository import EntityRepository, StorageFailure
from farmdiary.services.timeutil import Clock

notes_router = APIRouter(prefix="/notes", tags=["journal"])
weather_router = APIRouter(prefix="/weather-events", tags=["journal"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StorageFailure):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected journal service failure",
	)


@notes_router.post("", response_model=EntityCreated, status_code=status.HTTP_201_CREATED)
async def create_note(
	payload: NoteCreate,
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> EntityCreated:
	try:
		note = await JournalService(repository, clock=clock).create_note(session, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return EntityCreated(id=note.id)


@weather_router.post("", response_model=EntityCreated, status_code=status.HTTP_201_CREATED)
async def create_weather_event(
	payload: WeatherEventCreate,
	session: SessionContext = Depends(get_session_context),
	repository: EntityRepository = Depends(get_repository),
	clock: Clock = Depends(get_clock),
) -> EntityCreated:
	try:
		event = await JournalService(repository, clock=clock).create_weather_event(session, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return EntityCreated(id=event.id)
