"""Pydantic request schemas for quick notes and weather events."""

from __future__ import annotations

from pydantic import Field

from farmdiary.schemas.common import CamelModel


class NoteCreate(CamelModel):
	"""Free-text note, optionally tied to a weather event, crop or area."""

	type: str = Field(min_length=1)
	date: str = Field(min_length=1)
	content: str
	weather_event_id: str | None = None
	crop_instance_id: str | None = None
	area_id: str | None = None


class WeatherEventCreate(CamelModel):
	weather_event_type: str = Field(min_length=1)
	date: str = Field(min_length=1)
	severity: str | None = None
	amount: float | None = None
	notes: str | None = None


class EntityCreated(CamelModel):
	id: str
