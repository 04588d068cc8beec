"""Quick notes and weather events recorded alongside the task diary."""

from __future__ import annotations

from datetime import tzinfo

import structlog

from farmdiary.auth.dependencies import SessionContext
from farmdiary.config import get_settings
from farmdiary.models.enums import CollectionName
from farmdiary.schemas.journal import NoteCreate, WeatherEventCreate
from farmdiary.schemas.records import NoteRecord, WeatherEventRecord
from farmdiary.services.repository import EntityRepository, new_id
from farmdiary.services.timeutil import (
	Clock,
	date_only_iso,
	end_of_day,
	parse_day,
	parse_instant,
	start_of_day,
	system_clock,
	to_iso,
)

logger = structlog.get_logger("farmdiary.journal")


def normalize_entry_date(raw: str) -> str:
	"""Timestamps are kept as given; bare dates become UTC midnight."""
	text = raw.strip()
	day = parse_day(text)
	if day is None or parse_instant(text) is None:
		raise ValueError(f"Invalid date: {raw!r}")
	if "T" in text:
		return text
	return date_only_iso(day)


class JournalService:
	def __init__(self, repository: EntityRepository, clock: Clock | None = None):
		self.repository = repository
		self.clock = clock or system_clock(get_settings().tzinfo)

	@property
	def tz(self) -> tzinfo:
		return self.clock().tzinfo or get_settings().tzinfo

	async def create_note(self, session: SessionContext, payload: NoteCreate) -> NoteRecord:
		kind = payload.type.strip()
		if not kind:
			raise ValueError("Note type is required")

		now_iso = to_iso(self.clock())
		note = NoteRecord(
			id=new_id("n"),
			owner_id=session.owner_id,
			type=kind,
			weather_event_id=payload.weather_event_id or None,
			crop_instance_id=payload.crop_instance_id or None,
			area_id=payload.area_id or None,
			date=normalize_entry_date(payload.date),
			content=payload.content,
			created_at=now_iso,
			updated_at=now_iso,
		)
		async with self.repository.writing():
			notes = await self.repository.load(CollectionName.notes)
			await self.repository.commit(CollectionName.notes, [*notes, note])
		logger.info("note_created", note_id=note.id, owner_id=session.owner_id, type=kind)
		return note

	async def create_weather_event(self, session: SessionContext, payload: WeatherEventCreate) -> WeatherEventRecord:
		kind = payload.weather_event_type.strip()
		if not kind:
			raise ValueError("Weather event type is required")

		event = WeatherEventRecord(
			id=new_id("we"),
			owner_id=session.owner_id,
			weather_event_type=kind,
			severity=payload.severity or None,
			amount=payload.amount,
			date=normalize_entry_date(payload.date),
			notes=payload.notes or None,
			created_at=to_iso(self.clock()),
		)
		async with self.repository.writing():
			events = await self.repository.load(CollectionName.weather_events)
			await self.repository.commit(CollectionName.weather_events, [*events, event])
		logger.info("weather_event_created", weather_event_id=event.id, owner_id=session.owner_id, type=kind)
		return event

	async def weather_events_in_range(
		self,
		start: str,
		end: str,
		session: SessionContext | None = None,
	) -> list[WeatherEventRecord]:
		"""Events dated within ``[start, end]`` (inclusive local days), oldest first.

		Unowned events are visible to every owner.
		"""
		start_day, end_day = parse_day(start), parse_day(end)
		if start_day is None or end_day is None:
			raise ValueError(f"Invalid date range: {start!r} to {end!r}")
		window_start = start_of_day(start_day, self.tz)
		window_end = end_of_day(end_day, self.tz)

		dated = []
		for event in await self.repository.load(CollectionName.weather_events):
			if session is not None and event.owner_id and event.owner_id != session.owner_id:
				continue
			moment = parse_instant(event.date)
			if moment is not None and window_start <= moment <= window_end:
				dated.append((moment, event))
		dated.sort(key=lambda pair: pair[0])
		return [event for _, event in dated]
