"""Fields and areas: owner-scoped listings with stats, creation and updates."""

from __future__ import annotations

import structlog

from farmdiary.auth.dependencies import SessionContext
from farmdiary.config import get_settings
from farmdiary.models.enums import CollectionName, StatusName
from farmdiary.schemas.fields import (
	AreaCreate,
	AreaUpdate,
	AreaWithStats,
	FieldCreate,
	FieldUpdate,
	FieldWithStats,
)
from farmdiary.schemas.records import AreaRecord, CropInstanceRecord, FieldRecord
from farmdiary.services import enrichment
from farmdiary.services.repository import EntityRepository, new_id
from farmdiary.services.timeutil import Clock, system_clock, to_iso

logger = structlog.get_logger("farmdiary.fields")


def _required_name(raw: str | None, entity: str) -> str:
	name = (raw or "").strip()
	if not name:
		raise ValueError(f"{entity} name is required")
	return name


class FieldService:
	def __init__(self, repository: EntityRepository, clock: Clock | None = None):
		self.repository = repository
		self.clock = clock or system_clock(get_settings().tzinfo)

	# ── Queries ─────────────────────────────────────────────────────────────

	async def fields_with_stats(self, session: SessionContext) -> list[FieldWithStats]:
		"""The owner's fields with nested areas, crop counts and overdue counts."""
		index = await self.repository.build_index()
		owner_id = session.owner_id
		overdue_id = enrichment.status_id_for(index, StatusName.overdue)

		results: list[FieldWithStats] = []
		for field in index.fields.values():
			if field.owner_id != owner_id:
				continue
			area_items: list[AreaWithStats] = []
			for area in index.areas.values():
				if area.field_id != field.id or area.owner_id != owner_id:
					continue
				crop_ids = {
					crop.id
					for crop in index.crop_instances.values()
					if crop.area_id == area.id and crop.owner_id == owner_id
				}
				overdue = sum(
					1
					for occurrence in index.occurrences
					if occurrence.owner_id == owner_id
					and occurrence.crop_instance_id in crop_ids
					and occurrence.status_id == overdue_id
				)
				area_items.append(
					AreaWithStats(
						id=area.id,
						name=area.name,
						type_id=area.type_id,
						size=area.size,
						size_unit=area.size_unit or None,
						notes=area.notes or None,
						crop_instances_count=len(crop_ids),
						overdue_tasks_count=overdue,
					)
				)
			results.append(
				FieldWithStats(
					id=field.id,
					name=field.name,
					size=field.size,
					size_unit=field.size_unit or None,
					notes=field.notes or None,
					areas=area_items,
					total_areas=len(area_items),
					total_crop_instances=sum(item.crop_instances_count for item in area_items),
					total_overdue_tasks=sum(item.overdue_tasks_count for item in area_items),
				)
			)
		return results

	async def get_field(self, field_id: str) -> FieldRecord | None:
		return await self.repository.find(CollectionName.fields, field_id)

	async def get_area(self, area_id: str) -> AreaRecord | None:
		return await self.repository.find(CollectionName.areas, area_id)

	async def areas_for_field(self, field_id: str) -> list[AreaRecord]:
		return [area for area in await self.repository.load(CollectionName.areas) if area.field_id == field_id]

	async def crops_for_area(self, area_id: str) -> list[CropInstanceRecord]:
		return [crop for crop in await self.repository.load(CollectionName.crop_instances) if crop.area_id == area_id]

	# ── Mutations ───────────────────────────────────────────────────────────

	async def create_field(self, session: SessionContext, payload: FieldCreate) -> FieldRecord:
		name = _required_name(payload.name, "Field")
		now_iso = to_iso(self.clock())
		field = FieldRecord(
			id=new_id("f"),
			owner_id=session.owner_id,
			name=name,
			size=payload.size,
			size_unit=payload.size_unit or "m2",
			notes=payload.notes or "",
			created_at=now_iso,
			updated_at=now_iso,
		)
		async with self.repository.writing():
			fields = await self.repository.load(CollectionName.fields)
			await self.repository.commit(CollectionName.fields, [*fields, field])
		logger.info("field_created", field_id=field.id, owner_id=session.owner_id)
		return field

	async def create_area(self, payload: AreaCreate) -> AreaRecord:
		"""Create an area under an existing field; the area inherits the field's owner."""
		name = _required_name(payload.name, "Area")
		async with self.repository.writing():
			fields = await self.repository.load(CollectionName.fields)
			parent = next((field for field in fields if field.id == payload.field_id), None)
			if parent is None:
				raise LookupError(f"Field {payload.field_id} not found")

			now_iso = to_iso(self.clock())
			area = AreaRecord(
				id=new_id("a"),
				owner_id=parent.owner_id,
				field_id=parent.id,
				name=name,
				type_id=payload.type_id,
				size=payload.size,
				size_unit=payload.size_unit or "m2",
				notes=payload.notes or "",
				created_at=now_iso,
				updated_at=now_iso,
			)
			areas = await self.repository.load(CollectionName.areas)
			await self.repository.commit(CollectionName.areas, [*areas, area])
		logger.info("area_created", area_id=area.id, field_id=parent.id)
		return area

	async def update_field(self, field_id: str, payload: FieldUpdate) -> FieldRecord:
		changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
		if "name" in changes:
			changes["name"] = _required_name(changes["name"], "Field")

		async with self.repository.writing():
			fields = await self.repository.load(CollectionName.fields)
			position = next((i for i, field in enumerate(fields) if field.id == field_id), None)
			if position is None:
				raise LookupError(f"Field {field_id} not found")
			updated = fields[position].model_copy(update={**changes, "updated_at": to_iso(self.clock())})
			fields[position] = updated
			await self.repository.commit(CollectionName.fields, fields)
		return updated

	async def update_area(self, area_id: str, payload: AreaUpdate) -> AreaRecord:
		"""Apply whitelisted changes; an explicit ``typeId`` of null or "" clears it."""
		submitted = payload.model_dump(exclude_unset=True)
		changes = {key: value for key, value in submitted.items() if value is not None}
		if "type_id" in submitted:
			changes["type_id"] = submitted["type_id"] or None
		if "name" in changes:
			changes["name"] = _required_name(changes["name"], "Area")

		async with self.repository.writing():
			if "field_id" in changes and await self.repository.find(CollectionName.fields, changes["field_id"]) is None:
				raise LookupError(f"Field {changes['field_id']} not found")
			areas = await self.repository.load(CollectionName.areas)
			position = next((i for i, area in enumerate(areas) if area.id == area_id), None)
			if position is None:
				raise LookupError(f"Area {area_id} not found")
			updated = areas[position].model_copy(update={**changes, "updated_at": to_iso(self.clock())})
			areas[position] = updated
			await self.repository.commit(CollectionName.areas, areas)
		return updated
