"""Referential cleanup when a field, area or photo is deleted.

Each affected collection is filtered and rewritten whole, dependents before
the records they reference, so an interrupted cascade leaves no dangling ids.
Deleting something that does not exist is a no-op reported through
``CascadeResult.deleted``.
"""

from __future__ import annotations

import structlog

from farmdiary.models.enums import CollectionName
from farmdiary.schemas.fields import CascadeResult
from farmdiary.schemas.records import AreaRecord
from farmdiary.services.repository import EntityRepository

logger = structlog.get_logger("farmdiary.cascade")


class CascadeService:
	def __init__(self, repository: EntityRepository):
		self.repository = repository

	async def delete_field(self, field_id: str) -> CascadeResult:
		async with self.repository.writing():
			fields = await self.repository.load(CollectionName.fields)
			if not any(field.id == field_id for field in fields):
				return CascadeResult(deleted=False, message=f"Field {field_id} not found; nothing to delete")

			areas = await self.repository.load(CollectionName.areas)
			doomed_areas = [area for area in areas if area.field_id == field_id]
			remaining_fields = [field for field in fields if field.id != field_id]

			result = await self._remove_areas(areas, doomed_areas)
			await self.repository.commit(CollectionName.fields, remaining_fields)
			result.fields_removed = len(fields) - len(remaining_fields)
		logger.info("field_deleted", field_id=field_id, **result.model_dump(exclude={"deleted", "message"}))
		return result

	async def delete_area(self, area_id: str) -> CascadeResult:
		async with self.repository.writing():
			areas = await self.repository.load(CollectionName.areas)
			doomed = [area for area in areas if area.id == area_id]
			if not doomed:
				return CascadeResult(deleted=False, message=f"Area {area_id} not found; nothing to delete")
			result = await self._remove_areas(areas, doomed)
		logger.info("area_deleted", area_id=area_id, **result.model_dump(exclude={"deleted", "message"}))
		return result

	async def delete_photo(self, photo_id: str) -> bool:
		"""Remove a photo and strip its id from every log; True even when absent."""
		if not photo_id:
			return True

		async with self.repository.writing():
			photos = await self.repository.load(CollectionName.photos)
			logs = await self.repository.load(CollectionName.logs)

			remaining = [photo for photo in photos if photo.id != photo_id]
			stripped = 0
			updated_logs = []
			for log in logs:
				if photo_id in log.photo_ids:
					log = log.model_copy(update={"photo_ids": [pid for pid in log.photo_ids if pid != photo_id]})
					stripped += 1
				updated_logs.append(log)

			await self.repository.commit(CollectionName.logs, updated_logs)
			await self.repository.commit(CollectionName.photos, remaining)
		logger.info("photo_deleted", photo_id=photo_id, existed=len(remaining) != len(photos), logs_updated=stripped)
		return True

	async def _remove_areas(self, areas: list[AreaRecord], doomed: list[AreaRecord]) -> CascadeResult:
		area_ids = {area.id for area in doomed}

		crops = await self.repository.load(CollectionName.crop_instances)
		crop_ids = {crop.id for crop in crops if crop.area_id in area_ids}

		occurrences = await self.repository.load(CollectionName.task_occurrences)
		occurrence_ids = {occ.id for occ in occurrences if occ.crop_instance_id in crop_ids}

		logs = await self.repository.load(CollectionName.logs)
		kept_logs = [
			log
			for log in logs
			if not (
				(log.crop_instance_id and log.crop_instance_id in crop_ids)
				or (log.task_occurrence_id and log.task_occurrence_id in occurrence_ids)
			)
		]

		await self.repository.commit(CollectionName.logs, kept_logs)
		await self.repository.commit(
			CollectionName.task_occurrences, [occ for occ in occurrences if occ.id not in occurrence_ids]
		)
		await self.repository.commit(
			CollectionName.crop_instances, [crop for crop in crops if crop.id not in crop_ids]
		)
		await self.repository.commit(CollectionName.areas, [area for area in areas if area.id not in area_ids])

		return CascadeResult(
			deleted=True,
			areas_removed=len(area_ids),
			crop_instances_removed=len(crop_ids),
			task_occurrences_removed=len(occurrence_ids),
			logs_removed=len(logs) - len(kept_logs),
		)
