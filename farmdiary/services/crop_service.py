"""Crop instances, their overrides and schedule, and the crop library."""

from __future__ import annotations

import math
import re
import unicodedata
import uuid
from datetime import timedelta

import structlog

from farmdiary.config import get_settings
from farmdiary.models.enums import CollectionName
from farmdiary.schemas.common import coerce_number
from farmdiary.schemas.crops import (
	CropInstanceCreate,
	CropInstanceDetail,
	CropInstanceUpdate,
	CropLog,
	LibraryCropCreate,
	LibraryCropDetail,
	ScheduledTask,
	UnitSummary,
)
from farmdiary.schemas.records import (
	CropInstanceRecord,
	LibraryCropRecord,
	ReasonCodeRecord,
	StatusCodeRecord,
	TaskOccurrenceRecord,
	TaskTemplateRecord,
	TaskTypeRecord,
	UnitRecord,
)
from farmdiary.services import enrichment
from farmdiary.services.lifecycle_service import derive_initial_status, status_ids
from farmdiary.services.repository import EntityRepository, new_id
from farmdiary.services.timeutil import Clock, add_days, date_only_iso, parse_day, parse_instant, system_clock, to_iso

DEFAULT_CROP_NAME = "New Crop"
_NON_SLUG = re.compile(r"[^a-z0-9]+")

logger = structlog.get_logger("farmdiary.crops")


def slugify(text: str) -> str:
	"""Lowercase ASCII slug, at most 48 characters; ``item`` when nothing survives."""
	folded = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
	slug = _NON_SLUG.sub("-", folded.lower()).strip("-")[:48]
	return slug or "item"


def _normalized_start(raw: str) -> str:
	"""Start date as UTC midnight of its own calendar date."""
	day = parse_day(raw)
	if day is None:
		raise ValueError(f"Invalid start date: {raw!r}")
	return date_only_iso(day)


class CropService:
	def __init__(self, repository: EntityRepository, clock: Clock | None = None):
		settings = get_settings()
		self.repository = repository
		self.clock = clock or system_clock(settings.tzinfo)
		self.schedule_window_days = settings.schedule_window_days

	# ── Crop instances ──────────────────────────────────────────────────────

	async def create_crop_instance(self, payload: CropInstanceCreate) -> CropInstanceRecord:
		"""Create a crop in an existing area and seed its first care occurrence.

		When the crop references a library crop with a default care template, one
		occurrence is generated, due ``defaultIntervalDays`` after the start date.
		"""
		start_iso = _normalized_start(payload.start_date)

		async with self.repository.writing():
			area = await self.repository.find(CollectionName.areas, payload.area_id)
			if area is None:
				raise LookupError(f"Area {payload.area_id} not found")

			now_iso = to_iso(self.clock())
			crop = CropInstanceRecord(
				id=new_id("ci"),
				owner_id=area.owner_id,
				area_id=area.id,
				library_crop_id=payload.library_crop_id or None,
				custom=payload.custom,
				name=(payload.name or "").strip() or DEFAULT_CROP_NAME,
				start_date=start_iso,
				applied_template_version=payload.applied_template_version or None,
				overrides=payload.overrides,
				days_to_maturity=payload.days_to_maturity,
				stage=payload.stage,
				notes=payload.notes,
				created_at=now_iso,
				updated_at=now_iso,
			)
			seed = await self._seed_occurrence(crop, now_iso)

			crops = await self.repository.load(CollectionName.crop_instances)
			await self.repository.commit(CollectionName.crop_instances, [*crops, crop])
			if seed is not None:
				occurrences = await self.repository.load(CollectionName.task_occurrences)
				await self.repository.commit(CollectionName.task_occurrences, [*occurrences, seed])

		logger.info(
			"crop_instance_created",
			crop_instance_id=crop.id,
			area_id=area.id,
			seeded_occurrence=seed.id if seed is not None else None,
		)
		return crop

	async def _seed_occurrence(self, crop: CropInstanceRecord, now_iso: str) -> TaskOccurrenceRecord | None:
		if not crop.library_crop_id:
			return None
		library_crop = await self.repository.find(CollectionName.library_crops, crop.library_crop_id)
		if library_crop is None or not library_crop.default_care_template_id:
			return None
		template = await self.repository.find(CollectionName.task_templates, library_crop.default_care_template_id)
		if template is None:
			return None

		base_day = parse_day(crop.start_date)
		interval = template.default_interval_days if template.default_interval_days is not None else 0
		due_day = add_days(base_day, int(interval))
		status = derive_initial_status(due_day, self.clock().date())

		codes = await self.repository.load(CollectionName.status_codes)
		status_id = status_ids(codes)[status]
		priority = next((code.priority for code in codes if code.id == status_id), None)

		return TaskOccurrenceRecord(
			id=new_id("to"),
			owner_id=crop.owner_id,
			crop_instance_id=crop.id,
			template_id=template.id,
			due_date=date_only_iso(due_day),
			scheduled_date=date_only_iso(base_day),
			status_id=status_id,
			snooze_until=None,
			last_completed_at=None,
			priority=priority if priority is not None else 0,
			created_at=now_iso,
			updated_at=now_iso,
		)

	async def get_crop_instance(self, crop_instance_id: str) -> CropInstanceDetail | None:
		crop = await self.repository.find(CollectionName.crop_instances, crop_instance_id)
		if crop is None:
			return None
		return CropInstanceDetail(crop_instance=crop, overrides=crop.typed_overrides())

	async def update_crop_instance(self, crop_instance_id: str, payload: CropInstanceUpdate) -> CropInstanceRecord:
		changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
		if "start_date" in changes:
			changes["start_date"] = _normalized_start(changes["start_date"])
		if "name" in changes:
			changes["name"] = changes["name"].strip() or DEFAULT_CROP_NAME

		async with self.repository.writing():
			crops, position = await self._require_crop(crop_instance_id)
			updated = crops[position].model_copy(update={**changes, "updated_at": to_iso(self.clock())})
			crops[position] = updated
			await self.repository.commit(CollectionName.crop_instances, crops)
		return updated

	async def update_overrides(self, crop_instance_id: str, overrides: dict[str, object]) -> CropInstanceDetail:
		"""Replace a crop's overrides; a ``daysToMaturity`` key is mirrored onto the crop."""
		entries = CropInstanceRecord.model_validate({"id": crop_instance_id, "overrides": overrides}).overrides
		changes: dict[str, object] = {"overrides": entries}
		if "daysToMaturity" in overrides:
			changes["days_to_maturity"] = coerce_number(overrides["daysToMaturity"])

		async with self.repository.writing():
			crops, position = await self._require_crop(crop_instance_id)
			updated = crops[position].model_copy(update={**changes, "updated_at": to_iso(self.clock())})
			crops[position] = updated
			await self.repository.commit(CollectionName.crop_instances, crops)
		logger.info("crop_overrides_updated", crop_instance_id=crop_instance_id, keys=sorted(overrides))
		return CropInstanceDetail(crop_instance=updated, overrides=updated.typed_overrides())

	async def scheduled_tasks(self, crop_instance_id: str, days_window: int | None = None) -> list[ScheduledTask]:
		"""Occurrences due between now and ``days_window`` days from now, soonest first."""
		window = self.schedule_window_days if days_window is None else days_window
		now = self.clock()
		end = now + timedelta(days=max(0, int(window)))

		index = await self.repository.build_index()
		entries = []
		for occurrence in index.occurrences:
			if occurrence.crop_instance_id != crop_instance_id:
				continue
			due = parse_instant(occurrence.due_date)
			if due is not None and now <= due <= end:
				entries.append((due, enrichment.scheduled_entry(index, occurrence)))
		entries.sort(key=lambda pair: pair[0])
		return [entry for _, entry in entries]

	async def logs_for_crop(self, crop_instance_id: str, limit: int = 20) -> list[CropLog]:
		logs = [log for log in await self.repository.load(CollectionName.logs) if log.crop_instance_id == crop_instance_id]
		units = {unit.id: unit for unit in await self.repository.load(CollectionName.units)}
		floor = parse_instant("1970-01-01")
		logs.sort(key=lambda log: parse_instant(log.timestamp) or floor, reverse=True)

		results: list[CropLog] = []
		for log in logs[: max(0, int(limit))]:
			unit = units.get(log.unit_id) if log.unit_id else None
			summary = (
				UnitSummary(id=unit.id, symbol=unit.symbol, name=unit.name, type=unit.type) if unit is not None else None
			)
			results.append(CropLog.model_validate({**log.to_record(), "unit": summary}))
		return results

	async def save_as_my_template(self, crop_instance_id: str) -> str:
		"""Copy the crop's library care template into a new user template; returns its id."""
		async with self.repository.writing():
			crop = await self.repository.find(CollectionName.crop_instances, crop_instance_id)
			if crop is None:
				raise LookupError(f"Crop instance {crop_instance_id} not found")

			base: TaskTemplateRecord | None = None
			if crop.library_crop_id:
				library_crop = await self.repository.find(CollectionName.library_crops, crop.library_crop_id)
				if library_crop is not None and library_crop.default_care_template_id:
					base = await self.repository.find(CollectionName.task_templates, library_crop.default_care_template_id)

			now_iso = to_iso(self.clock())
			template = TaskTemplateRecord(
				id=new_id("tt-user"),
				name=f"My Template - {crop.name}" if crop.name else "My Template",
				task_type_id=base.task_type_id if base is not None else None,
				default_unit_id=base.default_unit_id if base is not None else None,
				recurrence_pattern_id=base.recurrence_pattern_id if base is not None else None,
				default_interval_days=(base.default_interval_days if base is not None else None) or 0,
				requires_quantity=base.requires_quantity if base is not None else False,
				recommended_quantity=base.recommended_quantity if base is not None else None,
				notes=(base.notes if base is not None else None) or "",
				icon=(base.icon if base is not None else None) or "circle",
				version="1.0",
				created_at=now_iso,
				updated_at=now_iso,
			)
			templates = await self.repository.load(CollectionName.task_templates)
			await self.repository.commit(CollectionName.task_templates, [*templates, template])
		logger.info("template_saved_from_crop", crop_instance_id=crop_instance_id, template_id=template.id)
		return template.id

	async def apply_library_updates(self, crop_instance_id: str) -> str | None:
		"""Move the crop to its library crop's current version.

		``daysToMaturity`` follows the library unless the crop overrides it.
		Returns the applied version, or ``None`` when there is no versioned
		library crop to follow.
		"""
		async with self.repository.writing():
			crops, position = await self._require_crop(crop_instance_id)
			crop = crops[position]
			if not crop.library_crop_id:
				return None
			library_crop = await self.repository.find(CollectionName.library_crops, crop.library_crop_id)
			if library_crop is None or not library_crop.version:
				return None

			changes: dict[str, object] = {
				"applied_template_version": library_crop.version,
				"updated_at": to_iso(self.clock()),
			}
			if library_crop.days_to_maturity is not None and not crop.typed_overrides().has("daysToMaturity"):
				changes["days_to_maturity"] = library_crop.days_to_maturity
			crops[position] = crop.model_copy(update=changes)
			await self.repository.commit(CollectionName.crop_instances, crops)
		logger.info("library_updates_applied", crop_instance_id=crop_instance_id, version=library_crop.version)
		return library_crop.version

	async def _require_crop(self, crop_instance_id: str) -> tuple[list[CropInstanceRecord], int]:
		crops = await self.repository.load(CollectionName.crop_instances)
		for position, crop in enumerate(crops):
			if crop.id == crop_instance_id:
				return crops, position
		raise LookupError(f"Crop instance {crop_instance_id} not found")

	# ── Library ─────────────────────────────────────────────────────────────

	async def list_library_crops(self, category: str | None = None) -> list[LibraryCropRecord]:
		crops = await self.repository.load(CollectionName.library_crops)
		if not category:
			return crops
		return [crop for crop in crops if crop.category == category]

	async def get_library_crop(self, library_crop_id: str) -> LibraryCropDetail | None:
		"""Library crop with defaults lifted from its care template."""
		crop = await self.repository.find(CollectionName.library_crops, library_crop_id)
		if crop is None:
			return None
		detail = LibraryCropDetail.model_validate(crop.to_record())
		if crop.default_care_template_id:
			template = await self.repository.find(CollectionName.task_templates, crop.default_care_template_id)
			if template is not None:
				detail.default_interval_days = template.default_interval_days
				detail.default_unit_id = template.default_unit_id
				detail.recommended_quantity = template.recommended_quantity
		return detail

	async def add_custom_library_crop(self, payload: LibraryCropCreate) -> LibraryCropRecord:
		name_en = payload.name_en.strip()
		category = payload.category.strip()
		if not name_en or not category:
			raise ValueError("Library crop requires nameEn and category")

		days = payload.days_to_maturity
		short = uuid.uuid4().hex[:6]
		async with self.repository.writing():
			template_id = payload.default_care_template_id or None
			if template_id and await self.repository.find(CollectionName.task_templates, template_id) is None:
				raise LookupError(f"Task template {template_id} not found")

			now_iso = to_iso(self.clock())
			crop = LibraryCropRecord(
				id=f"lc-custom-{short}",
				crop_id=f"crop-custom-{slugify(name_en)}-{short}",
				name_en=name_en,
				name_ta=payload.name_ta.strip(),
				category=category,
				days_to_maturity=math.trunc(days) if days is not None and math.isfinite(days) else None,
				stage_definitions=[],
				spacing_reference=payload.spacing_reference,
				default_care_template_id=template_id,
				typical_pests=payload.typical_pests,
				typical_nutrients=payload.typical_nutrients,
				version="1.0",
				created_at=now_iso,
				updated_at=now_iso,
			)
			crops = await self.repository.load(CollectionName.library_crops)
			await self.repository.commit(CollectionName.library_crops, [*crops, crop])
		logger.info("library_crop_added", library_crop_id=crop.id, category=category)
		return crop

	async def list_task_templates(self) -> list[TaskTemplateRecord]:
		return await self.repository.load(CollectionName.task_templates)


class ReferenceService:
	"""Lookup lists used to populate pickers."""

	def __init__(self, repository: EntityRepository):
		self.repository = repository

	async def units(self) -> list[UnitRecord]:
		return await self.repository.load(CollectionName.units)

	async def reason_codes(self) -> list[ReasonCodeRecord]:
		return await self.repository.load(CollectionName.reason_codes)

	async def status_codes(self) -> list[StatusCodeRecord]:
		return await self.repository.load(CollectionName.status_codes)

	async def task_types(self) -> list[TaskTypeRecord]:
		return await self.repository.load(CollectionName.task_types)
