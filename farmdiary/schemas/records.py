"""Pydantic models for records persisted in the diary collections.

Records keep camelCase keys on disk and preserve keys they do not model, so a
load → modify → save cycle never strips data written by another client.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from farmdiary.models.enums import CollectionName
from farmdiary.schemas.common import CamelModel, Identifier, Label, Number, Ref, Text

KNOWN_OVERRIDE_KEYS = ("defaultIntervalDays", "recommendedQuantity", "daysToMaturity")


class RecordModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

	id: Identifier = Field(min_length=1)

	def to_record(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True)


class OwnedRecord(RecordModel):
	owner_id: Ref = Field(
		default=None,
		validation_alias=AliasChoices("ownerId", "userId", "owner_id"),
		serialization_alias="ownerId",
	)


class FieldRecord(OwnedRecord):
	name: Label = ""
	size: Number = None
	size_unit: Text = None
	notes: Text = None
	created_at: Text = None
	updated_at: Text = None


class AreaRecord(OwnedRecord):
	field_id: Ref = None
	name: Label = ""
	type_id: Ref = None
	size: Number = None
	size_unit: Text = None
	notes: Text = None
	created_at: Text = None
	updated_at: Text = None


class OverrideEntry(BaseModel):
	key: str
	value: Text = None


class CropOverrides(CamelModel):
	"""Typed view over a crop instance's override entries.

	Recognised keys are coerced to numbers (``None`` when not numeric);
	anything else is kept verbatim in ``extra``. Only keys actually present
	on the crop appear in ``model_fields_set``.
	"""

	default_interval_days: Number = None
	recommended_quantity: Number = None
	days_to_maturity: Number = None
	extra: dict[str, str | None] = Field(default_factory=dict)

	@classmethod
	def from_entries(cls, entries: list[OverrideEntry]) -> CropOverrides:
		known: dict[str, Any] = {}
		extra: dict[str, str | None] = {}
		for entry in entries:
			if entry.key in KNOWN_OVERRIDE_KEYS:
				known[entry.key] = entry.value
			else:
				extra[entry.key] = entry.value
		if extra:
			known["extra"] = extra
		return cls.model_validate(known)

	def has(self, key: str) -> bool:
		"""True when ``key`` (camelCase) was explicitly overridden."""
		if key in KNOWN_OVERRIDE_KEYS:
			return _snake(key) in self.model_fields_set
		return key in self.extra

	def to_map(self) -> dict[str, Any]:
		values: dict[str, Any] = {}
		for key in KNOWN_OVERRIDE_KEYS:
			if self.has(key):
				values[key] = getattr(self, _snake(key))
		values.update(self.extra)
		return values


def _snake(camel: str) -> str:
	return "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in camel)


def normalize_override_entries(value: Any) -> list[dict[str, str | None]]:
	"""Accept a ``{key: value}`` map or ``[{key, value}]`` list; last duplicate wins."""
	if isinstance(value, dict):
		pairs = list(value.items())
	elif isinstance(value, list):
		pairs = []
		for entry in value:
			if isinstance(entry, OverrideEntry):
				pairs.append((entry.key, entry.value))
			elif isinstance(entry, dict):
				pairs.append((entry.get("key"), entry.get("value")))
	else:
		return []

	merged: dict[str, Any] = {}
	for key, raw in pairs:
		if isinstance(key, str) and key:
			merged[key] = raw
	entries: list[dict[str, str | None]] = []
	for key, raw in merged.items():
		if raw is None or isinstance(raw, str):
			text = raw
		elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
			text = str(raw)
		else:
			text = None
		entries.append({"key": key, "value": text})
	return entries


class CropInstanceRecord(OwnedRecord):
	area_id: Ref = None
	library_crop_id: Ref = None
	custom: bool = False
	name: Label = ""
	start_date: Text = None
	applied_template_version: Text = None
	overrides: list[OverrideEntry] = Field(default_factory=list)
	days_to_maturity: Number = None
	stage: Text = None
	notes: Text = None
	created_at: Text = None
	updated_at: Text = None

	@field_validator("overrides", mode="before")
	@classmethod
	def _normalize_overrides(cls, value: Any) -> list[dict[str, str | None]]:
		return normalize_override_entries(value)

	def typed_overrides(self) -> CropOverrides:
		return CropOverrides.from_entries(self.overrides)


class LibraryCropRecord(RecordModel):
	crop_id: Ref = None
	name_en: Text = None
	name_ta: Text = None
	category: Text = None
	days_to_maturity: Number = None
	stage_definitions: list[Any] = Field(default_factory=list)
	spacing_reference: Text = None
	default_care_template_id: Ref = None
	typical_pests: Text = None
	typical_nutrients: Text = None
	version: Text = None
	created_at: Text = None
	updated_at: Text = None


class TaskTemplateRecord(RecordModel):
	name: Text = None
	task_type_id: Ref = None
	default_unit_id: Ref = None
	recurrence_pattern_id: Ref = None
	default_interval_days: Number = None
	requires_quantity: bool = False
	recommended_quantity: Number = None
	notes: Text = None
	icon: Text = None
	version: Text = None
	created_at: Text = None
	updated_at: Text = None


class TaskTypeRecord(RecordModel):
	name_en: Text = None
	name_ta: Text = None
	default_unit_id: Ref = None
	icon: Text = None
	requires_quantity: bool = False


class TaskOccurrenceRecord(OwnedRecord):
	crop_instance_id: Ref = None
	template_id: Ref = None
	due_date: Text = None
	scheduled_date: Text = None
	status_id: Ref = None
	snooze_until: Text = None
	last_completed_at: Text = None
	priority: Number = None
	created_at: Text = None
	updated_at: Text = None


class LogRecord(OwnedRecord):
	task_occurrence_id: Ref = None
	crop_instance_id: Ref = None
	action: Label = ""
	timestamp: Text = None
	quantity: Number = None
	unit_id: Ref = None
	notes: Text = None
	photo_ids: list[str] = Field(default_factory=list)
	skip_reason_id: Ref = None
	created_at: Text = None
	updated_at: Text = None

	@field_validator("photo_ids", mode="before")
	@classmethod
	def _clean_photo_ids(cls, value: Any) -> list[str]:
		if not isinstance(value, list):
			return []
		return [item for item in value if isinstance(item, str) and item]


class UnitRecord(RecordModel):
	symbol: Text = None
	name: Text = None
	type: Text = None
	conversion_factor_to_base: Number = None
	base_unit_id: Ref = None


class StatusCodeRecord(RecordModel):
	name: Label = ""
	description: Text = None
	priority: Number = None


class ReasonCodeRecord(RecordModel):
	name: Label = ""
	description: Text = None


class PhotoRecord(OwnedRecord):
	storage_ref: Text = None
	mime_type: Text = None
	width: Number = None
	height: Number = None
	size_bytes: Number = None
	preset_id: Ref = None
	created_at: Text = None


class NoteRecord(OwnedRecord):
	type: Label = ""
	weather_event_id: Ref = None
	crop_instance_id: Ref = None
	area_id: Ref = None
	date: Text = None
	content: Label = ""
	created_at: Text = None
	updated_at: Text = None


class WeatherEventRecord(OwnedRecord):
	weather_event_type: Label = ""
	severity: Text = None
	amount: Number = None
	date: Text = None
	notes: Text = None
	created_at: Text = None


class SyncQueueRecord(OwnedRecord):
	entity_type: str
	entity_id: str
	operation: str
	payload: str = ""
	created_at: Text = None
	last_attempt_at: Text = None
	retries: int = 0
	status: str = "pending"


COLLECTION_MODELS: dict[CollectionName, type[RecordModel]] = {
	CollectionName.fields: FieldRecord,
	CollectionName.areas: AreaRecord,
	CollectionName.crop_instances: CropInstanceRecord,
	CollectionName.library_crops: LibraryCropRecord,
	CollectionName.task_templates: TaskTemplateRecord,
	CollectionName.task_types: TaskTypeRecord,
	CollectionName.task_occurrences: TaskOccurrenceRecord,
	CollectionName.logs: LogRecord,
	CollectionName.units: UnitRecord,
	CollectionName.status_codes: StatusCodeRecord,
	CollectionName.reason_codes: ReasonCodeRecord,
	CollectionName.photos: PhotoRecord,
	CollectionName.notes: NoteRecord,
	CollectionName.weather_events: WeatherEventRecord,
	CollectionName.sync_queue: SyncQueueRecord,
}
