"""Pydantic request/response schemas for the logbook views."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from farmdiary.schemas.common import CamelModel, Number


class LogFilters(CamelModel):
	"""Optional narrowing filters; empty strings count as absent."""

	field_id: str | None = None
	area_id: str | None = None
	crop_instance_id: str | None = None
	task_type_id: str | None = None
	start_date: str | None = None
	end_date: str | None = None
	status_id: str | None = None

	@model_validator(mode="after")
	def blank_to_none(self) -> LogFilters:
		for name in type(self).model_fields:
			value = getattr(self, name)
			if isinstance(value, str) and not value.strip():
				setattr(self, name, None)
		return self

	def as_metadata(self) -> dict[str, Any]:
		return self.model_dump(by_alias=True, exclude_none=True)


class EnrichedLog(CamelModel):
	id: str
	timestamp: str | None = None
	action: str
	quantity: Number = None
	unit_symbol: str | None = None
	crop_name: str = ""
	area_name: str = ""
	field_name: str = ""
	task_type_name: str = ""
	notes: str = ""
	photo_ids: list[str] = Field(default_factory=list)
	skip_reason_name: str | None = None


class LogPage(CamelModel):
	logs: list[EnrichedLog]
	total_count: int


class AggregateTotals(CamelModel):
	total_water_l: float = Field(alias="totalWaterL")
	total_fertilizer_kg: float
	total_harvest_kg: float
	total_logs: int


class PhotoSummary(CamelModel):
	id: str
	storage_ref: str | None = None
	mime_type: str | None = None
	width: Number = None
	height: Number = None
	size_bytes: Number = None
	created_at: str | None = None


class ExportMetadata(CamelModel):
	exported_at: str
	log_count: int
	filters: dict[str, Any] = Field(default_factory=dict)


class ExportSummary(CamelModel):
	log_count: int
	estimated_size_kb: float = Field(alias="estimatedSizeKB")


class ExportPayload(CamelModel):
	metadata: ExportMetadata
	logs: list[EnrichedLog]
	photos: list[PhotoSummary] | None = None


class NamedOption(CamelModel):
	id: str
	name: str


class TaskTypeOption(CamelModel):
	id: str
	name_en: str | None = None


class FilterOptions(CamelModel):
	field_options: list[NamedOption] = Field(default_factory=list, alias="fields")
	areas: list[NamedOption] = Field(default_factory=list)
	crops: list[NamedOption] = Field(default_factory=list)
	task_types: list[TaskTypeOption] = Field(default_factory=list)


class PhotoCreate(CamelModel):
	"""Metadata for a photo whose bytes live behind ``storage_ref``."""

	storage_ref: str = Field(min_length=1)
	mime_type: str = "image/jpeg"
	width: int = Field(default=0, ge=0)
	height: int = Field(default=0, ge=0)
	size_bytes: int | None = Field(default=None, ge=0)
	preset_id: str | None = None
