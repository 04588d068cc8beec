"""Pydantic request/response schemas for crop instances and the crop library."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from farmdiary.schemas.common import CamelModel, Number
from farmdiary.schemas.records import (
	CropInstanceRecord,
	CropOverrides,
	LibraryCropRecord,
	LogRecord,
	TaskOccurrenceRecord,
)


class CropInstanceCreate(CamelModel):
	area_id: str = Field(min_length=1)
	start_date: str = Field(min_length=1)
	name: str | None = None
	custom: bool = False
	library_crop_id: str | None = None
	applied_template_version: str | None = None
	overrides: dict[str, Any] | list[dict[str, Any]] = Field(default_factory=list)
	days_to_maturity: float | None = None
	stage: str | None = None
	notes: str | None = None


class CropInstanceUpdate(CamelModel):
	name: str | None = None
	start_date: str | None = None
	custom: bool | None = None
	days_to_maturity: float | None = None
	stage: str | None = None
	notes: str | None = None


class CropInstanceDetail(CamelModel):
	"""Stored crop instance with its overrides decoded into the typed view."""

	crop_instance: CropInstanceRecord
	overrides: CropOverrides


class LibraryCropDetail(LibraryCropRecord):
	"""Library crop plus defaults copied from its care template."""

	default_interval_days: Number = None
	default_unit_id: str | None = None
	recommended_quantity: Number = None


class TaskTypeSummary(CamelModel):
	id: str
	name_en: str | None = None
	name_ta: str | None = None
	icon: str = "circle"


class ScheduledTask(TaskOccurrenceRecord):
	task_type: TaskTypeSummary | None = None


class UnitSummary(CamelModel):
	id: str
	symbol: str | None = None
	name: str | None = None
	type: str | None = None


class CropLog(LogRecord):
	unit: UnitSummary | None = None


class TemplateCreated(CamelModel):
	template_id: str


class AppliedVersion(CamelModel):
	applied_template_version: str | None = None


class LibraryCropCreate(CamelModel):
	"""User-defined library crop; only the English name and category are required."""

	name_en: str
	category: str
	name_ta: str = ""
	days_to_maturity: float | None = None
	default_care_template_id: str | None = None
	spacing_reference: str = ""
	typical_pests: str = ""
	typical_nutrients: str = ""
