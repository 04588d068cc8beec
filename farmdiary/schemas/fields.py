"""Pydantic request/response schemas for fields, areas and cascades."""

from __future__ import annotations

from pydantic import Field

from farmdiary.schemas.common import CamelModel, Number


class FieldCreate(CamelModel):
	name: str
	size: float | None = None
	size_unit: str = "m2"
	notes: str = ""


class FieldUpdate(CamelModel):
	name: str | None = None
	size: float | None = None
	size_unit: str | None = None
	notes: str | None = None


class AreaCreate(CamelModel):
	field_id: str = Field(min_length=1)
	name: str
	type_id: str | None = None
	size: float | None = None
	size_unit: str = "m2"
	notes: str = ""


class AreaUpdate(CamelModel):
	field_id: str | None = None
	name: str | None = None
	type_id: str | None = None
	size: float | None = None
	size_unit: str | None = None
	notes: str | None = None


class AreaWithStats(CamelModel):
	id: str
	name: str
	type_id: str | None = None
	size: Number = None
	size_unit: str | None = None
	notes: str | None = None
	crop_instances_count: int = 0
	overdue_tasks_count: int = 0


class FieldWithStats(CamelModel):
	id: str
	name: str
	size: Number = None
	size_unit: str | None = None
	notes: str | None = None
	areas: list[AreaWithStats] = Field(default_factory=list)
	total_areas: int = 0
	total_crop_instances: int = 0
	total_overdue_tasks: int = 0


class CascadeResult(CamelModel):
	"""Outcome of a cascading delete; ``deleted`` is False when nothing matched."""

	deleted: bool
	fields_removed: int = 0
	areas_removed: int = 0
	crop_instances_removed: int = 0
	task_occurrences_removed: int = 0
	logs_removed: int = 0
	message: str | None = None
