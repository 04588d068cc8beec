"""Pydantic request/response schemas for task occurrences."""

from __future__ import annotations

from pydantic import Field, model_validator

from farmdiary.models.enums import LogAction
from farmdiary.schemas.common import CamelModel, Number
from farmdiary.schemas.records import (
	AreaRecord,
	CropInstanceRecord,
	FieldRecord,
	TaskOccurrenceRecord,
	TaskTemplateRecord,
	TaskTypeRecord,
	WeatherEventRecord,
)

# ── Requests ────────────────────────────────────────────────────────────────


class TaskCompletion(CamelModel):
	quantity: float | None = None
	unit_id: str | None = None
	notes: str = ""
	photo_ids: list[str] = Field(default_factory=list)


class TaskSkip(CamelModel):
	reason_id: str | None = None
	notes: str = ""


class TaskSnooze(CamelModel):
	new_due: str = Field(min_length=1)


class LogCreate(CamelModel):
	"""Explicit log entry; owner and crop default to the occurrence's."""

	action: LogAction
	owner_id: str | None = None
	crop_instance_id: str | None = None
	timestamp: str | None = None
	quantity: float | None = None
	unit_id: str | None = None
	notes: str = ""
	photo_ids: list[str] = Field(default_factory=list)
	skip_reason_id: str | None = None


class TaskFilters(CamelModel):
	"""Calendar narrowing filters; empty strings count as absent."""

	field_id: str | None = None
	area_id: str | None = None
	crop_instance_id: str | None = None
	task_type_id: str | None = None
	status_id: str | None = None

	@model_validator(mode="after")
	def blank_to_none(self) -> TaskFilters:
		for name in type(self).model_fields:
			value = getattr(self, name)
			if isinstance(value, str) and not value.strip():
				setattr(self, name, None)
		return self


class BulkCompleteRequest(CamelModel):
	task_type_id: str = Field(min_length=1)


class RainSkipRequest(CamelModel):
	date: str = Field(min_length=1)
	task_ids: list[str]
	skip_reason: str = "rain"


# ── Responses ───────────────────────────────────────────────────────────────


class LogCreated(CamelModel):
	id: str


class TaskView(CamelModel):
	id: str
	area_id: str | None = None
	area_name: str
	crop_instance_id: str | None = None
	crop_name: str
	task_name: str
	task_icon: str | None = None
	task_type: str = ""
	status: str
	due_date: str | None = None
	priority: Number = None
	recommended_quantity: Number = None
	requires_quantity: bool = False
	unit_id: str | None = None
	unit_symbol: str = ""


class TaskList(CamelModel):
	tasks: list[TaskView]


class TaskStats(CamelModel):
	overdue: int = 0
	due_today: int = 0
	this_week: int = 0
	completed: int = 0


class StatusSummary(CamelModel):
	id: str | None = None
	name: str


class TaskDetail(CamelModel):
	task_occurrence: TaskOccurrenceRecord
	template: TaskTemplateRecord
	crop_instance: CropInstanceRecord
	area: AreaRecord
	task_type: TaskTypeRecord
	status: StatusSummary


class CalendarTask(TaskOccurrenceRecord):
	"""Occurrence flattened with its joined records."""

	task_type: TaskTypeRecord | None = None
	crop_instance: CropInstanceRecord | None = None
	area: AreaRecord | None = None
	field: FieldRecord | None = None


class CalendarView(CamelModel):
	"""Calendar occurrences together with the weather recorded in the same range."""

	tasks: list[CalendarTask]
	weather_events: list[WeatherEventRecord] = Field(default_factory=list)


class UpcomingTask(CamelModel):
	crop_instance_id: str | None = None
	task_occurrence_id: str
	crop_name: str
	task_name: str
	due_date: str | None = None
	priority: Number = None
	status_name: str


class WateringTask(CamelModel):
	task_id: str
	crop_name: str
	area_name: str


class BulkCompleteResult(CamelModel):
	completed_count: int
	message: str | None = None


class RainSkipResult(CamelModel):
	skipped_count: int


class OverdueCount(CamelModel):
	area_id: str
	overdue_count: int
