"""Read-only joins that rebuild denormalized views from flat collections.

Every lookup returns ``None`` for a dangling id and the view substitutes a
placeholder, so a corrupted reference never makes a screen unrenderable.
Views are new objects; nothing here writes back to the repository.
"""

from __future__ import annotations

from farmdiary.models.enums import StatusName
from farmdiary.schemas.crops import ScheduledTask, TaskTypeSummary
from farmdiary.schemas.logbook import EnrichedLog
from farmdiary.schemas.records import (
	AreaRecord,
	CropInstanceRecord,
	FieldRecord,
	LogRecord,
	TaskOccurrenceRecord,
	TaskTemplateRecord,
	TaskTypeRecord,
)
from farmdiary.schemas.tasks import CalendarTask, StatusSummary, TaskDetail, TaskView
from farmdiary.services.repository import DiaryIndex

UNKNOWN_AREA = "Unknown Area"
UNKNOWN_CROP = "Unknown Crop"
UNTITLED_TASK = "Untitled Task"
DEFAULT_TASK_NAME = "Task"
DEFAULT_TASK_ICON = "circle-check"

_STATUS_PREFIX = "status-"
_TASK_TYPE_PREFIX = "ttype-"


# ── Lookups ─────────────────────────────────────────────────────────────────


def status_name(index: DiaryIndex, status_id: str | None) -> str:
	if not status_id:
		return ""
	code = index.status_codes.get(status_id)
	if code is not None and code.name:
		return code.name
	return status_id.removeprefix(_STATUS_PREFIX)


def status_priority(index: DiaryIndex, status_id: str | None) -> int | float:
	code = index.status_codes.get(status_id or "")
	if code is not None and code.priority is not None:
		return code.priority
	return 0


def status_id_for(index: DiaryIndex, name: StatusName) -> str:
	"""Stored id for a status name, falling back to the ``status-<name>`` convention."""
	for code in index.status_codes.values():
		if code.name == name.value:
			return code.id
	return name.status_id


def template_for(index: DiaryIndex, occurrence: TaskOccurrenceRecord | None) -> TaskTemplateRecord | None:
	if occurrence is None or not occurrence.template_id:
		return None
	return index.task_templates.get(occurrence.template_id)


def task_type_for_occurrence(index: DiaryIndex, occurrence: TaskOccurrenceRecord | None) -> TaskTypeRecord | None:
	template = template_for(index, occurrence)
	if template is None or not template.task_type_id:
		return None
	return index.task_types.get(template.task_type_id)


def task_type_for_log(index: DiaryIndex, log: LogRecord) -> TaskTypeRecord | None:
	if not log.task_occurrence_id:
		return None
	return task_type_for_occurrence(index, index.task_occurrences.get(log.task_occurrence_id))


def crop_for(index: DiaryIndex, crop_instance_id: str | None) -> CropInstanceRecord | None:
	return index.crop_instances.get(crop_instance_id) if crop_instance_id else None


def area_for(index: DiaryIndex, crop: CropInstanceRecord | None) -> AreaRecord | None:
	if crop is None or not crop.area_id:
		return None
	return index.areas.get(crop.area_id)


def field_for(index: DiaryIndex, area: AreaRecord | None) -> FieldRecord | None:
	if area is None or not area.field_id:
		return None
	return index.fields.get(area.field_id)


def task_type_slug(task_type_id: str) -> str:
	return task_type_id.split(_TASK_TYPE_PREFIX, 1)[1] if _TASK_TYPE_PREFIX in task_type_id else task_type_id


# ── Views ───────────────────────────────────────────────────────────────────


def enrich_log(index: DiaryIndex, log: LogRecord) -> EnrichedLog:
	unit = index.units.get(log.unit_id) if log.unit_id else None
	crop = crop_for(index, log.crop_instance_id)
	area = area_for(index, crop)
	field = field_for(index, area)
	reason = index.reason_codes.get(log.skip_reason_id) if log.skip_reason_id else None
	task_type = task_type_for_log(index, log)

	return EnrichedLog(
		id=log.id,
		timestamp=log.timestamp,
		action=log.action,
		quantity=log.quantity,
		unit_symbol=(unit.symbol or None) if unit is not None else None,
		crop_name=crop.name if crop is not None else "",
		area_name=area.name if area is not None else "",
		field_name=field.name if field is not None else "",
		task_type_name=(task_type.name_en or "") if task_type is not None else "",
		notes=log.notes or "",
		photo_ids=list(log.photo_ids),
		skip_reason_name=reason.name if reason is not None else None,
	)


def enrich_task(index: DiaryIndex, occurrence: TaskOccurrenceRecord) -> TaskView:
	crop = crop_for(index, occurrence.crop_instance_id)
	area = area_for(index, crop)
	template = template_for(index, occurrence)
	task_type = task_type_for_occurrence(index, occurrence)
	unit_id = (template.default_unit_id if template is not None else None) or (
		task_type.default_unit_id if task_type is not None else None
	)
	unit = index.units.get(unit_id) if unit_id else None

	if template is not None:
		requires_quantity = template.requires_quantity
	else:
		requires_quantity = task_type.requires_quantity if task_type is not None else False

	return TaskView(
		id=occurrence.id,
		area_id=area.id if area is not None else None,
		area_name=area.name if area is not None else UNKNOWN_AREA,
		crop_instance_id=crop.id if crop is not None else None,
		crop_name=(crop.name or "Crop") if crop is not None else UNKNOWN_CROP,
		task_name=(template.name or DEFAULT_TASK_NAME) if template is not None else DEFAULT_TASK_NAME,
		task_icon=(template.icon if template is not None else None)
		or (task_type.icon if task_type is not None else None),
		task_type=task_type_slug(task_type.id) if task_type is not None else "",
		status=status_name(index, occurrence.status_id),
		due_date=occurrence.due_date,
		priority=occurrence.priority,
		recommended_quantity=template.recommended_quantity if template is not None else None,
		requires_quantity=bool(requires_quantity),
		unit_id=unit_id,
		unit_symbol=(unit.symbol or "") if unit is not None else "",
	)


def task_detail(index: DiaryIndex, occurrence: TaskOccurrenceRecord) -> TaskDetail:
	template = template_for(index, occurrence) or TaskTemplateRecord(
		id=occurrence.template_id or "template-missing",
		name=UNTITLED_TASK,
		notes="",
	)
	crop = crop_for(index, occurrence.crop_instance_id) or CropInstanceRecord(
		id=occurrence.crop_instance_id or "crop-missing",
		name=UNKNOWN_CROP,
	)
	area = area_for(index, crop) or AreaRecord(id=crop.area_id or "area-missing", name=UNKNOWN_AREA)
	task_type = (index.task_types.get(template.task_type_id) if template.task_type_id else None) or TaskTypeRecord(
		id=template.task_type_id or "tasktype-missing",
		name_en=DEFAULT_TASK_NAME,
		icon=DEFAULT_TASK_ICON,
	)
	status = StatusSummary(
		id=occurrence.status_id,
		name=status_name(index, occurrence.status_id) or StatusName.planned.value,
	)
	return TaskDetail(
		task_occurrence=occurrence,
		template=template,
		crop_instance=crop,
		area=area,
		task_type=task_type,
		status=status,
	)


def calendar_entry(index: DiaryIndex, occurrence: TaskOccurrenceRecord) -> CalendarTask:
	crop = crop_for(index, occurrence.crop_instance_id)
	area = area_for(index, crop)
	return CalendarTask.model_validate(
		{
			**occurrence.to_record(),
			"taskType": task_type_for_occurrence(index, occurrence),
			"cropInstance": crop,
			"area": area,
			"field": field_for(index, area),
		}
	)


def scheduled_entry(index: DiaryIndex, occurrence: TaskOccurrenceRecord) -> ScheduledTask:
	task_type = task_type_for_occurrence(index, occurrence)
	summary = None
	if task_type is not None:
		summary = TaskTypeSummary(
			id=task_type.id,
			name_en=task_type.name_en,
			name_ta=task_type.name_ta,
			icon=task_type.icon or "circle",
		)
	return ScheduledTask.model_validate({**occurrence.to_record(), "taskType": summary})
