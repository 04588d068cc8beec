"""Enumerations shared by records, services and routes.

Values are the literal strings persisted in the record store, so renaming a
member is a data migration.
"""

from enum import StrEnum

# ── Collections ─────────────────────────────────────────────────────────────


class CollectionName(StrEnum):
    """Named collections held in the record store."""

    fields = "fields"
    areas = "areas"
    crop_instances = "cropInstances"
    library_crops = "libraryCrops"
    task_templates = "taskTemplates"
    task_types = "taskTypes"
    task_occurrences = "taskOccurrences"
    logs = "logs"
    units = "units"
    status_codes = "statusCodes"
    reason_codes = "reasonCodes"
    photos = "photos"
    notes = "notes"
    weather_events = "weatherEvents"
    sync_queue = "syncQueue"


# ── Task lifecycle ──────────────────────────────────────────────────────────


class StatusName(StrEnum):
    """Occurrence status; stored ids follow the ``status-<name>`` convention."""

    planned = "planned"
    due = "due"
    overdue = "overdue"
    completed = "completed"
    skipped = "skipped"
    snoozed = "snoozed"

    @property
    def status_id(self) -> str:
        return f"status-{self.value}"


class LogAction(StrEnum):
    """Action recorded by an append-only log entry."""

    completed = "completed"
    skipped = "skipped"
    snoozed = "snoozed"


# ── Units ───────────────────────────────────────────────────────────────────


class UnitType(StrEnum):
    """Measurement category of a unit."""

    volume = "volume"
    weight = "weight"
    count = "count"


# ── Outbox ──────────────────────────────────────────────────────────────────


class SyncStatus(StrEnum):
    pending = "pending"
    synced = "synced"
    failed = "failed"
