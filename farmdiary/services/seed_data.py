"""Demo diary dataset and its idempotent loader.

The dataset is versioned: seeding is skipped when the store already holds
``DATA_VERSION`` unless ``force`` is set. Bump the version whenever the
records below change.
"""

from __future__ import annotations

from typing import Any

import structlog

from farmdiary.models.enums import CollectionName
from farmdiary.schemas.records import COLLECTION_MODELS
from farmdiary.services.repository import EntityRepository

DATA_VERSION = "2025-09-15-v1"
_DATA_VERSION_KEY = "__dataVersion__"

logger = structlog.get_logger("farmdiary.seed")

DEMO_DATA: dict[CollectionName, list[dict[str, Any]]] = {
	CollectionName.fields: [
		{
			"id": "f-100",
			"ownerId": "user-uid-1",
			"name": "North Plot",
			"size": 1200.5,
			"sizeUnit": "m2",
			"notes": "Main vegetable patch near well.",
			"createdAt": "2024-11-02T06:45:00Z",
			"updatedAt": "2025-09-12T10:00:00Z",
		},
		{
			"id": "f-101",
			"ownerId": "user-uid-1",
			"name": "Coconut Grove",
			"size": 5000,
			"sizeUnit": "m2",
			"notes": "Older coconut trees, partially intercropped.",
			"createdAt": "2024-12-01T07:10:00Z",
			"updatedAt": "2025-08-20T09:20:00Z",
		},
		{
			"id": "f-200",
			"ownerId": "user-uid-2",
			"name": "Back Garden",
			"size": 300,
			"sizeUnit": "m2",
			"notes": "Home garden, tomatoes and herbs.",
			"createdAt": "2025-01-15T09:20:00Z",
			"updatedAt": "2025-09-11T07:55:00Z",
		},
	],
	CollectionName.areas: [
		{
			"id": "a-1001",
			"fieldId": "f-100",
			"ownerId": "user-uid-1",
			"name": "Tomato Bed A",
			"typeId": "atype-bed",
			"size": 60,
			"sizeUnit": "m2",
			"notes": "Tomatoes planted Jan 2025; drip line present.",
			"createdAt": "2025-01-20T05:00:00Z",
			"updatedAt": "2025-09-12T10:00:00Z",
		},
		{
			"id": "a-1002",
			"fieldId": "f-101",
			"ownerId": "user-uid-1",
			"name": "Coconut Sector South",
			"typeId": "atype-grove",
			"size": 2000,
			"sizeUnit": "m2",
			"notes": "Older trees with banana intercropping.",
			"createdAt": "2024-12-02T07:20:00Z",
			"updatedAt": "2025-08-20T09:20:00Z",
		},
		{
			"id": "a-2001",
			"fieldId": "f-200",
			"ownerId": "user-uid-2",
			"name": "Herb & Tomato Corner",
			"typeId": "atype-corner",
			"size": 40,
			"sizeUnit": "m2",
			"notes": "Small family plot.",
			"createdAt": "2025-01-16T09:25:00Z",
			"updatedAt": "2025-09-11T07:55:00Z",
		},
	],
	CollectionName.library_crops: [
		{
			"id": "lc-tomato-v1",
			"cropId": "crop-tomato",
			"nameEn": "Tomato",
			"nameTa": "தக்காளி",
			"category": "vegetable",
			"daysToMaturity": 90,
			"spacingReference": "30-45 cm between plants, 75 cm between rows.",
			"defaultCareTemplateId": "tt-watering-1",
			"typicalPests": "aphids, whitefly, tomato fruit borer",
			"typicalNutrients": "NPK, calcium",
			"version": "1.0",
			"createdAt": "2024-06-01T00:00:00Z",
			"updatedAt": "2024-06-01T00:00:00Z",
		},
		{
			"id": "lc-coconut-v1",
			"cropId": "crop-coconut",
			"nameEn": "Coconut",
			"nameTa": "தேங்காய்",
			"category": "tree",
			"daysToMaturity": None,
			"spacingReference": "7-10 m spacing recommended.",
			"defaultCareTemplateId": "tt-fertilize-1",
			"typicalPests": "red palm weevil, rhinoceros beetle",
			"typicalNutrients": "potassium, magnesium",
			"version": "1.1",
			"createdAt": "2023-04-15T00:00:00Z",
			"updatedAt": "2024-08-01T00:00:00Z",
		},
		{
			"id": "lc-banana-v1",
			"cropId": "crop-banana",
			"nameEn": "Banana",
			"nameTa": "வாழைப்பழம்",
			"category": "fruit",
			"daysToMaturity": 400,
			"spacingReference": "2-3 m between plants.",
			"defaultCareTemplateId": "tt-harvest-1",
			"typicalPests": "banana weevil, nematodes, bunchy top",
			"typicalNutrients": "N, K, micronutrients",
			"version": "1.0",
			"createdAt": "2023-05-20T00:00:00Z",
			"updatedAt": "2023-05-20T00:00:00Z",
		},
	],
	CollectionName.task_types: [
		{
			"id": "ttype-watering",
			"nameEn": "Watering",
			"nameTa": "நீர் ஊற்றுதல்",
			"defaultUnitId": "u-L",
			"icon": "water-drop",
			"requiresQuantity": False,
		},
		{
			"id": "ttype-fertilize",
			"nameEn": "Fertilize",
			"nameTa": "உரமிடுதல்",
			"defaultUnitId": "u-kg",
			"icon": "fertilizer",
			"requiresQuantity": True,
		},
		{
			"id": "ttype-harvest",
			"nameEn": "Harvest",
			"nameTa": "அறுவடை",
			"defaultUnitId": "u-kg",
			"icon": "harvest",
			"requiresQuantity": True,
		},
	],
	CollectionName.units: [
		{"id": "u-L", "symbol": "L", "name": "litre", "type": "volume", "conversionFactorToBase": 1, "baseUnitId": "u-L"},
		{
			"id": "u-ml",
			"symbol": "ml",
			"name": "millilitre",
			"type": "volume",
			"conversionFactorToBase": 0.001,
			"baseUnitId": "u-L",
		},
		{
			"id": "u-kg",
			"symbol": "kg",
			"name": "kilogram",
			"type": "weight",
			"conversionFactorToBase": 1,
			"baseUnitId": "u-kg",
		},
		{"id": "u-g", "symbol": "g", "name": "gram", "type": "weight", "conversionFactorToBase": 0.001, "baseUnitId": "u-kg"},
		{"id": "u-pc", "symbol": "pc", "name": "pieces", "type": "count", "conversionFactorToBase": 1, "baseUnitId": "u-pc"},
	],
	CollectionName.status_codes: [
		{"id": "status-planned", "name": "planned", "description": "Task planned for future", "priority": 1},
		{"id": "status-due", "name": "due", "description": "Task due today", "priority": 4},
		{"id": "status-overdue", "name": "overdue", "description": "Task overdue", "priority": 5},
		{"id": "status-completed", "name": "completed", "description": "Task completed", "priority": 2},
		{"id": "status-skipped", "name": "skipped", "description": "Task skipped", "priority": 1},
		{"id": "status-snoozed", "name": "snoozed", "description": "Task snoozed", "priority": 3},
	],
	CollectionName.reason_codes: [
		{"id": "reason-rain", "name": "rain", "description": "Skipped due to rain"},
		{"id": "reason-no-resources", "name": "no_resources", "description": "Skipped due to lack of resources"},
		{"id": "reason-pest-low", "name": "pest_pressure_low", "description": "Skipped because pest pressure low"},
		{"id": "reason-other", "name": "other", "description": "Other/unspecified"},
	],
	CollectionName.crop_instances: [
		{
			"id": "ci-9001",
			"ownerId": "user-uid-1",
			"areaId": "a-1001",
			"libraryCropId": "lc-tomato-v1",
			"custom": False,
			"name": "Tomato - Bed A (Batch Jan 2025)",
			"startDate": "2025-01-15T00:00:00Z",
			"appliedTemplateVersion": "1.0",
			"overrides": [{"key": "defaultIntervalDays", "value": "4"}],
			"daysToMaturity": 90,
			"stage": "Vegetative",
			"notes": "Drip irrigation, pruning weekly.",
			"createdAt": "2025-01-15T09:00:00Z",
			"updatedAt": "2025-09-10T08:00:00Z",
		},
		{
			"id": "ci-9002",
			"ownerId": "user-uid-1",
			"areaId": "a-1002",
			"libraryCropId": "lc-coconut-v1",
			"custom": False,
			"name": "Coconut - South Sector",
			"startDate": "2018-06-01T00:00:00Z",
			"appliedTemplateVersion": "1.1",
			"overrides": [],
			"daysToMaturity": None,
			"stage": "Maturing",
			"notes": "Intercropped with a few banana plants.",
			"createdAt": "2018-06-01T00:00:00Z",
			"updatedAt": "2025-08-20T09:20:00Z",
		},
		{
			"id": "ci-2001",
			"ownerId": "user-uid-2",
			"areaId": "a-2001",
			"libraryCropId": "lc-banana-v1",
			"custom": False,
			"name": "Banana - Family Row",
			"startDate": "2024-03-01T00:00:00Z",
			"appliedTemplateVersion": "1.0",
			"overrides": [{"key": "daysToMaturity", "value": "380"}],
			"daysToMaturity": 380,
			"stage": "Bunch Formation",
			"notes": "Regular mulch and potassium application.",
			"createdAt": "2024-03-01T00:00:00Z",
			"updatedAt": "2025-09-11T07:50:00Z",
		},
	],
	CollectionName.task_templates: [
		{
			"id": "tt-watering-1",
			"name": "Standard Watering",
			"taskTypeId": "ttype-watering",
			"defaultUnitId": "u-L",
			"recurrencePatternId": "rp-everyNDays",
			"defaultIntervalDays": 3,
			"requiresQuantity": False,
			"recommendedQuantity": 5,
			"notes": "Water early morning; adjust after rain.",
			"icon": "water-drop",
			"version": "1.0",
			"createdAt": "2023-06-01T00:00:00Z",
			"updatedAt": "2024-06-01T00:00:00Z",
		},
		{
			"id": "tt-fertilize-1",
			"name": "Monthly Fertilizer",
			"taskTypeId": "ttype-fertilize",
			"defaultUnitId": "u-kg",
			"recurrencePatternId": "rp-monthlyDay",
			"defaultIntervalDays": 30,
			"requiresQuantity": True,
			"recommendedQuantity": 0.5,
			"notes": "Apply NPK around root zone.",
			"icon": "fertilizer",
			"version": "1.1",
			"createdAt": "2023-04-01T00:00:00Z",
			"updatedAt": "2024-08-01T00:00:00Z",
		},
		{
			"id": "tt-harvest-1",
			"name": "Harvest Check",
			"taskTypeId": "ttype-harvest",
			"defaultUnitId": "u-kg",
			"recurrencePatternId": "rp-everyNDays",
			"defaultIntervalDays": 0,
			"requiresQuantity": True,
			"recommendedQuantity": None,
			"notes": "Record weight/pieces; photo recommended.",
			"icon": "harvest",
			"version": "1.0",
			"createdAt": "2023-05-15T00:00:00Z",
			"updatedAt": "2023-05-15T00:00:00Z",
		},
	],
	CollectionName.task_occurrences: [
		{
			"id": "to-3001",
			"ownerId": "user-uid-1",
			"cropInstanceId": "ci-9001",
			"templateId": "tt-watering-1",
			"dueDate": "2025-09-15T00:00:00Z",
			"scheduledDate": "2025-09-15T00:00:00Z",
			"statusId": "status-due",
			"snoozeUntil": None,
			"lastCompletedAt": "2025-09-11T04:00:00Z",
			"priority": 4,
			"createdAt": "2025-01-15T09:05:00Z",
			"updatedAt": "2025-09-14T10:00:00Z",
		},
		{
			"id": "to-3002",
			"ownerId": "user-uid-1",
			"cropInstanceId": "ci-9001",
			"templateId": "tt-fertilize-1",
			"dueDate": "2025-09-10T00:00:00Z",
			"scheduledDate": "2025-09-10T00:00:00Z",
			"statusId": "status-overdue",
			"snoozeUntil": None,
			"lastCompletedAt": "2025-08-10T07:00:00Z",
			"priority": 5,
			"createdAt": "2025-01-15T09:07:00Z",
			"updatedAt": "2025-09-10T08:00:00Z",
		},
		{
			"id": "to-3003",
			"ownerId": "user-uid-1",
			"cropInstanceId": "ci-9002",
			"templateId": "tt-fertilize-1",
			"dueDate": "2025-09-20T00:00:00Z",
			"scheduledDate": "2025-09-20T00:00:00Z",
			"statusId": "status-planned",
			"snoozeUntil": None,
			"lastCompletedAt": "2025-08-01T06:00:00Z",
			"priority": 1,
			"createdAt": "2018-06-01T00:00:00Z",
			"updatedAt": "2025-08-20T09:20:00Z",
		},
		{
			"id": "to-4001",
			"ownerId": "user-uid-2",
			"cropInstanceId": "ci-2001",
			"templateId": "tt-watering-1",
			"dueDate": "2025-09-14T00:00:00Z",
			"scheduledDate": "2025-09-14T00:00:00Z",
			"statusId": "status-overdue",
			"snoozeUntil": "2025-09-15T00:00:00Z",
			"lastCompletedAt": "2025-09-10T05:00:00Z",
			"priority": 5,
			"createdAt": "2024-03-01T00:05:00Z",
			"updatedAt": "2025-09-14T07:40:00Z",
		},
		{
			"id": "to-4002",
			"ownerId": "user-uid-2",
			"cropInstanceId": "ci-2001",
			"templateId": "tt-harvest-1",
			"dueDate": "2025-09-18T00:00:00Z",
			"scheduledDate": "2025-09-18T00:00:00Z",
			"statusId": "status-planned",
			"snoozeUntil": None,
			"lastCompletedAt": None,
			"priority": 2,
			"createdAt": "2024-03-01T00:10:00Z",
			"updatedAt": "2025-09-11T07:50:00Z",
		},
	],
	CollectionName.logs: [
		{
			"id": "log-7001",
			"ownerId": "user-uid-1",
			"taskOccurrenceId": "to-3001",
			"cropInstanceId": "ci-9001",
			"action": "completed",
			"timestamp": "2025-09-11T04:00:00Z",
			"quantity": 5,
			"unitId": "u-L",
			"notes": "Watered early; soil moist below 5cm.",
			"photoIds": ["p-501"],
			"skipReasonId": None,
			"createdAt": "2025-09-11T04:02:00Z",
			"updatedAt": "2025-09-11T04:02:00Z",
		},
		{
			"id": "log-7002",
			"ownerId": "user-uid-1",
			"taskOccurrenceId": "to-3002",
			"cropInstanceId": "ci-9001",
			"action": "skipped",
			"timestamp": "2025-09-10T08:15:00Z",
			"quantity": None,
			"unitId": None,
			"notes": "Fertilizer out of stock; will reschedule.",
			"photoIds": [],
			"skipReasonId": "reason-no-resources",
			"createdAt": "2025-09-10T08:16:00Z",
			"updatedAt": "2025-09-10T08:16:00Z",
		},
		{
			"id": "log-8001",
			"ownerId": "user-uid-2",
			"taskOccurrenceId": "to-4001",
			"cropInstanceId": "ci-2001",
			"action": "snoozed",
			"timestamp": "2025-09-14T07:45:00Z",
			"quantity": None,
			"unitId": None,
			"notes": "Left for tomorrow due to busy schedule.",
			"photoIds": [],
			"skipReasonId": None,
			"createdAt": "2025-09-14T07:45:00Z",
			"updatedAt": "2025-09-14T07:45:00Z",
		},
	],
	CollectionName.photos: [
		{
			"id": "p-501",
			"ownerId": "user-uid-1",
			"mimeType": "image/jpeg",
			"width": 1280,
			"height": 720,
			"storageRef": "https://images.unsplash.com/photo-1501004318641-b39e6451bec6",
			"presetId": "pp-default-1280",
			"sizeBytes": 142300,
			"createdAt": "2025-09-11T04:01:00Z",
		},
		{
			"id": "p-502",
			"ownerId": "user-uid-1",
			"mimeType": "image/jpeg",
			"width": 800,
			"height": 600,
			"storageRef": "https://images.unsplash.com/photo-1495020689067-958852a7765e",
			"presetId": "pp-low-800",
			"sizeBytes": 85240,
			"createdAt": "2025-08-30T06:00:00Z",
		},
		{
			"id": "p-601",
			"ownerId": "user-uid-2",
			"mimeType": "image/jpeg",
			"width": 1280,
			"height": 960,
			"storageRef": "https://images.unsplash.com/photo-1447175008436-054170c2e979",
			"presetId": "pp-default-1280",
			"sizeBytes": 167800,
			"createdAt": "2025-09-10T05:05:00Z",
		},
	],
	CollectionName.weather_events: [
		{
			"id": "we-701",
			"ownerId": "user-uid-1",
			"weatherEventType": "heavyRain",
			"severity": "heavy",
			"amount": 42,
			"date": "2025-09-13T00:00:00Z",
			"notes": "Overnight downpour; beds waterlogged by morning.",
			"createdAt": "2025-09-13T06:10:00Z",
		},
	],
	CollectionName.notes: [
		{
			"id": "n-801",
			"ownerId": "user-uid-1",
			"type": "weather",
			"weatherEventId": "we-701",
			"cropInstanceId": None,
			"areaId": "a-1001",
			"date": "2025-09-13T00:00:00Z",
			"content": "Skipped watering on Tomato Bed A after the rain.",
			"createdAt": "2025-09-13T06:15:00Z",
			"updatedAt": "2025-09-13T06:15:00Z",
		},
	],
	CollectionName.sync_queue: [],
}


def data_version_key(repository: EntityRepository) -> str:
	return f"{repository.namespace}:{_DATA_VERSION_KEY}"


async def seed_demo_data(repository: EntityRepository, force: bool = False) -> dict[str, int]:
	"""Write every demo collection; returns per-collection counts ({} when skipped)."""
	stored_version = await repository.store.read(data_version_key(repository))
	if stored_version == DATA_VERSION and not force:
		logger.info("demo_data_current", version=DATA_VERSION)
		return {}

	counts: dict[str, int] = {}
	async with repository.writing():
		for collection, items in DEMO_DATA.items():
			model = COLLECTION_MODELS[collection]
			records = [model.model_validate(item) for item in items]
			if await repository.save_all(collection, records):
				counts[collection.value] = len(records)
			else:
				logger.warning("demo_collection_not_written", collection=collection.value)
		await repository.store.write(data_version_key(repository), DATA_VERSION)

	logger.info("demo_data_seeded", version=DATA_VERSION, collections=len(counts), records=sum(counts.values()))
	return counts
