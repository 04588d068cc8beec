"""ORM model registry: importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from farmdiary.models.base import Base, TimestampMixin

# ── Enums ───────────────────────────────────────────────────────────────────
from farmdiary.models.enums import (
    CollectionName,
    LogAction,
    StatusName,
    SyncStatus,
    UnitType,
)

# ── Storage tables ──────────────────────────────────────────────────────────
from farmdiary.models.store import StoredRecord

__all__ = [
    # Base & mixins
    "Base",
    # Enums
    "CollectionName",
    "LogAction",
    "StatusName",
    # Storage
    "StoredRecord",
    "SyncStatus",
    "TimestampMixin",
    "UnitType",
]
