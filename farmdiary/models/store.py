"""Key/value table backing the SQL record store."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farmdiary.models.base import Base, TimestampMixin


class StoredRecord(Base, TimestampMixin):
    """One serialized collection (or metadata value) per key."""

    __tablename__ = "record_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<StoredRecord key={self.key} bytes={len(self.value)}>"
