"""SQLAlchemy declarative base."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for ORM models."""

    def to_row(self) -> dict[str, Any]:
        """Column values as a JSON-friendly dict (used for change events)."""

        row: dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            row[column.key] = value.isoformat() if isinstance(value, datetime) else value
        return row
