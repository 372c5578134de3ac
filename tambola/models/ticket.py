"""Player ticket ORM model.

``grid`` and ``marked`` are stored as 3x9 JSON arrays; the grid never changes
after insert.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from tambola.models.base import Base, utcnow


class PlayerTicket(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), index=True)
    player_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    grid: Mapped[list] = mapped_column(JSON, nullable=False)
    marked: Mapped[list] = mapped_column(JSON, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
