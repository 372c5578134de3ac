"""Numbers called in a room, in call order."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, SmallInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tambola.models.base import Base, utcnow


class CalledNumber(Base):
    __tablename__ = "called_numbers"
    __table_args__ = (
        UniqueConstraint("room_id", "number", name="uq_called_room_number"),
        UniqueConstraint("room_id", "position", name="uq_called_room_position"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), index=True)
    number: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # 1..90
    position: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # 1-based call order
    called_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
