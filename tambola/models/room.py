"""Game room ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tambola.models.base import Base, utcnow

ROOM_TYPES = ("Quick", "Standard", "Premium", "Private")
ROOM_STATUSES = ("waiting", "in_progress", "completed")


class Room(Base):
    """A hosted game: settings, prize table and lifecycle status."""

    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(6), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    host_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    room_type: Mapped[str] = mapped_column(String(16), nullable=False, default="Standard")
    ticket_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    multiple_tickets_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting", index=True)
    prizes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    payment_upi_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_qr_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
