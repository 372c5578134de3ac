"""Repository layer for rooms and their called numbers."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tambola.models.called_number import CalledNumber
from tambola.models.room import Room
from tambola.models.ticket import PlayerTicket

LOBBY_STATUSES = ("waiting", "in_progress")


class RoomRepository:
    """CRUD operations for Room."""

    def get_by_id(self, session: Session, room_id: str, lock: bool = False) -> Room | None:
        if lock:
            return session.get(Room, room_id, with_for_update=True, populate_existing=True)
        return session.get(Room, room_id)

    def get_by_code(self, session: Session, code: str) -> Room | None:
        stmt = select(Room).where(Room.code == code.upper())
        return session.scalars(stmt).first()

    def code_exists(self, session: Session, code: str) -> bool:
        stmt = select(func.count()).select_from(Room).where(Room.code == code)
        return bool(session.scalar(stmt))

    def list_lobby(self, session: Session, search: str | None = None, limit: int = 50) -> Sequence[Room]:
        stmt = select(Room).where(Room.status.in_(LOBBY_STATUSES))
        if search:
            stmt = stmt.where(func.lower(Room.name).contains(search.lower()))
        stmt = stmt.order_by(Room.start_time.asc(), Room.created_at.desc()).limit(int(limit))
        return list(session.scalars(stmt).all())

    def create(self, session: Session, **fields: object) -> Room:
        room = Room(**fields)
        session.add(room)
        session.flush()  # assign defaults
        return room

    def count_players(self, session: Session, room_id: str) -> int:
        stmt = select(func.count(func.distinct(PlayerTicket.player_id))).where(PlayerTicket.room_id == room_id)
        return int(session.scalar(stmt) or 0)

    def list_called(self, session: Session, room_id: str) -> list[int]:
        stmt = (
            select(CalledNumber.number)
            .where(CalledNumber.room_id == room_id)
            .order_by(CalledNumber.position.asc())
        )
        return [int(n) for n in session.scalars(stmt).all()]

    def add_called(self, session: Session, room_id: str, number: int, position: int) -> CalledNumber:
        called = CalledNumber(room_id=room_id, number=int(number), position=int(position))
        session.add(called)
        session.flush()
        return called
