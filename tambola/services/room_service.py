"""Room lifecycle: create, look up, lobby, start and end."""

from __future__ import annotations

import logging
import random
import string
from collections.abc import Mapping, Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from tambola.db import queue_change
from tambola.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tambola.models.room import ROOM_TYPES, Room
from tambola.repositories.room_repository import RoomRepository
from tambola.repositories.ticket_repository import TicketRepository
from tambola.services.change_feed import ChangeEvent, ChangeKind
from tambola.services.ticket_engine import Prize

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def normalize_prizes(prizes: Mapping[str, int] | None) -> dict[str, int]:
    """Prize table keyed by wire names; missing prizes pay 0."""

    table = {p.value: 0 for p in Prize}
    for key, amount in (prizes or {}).items():
        value = int(amount or 0)
        if value < 0:
            raise ValidationError(message="Invalid prizes", details={"prizes": [f"{key} must be >= 0"]})
        table[Prize.parse(key).value] = value
    return table


def share_link(room: Room, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/room/{room.id}"


def room_changed(session: Session, room: Room, kind: ChangeKind = ChangeKind.UPDATE) -> None:
    queue_change(session, ChangeEvent("rooms", kind, room.to_row(), room.id))


class RoomService:
    """Room use-cases."""

    def __init__(
        self,
        repository: RoomRepository | None = None,
        tickets: TicketRepository | None = None,
        rng: random.Random | None = None,
        max_code_attempts: int = 10,
    ) -> None:
        self._repo = repository or RoomRepository()
        self._tickets = tickets or TicketRepository()
        self._rng = rng or random.SystemRandom()
        self._max_code_attempts = max_code_attempts

    def _new_code(self, session: Session) -> str:
        for _ in range(self._max_code_attempts):
            code = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if not self._repo.code_exists(session, code):
                return code
        raise ConflictError(message="Could not allocate a unique room code")

    def create_room(
        self,
        session: Session,
        *,
        name: str,
        host_id: str,
        room_type: str = "Standard",
        ticket_price: int = 0,
        max_players: int = 50,
        multiple_tickets_allowed: bool = False,
        start_time: datetime | None = None,
        prizes: Mapping[str, int] | None = None,
        payment_upi_id: str | None = None,
    ) -> Room:
        if room_type not in ROOM_TYPES:
            raise ValidationError(
                message="Invalid room_type",
                details={"room_type": [f"Must be one of {'|'.join(ROOM_TYPES)}"]},
            )
        if int(ticket_price) < 0:
            raise ValidationError(message="Invalid ticket_price", details={"ticket_price": ["Must be >= 0"]})

        room = self._repo.create(
            session,
            code=self._new_code(session),
            name=name.strip(),
            host_id=host_id,
            room_type=room_type,
            ticket_price=int(ticket_price),
            max_players=int(max_players),
            multiple_tickets_allowed=bool(multiple_tickets_allowed),
            start_time=start_time,
            status="waiting",
            prizes=normalize_prizes(prizes),
            payment_upi_id=payment_upi_id or None,
        )
        room_changed(session, room, ChangeKind.INSERT)
        logger.info("Room %s (%s) created by %s", room.id, room.code, host_id)
        return room

    def get_room(self, session: Session, room_id: str, lock: bool = False) -> Room:
        room = self._repo.get_by_id(session, room_id, lock=lock)
        if room is None:
            raise NotFoundError(message=f"Room {room_id} not found")
        return room

    def get_by_code(self, session: Session, code: str) -> Room:
        room = self._repo.get_by_code(session, code)
        if room is None:
            raise NotFoundError(message=f"Room with code {code.upper()} not found")
        return room

    def list_lobby(self, session: Session, search: str | None = None, limit: int = 50) -> Sequence[Room]:
        return self._repo.list_lobby(session, search=search, limit=limit)

    def player_count(self, session: Session, room_id: str) -> int:
        return self._repo.count_players(session, room_id)

    @staticmethod
    def require_host(room: Room, host_id: str) -> None:
        if room.host_id != host_id:
            raise ForbiddenError(message="Only the room host can do that")

    def start_room(self, session: Session, room_id: str, host_id: str) -> Room:
        room = self.get_room(session, room_id)
        self.require_host(room, host_id)
        if room.status != "waiting":
            raise ConflictError(message=f"Room is {room.status}, cannot start")
        room.status = "in_progress"
        session.flush()
        room_changed(session, room)
        logger.info("Room %s started", room.id)
        return room

    def complete_room(self, session: Session, room: Room) -> Room:
        """Mark the game over and retire its tickets."""

        room.status = "completed"
        self._tickets.retire_room(session, room.id)
        session.flush()
        room_changed(session, room)
        logger.info("Room %s completed", room.id)
        return room

    def end_room(self, session: Session, room_id: str, host_id: str) -> Room:
        room = self.get_room(session, room_id)
        self.require_host(room, host_id)
        if room.status == "completed":
            raise ConflictError(message="Room has already ended")
        return self.complete_room(session, room)

    def set_payment_qr(self, session: Session, room_id: str, host_id: str, url: str) -> Room:
        room = self.get_room(session, room_id)
        self.require_host(room, host_id)
        room.payment_qr_url = url
        session.flush()
        room_changed(session, room)
        return room
