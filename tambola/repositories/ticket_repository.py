"""Repository layer for player tickets."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tambola.models.ticket import PlayerTicket
from tambola.services.ticket_engine import Ticket


class TicketRepository:
    """Persist engine tickets and their daub state."""

    def get(self, session: Session, ticket_id: str) -> PlayerTicket | None:
        return session.get(PlayerTicket, ticket_id)

    def get_for_update(self, session: Session, ticket_id: str) -> PlayerTicket | None:
        """Reload the row under a row lock so concurrent daubs on one ticket serialize."""

        return session.get(PlayerTicket, ticket_id, with_for_update=True, populate_existing=True)

    def list_for_room(self, session: Session, room_id: str, active_only: bool = True) -> Sequence[PlayerTicket]:
        stmt = select(PlayerTicket).where(PlayerTicket.room_id == room_id)
        if active_only:
            stmt = stmt.where(PlayerTicket.active.is_(True))
        return list(session.scalars(stmt.order_by(PlayerTicket.created_at.asc())).all())

    def list_for_player(self, session: Session, room_id: str, player_id: str) -> Sequence[PlayerTicket]:
        stmt = select(PlayerTicket).where(
            PlayerTicket.room_id == room_id,
            PlayerTicket.player_id == player_id,
        )
        return list(session.scalars(stmt).all())

    def create(self, session: Session, ticket: Ticket, room_id: str, player_id: str) -> PlayerTicket:
        row = PlayerTicket(
            id=ticket.id,
            room_id=room_id,
            player_id=player_id,
            grid=[list(r) for r in ticket.grid],
            marked=[list(r) for r in ticket.marked],
        )
        session.add(row)
        session.flush()
        return row

    def save_marks(self, session: Session, row: PlayerTicket, ticket: Ticket) -> PlayerTicket:
        # Marks only turn on: OR with what is stored. A fresh list so the JSON column registers as changed.
        row.marked = [
            [bool(new) or bool(old) for new, old in zip(fresh, stored)]
            for fresh, stored in zip(ticket.marked, row.marked)
        ]
        session.flush()
        return row

    def retire_room(self, session: Session, room_id: str) -> None:
        session.execute(
            update(PlayerTicket).where(PlayerTicket.room_id == room_id).values(active=False)
        )


def to_engine_ticket(row: PlayerTicket) -> Ticket:
    return Ticket.from_grid(row.grid, row.marked, ticket_id=row.id)
