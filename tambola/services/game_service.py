"""Gameplay use-cases: joining, daubing, calling numbers and claiming prizes.

The store is the arbiter of who wins: a verified claim inserts a prize award
row that is unique per room and prize, so the first commit wins and any
concurrent second winner fails with a conflict.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from sqlalchemy.orm import Session

from tambola.db import queue_change
from tambola.errors import ConflictError, ForbiddenError, NotFoundError, PaymentError
from tambola.models.called_number import CalledNumber
from tambola.models.claim import Claim
from tambola.models.ticket import PlayerTicket
from tambola.repositories.claim_repository import ClaimRepository
from tambola.repositories.room_repository import RoomRepository
from tambola.repositories.ticket_repository import TicketRepository, to_engine_ticket
from tambola.repositories.wallet_repository import WalletRepository
from tambola.services.change_feed import ChangeEvent, ChangeKind
from tambola.services.number_caller import CalledNumberSequence
from tambola.services.room_service import RoomService
from tambola.services.ticket_engine import COLUMNS, ROWS, Prize, Ticket, TicketEngine, WinPattern

logger = logging.getLogger(__name__)


def _verified_marks(ticket: Ticket, called: CalledNumberSequence) -> Ticket:
    """Copy of ``ticket`` keeping only marks on numbers that were called."""

    marks = [
        [bool(ticket.marked[r][c]) and ticket.grid[r][c] in called for c in range(COLUMNS)]
        for r in range(ROWS)
    ]
    return Ticket.from_grid(ticket.grid, marks, ticket_id=ticket.id)


class GameService:
    def __init__(
        self,
        engine: TicketEngine | None = None,
        rooms: RoomService | None = None,
        room_repository: RoomRepository | None = None,
        tickets: TicketRepository | None = None,
        claims: ClaimRepository | None = None,
        wallet: WalletRepository | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._engine = engine or TicketEngine()
        self._room_repo = room_repository or RoomRepository()
        self._tickets = tickets or TicketRepository()
        self._rooms = rooms or RoomService(repository=self._room_repo, tickets=self._tickets)
        self._claims = claims or ClaimRepository()
        self._wallet = wallet or WalletRepository()
        self._rng = rng or random.SystemRandom()

    @property
    def engine(self) -> TicketEngine:
        return self._engine

    # Tickets

    def join_room(self, session: Session, room_id: str, player_id: str) -> PlayerTicket:
        """Buy a ticket in a room and return it.

        The room row is locked first so capacity and duplicate-ticket checks
        see other joins; the player's ledger is locked before the balance is
        read so two purchases cannot spend the same funds.
        """

        room = self._rooms.get_room(session, room_id, lock=True)
        if room.status == "completed":
            raise ConflictError(message="Room has ended")

        held = self._tickets.list_for_player(session, room.id, player_id)
        if held and not room.multiple_tickets_allowed:
            raise ConflictError(message="Player already holds a ticket in this room")
        if not held and self._room_repo.count_players(session, room.id) >= room.max_players:
            raise ConflictError(message="Room is full")

        price = int(room.ticket_price or 0)
        if price > 0:
            self._wallet.lock_player(session, player_id)
            available = self._wallet.available(session, player_id)
            if available < price:
                raise PaymentError(
                    "Insufficient wallet balance",
                    details={"balance": available, "ticket_price": price},
                )

        ticket = self._engine.generate_ticket()
        row = self._tickets.create(session, ticket, room.id, player_id)

        if price > 0:
            self._wallet.create_transaction(
                session,
                player_id=player_id,
                room_id=room.id,
                amount=price,
                type="ticket_purchase",
                status="completed",
                reference=ticket.id,
                description=f"Ticket for {room.name}",
            )

        queue_change(session, ChangeEvent("tickets", ChangeKind.INSERT, row.to_row(), room.id))
        logger.info("Player %s joined room %s with ticket %s", player_id, room.id, row.id)
        return row

    def get_ticket(self, session: Session, ticket_id: str) -> PlayerTicket:
        row = self._tickets.get(session, ticket_id)
        if row is None:
            raise NotFoundError(message=f"Ticket {ticket_id} not found")
        return row

    def mark_cell(
        self,
        session: Session,
        ticket_id: str,
        row_idx: int,
        col_idx: int,
        player_id: str | None = None,
    ) -> PlayerTicket:
        row = self._tickets.get_for_update(session, ticket_id)
        if row is None:
            raise NotFoundError(message=f"Ticket {ticket_id} not found")
        if player_id is not None and row.player_id != player_id:
            raise ForbiddenError(message="Ticket belongs to another player")
        if not row.active:
            raise ConflictError(message="Ticket has been retired")

        ticket = self._engine.mark_cell(to_engine_ticket(row), row_idx, col_idx)
        self._tickets.save_marks(session, row, ticket)
        queue_change(session, ChangeEvent("tickets", ChangeKind.UPDATE, row.to_row(), row.room_id))
        return row

    def awarded_prizes(self, session: Session, room_id: str) -> set[str]:
        return set(self._claims.awards_for_room(session, room_id))

    def evaluate(self, session: Session, ticket_id: str) -> WinPattern:
        """Prizes this ticket could claim now, ignoring prizes already awarded in the room."""

        row = self.get_ticket(session, ticket_id)
        return self._engine.evaluate_claims(to_engine_ticket(row), self.awarded_prizes(session, row.room_id))

    # Numbers

    def called_numbers(self, session: Session, room_id: str) -> CalledNumberSequence:
        self._rooms.get_room(session, room_id)
        return CalledNumberSequence(self._room_repo.list_called(session, room_id))

    def call_number(
        self,
        session: Session,
        room_id: str,
        host_id: str,
        number: int | None = None,
    ) -> CalledNumber:
        """Call ``number`` (or a random uncalled one) in a running game."""

        room = self._rooms.get_room(session, room_id)
        self._rooms.require_host(room, host_id)
        if room.status != "in_progress":
            raise ConflictError(message="Game is not in progress")

        sequence = CalledNumberSequence(self._room_repo.list_called(session, room.id))
        value = sequence.append(number) if number is not None else sequence.draw_next(self._rng)
        called = self._room_repo.add_called(session, room.id, value, len(sequence))
        queue_change(session, ChangeEvent("called_numbers", ChangeKind.INSERT, called.to_row(), room.id))
        logger.info("Room %s called %s (%s/90)", room.id, value, len(sequence))

        if sequence.is_exhausted:
            self._rooms.complete_room(session, room)
        return called

    # Claims

    def submit_claim(
        self,
        session: Session,
        ticket_id: str,
        prize: Prize | str,
        player_id: str | None = None,
    ) -> Claim:
        """Verify a claim against called numbers and record it.

        A claim is rejected when the prize is already awarded or when the
        pattern does not hold using only marks on called numbers.
        """

        prize = Prize.parse(prize)
        row = self.get_ticket(session, ticket_id)
        if player_id is not None and row.player_id != player_id:
            raise ForbiddenError(message="Ticket belongs to another player")

        room = self._rooms.get_room(session, row.room_id)
        if room.status != "in_progress":
            raise ConflictError(message="Claims are only accepted while the game is in progress")

        awards = self._claims.awards_for_room(session, room.id)
        called = CalledNumberSequence(self._room_repo.list_called(session, room.id))

        reason: str | None = None
        if prize.value in awards:
            reason = "already_won"
        else:
            pattern = self._engine.evaluate_claims(_verified_marks(to_engine_ticket(row), called), set(awards))
            if not pattern[prize]:
                reason = "pattern_incomplete"

        claim = self._claims.add_claim(
            session,
            room_id=room.id,
            ticket_id=row.id,
            player_id=row.player_id,
            prize=prize.value,
            status="rejected" if reason else "verified",
            reason=reason,
        )

        if reason is None:
            amount = int((room.prizes or {}).get(prize.value, 0))
            self._claims.add_award(
                session,
                room_id=room.id,
                prize=prize.value,
                claim_id=claim.id,
                player_id=row.player_id,
                amount=amount,
            )
            if amount > 0:
                self._wallet.create_transaction(
                    session,
                    player_id=row.player_id,
                    room_id=room.id,
                    amount=amount,
                    type="prize",
                    status="completed",
                    reference=f"claim:{claim.id}",
                    description=f"{prize.value} in {room.name}",
                )

        queue_change(session, ChangeEvent("claims", ChangeKind.INSERT, claim.to_row(), room.id))
        logger.info("Claim %s for %s on ticket %s: %s", claim.id, prize.value, row.id, claim.status)

        if reason is None and prize is Prize.FULL_HOUSE:
            self._rooms.complete_room(session, room)
        return claim

    def list_claims(self, session: Session, room_id: str) -> Sequence[Claim]:
        self._rooms.get_room(session, room_id)
        return self._claims.list_for_room(session, room_id)
