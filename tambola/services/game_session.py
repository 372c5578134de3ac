"""A player's live view of one room, rebuilt from change events.

This is the client-side reconciler: the server never holds one. A player's
process (``scripts/watch_room.py``, or any UI) seeds it over the REST API and
feeds it the room's event stream. ``GameSession`` owns a ``SessionState`` and
is the only thing that mutates it. Events are applied one at a time on the
caller's thread, either from ``drain`` (tests) or from ``run`` (a dedicated
loop).
Views read ``state`` and never write to it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from tambola.errors import AppError
from tambola.services.change_feed import ChangeEvent, ChangeKind, Subscription
from tambola.services.number_caller import CalledNumberSequence
from tambola.services.ticket_engine import COLUMNS, ROWS, Prize, Ticket, TicketEngine

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    room_id: str
    player_id: str
    status: str = "waiting"
    auto_daub: bool = False
    called: CalledNumberSequence = field(default_factory=CalledNumberSequence)
    tickets: dict[str, Ticket] = field(default_factory=dict)
    players: set[str] = field(default_factory=set)
    claims: list[dict[str, Any]] = field(default_factory=list)
    awarded: set[Prize] = field(default_factory=set)
    claimable: dict[str, frozenset[Prize]] = field(default_factory=dict)

    @property
    def current_number(self) -> int | None:
        return self.called.last

    def last_numbers(self, k: int = 5) -> list[int]:
        return self.called.recent(k)


class GameSession:
    """Reconcile room change events into local state for one player."""

    def __init__(
        self,
        room_id: str,
        player_id: str,
        *,
        auto_daub: bool = False,
        engine: TicketEngine | None = None,
    ) -> None:
        self._engine = engine or TicketEngine()
        self._state = SessionState(room_id=room_id, player_id=player_id, auto_daub=auto_daub)

    @property
    def state(self) -> SessionState:
        return self._state

    def add_ticket(self, ticket: Ticket) -> None:
        self._state.tickets[ticket.id] = ticket
        if self._state.auto_daub:
            self._catch_up(ticket)
        self._refresh_claimable()

    def set_auto_daub(self, enabled: bool) -> None:
        """Toggle auto-daub; turning it on daubs numbers already called."""

        self._state.auto_daub = bool(enabled)
        if enabled:
            for ticket in self._state.tickets.values():
                self._catch_up(ticket)
            self._refresh_claimable()

    def mark(self, ticket_id: str, row: int, col: int) -> Ticket:
        ticket = self._state.tickets[ticket_id]
        self._engine.mark_cell(ticket, row, col)
        self._refresh_claimable()
        return ticket

    def _catch_up(self, ticket: Ticket) -> None:
        for number in self._state.called:
            self._engine.auto_daub(ticket, number)

    def _refresh_claimable(self) -> None:
        self._state.claimable = {
            ticket_id: self._engine.evaluate_claims(ticket, self._state.awarded).claimable
            for ticket_id, ticket in self._state.tickets.items()
        }

    def apply(self, event: ChangeEvent) -> bool:
        """Apply one event; returns False when it changed nothing."""

        if event.room_id != self._state.room_id:
            return False

        handler = {
            "called_numbers": self._on_number,
            "rooms": self._on_room,
            "tickets": self._on_ticket,
            "claims": self._on_claim,
        }.get(event.table)
        if handler is None or not handler(event):
            return False

        self._refresh_claimable()
        return True

    def _on_number(self, event: ChangeEvent) -> bool:
        if event.kind is not ChangeKind.INSERT:
            return False
        number = int(event.row["number"])
        if number in self._state.called:
            return False
        self._state.called.append(number)
        if self._state.auto_daub:
            for ticket in self._state.tickets.values():
                self._engine.auto_daub(ticket, number)
        return True

    def _on_room(self, event: ChangeEvent) -> bool:
        status = event.row.get("status")
        if not status or status == self._state.status:
            return False
        self._state.status = str(status)
        return True

    def _on_ticket(self, event: ChangeEvent) -> bool:
        row = event.row
        player_id = str(row.get("player_id") or "")
        changed = player_id not in self._state.players
        self._state.players.add(player_id)
        if player_id != self._state.player_id:
            return changed

        ticket_id = str(row["id"])
        local = self._state.tickets.get(ticket_id)
        if local is None:
            self.add_ticket(Ticket.from_grid(row["grid"], row.get("marked"), ticket_id=ticket_id))
            return True

        # Marks only ever turn on: merge the stored marks into the local ones.
        remote = row.get("marked") or []
        for r in range(min(ROWS, len(remote))):
            for c in range(min(COLUMNS, len(remote[r]))):
                if remote[r][c] and local.grid[r][c] is not None and not local.marked[r][c]:
                    local.marked[r][c] = True
                    changed = True
        return changed

    def _on_claim(self, event: ChangeEvent) -> bool:
        row = event.row
        self._state.claims.append(
            {
                "id": row.get("id"),
                "player_id": row.get("player_id"),
                "prize": row.get("prize"),
                "status": row.get("status"),
                "created_at": row.get("created_at"),
            }
        )
        if row.get("status") == "verified":
            self._state.awarded.add(Prize.parse(row.get("prize")))
        return True

    def drain(self, subscription: Subscription) -> int:
        """Apply every queued event in arrival order; returns how many changed state."""

        applied = 0
        for event in subscription.pending():
            if self.apply(event):
                applied += 1
        return applied

    def run(self, subscription: Subscription, stop: threading.Event, poll_interval: float = 0.5) -> None:
        """Reconciliation loop: apply events until ``stop`` is set or the game ends."""

        while not stop.is_set():
            event = subscription.get(timeout=poll_interval)
            if event is None:
                continue
            try:
                self.apply(event)
            except (AppError, KeyError, ValueError, TypeError):
                logger.exception("Skipping malformed %s event for room %s", event.name, self._state.room_id)
            if self._state.status == "completed":
                break
        subscription.close()
