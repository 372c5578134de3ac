"""Ticket routes (controllers). No business logic here."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from tambola.db import get_session
from tambola.schemas.ticket import (
    ClaimSchema,
    ClaimSubmitSchema,
    GeneratedTicketSchema,
    MarkCellSchema,
    TicketGenerateSchema,
    TicketSchema,
)
from tambola.services.game_service import GameService
from tambola.utils.identity import current_user_id
from tambola.utils.responses import ok

tickets_bp = Blueprint("tickets", __name__)

_generate_schema = TicketGenerateSchema()
_generated_schema = GeneratedTicketSchema(many=True)
_ticket_schema = TicketSchema()
_mark_schema = MarkCellSchema()
_claim_submit_schema = ClaimSubmitSchema()
_claim_schema = ClaimSchema()


def _service() -> GameService:
    return current_app.extensions["game_service"]


@tickets_bp.post("/tickets/generate")
def generate_tickets():
    """Preview tickets without joining a room."""

    payload = request.get_json(silent=True) or {}
    data = _generate_schema.load(payload)
    tickets = _service().engine.generate_tickets(int(data["count"]))
    return ok(_generated_schema.dump([t.to_dict() for t in tickets]), meta={"count": len(tickets)})


@tickets_bp.get("/tickets/<ticket_id>")
def get_ticket(ticket_id: str):
    row = _service().get_ticket(get_session(), ticket_id)
    return ok(_ticket_schema.dump(row))


@tickets_bp.post("/tickets/<ticket_id>/mark")
def mark_cell(ticket_id: str):
    payload = request.get_json(silent=True) or {}
    data = _mark_schema.load(payload)
    row = _service().mark_cell(
        get_session(),
        ticket_id,
        int(data["row"]),
        int(data["col"]),
        player_id=current_user_id(),
    )
    return ok(_ticket_schema.dump(row))


@tickets_bp.get("/tickets/<ticket_id>/claims")
def evaluate_claims(ticket_id: str):
    """Prizes currently claimable on the ticket."""

    pattern = _service().evaluate(get_session(), ticket_id)
    return ok({"ticket_id": ticket_id, "claimable": pattern.as_dict()})


@tickets_bp.post("/tickets/<ticket_id>/claims")
def submit_claim(ticket_id: str):
    payload = request.get_json(silent=True) or {}
    data = _claim_submit_schema.load(payload)
    claim = _service().submit_claim(
        get_session(),
        ticket_id,
        data["prize"],
        player_id=current_user_id(),
    )
    return ok(_claim_schema.dump(claim), status_code=201)
