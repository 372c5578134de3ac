"""Schemas for tickets, daubs and claims."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class TicketGenerateSchema(Schema):
    count = fields.Integer(load_default=1, validate=validate.Range(min=1, max=50))


class GeneratedTicketSchema(Schema):
    id = fields.String()
    grid = fields.List(fields.List(fields.Integer(allow_none=True)))
    marked = fields.List(fields.List(fields.Boolean()))


class TicketSchema(GeneratedTicketSchema):
    room_id = fields.String()
    player_id = fields.String()
    active = fields.Boolean()
    created_at = fields.DateTime()


class MarkCellSchema(Schema):
    # Bounds are checked by the engine so callers get invalid_cell errors.
    row = fields.Integer(required=True)
    col = fields.Integer(required=True)


class ClaimSubmitSchema(Schema):
    prize = fields.String(required=True)


class ClaimSchema(Schema):
    id = fields.Integer()
    room_id = fields.String()
    ticket_id = fields.String()
    player_id = fields.String()
    prize = fields.String()
    status = fields.String()
    reason = fields.String(allow_none=True)
    created_at = fields.DateTime()
