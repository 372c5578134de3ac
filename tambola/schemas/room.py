"""Schemas for rooms, lobby and host actions."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from tambola.models.room import ROOM_TYPES


class PrizeTableSchema(Schema):
    earlyFive = fields.Integer(load_default=0, validate=validate.Range(min=0))
    topLine = fields.Integer(load_default=0, validate=validate.Range(min=0))
    middleLine = fields.Integer(load_default=0, validate=validate.Range(min=0))
    bottomLine = fields.Integer(load_default=0, validate=validate.Range(min=0))
    fullHouse = fields.Integer(load_default=0, validate=validate.Range(min=0))


class RoomCreateSchema(Schema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=120))
    room_type = fields.String(load_default="Standard", validate=validate.OneOf(ROOM_TYPES))
    ticket_price = fields.Integer(load_default=0, validate=validate.Range(min=0, max=100_000))
    max_players = fields.Integer(load_default=50, validate=validate.Range(min=2, max=1000))
    multiple_tickets_allowed = fields.Boolean(load_default=False)
    start_time = fields.DateTime(load_default=None, allow_none=True)
    prizes = fields.Nested(PrizeTableSchema, load_default=lambda: {})
    payment_upi_id = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))


class RoomSchema(Schema):
    id = fields.String()
    code = fields.String()
    name = fields.String()
    host_id = fields.String()
    room_type = fields.String()
    ticket_price = fields.Integer()
    max_players = fields.Integer()
    multiple_tickets_allowed = fields.Boolean()
    start_time = fields.DateTime(allow_none=True)
    status = fields.String()
    prizes = fields.Dict(keys=fields.String(), values=fields.Integer())
    payment_upi_id = fields.String(allow_none=True)
    payment_qr_url = fields.String(allow_none=True)
    created_at = fields.DateTime()


class LobbyQuerySchema(Schema):
    search = fields.String(load_default=None, allow_none=True)
    limit = fields.Integer(load_default=50, validate=validate.Range(min=1, max=100))


class CallNumberSchema(Schema):
    # Omit to let the server draw at random.
    number = fields.Integer(load_default=None, allow_none=True, validate=validate.Range(min=1, max=90))


class CalledNumberSchema(Schema):
    number = fields.Integer()
    position = fields.Integer()
    called_at = fields.DateTime()
