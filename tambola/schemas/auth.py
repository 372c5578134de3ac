"""Schemas for account endpoints."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class SignUpSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=128))
    username = fields.String(load_default=None, allow_none=True, validate=validate.Length(min=3, max=30))


class SignInSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)


class ResetPasswordSchema(Schema):
    email = fields.Email(required=True)
