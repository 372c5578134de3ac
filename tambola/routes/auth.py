"""Account routes: thin pass-through to the hosted auth service."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from tambola.clients.account_client import AccountClient
from tambola.errors import AuthError
from tambola.schemas.auth import ResetPasswordSchema, SignInSchema, SignUpSchema
from tambola.utils.identity import bearer_token, current_session
from tambola.utils.responses import ok

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

_sign_up_schema = SignUpSchema()
_sign_in_schema = SignInSchema()
_reset_schema = ResetPasswordSchema()


def _client() -> AccountClient:
    return current_app.extensions["account_client"]


@auth_bp.post("/sign-up")
def sign_up():
    data = _sign_up_schema.load(request.get_json(silent=True) or {})
    user = _client().sign_up(data["email"], data["password"], data.get("username"))
    return ok(user, status_code=201)


@auth_bp.post("/sign-in")
def sign_in():
    data = _sign_in_schema.load(request.get_json(silent=True) or {})
    session = _client().sign_in(data["email"], data["password"])
    return ok(session.to_dict())


@auth_bp.post("/sign-out")
def sign_out():
    token = bearer_token()
    if token is None:
        raise AuthError("Missing bearer token")
    _client().sign_out(token)
    return ok({"signed_out": True})


@auth_bp.post("/reset-password")
def reset_password():
    data = _reset_schema.load(request.get_json(silent=True) or {})
    _client().reset_password(data["email"])
    return ok({"sent": True})


@auth_bp.get("/session")
def session_status():
    session = current_session()
    return ok(session.to_dict() if session else None)
