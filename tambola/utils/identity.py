"""Resolve the signed-in player from the request's bearer token."""

from __future__ import annotations

from flask import current_app, g, request

from tambola.clients.account_client import AccountClient, AuthSession
from tambola.errors import AuthError, ForbiddenError

_UNSET = object()


def bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def current_session() -> AuthSession | None:
    """Session for this request, looked up once and cached on ``g``."""

    cached = getattr(g, "auth_session", _UNSET)
    if cached is _UNSET:
        client: AccountClient = current_app.extensions["account_client"]
        cached = client.current_session(bearer_token())
        g.auth_session = cached
    return cached  # type: ignore[return-value]


def current_user_id() -> str:
    """Id of the signed-in caller; AuthError (401) when there is none."""

    session = current_session()
    if session is None:
        raise AuthError("Sign in required")
    return session.user_id


def require_user(user_id: str) -> str:
    """Caller must be ``user_id`` (wallet and similar per-player reads)."""

    caller = current_user_id()
    if caller != user_id:
        raise ForbiddenError(message="You can only access your own account")
    return caller


def require_admin() -> str:
    """Caller must be listed in ``ADMIN_USER_IDS``."""

    caller = current_user_id()
    raw = str(current_app.config.get("ADMIN_USER_IDS") or "")
    admins = {part.strip() for part in raw.split(",") if part.strip()}
    if caller not in admins:
        raise ForbiddenError(message="Admin access required")
    return caller
