"""Health check routes."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text

from tambola.db import get_session
from tambola.utils.responses import ok

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health_check():
    """Liveness plus a round-trip to the record store."""

    get_session().execute(text("SELECT 1"))
    feed = current_app.extensions["change_feed"]
    return ok({"status": "ok", "subscribers": feed.subscriber_count})
