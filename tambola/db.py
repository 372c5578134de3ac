"""SQLAlchemy engine + session management.

Uses a session-per-request pattern. Services queue change events on the
session; they are published to the change feed only after a successful
commit and discarded on rollback.
"""

from __future__ import annotations

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from tambola.models.base import Base
from tambola.services.change_feed import ChangeEvent, ChangeFeed

_PENDING_KEY = "pending_changes"


def create_app_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(database_url, connect_args={"check_same_thread": False}, future=True)
    return create_engine(database_url, pool_pre_ping=True, future=True)


def queue_change(session: Session, change: ChangeEvent) -> None:
    """Publish ``change`` once ``session`` commits."""

    session.info.setdefault(_PENDING_KEY, []).append(change)


def bind_change_feed(session_factory: sessionmaker, feed: ChangeFeed) -> None:
    @event.listens_for(session_factory, "after_commit")
    def _publish(session: Session) -> None:
        for change in session.info.pop(_PENDING_KEY, []):
            feed.publish(change)

    @event.listens_for(session_factory, "after_rollback")
    def _discard(session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)


def init_db(app: Flask) -> None:
    """Initialize database engine and per-request sessions."""

    engine = create_app_engine(str(app.config["DATABASE_URL"]))
    session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    # Create tables on startup; scripts/create_tables.py does the same offline.
    Base.metadata.create_all(bind=engine)

    feed = ChangeFeed(queue_size=int(app.config.get("EVENT_QUEUE_SIZE", 256)))
    bind_change_feed(session_factory, feed)

    app.extensions["engine"] = engine
    app.extensions["session_factory"] = session_factory
    app.extensions["change_feed"] = feed

    @app.before_request
    def _open_session() -> None:
        g.db = session_factory()  # type: ignore[attr-defined]

    @app.teardown_request
    def _close_session(exc: BaseException | None) -> None:
        session: Session | None = getattr(g, "db", None)
        if session is None:
            return

        try:
            if exc is None:
                session.commit()
            else:
                session.rollback()
        finally:
            session.close()


def get_session() -> Session:
    """Get the current request's SQLAlchemy session."""

    session: Session | None = getattr(g, "db", None)
    if session is None:
        raise RuntimeError("Database session not initialized")
    return session


def get_change_feed() -> ChangeFeed:
    return current_app.extensions["change_feed"]


def rollback_session() -> None:
    """Roll back the request session; handled errors otherwise reach teardown as success."""

    session: Session | None = getattr(g, "db", None)
    if session is not None:
        session.rollback()
