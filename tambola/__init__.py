"""Tambola party game server."""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any

from dotenv import load_dotenv
from flask import Flask


def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    """Application factory.

    Args:
        overrides: Config values applied on top of the environment (tests use
            this to point at a throwaway database).

    Returns:
        Configured Flask application.
    """
    load_dotenv()

    from tambola.clients.account_client import AccountClient
    from tambola.clients.file_store import FileStore
    from tambola.clients.payment_gateway import PaymentGateway
    from tambola.config import get_config
    from tambola.db import init_db
    from tambola.error_handlers import register_error_handlers
    from tambola.logging_config import configure_logging
    from tambola.repositories.room_repository import RoomRepository
    from tambola.repositories.ticket_repository import TicketRepository
    from tambola.routes.auth import auth_bp
    from tambola.routes.health import health_bp
    from tambola.routes.payments import payments_bp
    from tambola.routes.rooms import rooms_bp
    from tambola.routes.tickets import tickets_bp
    from tambola.services.game_service import GameService
    from tambola.services.payment_service import PaymentService
    from tambola.services.room_service import RoomService
    from tambola.services.ticket_engine import TicketEngine

    app = Flask(__name__)
    app.config.from_object(get_config())
    if overrides:
        app.config.update(overrides)

    configure_logging(app)
    init_db(app)
    register_error_handlers(app)

    room_repository = RoomRepository()
    ticket_repository = TicketRepository()
    rooms = RoomService(repository=room_repository, tickets=ticket_repository)
    engine = TicketEngine(
        random.SystemRandom(),
        sort_columns=bool(app.config["TICKET_SORT_COLUMNS"]),
        max_retries=int(app.config["TICKET_MAX_RETRIES"]),
    )

    app.extensions["room_service"] = rooms
    app.extensions["game_service"] = GameService(
        engine=engine,
        rooms=rooms,
        room_repository=room_repository,
        tickets=ticket_repository,
    )
    app.extensions["payment_service"] = PaymentService(PaymentGateway.from_config(app.config), rooms=rooms)
    app.extensions["account_client"] = AccountClient.from_config(app.config)
    app.extensions["file_store"] = FileStore.from_config(app.config)

    app.register_blueprint(health_bp)
    app.register_blueprint(tickets_bp)
    app.register_blueprint(rooms_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(auth_bp)

    return app
