"""Room routes (controllers). No business logic here."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from tambola.clients.file_store import FileStore
from tambola.db import get_session
from tambola.errors import UploadError
from tambola.routes.events import stream_room
from tambola.schemas.room import (
    CalledNumberSchema,
    CallNumberSchema,
    LobbyQuerySchema,
    RoomCreateSchema,
    RoomSchema,
)
from tambola.schemas.ticket import ClaimSchema, TicketSchema
from tambola.services.game_service import GameService
from tambola.services.room_service import RoomService, share_link
from tambola.utils.identity import current_user_id
from tambola.utils.responses import ok

rooms_bp = Blueprint("rooms", __name__)

_create_schema = RoomCreateSchema()
_room_schema = RoomSchema()
_rooms_schema = RoomSchema(many=True)
_lobby_schema = LobbyQuerySchema()
_call_schema = CallNumberSchema()
_ticket_schema = TicketSchema()
_claims_schema = ClaimSchema(many=True)
_called_schema = CalledNumberSchema()


def _rooms() -> RoomService:
    return current_app.extensions["room_service"]


def _game() -> GameService:
    return current_app.extensions["game_service"]


def _room_payload(room) -> dict:
    data = _room_schema.dump(room)
    data["share_link"] = share_link(room, str(current_app.config.get("PUBLIC_BASE_URL", "")))
    return data


@rooms_bp.post("/rooms")
def create_room():
    payload = request.get_json(silent=True) or {}
    data = _create_schema.load(payload)
    room = _rooms().create_room(get_session(), host_id=current_user_id(), **data)
    return ok(_room_payload(room), status_code=201)


@rooms_bp.get("/rooms")
def list_lobby():
    """Rooms that are waiting or running, optionally filtered by name."""

    query = _lobby_schema.load(request.args.to_dict())
    session = get_session()
    rooms = _rooms().list_lobby(session, search=query.get("search"), limit=int(query["limit"]))
    data = []
    for room in rooms:
        item = _room_payload(room)
        item["player_count"] = _rooms().player_count(session, room.id)
        data.append(item)
    return ok(data, meta={"count": len(data)})


@rooms_bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    return ok(_room_payload(_rooms().get_room(get_session(), room_id)))


@rooms_bp.get("/rooms/code/<code>")
def get_room_by_code(code: str):
    return ok(_room_payload(_rooms().get_by_code(get_session(), code)))


@rooms_bp.post("/rooms/<room_id>/start")
def start_room(room_id: str):
    room = _rooms().start_room(get_session(), room_id, current_user_id())
    return ok(_room_payload(room))


@rooms_bp.post("/rooms/<room_id>/end")
def end_room(room_id: str):
    room = _rooms().end_room(get_session(), room_id, current_user_id())
    return ok(_room_payload(room))


@rooms_bp.post("/rooms/<room_id>/join")
def join_room(room_id: str):
    ticket = _game().join_room(get_session(), room_id, current_user_id())
    return ok(_ticket_schema.dump(ticket), status_code=201)


@rooms_bp.post("/rooms/<room_id>/call")
def call_number(room_id: str):
    data = _call_schema.load(request.get_json(silent=True) or {})
    called = _game().call_number(get_session(), room_id, current_user_id(), number=data.get("number"))
    return ok(_called_schema.dump(called), status_code=201)


@rooms_bp.get("/rooms/<room_id>/numbers")
def called_numbers(room_id: str):
    sequence = _game().called_numbers(get_session(), room_id)
    return ok(
        {
            "numbers": sequence.to_list(),
            "current": sequence.last,
            "recent": sequence.recent(),
            "remaining": len(sequence.remaining),
        }
    )


@rooms_bp.get("/rooms/<room_id>/claims")
def list_claims(room_id: str):
    claims = _game().list_claims(get_session(), room_id)
    return ok(_claims_schema.dump(claims), meta={"count": len(claims)})


@rooms_bp.get("/rooms/<room_id>/events")
def room_events(room_id: str):
    _rooms().get_room(get_session(), room_id)
    return stream_room(room_id)


@rooms_bp.post("/rooms/<room_id>/qr")
def upload_qr(room_id: str):
    """Host uploads the UPI QR image players pay to."""

    host_id = current_user_id()
    upload = request.files.get("image")
    if upload is None:
        raise UploadError("image is required")

    session = get_session()
    room = _rooms().get_room(session, room_id)
    RoomService.require_host(room, host_id)

    store: FileStore = current_app.extensions["file_store"]
    url = store.upload_image(f"room-qr/{room.id}", upload.read(), upload.mimetype or "")
    room = _rooms().set_payment_qr(session, room.id, host_id, url)
    return ok(_room_payload(room))
