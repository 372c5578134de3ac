"""Follow a room from the command line the way a player's screen does.

Seeds a GameSession with the caller's tickets and the numbers called so far,
then applies the room's event stream and logs each number and any prize the
tickets can now claim.

Usage:
  python scripts/watch_room.py http://localhost:8000 <room_id> --token <access_token> \
      --ticket <ticket_id> --auto-daub
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from collections.abc import Iterable, Sequence
from typing import Any

import requests

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from tambola.clients.http import build_http_session  # noqa: E402
from tambola.routes.events import iter_sse_events  # noqa: E402
from tambola.services.change_feed import ChangeEvent, ChangeKind  # noqa: E402
from tambola.services.game_session import GameSession  # noqa: E402
from tambola.services.ticket_engine import Ticket  # noqa: E402

logger = logging.getLogger("watch_room")


def _get(http: requests.Session, url: str, headers: dict[str, str]) -> Any:
    resp = http.get(url, headers=headers, timeout=10)
    resp.raise_for_status()
    return resp.json()["data"]


def seed_session(
    http: requests.Session,
    base_url: str,
    room_id: str,
    ticket_ids: Sequence[str],
    headers: dict[str, str],
    auto_daub: bool = False,
) -> GameSession:
    """Build a session from the room's current state over the REST API."""

    room = _get(http, f"{base_url}/rooms/{room_id}", headers)
    tickets = [_get(http, f"{base_url}/tickets/{ticket_id}", headers) for ticket_id in ticket_ids]
    player_id = tickets[0]["player_id"] if tickets else ""

    game = GameSession(room_id, player_id, auto_daub=auto_daub)
    game.apply(ChangeEvent("rooms", ChangeKind.UPDATE, {"status": room["status"]}, room_id))
    for number in _get(http, f"{base_url}/rooms/{room_id}/numbers", headers)["numbers"]:
        game.apply(ChangeEvent("called_numbers", ChangeKind.INSERT, {"number": number}, room_id))
    for data in tickets:
        game.add_ticket(Ticket.from_grid(data["grid"], data.get("marked"), ticket_id=data["id"]))
    return game


def follow(game: GameSession, lines: Iterable[str]) -> None:
    """Apply streamed events until the game completes or the stream ends."""

    announced: dict[str, frozenset] = {}
    for event in iter_sse_events(lines):
        if not game.apply(event):
            continue
        state = game.state
        if event.table == "called_numbers":
            logger.info("Number %s (%s called)", state.current_number, len(state.called))
        for ticket_id, prizes in state.claimable.items():
            if prizes and prizes != announced.get(ticket_id):
                logger.info("Ticket %s can claim: %s", ticket_id, ", ".join(sorted(p.value for p in prizes)))
            announced[ticket_id] = prizes
        if state.status == "completed":
            logger.info("Room %s completed", state.room_id)
            return


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Watch a Tambola room's live events")
    parser.add_argument("base_url")
    parser.add_argument("room_id")
    parser.add_argument("--token", required=True, help="Access token from /auth/sign-in")
    parser.add_argument("--ticket", dest="tickets", action="append", default=[])
    parser.add_argument("--auto-daub", dest="auto_daub", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    base_url = args.base_url.rstrip("/")
    headers = {"Authorization": f"Bearer {args.token}"}
    http = build_http_session(retries=3, backoff_factor=0.5)

    try:
        game = seed_session(http, base_url, args.room_id, args.tickets, headers, auto_daub=args.auto_daub)
        with http.get(
            f"{base_url}/rooms/{args.room_id}/events",
            headers={**headers, "Accept": "text/event-stream"},
            stream=True,
            timeout=(10, None),
        ) as resp:
            resp.raise_for_status()
            resp.encoding = resp.encoding or "utf-8"
            follow(game, resp.iter_lines(decode_unicode=True))
    except requests.RequestException as exc:
        logger.error("Lost connection to %s: %s", base_url, exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
