"""Server-sent event stream of a room's changes."""

from __future__ import annotations

import json
import time
from collections.abc import Iterable, Iterator

from flask import Response, current_app

from tambola.services.change_feed import ChangeEvent, Subscription


def sse_stream(
    subscription: Subscription,
    keepalive: float = 15.0,
    max_events: int | None = None,
) -> Iterator[str]:
    """Yield ``text/event-stream`` frames; closes the subscription when done."""

    sent = 0
    last_write = time.monotonic()
    try:
        yield "retry: 3000\n\n"
        while max_events is None or sent < max_events:
            event = subscription.get(timeout=1.0)
            if event is None:
                if time.monotonic() - last_write >= keepalive:
                    last_write = time.monotonic()
                    yield "event: ping\ndata: {}\n\n"
                continue
            sent += 1
            last_write = time.monotonic()
            yield f"event: {event.name}\ndata: {json.dumps(event.to_dict(), default=str)}\n\n"
    finally:
        subscription.close()


def iter_sse_events(chunks: Iterable[str]) -> Iterator[ChangeEvent]:
    """Parse an event stream back into change events, skipping pings and retry hints.

    ``chunks`` may be whole frames (as ``sse_stream`` yields them) or single
    lines (as ``requests.Response.iter_lines`` yields them).
    """

    name: str | None = None
    data: list[str] = []
    for chunk in chunks:
        for line in chunk.split("\n"):
            if line.startswith("event:"):
                name = line[6:].strip()
            elif line.startswith("data:"):
                data.append(line[5:].strip())
            elif not line.strip() and (name or data):
                if name != "ping" and data:
                    yield ChangeEvent.from_dict(json.loads("\n".join(data)))
                name, data = None, []


def stream_room(room_id: str) -> Response:
    feed = current_app.extensions["change_feed"]
    keepalive = float(current_app.config.get("EVENT_STREAM_KEEPALIVE", 15))
    subscription = feed.subscribe(room_id=room_id)
    return Response(
        sse_stream(subscription, keepalive=keepalive),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
