"""In-process change feed over the record store.

Writes publish a typed ``ChangeEvent`` once their transaction commits.
Consumers hold a ``Subscription``, which is a bounded queue drained on the
consumer's own thread, so delivery order is publication order.
"""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    row: dict[str, Any]
    room_id: str | None = None

    @property
    def name(self) -> str:
        return f"{self.table}.{self.kind.value}"

    def to_dict(self) -> dict[str, Any]:
        return {"table": self.table, "kind": self.kind.value, "room_id": self.room_id, "row": self.row}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEvent:
        return cls(
            table=str(data["table"]),
            kind=ChangeKind(data["kind"]),
            row=dict(data.get("row") or {}),
            room_id=data.get("room_id"),
        )


@dataclass(eq=False)
class Subscription:
    """A consumer's view of the feed, filtered by table and room."""

    feed: ChangeFeed
    table: str | None = None
    room_id: str | None = None
    maxsize: int = 256
    dropped: int = 0
    closed: bool = False
    _queue: queue.Queue = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._queue = queue.Queue(maxsize=self.maxsize)

    def matches(self, event: ChangeEvent) -> bool:
        if self.table is not None and event.table != self.table:
            return False
        if self.room_id is not None and event.room_id != self.room_id:
            return False
        return True

    def offer(self, event: ChangeEvent) -> None:
        # Full queue: drop the oldest event so the newest state still arrives.
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, or None when nothing arrives within ``timeout``."""

        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> list[ChangeEvent]:
        events: list[ChangeEvent] = []
        while True:
            event = self.get()
            if event is None:
                return events
            events.append(event)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.feed.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class ChangeFeed:
    """Fan-out of change events to subscriptions."""

    def __init__(self, queue_size: int = 256) -> None:
        self._lock = Lock()
        self._subscriptions: list[Subscription] = []
        self._queue_size = queue_size

    def subscribe(self, table: str | None = None, room_id: str | None = None) -> Subscription:
        sub = Subscription(self, table=table, room_id=room_id, maxsize=self._queue_size)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver to every matching subscription; returns the delivery count."""

        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        for sub in targets:
            sub.offer(event)
        logger.debug("Published %s to %s subscriber(s)", event.name, len(targets))
        return len(targets)
