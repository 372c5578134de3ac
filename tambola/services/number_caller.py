"""Append-only sequence of called numbers for one game."""

from __future__ import annotations

import random
from collections.abc import Iterable, Iterator

from tambola.errors import NumberAlreadyCalledError, NumbersExhaustedError, ValidationError
from tambola.services.ticket_engine import HIGHEST_NUMBER, LOWEST_NUMBER


class CalledNumberSequence:
    """Numbers 1..90 in the order they were called, each at most once."""

    def __init__(self, numbers: Iterable[int] | None = None) -> None:
        self._order: list[int] = []
        self._seen: set[int] = set()
        for n in numbers or ():
            self.append(n)

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._order))

    def __contains__(self, number: object) -> bool:
        return number in self._seen

    @property
    def last(self) -> int | None:
        return self._order[-1] if self._order else None

    @property
    def remaining(self) -> list[int]:
        return [n for n in range(LOWEST_NUMBER, HIGHEST_NUMBER + 1) if n not in self._seen]

    @property
    def is_exhausted(self) -> bool:
        return len(self._order) >= HIGHEST_NUMBER - LOWEST_NUMBER + 1

    def recent(self, k: int = 5) -> list[int]:
        """Latest ``k`` numbers, newest first."""

        if k <= 0:
            return []
        return self._order[-k:][::-1]

    def append(self, number: int) -> int:
        n = int(number)
        if n < LOWEST_NUMBER or n > HIGHEST_NUMBER:
            raise ValidationError(
                message="Invalid number",
                details={"number": [f"Must be within {LOWEST_NUMBER}..{HIGHEST_NUMBER}"]},
            )
        if n in self._seen:
            raise NumberAlreadyCalledError(n)
        self._order.append(n)
        self._seen.add(n)
        return n

    def draw_next(self, rng: random.Random | None = None) -> int:
        """Pick an uncalled number uniformly, append it and return it."""

        pool = self.remaining
        if not pool:
            raise NumbersExhaustedError()
        return self.append((rng or random).choice(pool))

    def to_list(self) -> list[int]:
        return list(self._order)
