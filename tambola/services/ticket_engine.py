"""Tambola ticket generation, marking and win-pattern evaluation.

A ticket is a 3x9 grid holding 15 numbers from 1..90: five per row, and
column ``c`` only takes numbers from its own decade (column 0 is 1-9, column 8
is 80-90). Everything here is pure computation. Persistence and claim
arbitration live in the services that call the engine.
"""

from __future__ import annotations

import logging
import random
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from tambola.errors import GenerationError, InvalidCellError, ValidationError

logger = logging.getLogger(__name__)

ROWS = 3
COLUMNS = 9
NUMBERS_PER_ROW = 5
LOWEST_NUMBER = 1
HIGHEST_NUMBER = 90
EARLY_FIVE_COUNT = 5

Cell = int | None
Grid = list[list[Cell]]


class Prize(str, Enum):
    EARLY_FIVE = "earlyFive"
    TOP_LINE = "topLine"
    MIDDLE_LINE = "middleLine"
    BOTTOM_LINE = "bottomLine"
    FULL_HOUSE = "fullHouse"

    @classmethod
    def parse(cls, value: object) -> Prize:
        """Accept ``earlyFive``, ``early_five`` or ``early-five`` spellings."""

        if isinstance(value, cls):
            return value
        key = str(value or "").replace("_", "").replace("-", "").lower()
        for prize in cls:
            if prize.value.lower() == key:
                return prize
        raise ValidationError(
            message="Invalid prize",
            details={"prize": [f"Must be one of {'|'.join(p.value for p in cls)}"]},
        )


LINE_PRIZES: dict[Prize, int] = {
    Prize.TOP_LINE: 0,
    Prize.MIDDLE_LINE: 1,
    Prize.BOTTOM_LINE: 2,
}


def column_range(col: int) -> tuple[int, int]:
    """Inclusive numeric range a column may hold."""

    if col < 0 or col >= COLUMNS:
        raise InvalidCellError(message=f"Column {col} is outside the ticket", details={"col": col})
    if col == 0:
        return (LOWEST_NUMBER, 9)
    if col == COLUMNS - 1:
        return (80, HIGHEST_NUMBER)
    return (col * 10, col * 10 + 9)


def validate_grid(grid: Grid, *, require_sorted: bool = False) -> list[str]:
    """Return every broken ticket invariant (empty list when the grid is valid)."""

    if len(grid) != ROWS or any(len(row) != COLUMNS for row in grid):
        return [f"grid must be {ROWS}x{COLUMNS}"]

    problems: list[str] = []
    seen: set[int] = set()

    for r, row in enumerate(grid):
        filled = [n for n in row if n is not None]
        if len(filled) != NUMBERS_PER_ROW:
            problems.append(f"row {r} has {len(filled)} numbers (must be {NUMBERS_PER_ROW})")

    for c in range(COLUMNS):
        lo, hi = column_range(c)
        values = [grid[r][c] for r in range(ROWS) if grid[r][c] is not None]
        for n in values:
            if isinstance(n, bool) or not isinstance(n, int):
                problems.append(f"column {c} holds a non-integer value {n!r}")
                continue
            if n < lo or n > hi:
                problems.append(f"column {c} holds {n} outside {lo}-{hi}")
            if n in seen:
                problems.append(f"number {n} appears more than once")
            seen.add(n)
        numeric = [n for n in values if isinstance(n, int) and not isinstance(n, bool)]
        if require_sorted and len(numeric) == len(values) and numeric != sorted(numeric):
            problems.append(f"column {c} is not ascending")

    return problems


def _sort_columns(grid: Grid) -> None:
    # Values move between the already-filled cells of a column only.
    for c in range(COLUMNS):
        rows = [r for r in range(ROWS) if grid[r][c] is not None]
        values = sorted(int(grid[r][c]) for r in rows)  # type: ignore[arg-type]
        for r, n in zip(rows, values):
            grid[r][c] = n


@dataclass
class Ticket:
    """A player's ticket: an immutable grid plus the mutable daub state."""

    grid: Grid
    marked: list[list[bool]] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if len(self.grid) != ROWS or any(len(row) != COLUMNS for row in self.grid):
            raise ValidationError(message="Invalid ticket grid", details={"grid": [f"Must be {ROWS}x{COLUMNS}"]})
        if not self.marked:
            self.marked = [[False] * COLUMNS for _ in range(ROWS)]
        elif len(self.marked) != ROWS or any(len(row) != COLUMNS for row in self.marked):
            raise ValidationError(message="Invalid ticket marks", details={"marked": [f"Must be {ROWS}x{COLUMNS}"]})

    @classmethod
    def from_grid(
        cls,
        grid: Iterable[Iterable[int | None]],
        marked: Iterable[Iterable[bool]] | None = None,
        ticket_id: str | None = None,
    ) -> Ticket:
        """Rebuild a ticket from stored rows (lists are copied)."""

        rows: Grid = [[None if n is None else int(n) for n in row] for row in grid]
        marks = [[bool(m) for m in row] for row in marked] if marked is not None else []
        if ticket_id is None:
            return cls(grid=rows, marked=marks)
        return cls(grid=rows, marked=marks, id=str(ticket_id))

    @property
    def numbers(self) -> list[int]:
        """Filled values in row-major order."""

        return [n for row in self.grid for n in row if n is not None]

    @property
    def marked_count(self) -> int:
        return sum(1 for _, m in self._cells() if m)

    def position_of(self, number: int) -> tuple[int, int] | None:
        for r in range(ROWS):
            for c in range(COLUMNS):
                if self.grid[r][c] == number:
                    return (r, c)
        return None

    def _cells(self) -> list[tuple[int, bool]]:
        return [
            (int(self.grid[r][c]), self.marked[r][c])  # type: ignore[arg-type]
            for r in range(ROWS)
            for c in range(COLUMNS)
            if self.grid[r][c] is not None
        ]

    def marked_numbers(self) -> list[int]:
        return [n for n, m in self._cells() if m]

    def unmarked_numbers(self) -> list[int]:
        return [n for n, m in self._cells() if not m]

    def row_complete(self, row: int) -> bool:
        """True when the row has numbers and all of them are marked."""

        cells = [c for c in range(COLUMNS) if self.grid[row][c] is not None]
        return bool(cells) and all(self.marked[row][c] for c in cells)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "grid": [list(row) for row in self.grid],
            "marked": [list(row) for row in self.marked],
        }


@dataclass(frozen=True)
class WinPattern:
    """Which prizes are newly claimable on a ticket right now."""

    early_five: bool = False
    top_line: bool = False
    middle_line: bool = False
    bottom_line: bool = False
    full_house: bool = False

    def __getitem__(self, prize: Prize | str) -> bool:
        return self.as_dict()[Prize.parse(prize).value]

    @property
    def claimable(self) -> frozenset[Prize]:
        return frozenset(p for p in Prize if self[p])

    def as_dict(self) -> dict[str, bool]:
        return {
            Prize.EARLY_FIVE.value: self.early_five,
            Prize.TOP_LINE.value: self.top_line,
            Prize.MIDDLE_LINE.value: self.middle_line,
            Prize.BOTTOM_LINE.value: self.bottom_line,
            Prize.FULL_HOUSE.value: self.full_house,
        }


def _won_prizes(already_won: Mapping[str, bool] | Iterable[Prize | str] | None) -> set[Prize]:
    if not already_won:
        return set()
    if isinstance(already_won, Mapping):
        return {Prize.parse(k) for k, v in already_won.items() if v}
    return {Prize.parse(p) for p in already_won}


class TicketEngine:
    """Generate tickets and evaluate them against marks.

    Generation is column-first rejection sampling with a per-row quota of
    five. Every retry loop is bounded by ``max_retries`` and gives up with
    ``GenerationError`` instead of spinning.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        sort_columns: bool = True,
        max_retries: int = 1000,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be positive")
        self._rng = rng or random.Random()
        self._sort_columns = sort_columns
        self._max_retries = max_retries

    def _draw_for_column(self, col: int, used: set[int]) -> int:
        lo, hi = column_range(col)
        if all(n in used for n in range(lo, hi + 1)):
            raise GenerationError(
                message=f"Column {col} has no unused numbers left",
                details={"col": col, "range": [lo, hi]},
            )

        for _ in range(self._max_retries):
            candidate = self._rng.randint(lo, hi)
            if candidate not in used:
                return candidate

        logger.warning("Number draw for column %s exceeded %s retries", col, self._max_retries)
        raise GenerationError(
            message=f"Failed to draw a number for column {col} within retry limit ({self._max_retries})",
            details={"col": col},
        )

    def generate_ticket(self) -> Ticket:
        """Build a ticket satisfying the row quota, column ranges and uniqueness."""

        grid: Grid = [[None] * COLUMNS for _ in range(ROWS)]
        used: set[int] = set()

        for row in range(ROWS):
            filled = 0
            attempts = 0
            while filled < NUMBERS_PER_ROW:
                attempts += 1
                if attempts > self._max_retries:
                    logger.warning("Column pick for row %s exceeded %s retries", row, self._max_retries)
                    raise GenerationError(
                        message=f"Failed to fill row {row} within retry limit ({self._max_retries})",
                        details={"row": row, "filled": filled},
                    )

                col = self._rng.randrange(COLUMNS)
                if grid[row][col] is not None:
                    continue

                number = self._draw_for_column(col, used)
                grid[row][col] = number
                used.add(number)
                filled += 1

        if self._sort_columns:
            _sort_columns(grid)

        problems = validate_grid(grid, require_sorted=self._sort_columns)
        if problems:
            raise GenerationError(message="Generated ticket violates ticket rules", details=problems)

        return Ticket(grid=grid)

    def generate_tickets(self, count: int) -> list[Ticket]:
        if count < 1:
            raise ValidationError(message="Invalid count", details={"count": ["Must be >= 1"]})
        return [self.generate_ticket() for _ in range(int(count))]

    @staticmethod
    def mark_cell(ticket: Ticket, row: int, col: int) -> Ticket:
        """Daub one filled cell. Marking twice is a no-op."""

        if not (0 <= row < ROWS and 0 <= col < COLUMNS):
            raise InvalidCellError(
                message=f"Cell ({row}, {col}) is outside the {ROWS}x{COLUMNS} grid",
                details={"row": row, "col": col},
            )
        if ticket.grid[row][col] is None:
            raise InvalidCellError(
                message=f"Cell ({row}, {col}) is empty",
                details={"row": row, "col": col},
            )

        ticket.marked[row][col] = True
        return ticket

    @staticmethod
    def auto_daub(ticket: Ticket, called_number: int) -> Ticket:
        """Mark the cell holding ``called_number``, if the ticket has it."""

        for r in range(ROWS):
            for c in range(COLUMNS):
                if ticket.grid[r][c] == called_number:
                    ticket.marked[r][c] = True
        return ticket

    @staticmethod
    def evaluate_claims(
        ticket: Ticket,
        already_won: Mapping[str, bool] | Iterable[Prize | str] | None = None,
    ) -> WinPattern:
        """Compute newly claimable prizes from the current marks.

        ``already_won`` lists prizes that are no longer up for grabs; they
        are always reported as not claimable.
        """

        won = _won_prizes(already_won)
        lines = {prize: ticket.row_complete(row) for prize, row in LINE_PRIZES.items()}

        return WinPattern(
            early_five=ticket.marked_count >= EARLY_FIVE_COUNT and Prize.EARLY_FIVE not in won,
            top_line=lines[Prize.TOP_LINE] and Prize.TOP_LINE not in won,
            middle_line=lines[Prize.MIDDLE_LINE] and Prize.MIDDLE_LINE not in won,
            bottom_line=lines[Prize.BOTTOM_LINE] and Prize.BOTTOM_LINE not in won,
            full_house=all(lines.values()) and Prize.FULL_HOUSE not in won,
        )
