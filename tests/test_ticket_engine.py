import random

import pytest

from tambola.errors import GenerationError, InvalidCellError, ValidationError
from tambola.services.ticket_engine import (
    COLUMNS,
    ROWS,
    Prize,
    Ticket,
    TicketEngine,
    WinPattern,
    column_range,
    validate_grid,
)

# Hand-built valid ticket: five numbers per row, columns ascending.
GRID = [
    [4, None, 23, None, 41, None, 62, None, 80],
    [None, 12, 27, 35, None, 55, None, 77, None],
    [9, None, None, 38, 44, 59, None, 79, None],
]


def fresh_ticket():
    return Ticket.from_grid(GRID)


def mark_row(ticket, row):
    for c in range(COLUMNS):
        if ticket.grid[row][c] is not None:
            TicketEngine.mark_cell(ticket, row, c)


class AlwaysFirst(random.Random):
    """Rigged RNG: always picks column 0 and the low end of every range."""

    def randrange(self, *args, **kwargs):
        return 0

    def randint(self, a, b):
        return a


class StuckColumn(random.Random):
    """Rigged RNG: spreads columns but keeps drawing the same number."""

    def randint(self, a, b):
        return a


class TestColumnRange:
    def test_edges(self):
        assert column_range(0) == (1, 9)
        assert column_range(1) == (10, 19)
        assert column_range(7) == (70, 79)
        assert column_range(8) == (80, 90)

    def test_outside_grid(self):
        with pytest.raises(InvalidCellError):
            column_range(9)
        with pytest.raises(InvalidCellError):
            column_range(-1)


class TestValidateGrid:
    def test_valid_grid(self):
        assert validate_grid(GRID, require_sorted=True) == []

    def test_wrong_shape(self):
        assert validate_grid([[1, 2, 3]]) == ["grid must be 3x9"]

    def test_row_count(self):
        grid = [list(r) for r in GRID]
        grid[0][1] = 15
        problems = validate_grid(grid)
        assert any("row 0 has 6 numbers" in p for p in problems)

    def test_column_range_and_duplicates(self):
        grid = [list(r) for r in GRID]
        grid[0][0] = 12
        grid[1][1] = 12
        problems = validate_grid(grid)
        assert any("column 0 holds 12" in p for p in problems)
        assert any("12 appears more than once" in p for p in problems)

    def test_unsorted_column(self):
        grid = [list(r) for r in GRID]
        grid[0][0], grid[2][0] = grid[2][0], grid[0][0]
        assert validate_grid(grid) == []
        assert validate_grid(grid, require_sorted=True) == ["column 0 is not ascending"]


class TestGeneration:
    def test_invariants_hold_over_many_tickets(self):
        engine = TicketEngine(random.Random(1234))
        for ticket in engine.generate_tickets(300):
            assert validate_grid(ticket.grid, require_sorted=True) == []
            assert len(ticket.numbers) == 15
            assert len(set(ticket.numbers)) == 15
            assert all(1 <= n <= 90 for n in ticket.numbers)
            assert ticket.marked == [[False] * COLUMNS for _ in range(ROWS)]

    def test_column_90_can_appear(self):
        engine = TicketEngine(random.Random(7))
        seen = set()
        for ticket in engine.generate_tickets(400):
            seen.update(ticket.grid[r][8] for r in range(ROWS) if ticket.grid[r][8] is not None)
        assert 90 in seen
        assert min(seen) >= 80

    def test_unsorted_mode_still_valid(self):
        engine = TicketEngine(random.Random(99), sort_columns=False)
        for ticket in engine.generate_tickets(50):
            assert validate_grid(ticket.grid) == []

    def test_same_seed_same_tickets(self):
        a = TicketEngine(random.Random(5)).generate_ticket()
        b = TicketEngine(random.Random(5)).generate_ticket()
        assert a.grid == b.grid
        assert a.id != b.id

    def test_column_pick_gives_up(self):
        engine = TicketEngine(AlwaysFirst(), max_retries=50)
        with pytest.raises(GenerationError) as excinfo:
            engine.generate_ticket()
        assert excinfo.value.code == "generation_failed"
        assert excinfo.value.details["row"] == 0

    def test_number_draw_gives_up(self):
        engine = TicketEngine(StuckColumn(3), max_retries=20)
        with pytest.raises(GenerationError) as excinfo:
            engine.generate_ticket()
        assert excinfo.value.status_code == 503

    def test_invalid_count(self):
        with pytest.raises(ValidationError):
            TicketEngine().generate_tickets(0)

    def test_max_retries_must_be_positive(self):
        with pytest.raises(ValueError):
            TicketEngine(max_retries=0)


class TestMarking:
    def test_mark_is_idempotent(self):
        ticket = fresh_ticket()
        TicketEngine.mark_cell(ticket, 0, 0)
        once = [list(r) for r in ticket.marked]
        TicketEngine.mark_cell(ticket, 0, 0)
        assert ticket.marked == once
        assert ticket.marked_numbers() == [4]

    def test_mark_out_of_bounds(self):
        ticket = fresh_ticket()
        with pytest.raises(InvalidCellError):
            TicketEngine.mark_cell(ticket, 3, 0)
        with pytest.raises(InvalidCellError):
            TicketEngine.mark_cell(ticket, 0, 9)
        with pytest.raises(InvalidCellError):
            TicketEngine.mark_cell(ticket, -1, 0)

    def test_mark_empty_cell(self):
        ticket = fresh_ticket()
        with pytest.raises(InvalidCellError) as excinfo:
            TicketEngine.mark_cell(ticket, 0, 1)
        assert excinfo.value.code == "invalid_cell"
        assert ticket.marked_count == 0

    def test_auto_daub(self):
        ticket = fresh_ticket()
        TicketEngine.auto_daub(ticket, 55)
        TicketEngine.auto_daub(ticket, 56)
        assert ticket.marked_numbers() == [55]
        assert ticket.position_of(55) == (1, 5)
        assert ticket.position_of(56) is None

    def test_marks_never_clear(self):
        rng = random.Random(11)
        ticket = fresh_ticket()
        seen = set()
        for _ in range(300):
            if rng.random() < 0.5:
                TicketEngine.auto_daub(ticket, rng.randint(1, 90))
            else:
                r, c = rng.randrange(ROWS), rng.randrange(COLUMNS)
                if ticket.grid[r][c] is None:
                    with pytest.raises(InvalidCellError):
                        TicketEngine.mark_cell(ticket, r, c)
                else:
                    TicketEngine.mark_cell(ticket, r, c)
            now = {(r, c) for r in range(ROWS) for c in range(COLUMNS) if ticket.marked[r][c]}
            assert seen <= now
            seen = now
        assert all(ticket.grid[r][c] is not None for r, c in seen)

    def test_grid_never_changes(self):
        ticket = fresh_ticket()
        for r in range(ROWS):
            mark_row(ticket, r)
        assert ticket.grid == GRID

    def test_bad_marks_shape(self):
        with pytest.raises(ValidationError):
            Ticket.from_grid(GRID, [[False] * 9])


class TestEvaluateClaims:
    def test_nothing_marked(self):
        assert TicketEngine.evaluate_claims(fresh_ticket()) == WinPattern()

    def test_top_line(self):
        ticket = fresh_ticket()
        mark_row(ticket, 0)
        pattern = TicketEngine.evaluate_claims(ticket)
        assert pattern.top_line is True
        assert pattern.early_five is True
        assert pattern.middle_line is False
        assert pattern.full_house is False

    def test_early_five_across_rows(self):
        ticket = fresh_ticket()
        for n in (4, 12, 27, 44, 80):
            TicketEngine.auto_daub(ticket, n)
        pattern = TicketEngine.evaluate_claims(ticket)
        assert pattern.early_five is True
        assert pattern.claimable == frozenset({Prize.EARLY_FIVE})

    def test_four_marks_is_not_early_five(self):
        ticket = fresh_ticket()
        for n in (4, 12, 27, 44):
            TicketEngine.auto_daub(ticket, n)
        assert TicketEngine.evaluate_claims(ticket).early_five is False

    def test_full_house_implies_every_line(self):
        ticket = fresh_ticket()
        for r in range(ROWS):
            mark_row(ticket, r)
        pattern = TicketEngine.evaluate_claims(ticket)
        assert pattern.full_house
        assert pattern.top_line and pattern.middle_line and pattern.bottom_line
        assert pattern.claimable == frozenset(Prize)

    def test_already_won_is_never_claimable(self):
        ticket = fresh_ticket()
        mark_row(ticket, 0)
        pattern = TicketEngine.evaluate_claims(ticket, {"topLine": True, "earlyFive": False})
        assert pattern.top_line is False
        assert pattern.early_five is True

        pattern = TicketEngine.evaluate_claims(ticket, [Prize.EARLY_FIVE, "top_line"])
        assert pattern.claimable == frozenset()

    def test_marks_only_grow_claims(self):
        ticket = fresh_ticket()
        before = TicketEngine.evaluate_claims(ticket).claimable
        for n in ticket.numbers:
            TicketEngine.auto_daub(ticket, n)
            after = TicketEngine.evaluate_claims(ticket).claimable
            assert before <= after
            before = after

    def test_pattern_lookup_by_wire_name(self):
        pattern = WinPattern(top_line=True)
        assert pattern["topLine"] is True
        assert pattern[Prize.FULL_HOUSE] is False
        assert pattern.as_dict()["topLine"] is True


class TestPrize:
    @pytest.mark.parametrize("raw", ["fullHouse", "full_house", "full-house", "FULLHOUSE", Prize.FULL_HOUSE])
    def test_parse_spellings(self, raw):
        assert Prize.parse(raw) is Prize.FULL_HOUSE

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValidationError):
            Prize.parse("fourCorners")


class TestScenarios:
    def test_top_line_only_after_third_call(self):
        grid = [[None] * COLUMNS for _ in range(ROWS)]
        grid[0][0], grid[0][3], grid[0][8] = 5, 23, 88
        ticket = Ticket.from_grid(grid)

        for number in (88, 5):
            TicketEngine.auto_daub(ticket, number)
            assert TicketEngine.evaluate_claims(ticket).top_line is False
        TicketEngine.auto_daub(ticket, 23)
        assert TicketEngine.evaluate_claims(ticket).top_line is True

    def test_early_five_flips_at_fifth_mark(self):
        ticket = fresh_ticket()
        for n in (4, 12, 27, 44):
            TicketEngine.auto_daub(ticket, n)
        assert TicketEngine.evaluate_claims(ticket).early_five is False
        TicketEngine.auto_daub(ticket, 79)
        assert TicketEngine.evaluate_claims(ticket).early_five is True

    def test_number_not_on_ticket_changes_nothing(self):
        ticket = fresh_ticket()
        TicketEngine.auto_daub(ticket, 4)
        before = [list(r) for r in ticket.marked]
        TicketEngine.auto_daub(ticket, 50)
        assert ticket.marked == before

    def test_full_house_already_won(self):
        ticket = fresh_ticket()
        for n in ticket.numbers:
            TicketEngine.auto_daub(ticket, n)
        pattern = TicketEngine.evaluate_claims(ticket, {"fullHouse": True})
        assert pattern.full_house is False
        assert pattern.top_line is True

    def test_seeded_engine_fixture(self, rng):
        ticket = TicketEngine(rng).generate_ticket()
        assert validate_grid(ticket.grid, require_sorted=True) == []
