"""Unit tests for timestamps, repeaters and date arithmetic."""

from datetime import date

import pytest

from org_outline.errors import MalformedStructure
from org_outline.headings import get_heading
from org_outline.planning import (
    AnchorMode,
    Repeater,
    RepeaterUnit,
    add_interval,
    advance,
    days_between,
    format_date,
    is_overdue,
    is_planning_line,
    is_valid_date,
    parse_date,
    parse_repeater,
    planning_entries,
    planning_line,
    read_planning,
)


class TestRepeaters:
    """Tests for repeater tokens."""

    @pytest.mark.parametrize(
        "token,unit,interval,anchor",
        [
            ("+1w", RepeaterUnit.WEEK, 1, AnchorMode.SCHEDULED),
            (".+3d", RepeaterUnit.DAY, 3, AnchorMode.COMPLETION),
            ("++2m", RepeaterUnit.MONTH, 2, AnchorMode.DEADLINE),
            ("+1y", RepeaterUnit.YEAR, 1, AnchorMode.SCHEDULED),
        ],
    )
    def test_parse(self, token, unit, interval, anchor):
        repeater = parse_repeater(token)

        assert repeater == Repeater(unit, interval, anchor)
        assert str(repeater) == token

    def test_parse_invalid(self):
        assert parse_repeater("1w") is None
        assert parse_repeater("+1x") is None
        assert parse_repeater("") is None

    def test_zero_interval_rejected(self):
        with pytest.raises(ValueError):
            Repeater(RepeaterUnit.DAY, 0)


class TestTimestamps:
    """Tests for formatting and parsing timestamps."""

    def test_format_computes_weekday(self):
        assert format_date(date(2025, 1, 10)) == "<2025-01-10 Fri>"
        assert format_date(date(2024, 2, 29)) == "<2024-02-29 Thu>"

    def test_format_with_repeater(self):
        repeater = Repeater(RepeaterUnit.WEEK, 2, AnchorMode.COMPLETION)

        assert format_date(date(2025, 1, 6), repeater) == "<2025-01-06 Mon .+2w>"

    @pytest.mark.parametrize("anchor", list(AnchorMode))
    def test_parse_reads_back_format(self, anchor):
        repeater = Repeater(RepeaterUnit.MONTH, 2, anchor)
        d = date(2024, 2, 29)

        assert parse_date(format_date(d, repeater)) == (d, repeater)

    def test_parse_ignores_stale_weekday(self):
        """The weekday name in the input never matters."""
        assert parse_date("<2025-01-10 Mon>") == (date(2025, 1, 10), None)

    def test_parse_with_time_and_repeater(self):
        parsed = parse_date("SCHEDULED: <2025-01-10 Fri 09:30 .+1w>")

        assert parsed[0] == date(2025, 1, 10)
        assert parsed[1] == Repeater(RepeaterUnit.WEEK, 1, AnchorMode.COMPLETION)

    def test_parse_without_weekday(self):
        assert parse_date("<2025-01-10>") == (date(2025, 1, 10), None)

    def test_parse_no_timestamp(self):
        assert parse_date("no date here") is None

    def test_parse_impossible_date(self):
        with pytest.raises(MalformedStructure):
            parse_date("<2025-02-30 Sun>")

    def test_planning_line(self):
        assert planning_line("DEADLINE", date(2025, 1, 31)) == "DEADLINE: <2025-01-31 Fri>"
        with pytest.raises(ValueError):
            planning_line("CLOSED", date(2025, 1, 31))

    def test_planning_entries_on_shared_line(self):
        text = "SCHEDULED: <2025-01-10 Fri> DEADLINE: <2025-01-31 Fri>"
        entries = planning_entries(text)

        assert [e[0] for e in entries] == ["SCHEDULED", "DEADLINE"]
        assert text[entries[1][2] : entries[1][3]] == "DEADLINE: <2025-01-31 Fri>"

    def test_is_planning_line(self):
        assert is_planning_line("SCHEDULED: <2025-01-10 Fri>")
        assert is_planning_line("  DEADLINE: <2025-01-10 Fri>")
        assert not is_planning_line("Meeting SCHEDULED: later")


class TestReadPlanning:
    """Tests for reading a heading's planning entries."""

    def test_read(self):
        lines = [
            "* TODO Report",
            "SCHEDULED: <2025-01-10 Fri +1w>",
            "DEADLINE: <2025-01-31 Fri>",
            "** Child",
            "SCHEDULED: <2030-01-01 Tue>",
        ]
        planning = read_planning(lines, get_heading(lines, 1))

        assert planning.scheduled.date == date(2025, 1, 10)
        assert planning.scheduled.repeater == Repeater(RepeaterUnit.WEEK)
        assert planning.scheduled.line == 2
        assert planning.deadline.date == date(2025, 1, 31)
        assert planning.get("DEADLINE") is planning.deadline

    def test_child_planning_not_read(self):
        """Only the heading's own content is searched."""
        lines = ["* TODO Parent", "** Child", "SCHEDULED: <2030-01-01 Tue>"]
        planning = read_planning(lines, get_heading(lines, 1))

        assert planning.scheduled is None


class TestDateArithmetic:
    """Tests for intervals and repeater advancement."""

    def test_month_end_clamps(self):
        assert add_interval(date(2025, 1, 31), RepeaterUnit.MONTH, 1) == date(2025, 2, 28)
        assert add_interval(date(2024, 2, 29), RepeaterUnit.YEAR, 1) == date(2025, 2, 28)
        assert add_interval(date(2025, 11, 15), RepeaterUnit.MONTH, 3) == date(2026, 2, 15)

    def test_plus_anchor_moves_from_current(self):
        """"+" steps once from the current date, even if that stays in the past."""
        repeater = parse_repeater("+1w")

        assert advance(date(2025, 1, 6), repeater, date(2025, 1, 30)) == date(2025, 1, 13)

    def test_dot_plus_anchor_moves_from_completion(self):
        repeater = parse_repeater(".+1w")

        assert advance(date(2025, 1, 6), repeater, date(2025, 1, 30)) == date(2025, 2, 6)

    def test_plus_plus_anchor_catches_up(self):
        """"++" keeps stepping until the date is after completion."""
        repeater = parse_repeater("++1w")

        assert advance(date(2025, 1, 6), repeater, date(2025, 1, 30)) == date(2025, 2, 3)

    def test_valid_dates(self):
        assert is_valid_date("2025-01-10")
        assert not is_valid_date("2025-02-30")
        assert not is_valid_date("10/01/2025")
        assert not is_valid_date("")

    def test_overdue(self):
        assert days_between(date(2025, 1, 1), date(2025, 1, 11)) == 10
        assert is_overdue(date(2025, 1, 1), today=date(2025, 1, 2))
        assert not is_overdue(date(2025, 1, 1), today=date(2025, 1, 2), grace_days=1)
        assert not is_overdue(date(2025, 1, 2), today=date(2025, 1, 2))
