"""Planning annotations: SCHEDULED/DEADLINE timestamps and repeaters.

Timestamps use the org form <YYYY-MM-DD Wkd> with an optional repeater:

    SCHEDULED: <2025-01-10 Fri>
    DEADLINE: <2025-01-31 Fri +1m>

Repeater anchor modes are not interchangeable:

- "+"  recompute from the originally scheduled date (slips if missed)
- ".+" recompute from the completion date
- "++" recompute from the scheduled/deadline date, catching up past today

The weekday is always computed from the calendar date; a weekday found in
input text is ignored so a stale name can never propagate.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from org_outline.errors import MalformedStructure
from org_outline.headings import Heading


# Indexed by date.weekday() (Monday = 0), the only weekday numbering used here
WEEKDAY_ABBREVIATIONS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

PLANNING_KEYWORDS: tuple[str, ...] = ("SCHEDULED", "DEADLINE", "CLOSED")

_REPEATER_RE = re.compile(r"^(\.\+|\+\+|\+)(\d+)([dwmy])$")
_TIMESTAMP_RE = re.compile(
    r"<(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:\s+[^\s\d<>+.-][^\s<>]*)?"  # weekday name, ignored
    r"(?:\s+\d{1,2}:\d{2}(?:-\d{1,2}:\d{2})?)?"
    r"(?:\s+(?P<repeater>(?:\.\+|\+\+|\+)\d+[dwmy]))?"
    r"(?:\s+-{1,2}\d+[dwmy])?"  # warning delay, ignored
    r"\s*>"
)
_PLANNING_LINE_RE = re.compile(r"^\s*(?:SCHEDULED|DEADLINE|CLOSED):")
_ENTRY_RE = re.compile(r"(SCHEDULED|DEADLINE|CLOSED):\s*(<[^>]*>|\[[^\]]*\])")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class RepeaterUnit(str, Enum):
    """Repeater interval unit and its one-letter code."""

    DAY = "d"
    WEEK = "w"
    MONTH = "m"
    YEAR = "y"


class AnchorMode(str, Enum):
    """Which reference date a repeater recomputes from, and its prefix."""

    SCHEDULED = "+"
    COMPLETION = ".+"
    DEADLINE = "++"


@dataclass(frozen=True)
class Repeater:
    """Recurrence descriptor attached to a timestamp.

    Attributes:
        unit: Interval unit
        interval: Number of units between occurrences (>= 1)
        anchor: Anchor mode
    """

    unit: RepeaterUnit
    interval: int = 1
    anchor: AnchorMode = AnchorMode.SCHEDULED

    def __post_init__(self):
        if self.interval < 1:
            raise ValueError(f"Repeater interval must be >= 1, got {self.interval}")

    def __str__(self) -> str:
        return format_repeater(self)


@dataclass(frozen=True)
class PlanningEntry:
    """One SCHEDULED or DEADLINE entry found in a document.

    Attributes:
        keyword: "SCHEDULED" or "DEADLINE"
        date: Calendar date
        repeater: Repeater, if any
        line: 1-indexed line the entry was read from
    """

    keyword: str
    date: date
    repeater: Optional[Repeater]
    line: int


@dataclass(frozen=True)
class Planning:
    """Planning entries of one heading."""

    scheduled: Optional[PlanningEntry] = None
    deadline: Optional[PlanningEntry] = None

    def get(self, keyword: str) -> Optional[PlanningEntry]:
        """Look up an entry by keyword."""
        if keyword == "SCHEDULED":
            return self.scheduled
        if keyword == "DEADLINE":
            return self.deadline
        raise ValueError(f"Unknown planning keyword: {keyword}")


def format_repeater(repeater: Repeater) -> str:
    """Format a repeater token, e.g. ".+2w"."""
    return f"{repeater.anchor.value}{repeater.interval}{repeater.unit.value}"


def parse_repeater(token: str) -> Optional[Repeater]:
    """Parse a repeater token like "+1w", ".+3d" or "++1m".

    Returns:
        Repeater, or None if the token doesn't match
    """
    match = _REPEATER_RE.match(token.strip())
    if not match:
        return None
    return Repeater(
        unit=RepeaterUnit(match.group(3)),
        interval=int(match.group(2)),
        anchor=AnchorMode(match.group(1)),
    )


def weekday_name(d: date) -> str:
    """English three-letter weekday abbreviation for a date."""
    return WEEKDAY_ABBREVIATIONS[d.weekday()]


def format_date(d: date, repeater: Optional[Repeater] = None) -> str:
    """Format a date as an active org timestamp.

    Examples:
        >>> format_date(date(2025, 1, 10))
        '<2025-01-10 Fri>'
        >>> format_date(date(2025, 1, 10), Repeater(RepeaterUnit.WEEK, 1, AnchorMode.COMPLETION))
        '<2025-01-10 Fri .+1w>'
    """
    stamp = f"{d.isoformat()} {weekday_name(d)}"
    if repeater is not None:
        stamp = f"{stamp} {format_repeater(repeater)}"
    return f"<{stamp}>"


def parse_date(text: str) -> Optional[tuple[date, Optional[Repeater]]]:
    """Parse the first active timestamp in a string.

    Accepts a bare timestamp or a whole planning line. The weekday name in the
    input is ignored; a time of day is tolerated and dropped.

    Returns:
        (date, repeater) tuple, or None if no timestamp is present

    Raises:
        MalformedStructure: If the timestamp names an impossible calendar date
    """
    match = _TIMESTAMP_RE.search(text)
    if not match:
        return None
    try:
        d = date(int(match.group("year")), int(match.group("month")), int(match.group("day")))
    except ValueError as e:
        raise MalformedStructure(f"Invalid date in timestamp {match.group(0)!r}: {e}") from e
    token = match.group("repeater")
    return d, parse_repeater(token) if token else None


def planning_line(keyword: str, d: date, repeater: Optional[Repeater] = None) -> str:
    """Build a planning line, e.g. "SCHEDULED: <2025-01-10 Fri>"."""
    if keyword not in ("SCHEDULED", "DEADLINE"):
        raise ValueError(f"Unknown planning keyword: {keyword}")
    return f"{keyword}: {format_date(d, repeater)}"


def is_planning_line(text: str) -> bool:
    """Check if a line starts with SCHEDULED:, DEADLINE: or CLOSED:."""
    return _PLANNING_LINE_RE.match(text) is not None


def planning_entries(text: str) -> list[tuple[str, str, int, int]]:
    """List the keyword entries on one planning line.

    Returns:
        (keyword, timestamp_text, start, end) per entry, where start/end are
        character offsets of the whole "KEYWORD: <...>" segment
    """
    return [(m.group(1), m.group(2), m.start(), m.end()) for m in _ENTRY_RE.finditer(text)]


def planning_line_numbers(lines: list[str], heading: Heading) -> list[int]:
    """Line numbers of planning lines in a heading's own content."""
    return [
        n
        for n in range(heading.line + 1, heading.body_end + 1)
        if is_planning_line(lines[n - 1])
    ]


def read_planning(lines: list[str], heading: Heading) -> Planning:
    """Read SCHEDULED and DEADLINE entries of a heading.

    The first occurrence of each keyword in the heading's own content wins.
    """
    found: dict[str, PlanningEntry] = {}
    for n in planning_line_numbers(lines, heading):
        for keyword, stamp, _start, _end in planning_entries(lines[n - 1]):
            if keyword == "CLOSED" or keyword in found:
                continue
            parsed = parse_date(stamp)
            if parsed is None:
                raise MalformedStructure(f"Unreadable {keyword} timestamp: {stamp}", line=n)
            found[keyword] = PlanningEntry(keyword, parsed[0], parsed[1], n)
    return Planning(scheduled=found.get("SCHEDULED"), deadline=found.get("DEADLINE"))


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_interval(d: date, unit: RepeaterUnit, count: int) -> date:
    """Shift a date by count units; month and year steps clamp to month end."""
    if unit is RepeaterUnit.DAY:
        return d + timedelta(days=count)
    if unit is RepeaterUnit.WEEK:
        return d + timedelta(weeks=count)
    if unit is RepeaterUnit.MONTH:
        return _add_months(d, count)
    return _add_months(d, 12 * count)


def advance(current: date, repeater: Repeater, completed_on: date) -> date:
    """Next date of a repeating entry once the task is completed.

    Args:
        current: Date currently on the entry
        repeater: The entry's repeater
        completed_on: Date the task was completed

    Returns:
        New date for the entry, per the repeater's anchor mode
    """
    if repeater.anchor is AnchorMode.COMPLETION:
        return add_interval(completed_on, repeater.unit, repeater.interval)

    steps = 1
    next_date = add_interval(current, repeater.unit, repeater.interval)
    if repeater.anchor is AnchorMode.DEADLINE:
        while next_date <= completed_on:
            steps += 1
            next_date = add_interval(current, repeater.unit, repeater.interval * steps)
    return next_date


def is_valid_date(text: str) -> bool:
    """Check if a string is a real YYYY-MM-DD calendar date."""
    if not _ISO_DATE_RE.match(text or ""):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end."""
    return (end - start).days


def is_overdue(d: date, today: Optional[date] = None, grace_days: int = 0) -> bool:
    """Check if a date lies more than grace_days before today."""
    today = today or date.today()
    return days_between(d, today) > grace_days
