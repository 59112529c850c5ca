"""Recurring-task metadata and its mapping onto planning repeaters.

Properties written for a recurring heading:

    :RECUR: weekly
    :RECUR_INTERVAL: 1
    :RECUR_FROM: completion
    :RECUR_DAY: monday
    :RECUR_CREATED: 2025-01-06

The properties describe the recurrence; the SCHEDULED repeater is what
actually makes the task come back, and repeater_for() derives one from the
other.

Weekdays use date.weekday() numbering (Monday = 0) throughout.
"""

from dataclasses import dataclass, fields, replace
from datetime import date, timedelta
from enum import Enum, IntEnum
from typing import Optional

from org_outline.edit import Edit
from org_outline.errors import MalformedStructure
from org_outline.mutator import add_tag, set_planning
from org_outline.planning import AnchorMode, Repeater, RepeaterUnit, is_valid_date
from org_outline.properties import delete_property, read_block, set_property


RECURRING_TAG = "recurring"


class Frequency(str, Enum):
    """How often a recurring task comes back."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class Weekday(IntEnum):
    """Weekday numbered like date.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, text: str) -> "Weekday":
        """Parse a weekday name ("monday", "Mon", ...), case-insensitively."""
        key = text.strip().lower()
        for day in cls:
            if day.name.lower() == key or day.name.lower()[:3] == key:
                return day
        raise ValueError(f"Unknown weekday: {text!r}")


class RecurFrom(str, Enum):
    """Reference date a recurrence is computed from."""

    SCHEDULED = "scheduled"
    COMPLETION = "completion"
    DEADLINE = "deadline"

    @property
    def anchor(self) -> AnchorMode:
        return _ANCHORS[self]


_ANCHORS = {
    RecurFrom.SCHEDULED: AnchorMode.SCHEDULED,
    RecurFrom.COMPLETION: AnchorMode.COMPLETION,
    RecurFrom.DEADLINE: AnchorMode.DEADLINE,
}

# Frequency -> (unit, multiplier applied to the interval)
_FREQUENCY_UNITS = {
    Frequency.DAILY: (RepeaterUnit.DAY, 1),
    Frequency.WEEKLY: (RepeaterUnit.WEEK, 1),
    Frequency.BIWEEKLY: (RepeaterUnit.WEEK, 2),
    Frequency.MONTHLY: (RepeaterUnit.MONTH, 1),
    Frequency.QUARTERLY: (RepeaterUnit.MONTH, 3),
    Frequency.YEARLY: (RepeaterUnit.YEAR, 1),
}

RECUR_KEYS: dict[str, str] = {
    "frequency": "RECUR",
    "interval": "RECUR_INTERVAL",
    "anchor": "RECUR_FROM",
    "preferred_weekday": "RECUR_DAY",
    "created_on": "RECUR_CREATED",
}


@dataclass(frozen=True)
class RecurringRecord:
    """Structured recurrence metadata; every field is optional.

    Attributes:
        frequency: Base frequency
        interval: Multiplier on the frequency (every N days/weeks/...)
        anchor: Which date the next occurrence is computed from
        preferred_weekday: Day the task should land on, if any
        created_on: Date the recurrence was set up
    """

    frequency: Optional[Frequency] = None
    interval: Optional[int] = None
    anchor: Optional[RecurFrom] = None
    preferred_weekday: Optional[Weekday] = None
    created_on: Optional[date] = None

    def __post_init__(self):
        if self.interval is not None and self.interval < 1:
            raise ValueError(f"Recurrence interval must be >= 1, got {self.interval}")

    @classmethod
    def create(
        cls,
        frequency: Frequency = Frequency.WEEKLY,
        interval: int = 1,
        anchor: RecurFrom = RecurFrom.SCHEDULED,
        preferred_weekday: Optional[Weekday] = None,
        today: Optional[date] = None,
    ) -> "RecurringRecord":
        """New record with defaults filled in and created_on stamped."""
        return cls(
            frequency=Frequency(frequency),
            interval=interval,
            anchor=RecurFrom(anchor),
            preferred_weekday=preferred_weekday,
            created_on=today or date.today(),
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def repeater_for(record: RecurringRecord) -> Repeater:
    """Planning repeater matching a record.

    Missing fields fall back to weekly, every 1, from the scheduled date.

    Examples:
        >>> str(repeater_for(RecurringRecord(Frequency.BIWEEKLY, anchor=RecurFrom.COMPLETION)))
        '.+2w'
    """
    frequency = record.frequency or Frequency.WEEKLY
    unit, multiplier = _FREQUENCY_UNITS[frequency]
    interval = (record.interval or 1) * multiplier
    anchor = (record.anchor or RecurFrom.SCHEDULED).anchor
    return Repeater(unit=unit, interval=interval, anchor=anchor)


def next_occurrence(
    frequency: Optional[Frequency] = None,
    preferred_weekday: Optional[Weekday] = None,
    interval: int = 1,
    today: Optional[date] = None,
) -> date:
    """First date a new recurring task should be scheduled for.

    Without a preferred weekday this is today. With one, it is the first date
    on or after today falling on that weekday (never more than six days out).
    Frequency and interval shape the repeater, not the first date.
    """
    today = today or date.today()
    if preferred_weekday is None:
        return today
    days_ahead = (int(preferred_weekday) - today.weekday()) % 7
    return today + timedelta(days=days_ahead)


def _store_value(name: str, value) -> str:
    if name == "preferred_weekday":
        return value.name.lower()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def encode(lines: list[str], heading_line: int, record: RecurringRecord) -> Edit:
    """Write a RecurringRecord into a heading's properties block.

    Set fields are upserted and absent fields have their keys deleted.
    """
    edit = Edit.unchanged(lines)
    for name, key in RECUR_KEYS.items():
        value = getattr(record, name)
        if value is None:
            edit = edit.then(delete_property(edit.lines, heading_line, key))
        else:
            edit = edit.then(
                set_property(edit.lines, heading_line, key, _store_value(name, value))
            )
    return edit


def _parse_value(name: str, key: str, text: str, line: int):
    try:
        if name == "frequency":
            return Frequency(text.lower())
        if name == "interval":
            interval = int(text)
            if interval < 1:
                raise ValueError("interval must be >= 1")
            return interval
        if name == "anchor":
            return RecurFrom(text.lower())
        if name == "preferred_weekday":
            return Weekday.parse(text)
        if not is_valid_date(text):
            raise ValueError("expected YYYY-MM-DD")
        return date.fromisoformat(text)
    except ValueError as e:
        raise MalformedStructure(f"Invalid value for {key}: {text!r} ({e})", line=line) from e


def decode(lines: list[str], heading_line: int) -> RecurringRecord:
    """Read a RecurringRecord from a heading's properties block.

    Absent keys decode to None.

    Raises:
        MalformedStructure: If a key is present but its value can't be parsed
            (an empty value included)
    """
    block = read_block(lines, heading_line)
    values = {}
    for name, key in RECUR_KEYS.items():
        entry = block.entry(key)
        values[name] = None if entry is None else _parse_value(name, key, entry.value, entry.line)
    return RecurringRecord(**values)


def schedule(
    lines: list[str],
    heading_line: int,
    record: RecurringRecord,
    today: Optional[date] = None,
) -> Edit:
    """Turn a heading into a recurring task.

    Stores the record, schedules the first occurrence with the matching
    repeater and adds the "recurring" tag. created_on is stamped when the
    record doesn't carry one.
    """
    today = today or date.today()
    if record.created_on is None:
        record = replace(record, created_on=today)

    first = next_occurrence(
        record.frequency, record.preferred_weekday, record.interval or 1, today=today
    )
    edit = add_tag(lines, heading_line, RECURRING_TAG)
    edit = edit.then(
        set_planning(edit.lines, heading_line, first, scheduled_repeater=repeater_for(record))
    )
    return edit.then(encode(edit.lines, heading_line, record))
