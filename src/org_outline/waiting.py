"""WAITING metadata: who a task is blocked on and when to chase them.

The record lives in the properties block, one key per field, and is mirrored
by a plain-text summary at the top of the heading's content:

    * WAITING Contract draft
    :PROPERTIES:
    :WAITING_FOR: Alice
    :WAITING_WHAT: Signed contract
    :REQUESTED: 2025-01-10
    :CONTEXT: email
    :END:

    Waiting for: Alice
    Expecting: Signed contract
    Requested: 2025-01-10 via email

The summary is regenerated on every encode and located again by its
"Waiting for:" first line, so it is never duplicated.
"""

from dataclasses import dataclass, fields
from datetime import date
from typing import Optional

from org_outline.edit import Edit, delete_lines, insert_lines
from org_outline.errors import MalformedStructure
from org_outline.headings import get_heading
from org_outline.planning import is_valid_date
from org_outline.properties import content_start, delete_property, read_block, set_property


SUMMARY_MARKER = "Waiting for:"

CHANNELS: tuple[str, ...] = (
    "email",
    "phone",
    "meeting",
    "text",
    "slack",
    "teams",
    "verbal",
    "letter",
    "other",
)
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")

# Field name -> properties key, in write order
WAITING_KEYS: dict[str, str] = {
    "who": "WAITING_FOR",
    "what": "WAITING_WHAT",
    "requested_on": "REQUESTED",
    "follow_up_on": "FOLLOW_UP",
    "channel": "CONTEXT",
    "priority": "PRIORITY",
    "notes": "WAITING_NOTES",
}

_DATE_FIELDS = ("requested_on", "follow_up_on")


@dataclass(frozen=True)
class WaitingRecord:
    """Structured WAITING metadata.

    Every field is optional. None means the key is absent; an empty string
    means the key is present with no value. Workflows branch on the
    difference (no follow-up date yet prompts for one).
    """

    who: Optional[str] = None
    what: Optional[str] = None
    requested_on: Optional[date] = None
    follow_up_on: Optional[date] = None
    channel: Optional[str] = None
    priority: Optional[str] = None
    notes: Optional[str] = None

    def is_empty(self) -> bool:
        """True when no field is set."""
        return all(getattr(self, f.name) is None for f in fields(self))


def summary_lines(record: WaitingRecord) -> list[str]:
    """Body summary for a record, starting with a blank separator line.

    Examples:
        >>> summary_lines(WaitingRecord(who="Alice", channel="email"))
        ['', 'Waiting for: Alice', 'Requested: via email']
    """
    result = ["", f"{SUMMARY_MARKER} {record.who or ''}".rstrip()]
    if record.what:
        result.append(f"Expecting: {record.what}")
    if record.requested_on or record.channel:
        requested = record.requested_on.isoformat() if record.requested_on else ""
        via = f"via {record.channel}" if record.channel else ""
        result.append(" ".join(p for p in ("Requested:", requested, via) if p))
    if record.follow_up_on:
        result.append(f"Follow up: {record.follow_up_on.isoformat()}")
    if record.priority:
        result.append(f"Priority: {record.priority}")
    if record.notes:
        result.append(f"Notes: {record.notes}")
    return result


def _find_summary(lines: list[str], heading_line: int) -> Optional[tuple[int, int]]:
    """Locate the summary (and its leading blank line) in a heading's content."""
    heading = get_heading(lines, heading_line)
    first = content_start(lines, heading)
    for n in range(first, heading.body_end + 1):
        if not lines[n - 1].startswith(SUMMARY_MARKER):
            continue
        end = n
        while end + 1 <= heading.body_end and lines[end].strip():
            end += 1
        start = n - 1 if n - 1 >= first and not lines[n - 2].strip() else n
        return start, end
    return None


def _remove_summary(lines: list[str], heading_line: int) -> Edit:
    span = _find_summary(lines, heading_line)
    if span is None:
        return Edit.unchanged(lines)
    return delete_lines(lines, *span)


def _store_value(value) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return value


def encode(lines: list[str], heading_line: int, record: WaitingRecord) -> Edit:
    """Write a WaitingRecord into a heading.

    Set fields are upserted, absent fields have their keys deleted, and the
    body summary is replaced. Encoding the same record twice yields the same
    lines.

    Args:
        lines: Document lines
        heading_line: Line number of the heading
        record: Metadata to store

    Returns:
        Edit with the new lines and the line-count delta
    """
    edit = Edit.unchanged(lines)
    for name, key in WAITING_KEYS.items():
        value = getattr(record, name)
        if value is None:
            edit = edit.then(delete_property(edit.lines, heading_line, key))
        else:
            edit = edit.then(set_property(edit.lines, heading_line, key, _store_value(value)))

    edit = edit.then(_remove_summary(edit.lines, heading_line))
    if record.is_empty():
        return edit

    summary = summary_lines(record)
    heading = get_heading(edit.lines, heading_line)
    at = content_start(edit.lines, heading)
    if at <= heading.body_end and edit.lines[at - 1].strip():
        summary.append("")
    return edit.then(insert_lines(edit.lines, at, summary))


def _parse_stored_date(key: str, value: str, line: int) -> date:
    if not is_valid_date(value):
        raise MalformedStructure(f"Invalid date for {key}: {value!r}", line=line)
    return date.fromisoformat(value)


def decode(lines: list[str], heading_line: int) -> WaitingRecord:
    """Read a WaitingRecord from a heading's properties block.

    Raises:
        MalformedStructure: If a date key holds something other than YYYY-MM-DD
    """
    block = read_block(lines, heading_line)
    values = {}
    for name, key in WAITING_KEYS.items():
        entry = block.entry(key)
        if entry is None:
            values[name] = None
        elif name in _DATE_FIELDS:
            values[name] = _parse_stored_date(key, entry.value, entry.line)
        else:
            values[name] = entry.value
    return WaitingRecord(**values)


def clear(lines: list[str], heading_line: int) -> Edit:
    """Remove every WAITING key and the body summary from a heading."""
    return encode(lines, heading_line, WaitingRecord())


def is_follow_up_due(record: WaitingRecord, today: Optional[date] = None) -> bool:
    """Check if the follow-up date has arrived (False when none is set)."""
    if record.follow_up_on is None:
        return False
    return record.follow_up_on <= (today or date.today())
