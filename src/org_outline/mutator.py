"""Heading-level edits: state keyword, tags, planning dates, completion.

Each function re-derives the heading from the lines it is given and returns
an Edit. Composite operations chain Edits with Edit.then(), re-reading the
heading after each step instead of reusing ranges computed before it.
"""

import re
from datetime import date
from typing import Iterable, Optional, Union

from org_outline.edit import Edit, delete_lines, insert_lines, replace_line
from org_outline.errors import MalformedStructure
from org_outline.headings import DEFAULT_KEYWORDS, TAGS_RE, get_heading, split_heading
from org_outline.planning import (
    Repeater,
    advance,
    format_date,
    planning_entries,
    planning_line,
    planning_line_numbers,
    read_planning,
)
from org_outline.properties import block_insert_position, content_start


CLEAR = "clear"

DateValue = Union[date, str, None]

_TAG_CHARS_FORBIDDEN = (":", " ", "\t")
_STATE_RE = re.compile(r"^(\S+)(?:\s+|$)(.*)$")


def _split_state(rest: str, keywords: Iterable[str]) -> tuple[Optional[str], str]:
    """Split the text after the stars into (state, remainder)."""
    match = _STATE_RE.match(rest)
    if match and match.group(1) in set(keywords):
        return match.group(1), match.group(2)
    return None, rest


def set_state(
    lines: list[str],
    heading_line: int,
    new_state: Optional[str],
    keywords: Iterable[str] = DEFAULT_KEYWORDS,
) -> Edit:
    """Set, replace or remove the state keyword of a heading.

    Only the state token on the heading line changes; title, tags and every
    other line are left alone.

    Args:
        lines: Document lines
        heading_line: Line number of the heading
        new_state: Keyword from the configured set, or None to remove the state
        keywords: Closed set of state keywords

    Raises:
        ValueError: If new_state is not a known keyword
        MalformedStructure: If heading_line is not a heading

    Examples:
        >>> set_state(["* TODO Buy milk"], 1, "NEXT").lines
        ['* NEXT Buy milk']
    """
    keywords = tuple(keywords)
    if new_state is not None and new_state not in keywords:
        raise ValueError(f"Unknown state keyword: {new_state} (valid: {', '.join(keywords)})")

    get_heading(lines, heading_line, keywords)
    stars, sep, rest = split_heading(lines[heading_line - 1])
    _old_state, remainder = _split_state(rest, keywords)

    parts = [p for p in (new_state, remainder) if p]
    return replace_line(lines, heading_line, f"{stars}{sep}{' '.join(parts)}")


def format_tags(tags: Iterable[str]) -> str:
    """Format tags as an org tag block, e.g. ":home:errand:"."""
    tags = list(tags)
    for tag in tags:
        if not tag or any(ch in tag for ch in _TAG_CHARS_FORBIDDEN):
            raise ValueError(f"Invalid tag: {tag!r}")
    return f":{':'.join(tags)}:" if tags else ""


def set_tags(
    lines: list[str],
    heading_line: int,
    tags: Iterable[str],
    keywords: Iterable[str] = DEFAULT_KEYWORDS,
) -> Edit:
    """Replace the trailing tag block of a heading (empty tags remove it).

    New tags are separated from the title by two spaces; an existing
    separator is kept.

    Raises:
        ValueError: If a tag is empty or contains whitespace or a colon
    """
    get_heading(lines, heading_line, keywords)
    block = format_tags(tags)
    stars, sep, rest = split_heading(lines[heading_line - 1])

    match = TAGS_RE.search(rest)
    if match:
        base = rest[: match.start()]
        separator = rest[match.start() : match.start(1)]
    else:
        base = rest.rstrip()
        separator = "  " if base else ""

    new_rest = f"{base}{separator}{block}" if block else base.rstrip()
    return replace_line(lines, heading_line, f"{stars}{sep}{new_rest}")


def add_tag(
    lines: list[str], heading_line: int, tag: str, keywords: Iterable[str] = DEFAULT_KEYWORDS
) -> Edit:
    """Append a tag if the heading doesn't carry it yet."""
    heading = get_heading(lines, heading_line, keywords)
    if tag in heading.tags:
        return Edit.unchanged(lines)
    return set_tags(lines, heading_line, list(heading.tags) + [tag], keywords)


def _coerce_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Expected a YYYY-MM-DD date or {CLEAR!r}, got {value!r}") from e


def _find_entry(lines: list[str], heading_line: int, keyword: str):
    heading = get_heading(lines, heading_line)
    for n in planning_line_numbers(lines, heading):
        for entry_keyword, _stamp, start, end in planning_entries(lines[n - 1]):
            if entry_keyword == keyword:
                return heading, n, start, end
    return heading, None, None, None


def _apply_planning(
    lines: list[str],
    heading_line: int,
    keyword: str,
    value: DateValue,
    repeater: Optional[Repeater],
) -> Edit:
    heading, n, start, end = _find_entry(lines, heading_line, keyword)

    if value == CLEAR:
        if n is None:
            return Edit.unchanged(lines)
        text = lines[n - 1]
        remaining = (text[:start] + text[end:]).strip()
        if not remaining:
            return delete_lines(lines, n, n)
        indent = text[: len(text) - len(text.lstrip())]
        return replace_line(lines, n, indent + " ".join(remaining.split()))

    new_date = _coerce_date(value)
    if n is not None:
        text = lines[n - 1]
        segment = f"{keyword}: {format_date(new_date, repeater)}"
        return replace_line(lines, n, text[:start] + segment + text[end:])

    # SCHEDULED leads the planning lines, DEADLINE follows them
    if keyword == "SCHEDULED":
        at = heading.line + 1
    else:
        at = block_insert_position(lines, heading)
    return insert_lines(lines, at, [planning_line(keyword, new_date, repeater)])


def set_planning(
    lines: list[str],
    heading_line: int,
    scheduled: DateValue = None,
    deadline: DateValue = None,
    *,
    scheduled_repeater: Optional[Repeater] = None,
    deadline_repeater: Optional[Repeater] = None,
) -> Edit:
    """Set or clear SCHEDULED and DEADLINE entries of a heading.

    Each of scheduled/deadline is one of:
    - None: leave the entry untouched
    - CLEAR ("clear"): remove the entry (and its line, if nothing else is on it)
    - a date or "YYYY-MM-DD" string: replace the entry, or insert a new
      planning line right after the heading (before the properties block)

    A new value replaces the whole timestamp, so pass the repeater again to
    keep one.

    Returns:
        Edit with the new lines and the line-count delta
    """
    edit = Edit.unchanged(lines)
    if scheduled is not None:
        edit = edit.then(
            _apply_planning(edit.lines, heading_line, "SCHEDULED", scheduled, scheduled_repeater)
        )
    if deadline is not None:
        edit = edit.then(
            _apply_planning(edit.lines, heading_line, "DEADLINE", deadline, deadline_repeater)
        )
    return edit


def complete(
    lines: list[str],
    heading_line: int,
    completed_on: date,
    keywords: Iterable[str] = DEFAULT_KEYWORDS,
    done_state: str = "DONE",
) -> Edit:
    """Mark a heading complete.

    Repeating entries (those with a repeater) move to their next date according
    to the anchor mode and the state is left as it is, so the task comes back.
    A heading without repeaters switches to done_state.
    """
    keywords = tuple(keywords)
    heading = get_heading(lines, heading_line, keywords)
    planning = read_planning(lines, heading)

    repeating = {
        entry.keyword: entry
        for entry in (planning.scheduled, planning.deadline)
        if entry is not None and entry.repeater is not None
    }
    if not repeating:
        return set_state(lines, heading_line, done_state, keywords)

    kwargs = {}
    for keyword, entry in repeating.items():
        prefix = keyword.lower()
        kwargs[prefix] = advance(entry.date, entry.repeater, completed_on)
        kwargs[f"{prefix}_repeater"] = entry.repeater
    return set_planning(lines, heading_line, **kwargs)


def append_note(lines: list[str], heading_line: int, text: str) -> Edit:
    """Insert a note at the top of a heading's content, after its metadata.

    A blank line is added after the note when the following line has text.
    """
    if not text.strip():
        return Edit.unchanged(lines)
    heading = get_heading(lines, heading_line)
    at = content_start(lines, heading)
    note = text.split("\n")
    follows = lines[at - 1] if at <= heading.body_end else ""
    if follows.strip():
        note.append("")
    return insert_lines(lines, at, note)


def promote_line(lines: list[str], line_no: int, state: str = "TODO") -> Edit:
    """Turn a plain text line into a level-1 heading with a state.

    Raises:
        MalformedStructure: If the line is already a heading
    """
    text = lines[line_no - 1]
    if split_heading(text) is not None:
        raise MalformedStructure("Line is already a heading", line=line_no)
    title = text.strip() or "New Task"
    return replace_line(lines, line_no, f"* {state} {title}")
