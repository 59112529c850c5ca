"""Properties block access for headings.

A properties block sits directly under a heading (after any planning lines)
and looks like:

    * TODO Call Bob
    SCHEDULED: <2025-01-10 Fri>
    :PROPERTIES:
    :TASK_ID: 20250110093000-4f1c
    :CONTEXT: phone
    :END:

IMPORTANT: Key order is preserved exactly. New keys are appended just before
:END:, existing keys are rewritten in place, and keys are matched
case-insensitively.
"""

import re
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from org_outline.edit import Edit, delete_lines, insert_lines, replace_line
from org_outline.errors import MalformedStructure
from org_outline.headings import DEFAULT_KEYWORDS, Heading, get_heading, index
from org_outline.planning import is_planning_line


PROPERTIES_OPEN = ":PROPERTIES:"
PROPERTIES_CLOSE = ":END:"

_OPEN_RE = re.compile(r"^\s*:PROPERTIES:\s*$", re.IGNORECASE)
_CLOSE_RE = re.compile(r"^\s*:END:\s*$", re.IGNORECASE)
_PROPERTY_RE = re.compile(r"^(\s*):([^:\s]+):(?:\s+(.*?))?\s*$")
_KEY_RE = re.compile(r"^[^:\s]+$")

HeadingRef = Union[Heading, int]


@dataclass(frozen=True)
class PropertyEntry:
    """One key/value line of a properties block."""

    key: str
    value: str
    line: int


class PropertiesBlock:
    """Ordered key/value view of a properties block.

    Keys are unique and case-insensitive; iteration follows file order. When
    a hand-edited block repeats a key, the first occurrence wins.

    Example:
        >>> block = PropertiesBlock([PropertyEntry("TASK_ID", "123", 3)])
        >>> block.get("task_id")
        '123'
        >>> block.get("CONTEXT") is None
        True
    """

    def __init__(self, entries: Optional[list[PropertyEntry]] = None, start: int = 0, end: int = 0):
        self.start = start
        self.end = end
        self._entries: dict[str, PropertyEntry] = {}
        for entry in entries or []:
            self._entries.setdefault(entry.key.upper(), entry)

    def get(self, key: str) -> Optional[str]:
        """Value for a key, None when absent ("" when present but empty)."""
        entry = self._entries.get(key.upper())
        return entry.value if entry else None

    def entry(self, key: str) -> Optional[PropertyEntry]:
        """Full entry (with line number) for a key."""
        return self._entries.get(key.upper())

    def keys(self) -> list[str]:
        return [e.key for e in self._entries.values()]

    def items(self) -> list[tuple[str, str]]:
        return [(e.key, e.value) for e in self._entries.values()]

    def __contains__(self, key: str) -> bool:
        return key.upper() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return self.end > 0

    def __repr__(self) -> str:
        return f"PropertiesBlock({self.items()!r}, start={self.start}, end={self.end})"


def format_property(key: str, value: str, indent: str = "") -> str:
    """Format one property line.

    Raises:
        ValueError: If the key or value can't be stored on a single property line
            and read back unchanged (line breaks, surrounding whitespace)
    """
    if not _KEY_RE.match(key):
        raise ValueError(f"Invalid property key: {key!r}")
    if "\n" in value or "\r" in value:
        raise ValueError(f"Property value for {key} must be a single line")
    if value != value.strip():
        raise ValueError(f"Property value for {key} has leading or trailing whitespace: {value!r}")
    if value == "":
        return f"{indent}:{key}:"
    return f"{indent}:{key}: {value}"


def parse_property(text: str) -> Optional[tuple[str, str]]:
    """Parse a ":KEY: value" line into (key, value), or None."""
    if _OPEN_RE.match(text) or _CLOSE_RE.match(text):
        return None
    match = _PROPERTY_RE.match(text)
    if not match:
        return None
    return match.group(2), match.group(3) or ""


def _resolve(lines: list[str], heading: HeadingRef) -> Heading:
    if isinstance(heading, Heading):
        return heading
    return get_heading(lines, heading)


def find_block(lines: list[str], heading: HeadingRef) -> Optional[tuple[int, int]]:
    """Locate the properties block of a heading.

    Scans from the line after the heading, skipping blank and planning lines,
    for the open marker; then scans the heading's own content for the close
    marker.

    Args:
        lines: Document lines
        heading: Heading or its line number

    Returns:
        (open_line, close_line), 1-indexed, or None if the heading has no block

    Raises:
        MalformedStructure: If the block is opened but never closed
    """
    heading = _resolve(lines, heading)
    n = heading.line + 1
    while n <= heading.body_end and (not lines[n - 1].strip() or is_planning_line(lines[n - 1])):
        n += 1
    if n > heading.body_end or not _OPEN_RE.match(lines[n - 1]):
        return None
    for close in range(n + 1, heading.body_end + 1):
        if _CLOSE_RE.match(lines[close - 1]):
            return n, close
    raise MalformedStructure("Unterminated properties block", line=n)


def read_block(lines: list[str], heading: HeadingRef) -> PropertiesBlock:
    """Read a heading's properties into an ordered PropertiesBlock.

    Returns an empty block (falsy) when the heading has none.
    """
    span = find_block(lines, heading)
    if span is None:
        return PropertiesBlock()
    start, end = span
    entries = []
    for n in range(start + 1, end):
        parsed = parse_property(lines[n - 1])
        if parsed:
            entries.append(PropertyEntry(parsed[0], parsed[1], n))
    return PropertiesBlock(entries, start=start, end=end)


def get(lines: list[str], heading: HeadingRef, key: str) -> Optional[str]:
    """Get one property value (None when absent)."""
    return read_block(lines, heading).get(key)


def block_insert_position(lines: list[str], heading: HeadingRef) -> int:
    """Line number where a new properties block goes.

    Walks the same run of blank and planning lines find_block() skips and
    lands after the last planning line in it, so planning always precedes
    the block. Without planning lines this is the line after the heading.
    """
    heading = _resolve(lines, heading)
    at = heading.line + 1
    n = heading.line + 1
    while n <= heading.body_end and (not lines[n - 1].strip() or is_planning_line(lines[n - 1])):
        if is_planning_line(lines[n - 1]):
            at = n + 1
        n += 1
    return at


def content_start(lines: list[str], heading: HeadingRef) -> int:
    """First line number after the heading's metadata (planning + block)."""
    heading = _resolve(lines, heading)
    span = find_block(lines, heading)
    if span is not None:
        return span[1] + 1
    return block_insert_position(lines, heading)


def set_property(lines: list[str], heading_line: int, key: str, value: str) -> Edit:
    """Set a property (upsert).

    - No block: one is created after the heading and its planning lines
    - Key present: its line is replaced in place (indent and key spelling kept)
    - Key absent: a new line is inserted just before :END:

    Setting the same value twice yields identical output.

    Returns:
        Edit with the new lines and the line-count delta
    """
    heading = get_heading(lines, heading_line)
    span = find_block(lines, heading)

    if span is None:
        at = block_insert_position(lines, heading)
        return insert_lines(
            lines, at, [PROPERTIES_OPEN, format_property(key, value), PROPERTIES_CLOSE]
        )

    start, end = span
    for n in range(start + 1, end):
        text = lines[n - 1]
        parsed = parse_property(text)
        if parsed and parsed[0].upper() == key.upper():
            indent = text[: len(text) - len(text.lstrip())]
            return replace_line(lines, n, format_property(parsed[0], value, indent))

    open_line = lines[start - 1]
    indent = open_line[: len(open_line) - len(open_line.lstrip())]
    return insert_lines(lines, end, [format_property(key, value, indent)])


def delete_property(lines: list[str], heading_line: int, key: str) -> Edit:
    """Delete a property line; a no-op (delta 0) when the key is absent.

    An emptied block is left in place.
    """
    heading = get_heading(lines, heading_line)
    entry = read_block(lines, heading).entry(key)
    if entry is None:
        return Edit.unchanged(lines)
    return delete_lines(lines, entry.line, entry.line)


def find_by_property(
    lines: list[str], key: str, value: str, keywords=DEFAULT_KEYWORDS
) -> Optional[Heading]:
    """First heading whose properties block holds key == value."""
    for heading in index(lines, keywords):
        if get(lines, heading, key) == value:
            return heading
    return None
