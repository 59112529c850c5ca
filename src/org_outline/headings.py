"""Heading index for org-style outline documents.

A heading is a line starting with one or more asterisks followed by
whitespace. The heading's subtree runs until the next heading whose level
is less than or equal to its own (or the end of the document).

This is the only place subtree boundaries are computed. Everything else in
the package asks this module for ranges instead of scanning on its own.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from org_outline.errors import MalformedStructure


DEFAULT_KEYWORDS: tuple[str, ...] = (
    "NEXT",
    "TODO",
    "WAITING",
    "SOMEDAY",
    "DONE",
    "PROJECT",
    "CANCELLED",
)

_HEADING_RE = re.compile(r"^(\*+)(\s+)(.*)$")
_FIRST_TOKEN_RE = re.compile(r"^(\S+)(?:\s+(.*))?$")
TAGS_RE = re.compile(r"(?:^|\s+)(:(?:[^\s:]+:)+)\s*$")


@dataclass(frozen=True)
class HeadingLine:
    """Parsed contents of a single heading line.

    Attributes:
        level: Number of leading asterisks
        state: State keyword, or None when the heading has no status yet
        title: Text between the state keyword and the tag block
        tags: Tags from the trailing :tag1:tag2: block
    """

    level: int
    state: Optional[str]
    title: str
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Heading:
    """One heading with its computed ranges.

    All line numbers are 1-indexed and refer to the line list the heading was
    indexed from. They are invalid once that list is mutated (see Edit.adjust).

    Attributes:
        line: Line number of the heading itself
        level: Number of leading asterisks
        state: State keyword or None
        title: Title text (state keyword and tags stripped)
        tags: Trailing tags
        end: Last line of the subtree (inclusive)
        body_end: Last line of the heading's own content, before its first child
    """

    line: int
    level: int
    state: Optional[str]
    title: str
    tags: tuple[str, ...]
    end: int
    body_end: int

    @property
    def subtree_range(self) -> tuple[int, int]:
        """Inclusive (start, end) range of the whole subtree."""
        return (self.line, self.end)

    @property
    def body_range(self) -> tuple[int, int]:
        """Inclusive (start, end) range of the heading's own content."""
        return (self.line, self.body_end)

    def contains(self, line_no: int) -> bool:
        """Check if a line number falls inside the subtree."""
        return self.line <= line_no <= self.end


def is_heading(text: str) -> bool:
    """Check if a line is a heading (asterisks followed by whitespace)."""
    return _HEADING_RE.match(text) is not None


def heading_level(text: str) -> Optional[int]:
    """Return the heading level of a line, or None if it isn't a heading."""
    match = _HEADING_RE.match(text)
    return len(match.group(1)) if match else None


def split_heading(text: str) -> Optional[tuple[str, str, str]]:
    """Split a heading line into (stars, separator, rest).

    Returns:
        Tuple of the asterisks, the whitespace after them, and the remainder,
        or None if the line is not a heading
    """
    match = _HEADING_RE.match(text)
    if not match:
        return None
    return match.group(1), match.group(2), match.group(3)


def parse_heading(
    text: str, keywords: Iterable[str] = DEFAULT_KEYWORDS
) -> Optional[HeadingLine]:
    """Parse a heading line into level, state, title and tags.

    Args:
        text: Line to parse
        keywords: Closed set of state keywords

    Returns:
        HeadingLine, or None if the line is not a heading

    Examples:
        >>> parse_heading("** TODO Call Bob  :phone:work:")
        HeadingLine(level=2, state='TODO', title='Call Bob', tags=('phone', 'work'))
        >>> parse_heading("*bold* text") is None
        True
    """
    parts = split_heading(text)
    if parts is None:
        return None
    stars, _sep, rest = parts

    state = None
    remainder = rest
    token = _FIRST_TOKEN_RE.match(rest)
    if token and token.group(1) in set(keywords):
        state = token.group(1)
        remainder = token.group(2) or ""

    tags: tuple[str, ...] = ()
    tag_match = TAGS_RE.search(remainder)
    if tag_match:
        tags = tuple(t for t in tag_match.group(1).split(":") if t)
        remainder = remainder[: tag_match.start()]

    return HeadingLine(level=len(stars), state=state, title=remainder.strip(), tags=tags)


def index(lines: list[str], keywords: Iterable[str] = DEFAULT_KEYWORDS) -> list[Heading]:
    """Index every heading in a document, in order.

    One forward pass with a stack of open headings: when a heading of level L
    arrives, every open heading of level >= L ends on the previous line.

    Args:
        lines: Document lines
        keywords: Closed set of state keywords

    Returns:
        Headings in document order (empty list when there are none)
    """
    keywords = tuple(keywords)
    parsed: list[tuple[int, HeadingLine]] = []
    for line_no, text in enumerate(lines, start=1):
        heading_line = parse_heading(text, keywords)
        if heading_line is not None:
            parsed.append((line_no, heading_line))

    total = len(lines)
    ends = [total] * len(parsed)
    body_ends = [total] * len(parsed)
    open_stack: list[int] = []  # indexes into parsed

    for pos, (line_no, heading_line) in enumerate(parsed):
        if pos > 0:
            body_ends[pos - 1] = line_no - 1
        while open_stack and parsed[open_stack[-1]][1].level >= heading_line.level:
            ends[open_stack.pop()] = line_no - 1
        open_stack.append(pos)

    return [
        Heading(
            line=line_no,
            level=h.level,
            state=h.state,
            title=h.title,
            tags=h.tags,
            end=ends[pos],
            body_end=body_ends[pos],
        )
        for pos, (line_no, h) in enumerate(parsed)
    ]


def get_heading(
    lines: list[str], line_no: int, keywords: Iterable[str] = DEFAULT_KEYWORDS
) -> Heading:
    """Get the heading that starts at a given line.

    Raises:
        MalformedStructure: If the line is not a heading
    """
    if 1 <= line_no <= len(lines):
        for heading in index(lines, keywords):
            if heading.line == line_no:
                return heading
    raise MalformedStructure("Line is not a heading", line=line_no)


def heading_at(
    lines: list[str], line_no: int, keywords: Iterable[str] = DEFAULT_KEYWORDS
) -> Optional[Heading]:
    """Find the heading whose own content contains a line.

    This is the nearest heading at or above the line (a cursor lookup).

    Returns:
        Heading, or None when the line precedes the first heading
    """
    found = None
    for heading in index(lines, keywords):
        if heading.line > line_no:
            break
        found = heading
    return found


def subtree_lines(lines: list[str], heading: Heading) -> list[str]:
    """Return a copy of the lines making up a heading's subtree."""
    return lines[heading.line - 1 : heading.end]
