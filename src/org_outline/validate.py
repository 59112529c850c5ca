"""Structure checks for outline documents.

check() reports problems without touching the document. Errors are things
the engine refuses to work around (an unterminated properties block, a
planning line with no heading); warnings are legacy or suspicious layouts
that still parse.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from org_outline.errors import MalformedStructure
from org_outline.headings import DEFAULT_KEYWORDS, Heading, index
from org_outline.planning import is_planning_line, parse_date, planning_entries
from org_outline.properties import find_block


ERROR = "error"
WARNING = "warning"

_OPEN_MARKER_RE = re.compile(r"^\s*:PROPERTIES:\s*$", re.IGNORECASE)
_GLUED_MARKER_RE = re.compile(r"^\*+([A-Z]+)\b")
_STATE_LIKE_RE = re.compile(r"^[A-Z]{4,}$")


@dataclass(frozen=True)
class Issue:
    """One problem found in a document.

    Attributes:
        severity: "error" or "warning"
        line: 1-indexed line the problem is on
        message: Human-readable description
        heading_line: Line of the heading it belongs to, if any
    """

    severity: str
    line: int
    message: str
    heading_line: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.line}: {self.severity}: {self.message}"


def _check_preamble(lines: list[str], first_heading: int) -> list[Issue]:
    issues = []
    for line_no in range(1, first_heading):
        if is_planning_line(lines[line_no - 1]):
            issues.append(Issue(ERROR, line_no, "Planning line before the first heading"))
    return issues


def _check_glued_markers(lines: list[str], keywords: tuple[str, ...]) -> list[Issue]:
    issues = []
    for line_no, text in enumerate(lines, start=1):
        match = _GLUED_MARKER_RE.match(text)
        if match and match.group(1) in keywords:
            issues.append(
                Issue(WARNING, line_no, "Heading marker without whitespace is not a heading")
            )
    return issues


def _check_heading(lines: list[str], heading: Heading, keywords: tuple[str, ...]) -> list[Issue]:
    issues = []

    def add(severity: str, line: int, message: str) -> None:
        issues.append(Issue(severity, line, message, heading.line))

    try:
        block = find_block(lines, heading)
    except MalformedStructure as e:
        add(ERROR, e.line or heading.line, e.message)
        block = None

    open_markers = [
        n
        for n in range(heading.line + 1, heading.body_end + 1)
        if _OPEN_MARKER_RE.match(lines[n - 1])
    ]
    if len(open_markers) > 1:
        found_at = ", ".join(str(n) for n in open_markers)
        add(ERROR, open_markers[1], f"Multiple properties blocks (lines {found_at})")

    seen: dict[str, list[int]] = {"SCHEDULED": [], "DEADLINE": []}
    scheduled_stamp = None
    for n in range(heading.line + 1, heading.body_end + 1):
        text = lines[n - 1]
        if not is_planning_line(text):
            continue
        if block is not None and n > block[1]:
            add(WARNING, n, "Planning line after the properties block")
        for keyword, stamp, _start, _end in planning_entries(text):
            if keyword not in seen:
                continue
            seen[keyword].append(n)
            try:
                parsed = parse_date(stamp)
            except MalformedStructure as e:
                add(ERROR, n, e.message)
                continue
            if parsed is None:
                add(ERROR, n, f"Unreadable {keyword} timestamp: {stamp}")
            elif keyword == "SCHEDULED" and scheduled_stamp is None:
                scheduled_stamp = parsed

    for keyword, found in seen.items():
        if len(found) > 1:
            found_at = ", ".join(str(n) for n in found)
            add(ERROR, found[1], f"Duplicate {keyword} (lines {found_at})")

    if heading.state is None:
        first_word = heading.title.split(" ", 1)[0]
        if _STATE_LIKE_RE.match(first_word) and first_word not in keywords:
            add(
                WARNING,
                heading.line,
                f"Unknown state keyword: {first_word} (valid: {', '.join(keywords)})",
            )

    if "recurring" in heading.tags:
        if scheduled_stamp is None:
            add(WARNING, heading.line, "Recurring heading without a SCHEDULED date")
        elif scheduled_stamp[1] is None:
            add(WARNING, heading.line, "Recurring heading missing a repeater (+1w, .+1d, ...)")

    return issues


def check(lines: list[str], keywords: Iterable[str] = DEFAULT_KEYWORDS) -> list[Issue]:
    """Check a document for structural problems.

    Returns:
        Issues ordered by line number (empty list for a clean document)
    """
    keywords = tuple(keywords)
    headings = index(lines, keywords)
    first_heading = headings[0].line if headings else len(lines) + 1

    issues = _check_preamble(lines, first_heading)
    issues.extend(_check_glued_markers(lines, keywords))
    for heading in headings:
        issues.extend(_check_heading(lines, heading, keywords))
    return sorted(issues, key=lambda issue: issue.line)


def errors(issues: Iterable[Issue]) -> list[Issue]:
    """Only the error-severity issues."""
    return [issue for issue in issues if issue.severity == ERROR]


def raise_for_errors(issues: Iterable[Issue]) -> None:
    """Raise MalformedStructure for the first error, if there is one."""
    found = errors(issues)
    if found:
        raise MalformedStructure(found[0].message, line=found[0].line)
