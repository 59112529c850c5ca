"""Move a subtree, found by identifier, from one document to another.

The subtree is copied to the end of the target before it is removed from the
source, so a failure while building the target never loses source content.
"""

from typing import NamedTuple, Optional

from org_outline.headings import (
    DEFAULT_KEYWORDS,
    Heading,
    heading_level,
    split_heading,
    subtree_lines,
)
from org_outline.identity import DEFAULT_ID_KEY
from org_outline.properties import find_by_property


class RefileResult(NamedTuple):
    """New source and target lines after a refile."""

    source: list[str]
    target: list[str]


def find_by_identifier(
    lines: list[str], identifier: str, key: str = DEFAULT_ID_KEY, keywords=DEFAULT_KEYWORDS
) -> Optional[Heading]:
    """First heading whose properties block carries the identifier."""
    return find_by_property(lines, key, identifier, keywords)


def promote_subtree(subtree: list[str]) -> list[str]:
    """Shift heading levels so the subtree root becomes level 1.

    Nested headings keep their depth relative to the root, and no heading
    drops below level 1.
    """
    if not subtree:
        return []
    root_level = heading_level(subtree[0]) or 1
    shift = root_level - 1
    if shift == 0:
        return list(subtree)

    result = []
    for text in subtree:
        parts = split_heading(text)
        if parts is None:
            result.append(text)
            continue
        stars, sep, rest = parts
        result.append("*" * max(1, len(stars) - shift) + sep + rest)
    return result


def refile(
    source: list[str],
    target: list[str],
    identifier: str,
    key: str = DEFAULT_ID_KEY,
    *,
    promote: bool = False,
) -> Optional[RefileResult]:
    """Move the subtree carrying identifier from source to the end of target.

    Args:
        source: Lines of the document holding the subtree
        target: Lines of the destination document
        identifier: Identifier stored under key in the heading's properties
        key: Properties key holding identifiers
        promote: Re-level the subtree so its root is a level-1 heading

    Returns:
        RefileResult, or None when no heading in source carries identifier.
        Refiling a document into itself returns it unchanged.

    Raises:
        MalformedStructure: If a properties block scanned on the way is broken
    """
    heading = find_by_identifier(source, identifier, key)
    if heading is None:
        return None
    if source is target:
        return RefileResult(list(source), list(target))

    subtree = subtree_lines(source, heading)
    if promote:
        subtree = promote_subtree(subtree)
    new_target = list(target) + subtree

    new_source = source[: heading.line - 1] + source[heading.end :]
    return RefileResult(new_source, new_target)
