"""Org outline engine - Parse and edit org-style outline documents.

This package works on plain lists of lines (no trailing newlines) and never
keeps a parse tree between calls: every operation re-indexes the lines it is
given and returns new lines.

Key features:
- Heading index with subtree and own-content ranges
- Properties block access that preserves key order
- SCHEDULED/DEADLINE timestamps with +, .+ and ++ repeaters
- WAITING and recurring metadata codecs
- Refiling of subtrees between documents by identifier
- Identifier generation and corpus-wide uniqueness

Example:
    >>> from org_outline import index, set_state
    >>> lines = ["* TODO Call Bob  :phone:", "Some notes"]
    >>> index(lines)[0].end
    2
    >>> set_state(lines, 1, "NEXT").lines[0]
    '* NEXT Call Bob  :phone:'
"""

from org_outline.edit import Edit
from org_outline.errors import IdentifierCollision, MalformedStructure
from org_outline.headings import (
    DEFAULT_KEYWORDS,
    Heading,
    get_heading,
    heading_at,
    index,
    parse_heading,
)
from org_outline.identity import (
    DEFAULT_ID_KEY,
    CorpusIndex,
    Location,
    ensure_id,
    ensure_unique,
    generate,
    is_valid,
)
from org_outline.mutator import CLEAR, append_note, complete, set_planning, set_state, set_tags
from org_outline.planning import AnchorMode, Repeater, RepeaterUnit, format_date, parse_date
from org_outline.properties import PropertiesBlock, delete_property, read_block, set_property
from org_outline.refile import RefileResult, refile

__version__ = "0.1.0"

__all__ = [
    "AnchorMode",
    "CLEAR",
    "CorpusIndex",
    "DEFAULT_ID_KEY",
    "DEFAULT_KEYWORDS",
    "Edit",
    "Heading",
    "IdentifierCollision",
    "Location",
    "MalformedStructure",
    "PropertiesBlock",
    "RefileResult",
    "Repeater",
    "RepeaterUnit",
    "append_note",
    "complete",
    "delete_property",
    "ensure_id",
    "ensure_unique",
    "format_date",
    "generate",
    "get_heading",
    "heading_at",
    "index",
    "is_valid",
    "parse_date",
    "parse_heading",
    "read_block",
    "refile",
    "set_planning",
    "set_property",
    "set_state",
    "set_tags",
]
