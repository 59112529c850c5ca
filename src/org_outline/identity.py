"""Heading identifiers and corpus-wide uniqueness.

Identifiers look like 20250110093000-4f1c: a UTC timestamp to the second
plus a 16-bit random hex suffix. Older identifiers without the hex suffix
are still accepted as valid:

    20250110093000        (timestamp only)
    20250110093000a       (one or two letter same-second suffix)
    20250110093000-x7k    (dash and three alphanumerics)

Uniqueness is checked against a CorpusIndex, an explicit identifier ->
locations map built by an injected scanner. The index knows when it was
built and rebuilds itself once it is older than max_age.
"""

import random
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from org_outline.edit import Edit
from org_outline.errors import IdentifierCollision
from org_outline.headings import DEFAULT_KEYWORDS, index as index_headings
from org_outline.properties import get, parse_property, set_property


DEFAULT_ID_KEY = "TASK_ID"

_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
_VALID_ID_PATTERNS = (
    re.compile(r"^\d{14}-[0-9a-f]{4}$"),
    re.compile(r"^\d{14}$"),
    re.compile(r"^\d{14}[a-z]{1,2}$"),
    re.compile(r"^\d{14}-[A-Za-z0-9]{3}$"),
)
_HEADING_START_RE = re.compile(r"^\*+\s")


def generate(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """Generate a new identifier.

    Args:
        now: Timestamp to use (naive values are taken as UTC)
        rng: Random source for the suffix
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    rng = rng or random
    return f"{now.strftime(_TIMESTAMP_FORMAT)}-{rng.getrandbits(16):04x}"


def is_valid(identifier: Optional[str]) -> bool:
    """Check an identifier against the current and legacy formats."""
    if not identifier:
        return False
    return any(p.match(identifier) for p in _VALID_ID_PATTERNS)


def timestamp_of(identifier: str) -> Optional[datetime]:
    """UTC creation time encoded in an identifier, or None if invalid."""
    if not is_valid(identifier):
        return None
    try:
        parsed = datetime.strptime(identifier[:14], _TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Location:
    """Where an identifier was found: document path and heading line."""

    path: str
    line: int


Scanner = Callable[[], Iterable[tuple[str, Location]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CorpusIndex:
    """Identifier -> locations map over a whole corpus.

    The index never scans on its own schedule: it is rebuilt through the
    injected scanner on rebuild(), or lazily on lookup once it is stale.
    Callers that write identifiers themselves report them with record()
    so the index stays current between rebuilds.

    Example:
        >>> idx = CorpusIndex(lambda: [("20250110093000-4f1c", Location("a.org", 3))])
        >>> idx.lookup("20250110093000-4f1c")
        [Location(path='a.org', line=3)]
    """

    def __init__(
        self,
        scanner: Scanner,
        max_age: timedelta = timedelta(minutes=5),
        clock: Optional[Callable[[], datetime]] = None,
        entries: Optional[dict[str, list[Location]]] = None,
        built_at: Optional[datetime] = None,
    ):
        self.scanner = scanner
        self.max_age = max_age
        self.clock = clock or _utcnow
        self.entries: dict[str, list[Location]] = dict(entries or {})
        self.built_at = built_at

    def is_stale(self) -> bool:
        """True when never built or older than max_age."""
        if self.built_at is None:
            return True
        return self.clock() - self.built_at > self.max_age

    def rebuild(self) -> None:
        """Replace all entries with a fresh scan."""
        entries: dict[str, list[Location]] = defaultdict(list)
        for identifier, location in self.scanner():
            entries[identifier].append(location)
        self.entries = dict(entries)
        self.built_at = self.clock()

    def _ensure_fresh(self) -> None:
        if self.is_stale():
            self.rebuild()

    def lookup(self, identifier: str) -> list[Location]:
        """Locations holding an identifier, in scan order (empty if unused)."""
        self._ensure_fresh()
        return list(self.entries.get(identifier, []))

    def __contains__(self, identifier: str) -> bool:
        return bool(self.lookup(identifier))

    def record(self, identifier: str, location: Location) -> None:
        """Register an identifier the caller has just written."""
        locations = self.entries.setdefault(identifier, [])
        if location not in locations:
            locations.append(location)

    def forget(self, identifier: str, path: Optional[str] = None) -> None:
        """Drop an identifier's locations (only those in path, if given)."""
        if path is None:
            self.entries.pop(identifier, None)
            return
        remaining = [loc for loc in self.entries.get(identifier, []) if loc.path != path]
        if remaining:
            self.entries[identifier] = remaining
        else:
            self.entries.pop(identifier, None)

    def discard(self, identifier: str, location: Location) -> None:
        """Drop one location of an identifier."""
        remaining = [loc for loc in self.entries.get(identifier, []) if loc != location]
        if remaining:
            self.entries[identifier] = remaining
        else:
            self.entries.pop(identifier, None)

    def duplicates(self) -> dict[str, list[Location]]:
        """Identifiers found at more than one location."""
        self._ensure_fresh()
        return {ident: list(locs) for ident, locs in self.entries.items() if len(locs) > 1}

    def __len__(self) -> int:
        return len(self.entries)


def ensure_unique(
    candidate: str,
    owner: Location,
    index: CorpusIndex,
    *,
    max_attempts: int = 100,
    generator: Callable[[], str] = generate,
) -> tuple[str, bool]:
    """Make sure an identifier is not used by any other heading.

    The candidate is kept when nobody holds it or when owner is its first
    holder. Otherwise fresh identifiers are generated until one is unused.

    Returns:
        (identifier, changed) tuple

    Raises:
        IdentifierCollision: If max_attempts generated identifiers are all taken
    """
    holders = index.lookup(candidate)
    if not holders or holders[0] == owner:
        return candidate, False

    for _attempt in range(max_attempts):
        fresh = generator()
        if not index.lookup(fresh):
            return fresh, True
    raise IdentifierCollision(candidate, max_attempts)


def extract_ids(
    lines: list[str], key: str = DEFAULT_ID_KEY, strict: bool = True, keywords=DEFAULT_KEYWORDS
) -> list[tuple[str, int]]:
    """List (identifier, heading_line) pairs in a document.

    Strict mode reads each heading's properties block and so raises
    MalformedStructure on a broken block. Lenient mode picks up every
    ":KEY: value" line and attributes it to the closest heading above.
    Empty values are skipped in both modes.
    """
    if strict:
        found = []
        for heading in index_headings(lines, keywords):
            value = get(lines, heading, key)
            if value:
                found.append((value, heading.line))
        return found

    found = []
    current = None
    for line_no, text in enumerate(lines, start=1):
        if _HEADING_START_RE.match(text):
            current = line_no
            continue
        parsed = parse_property(text)
        if current is not None and parsed and parsed[0].upper() == key.upper() and parsed[1]:
            found.append((parsed[1], current))
    return found


def ensure_id(
    lines: list[str],
    heading_line: int,
    index: CorpusIndex,
    path: str,
    key: str = DEFAULT_ID_KEY,
    *,
    max_attempts: int = 100,
) -> tuple[Edit, str]:
    """Give a heading a valid identifier that is unique across the corpus.

    A valid identifier already owned by this heading is kept as is. An
    invalid one, or one first held elsewhere, is replaced. The replaced
    identifier's entry for this heading is dropped from the index and the
    final identifier is recorded.

    Returns:
        (Edit, identifier) tuple; the Edit is unchanged when nothing was written
    """
    owner = Location(path, heading_line)
    existing = get(lines, heading_line, key)

    if is_valid(existing):
        identifier, changed = ensure_unique(existing, owner, index, max_attempts=max_attempts)
        if not changed:
            index.record(identifier, owner)
            return Edit.unchanged(lines), identifier
    else:
        identifier, _changed = ensure_unique(generate(), owner, index, max_attempts=max_attempts)

    if existing:
        index.discard(existing, owner)
    index.record(identifier, owner)
    return set_property(lines, heading_line, key, identifier), identifier
