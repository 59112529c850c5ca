"""The GTD document tree and the identifier index built over it."""

import json
from datetime import datetime, timedelta
from fnmatch import fnmatch
from functools import partial
from pathlib import Path
from typing import Iterable, Optional

import structlog

from org_outline.errors import MalformedStructure
from org_outline.headings import DEFAULT_KEYWORDS
from org_outline.identity import DEFAULT_ID_KEY, CorpusIndex, Location, extract_ids
from gtdorg.services.file_operations import read_lines

logger = structlog.get_logger()

DEFAULT_EXCLUDE_PATTERNS = ("Archive*", "*.archive.org", "Deleted*", ".*")


class GtdPaths:
    """Utility class for GTD document tree path operations.

    Attributes:
        root: Directory holding the .org documents
        inbox_file: Inbox document name, relative to root
        exclude_patterns: Glob patterns; a document is skipped when any part
            of its path relative to root matches one
    """

    def __init__(
        self,
        root: Path,
        inbox_file: str = "Inbox.org",
        exclude_patterns: Iterable[str] = DEFAULT_EXCLUDE_PATTERNS,
    ):
        """Initialize with the tree's root directory.

        Raises:
            ValueError: If root doesn't exist or isn't a directory
        """
        if not root.exists():
            raise ValueError(f"GTD root does not exist: {root}")
        if not root.is_dir():
            raise ValueError(f"GTD root is not a directory: {root}")

        self.root = root.resolve()
        self.inbox_file = inbox_file
        self.exclude_patterns = tuple(exclude_patterns)

    @classmethod
    def from_config(cls, gtd_config) -> "GtdPaths":
        return cls(
            gtd_config.root_path,
            inbox_file=gtd_config.inbox_file,
            exclude_patterns=gtd_config.exclude_patterns,
        )

    @property
    def inbox_path(self) -> Path:
        return self.root / self.inbox_file

    def document_path(self, name: str) -> Path:
        """Path of a document given by name, with or without the .org suffix."""
        if not name.endswith(".org"):
            name = f"{name}.org"
        return self.root / name

    def is_excluded(self, path: Path) -> bool:
        """Check if a document falls under an exclude pattern."""
        try:
            parts = path.relative_to(self.root).parts
        except ValueError:
            parts = path.parts
        return any(fnmatch(part, pattern) for part in parts for pattern in self.exclude_patterns)

    def list_documents(self) -> list[Path]:
        """List every .org document under root, sorted, minus excluded ones."""
        return sorted(p for p in self.root.rglob("*.org") if p.is_file() and not self.is_excluded(p))


def scan_document(
    path: Path, key: str = DEFAULT_ID_KEY, keywords=DEFAULT_KEYWORDS
) -> list[tuple[str, Location]]:
    """
    Identifiers in one document.

    A document with a broken properties block is still scanned, leniently,
    so its identifiers keep counting towards uniqueness.
    """
    lines = read_lines(path)
    try:
        found = extract_ids(lines, key, strict=True, keywords=keywords)
    except MalformedStructure as e:
        logger.warning(
            "document_scanned_leniently", path=str(path), line=e.line, error=e.message
        )
        found = extract_ids(lines, key, strict=False, keywords=keywords)
    return [(identifier, Location(str(path), line)) for identifier, line in found]


def scan_identifiers(
    paths: GtdPaths, key: str = DEFAULT_ID_KEY, keywords=DEFAULT_KEYWORDS
) -> list[tuple[str, Location]]:
    """Scan every document in the tree for identifiers."""
    found = []
    documents = paths.list_documents()
    for document in documents:
        found.extend(scan_document(document, key, keywords))
    logger.info("corpus_scanned", root=str(paths.root), documents=len(documents), identifiers=len(found))
    return found


def build_index(
    paths: GtdPaths,
    key: str = DEFAULT_ID_KEY,
    max_age: timedelta = timedelta(minutes=5),
    keywords=DEFAULT_KEYWORDS,
) -> CorpusIndex:
    """CorpusIndex whose scanner walks the GTD tree (not scanned until used)."""
    return CorpusIndex(partial(scan_identifiers, paths, key, keywords), max_age=max_age)


class IdentityCache:
    """Identifier index persisted between runs.

    The cache is stored as JSON with format:
    {
        "root": "/home/me/Documents/GTD",
        "key": "TASK_ID",
        "built_at": "2025-01-10T09:30:00+00:00",
        "entries": {"20250110093000-4f1c": [["/home/me/Documents/GTD/Inbox.org", 3]]}
    }

    A cache is only used for the same root and key, and only while no
    document in the tree is newer than the cache's build time.
    """

    def __init__(self, cache_path: Path):
        self.cache_path = cache_path

    def _read(self) -> Optional[dict]:
        if not self.cache_path.exists():
            return None
        try:
            return json.loads(self.cache_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed identity cache file: {e}") from e

    def load_into(self, index: CorpusIndex, paths: GtdPaths, key: str = DEFAULT_ID_KEY) -> bool:
        """
        Fill an index from the cache when the cache is still valid.

        Returns:
            True if the index was filled, False if it was left to rescan

        Raises:
            ValueError: If the cache file is malformed
        """
        data = self._read()
        if not data or data.get("root") != str(paths.root) or data.get("key") != key:
            return False

        built_at = datetime.fromisoformat(data["built_at"])
        for document in paths.list_documents():
            if datetime.fromtimestamp(document.stat().st_mtime, built_at.tzinfo) > built_at:
                logger.info("identity_cache_outdated", path=str(document))
                return False

        index.entries = {
            identifier: [Location(path, line) for path, line in locations]
            for identifier, locations in data["entries"].items()
        }
        index.built_at = built_at
        logger.debug("identity_cache_loaded", identifiers=len(index.entries))
        return True

    def save(self, index: CorpusIndex, paths: GtdPaths, key: str = DEFAULT_ID_KEY) -> None:
        """
        Save an index to disk.

        Creates parent directories if needed. An index that was never built
        is not saved.
        """
        if index.built_at is None:
            return
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "root": str(paths.root),
            "key": key,
            "built_at": index.built_at.isoformat(),
            "entries": {
                identifier: [[loc.path, loc.line] for loc in locations]
                for identifier, locations in index.entries.items()
            },
        }

        temp_path = self.cache_path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            temp_path.replace(self.cache_path)
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise IOError(f"Failed to save identity cache: {e}") from e

    def clear(self) -> None:
        """Delete the cache file."""
        if self.cache_path.exists():
            self.cache_path.unlink()
