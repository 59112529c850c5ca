"""Modification-time tracking for documents read by gtdorg."""

from pathlib import Path
from typing import Dict


class FileMonitor:
    """
    Remember the mtime of each document when it is read.

    atomic_write() asks the monitor before replacing a document; a changed
    mtime means someone else saved it in the meantime.

    Example:
        >>> monitor = FileMonitor()
        >>> lines = read_lines(Path("Inbox.org"), monitor)
        >>> # ... compute new lines ...
        >>> if monitor.is_modified(Path("Inbox.org")):
        ...     raise FileModifiedError("Inbox.org")
    """

    def __init__(self) -> None:
        self._mtimes: Dict[Path, float] = {}

    def record(self, path: Path) -> None:
        """
        Record the current mtime of a document.

        Raises:
            FileNotFoundError: If the document doesn't exist
        """
        self._mtimes[path] = path.stat().st_mtime

    def is_tracked(self, path: Path) -> bool:
        return path in self._mtimes

    def is_modified(self, path: Path) -> bool:
        """
        Check if a document changed since it was recorded.

        Untracked documents count as modified. A tracked document that has
        since been deleted counts as modified too.
        """
        if path not in self._mtimes:
            return True
        try:
            current_mtime = path.stat().st_mtime
        except FileNotFoundError:
            return True
        return current_mtime != self._mtimes[path]

    def refresh(self, path: Path) -> None:
        """Record the new mtime after gtdorg itself wrote the document."""
        self._mtimes[path] = path.stat().st_mtime

    def forget(self, path: Path) -> None:
        """Stop tracking a document."""
        self._mtimes.pop(path, None)
