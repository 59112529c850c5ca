"""Reading and writing outline documents as line lists.

Documents are handled whole: read into a list of lines (no trailing
newlines), transformed by the org_outline engine, and written back with an
atomic temp-file-rename so a crash never leaves a half-written document.
"""

import os
import structlog
from pathlib import Path
from typing import Optional

from gtdorg.services.exceptions import DocumentNotFoundError, FileModifiedError
from gtdorg.services.file_monitor import FileMonitor

logger = structlog.get_logger()


def read_lines(path: Path, file_monitor: Optional[FileMonitor] = None) -> list[str]:
    """
    Read a document into lines without line terminators.

    Args:
        path: Document path
        file_monitor: Records the document's mtime for a later write check

    Returns:
        List of lines (empty list for an empty document)

    Raises:
        DocumentNotFoundError: If the document doesn't exist
    """
    if not path.exists():
        raise DocumentNotFoundError(str(path))

    with open(path, encoding="utf-8", newline="") as f:
        text = f.read()
    if file_monitor is not None:
        file_monitor.record(path)

    lines = split_lines(text)
    logger.debug("document_read", path=str(path), lines=len(lines))
    return lines


def split_lines(text: str) -> list[str]:
    r"""
    Split document text into lines on "\n" only.

    Form feeds, U+2028 and the other characters str.splitlines() breaks on
    stay inside their line. A "\r" directly before "\n" is dropped, so
    CRLF documents are written back with LF endings; a lone "\r" is kept.
    """
    if not text:
        return []
    *lines, last = text.split("\n")
    lines = [line[:-1] if line.endswith("\r") else line for line in lines]
    if last:
        lines.append(last)
    return lines


def render_lines(lines: list[str]) -> str:
    """Join lines into document text, ending with a newline unless empty."""
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def atomic_write(
    path: Path,
    content: str,
    file_monitor: Optional[FileMonitor] = None
) -> None:
    """
    Atomically replace a document's content.

    Steps:
    1. Refuse if the monitor says the document changed since it was read
    2. Write a temp file next to the document and fsync it
    3. Check the monitor again
    4. Rename the temp file over the document

    A document the monitor never saw and that doesn't exist yet is simply
    created.

    Args:
        path: Target file path
        content: Content to write
        file_monitor: Optional FileMonitor for concurrent modification detection

    Raises:
        FileModifiedError: If the document changed on disk since it was read
        OSError: On file I/O errors
    """
    def changed_on_disk() -> bool:
        if file_monitor is None:
            return False
        if not path.exists() and not file_monitor.is_tracked(path):
            return False
        return file_monitor.is_modified(path)

    if changed_on_disk():
        raise FileModifiedError(str(path), "Document changed on disk before write")

    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        if changed_on_disk():
            raise FileModifiedError(str(path), "Document changed on disk during write")

        temp_path.replace(path)

        if file_monitor:
            file_monitor.refresh(path)

        logger.debug("atomic_write_success", path=str(path), size=len(content))

    except FileModifiedError:
        if temp_path.exists():
            temp_path.unlink()
        raise

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error("atomic_write_failed", path=str(path), error=str(e))
        raise


def write_lines(
    path: Path,
    lines: list[str],
    file_monitor: Optional[FileMonitor] = None
) -> None:
    """Write a line list back to its document atomically."""
    atomic_write(path, render_lines(lines), file_monitor)
    logger.info("document_written", path=str(path), lines=len(lines))
