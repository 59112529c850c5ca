"""Refiling subtrees between documents on disk."""

from pathlib import Path
from typing import Optional

import structlog

from org_outline.identity import DEFAULT_ID_KEY, CorpusIndex, Location
from org_outline.refile import refile
from gtdorg.services.file_monitor import FileMonitor
from gtdorg.services.file_operations import read_lines, write_lines

logger = structlog.get_logger()


def refile_file(
    source_path: Path,
    target_path: Path,
    identifier: str,
    key: str = DEFAULT_ID_KEY,
    *,
    promote: bool = False,
    index: Optional[CorpusIndex] = None,
) -> Optional[int]:
    """
    Move the subtree carrying identifier from one document to the end of another.

    The target is written before the source. If writing the source fails,
    the subtree exists in both documents, never in neither.

    Args:
        source_path: Document holding the subtree
        target_path: Destination document (created if missing)
        identifier: Identifier of the subtree's root heading
        key: Properties key holding identifiers
        promote: Re-level the subtree so its root is a level-1 heading
        index: Corpus index to keep current with the move

    Returns:
        Number of lines moved, 0 when source and target are the same
        document, or None if no heading in the source carries identifier

    Raises:
        MalformedStructure: If the source has a broken properties block
        FileModifiedError: If either document changed on disk meanwhile
    """
    monitor = FileMonitor()
    source = read_lines(source_path, monitor)

    if source_path.resolve() == target_path.resolve():
        target = source
    elif target_path.exists():
        target = read_lines(target_path, monitor)
    else:
        target = []

    result = refile(source, target, identifier, key, promote=promote)
    if result is None:
        logger.info("refile_not_found", identifier=identifier, source=str(source_path))
        return None
    if target is source:
        logger.info("refile_same_document", identifier=identifier, path=str(source_path))
        return 0

    moved = len(result.target) - len(target)
    write_lines(target_path, result.target, monitor)
    write_lines(source_path, result.source, monitor)

    if index is not None:
        index.forget(identifier, path=str(source_path))
        index.record(identifier, Location(str(target_path), len(target) + 1))

    logger.info(
        "refile_completed",
        identifier=identifier,
        source=str(source_path),
        target=str(target_path),
        lines=moved,
    )
    return moved
