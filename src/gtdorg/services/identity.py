"""Corpus-wide identifier checks and repairs."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import structlog

from org_outline.edit import Edit
from org_outline.identity import (
    DEFAULT_ID_KEY,
    CorpusIndex,
    Location,
    ensure_id,
    extract_ids,
    is_valid,
)
from gtdorg.services.corpus import GtdPaths
from gtdorg.services.file_monitor import FileMonitor
from gtdorg.services.file_operations import read_lines, write_lines

logger = structlog.get_logger()


@dataclass(frozen=True)
class IdentifierProblem:
    """An identifier that needs replacing.

    Attributes:
        identifier: The offending identifier
        location: Heading holding it
        reason: "duplicate" or "invalid"
    """

    identifier: str
    location: Location
    reason: str


@dataclass(frozen=True)
class IdentifierChange:
    """An identifier rewritten by repair()."""

    old: str
    new: str
    location: Location


def find_problems(paths: GtdPaths, index: CorpusIndex, key: str = DEFAULT_ID_KEY) -> list[IdentifierProblem]:
    """
    List duplicate and invalid identifiers across the tree.

    For a duplicated identifier, the first location (in scan order) is the
    owner; every later location is reported.
    """
    problems = []
    for identifier, locations in sorted(index.duplicates().items()):
        for location in locations[1:]:
            problems.append(IdentifierProblem(identifier, location, "duplicate"))

    for document in paths.list_documents():
        lines = read_lines(document)
        for identifier, line in extract_ids(lines, key, strict=False):
            if not is_valid(identifier):
                problems.append(IdentifierProblem(identifier, Location(str(document), line), "invalid"))

    return sorted(problems, key=lambda p: (p.location.path, p.location.line))


def repair(
    problems: Iterable[IdentifierProblem],
    index: CorpusIndex,
    key: str = DEFAULT_ID_KEY,
    *,
    max_attempts: int = 100,
    dry_run: bool = False,
) -> list[IdentifierChange]:
    """
    Give every problem heading a fresh, unique identifier.

    Documents are rewritten one at a time; within a document, line numbers
    of later problems are carried through each Edit.

    Raises:
        MalformedStructure: If a problem heading's properties block is broken
        IdentifierCollision: If no free identifier can be generated
    """
    by_document: dict[str, list[IdentifierProblem]] = {}
    for problem in problems:
        by_document.setdefault(problem.location.path, []).append(problem)

    changes = []
    for path_str, document_problems in sorted(by_document.items()):
        path = Path(path_str)
        monitor = FileMonitor()
        lines = read_lines(path, monitor)
        edit = Edit.unchanged(lines)

        for problem in sorted(document_problems, key=lambda p: p.location.line):
            line = edit.adjust(problem.location.line)
            step, new_id = ensure_id(
                edit.lines, line, index, path_str, key, max_attempts=max_attempts
            )
            if new_id == problem.identifier:
                continue
            edit = edit.then(step)
            index.discard(problem.identifier, problem.location)
            changes.append(IdentifierChange(problem.identifier, new_id, Location(path_str, line)))
            logger.info(
                "identifier_replaced",
                path=path_str,
                line=line,
                old=problem.identifier,
                new=new_id,
                reason=problem.reason,
            )

        if not dry_run and edit.lines != lines:
            write_lines(path, edit.lines, monitor)

    return changes


def assign(
    path: Path,
    heading_line: int,
    index: CorpusIndex,
    key: str = DEFAULT_ID_KEY,
    *,
    max_attempts: int = 100,
) -> tuple[str, bool]:
    """
    Make sure one heading carries a valid, unique identifier.

    Returns:
        (identifier, written) tuple; written is False when the heading
        already had a good identifier
    """
    monitor = FileMonitor()
    lines = read_lines(path, monitor)
    edit, identifier = ensure_id(lines, heading_line, index, str(path), key, max_attempts=max_attempts)
    written = edit.lines != lines
    if written:
        write_lines(path, edit.lines, monitor)
        logger.info("identifier_assigned", path=str(path), line=heading_line, identifier=identifier)
    return identifier, written

