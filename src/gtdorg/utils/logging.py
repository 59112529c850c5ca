"""Structured logging setup for gtdorg."""

import os
from pathlib import Path
from typing import Any, Optional

import structlog

# Level name -> numeric level used by make_filtering_bound_logger
LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


def default_log_file() -> Path:
    """Log file path: GTDORG_LOG_FILE, or ~/.cache/gtdorg/logs/gtdorg.log."""
    override = os.environ.get("GTDORG_LOG_FILE")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cache" / "gtdorg" / "logs" / "gtdorg.log"


def configure_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> Path:
    """
    Configure structlog to append JSON lines to the gtdorg log file.

    Every gtdorg run appends to the same file, so log lines carry the
    command that produced them (see bind_command()).

    Args:
        level: Minimum level; defaults to GTDORG_LOG_LEVEL, then "INFO".
            Unknown names fall back to "INFO".
        log_file: Where to write; defaults to default_log_file()

    Returns:
        Path of the log file in use

    Log levels:
    - DEBUG: Per-document reads and atomic write details
    - INFO: Commands run, documents written, refiles, identifier changes
    - WARNING: Documents read leniently, unreadable caches
    - ERROR: Malformed documents, failed writes

    Example:
        # Enable debug logging
        GTDORG_LOG_LEVEL=DEBUG gtdorg ids check

        # Follow a run with jq:
        tail -f ~/.cache/gtdorg/logs/gtdorg.log | jq 'select(.command == "refile")'
    """
    level = (level or os.environ.get("GTDORG_LOG_LEVEL", "INFO")).upper()
    if level not in LEVELS:
        level = "INFO"

    log_file = log_file or default_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(LEVELS[level]),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a", encoding="utf-8")),
        cache_logger_on_first_use=False,
    )
    return log_file


def bind_command(command: Optional[str], **context: Any) -> None:
    """Attach the running command (and any extra context) to later log lines."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command, pid=os.getpid(), **context)


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("refile_completed", identifier="20250110093000-4f1c", lines=3)
    """
    return structlog.get_logger(name)
