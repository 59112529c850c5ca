"""Exceptions raised by the outline engine."""

from typing import Optional


class MalformedStructure(ValueError):
    """Raised when document structure is broken in a way the engine won't repair.

    Examples are an unterminated properties block, a planning line that
    appears before any heading, or an operation addressed at a line that is
    not a heading. The engine never rewrites such text on its own because a
    guess could destroy user content.

    Attributes:
        line: 1-indexed line number where the problem was detected (if known)
        message: Human-readable error message
    """

    def __init__(self, message: str, line: Optional[int] = None):
        """Initialize MalformedStructure.

        Args:
            message: Human-readable error message
            line: 1-indexed line number of the offending line
        """
        self.line = line
        self.message = message
        if line is not None:
            super().__init__(f"{message} (line {line})")
        else:
            super().__init__(message)


class IdentifierCollision(RuntimeError):
    """Raised when no free identifier could be generated.

    Regeneration is retried a bounded number of times; running out of
    attempts means the generator or the corpus index is broken.

    Attributes:
        candidate: Identifier originally requested
        attempts: Number of regeneration attempts made
    """

    def __init__(self, candidate: str, attempts: int):
        self.candidate = candidate
        self.attempts = attempts
        super().__init__(
            f"Could not find a free identifier for {candidate!r} after {attempts} attempts"
        )
