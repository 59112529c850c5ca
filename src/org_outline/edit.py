"""Line edits with explicit line-count deltas.

Every mutating operation in this package returns an Edit instead of
mutating its input. The Edit carries the new lines plus the shifts it
applied, so callers holding line numbers from before the edit can move
them forward with Edit.adjust() instead of reusing stale positions.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Edit:
    """Result of a line-level mutation.

    Attributes:
        lines: New line list (never the same list object as the input)
        steps: Sequence of (at, delta) shifts in application order. Each step
               means "every line numbered >= at (1-indexed, in the coordinates
               before this step) moved by delta".

    Examples:
        >>> edit = insert_lines(["* A", "* B"], 2, ["body"])
        >>> edit.lines
        ['* A', 'body', '* B']
        >>> edit.delta
        1
        >>> edit.adjust(2)  # "* B" used to be line 2
        3
    """

    lines: list[str]
    steps: tuple[tuple[int, int], ...] = field(default_factory=tuple)

    @classmethod
    def unchanged(cls, lines: list[str]) -> "Edit":
        """Edit that changes nothing (still returns a copy of lines)."""
        return cls(lines=list(lines))

    @property
    def delta(self) -> int:
        """Net signed change in line count."""
        return sum(d for _, d in self.steps)

    @property
    def at(self) -> int | None:
        """First line number affected by a shift, or None if nothing shifted."""
        if not self.steps:
            return None
        return self.steps[0][0]

    def adjust(self, line_no: int) -> int:
        """Translate a pre-edit line number into post-edit coordinates.

        Only meaningful for lines that still exist after the edit; a line
        inside a deleted range has no new position.
        """
        for at, delta in self.steps:
            if line_no >= at:
                line_no += delta
        return line_no

    def then(self, other: "Edit") -> "Edit":
        """Compose with an edit that was applied to self.lines."""
        return Edit(lines=other.lines, steps=self.steps + other.steps)


def insert_lines(lines: list[str], at: int, new: list[str]) -> Edit:
    """Insert new lines so the first one lands at line number `at`.

    Args:
        lines: Current lines
        at: 1-indexed position (len(lines) + 1 appends)
        new: Lines to insert

    Returns:
        Edit with a single +len(new) shift starting at `at`
    """
    if at < 1 or at > len(lines) + 1:
        raise IndexError(f"Insert position out of range: {at}")
    if not new:
        return Edit.unchanged(lines)
    result = lines[: at - 1] + list(new) + lines[at - 1 :]
    return Edit(lines=result, steps=((at, len(new)),))


def delete_lines(lines: list[str], start: int, end: int) -> Edit:
    """Delete lines start..end (1-indexed, inclusive)."""
    if start < 1 or end > len(lines) or start > end:
        raise IndexError(f"Delete range out of bounds: {start}..{end}")
    result = lines[: start - 1] + lines[end:]
    count = end - start + 1
    return Edit(lines=result, steps=((end + 1, -count),))


def replace_line(lines: list[str], line_no: int, text: str) -> Edit:
    """Replace one line in place (no shift)."""
    if line_no < 1 or line_no > len(lines):
        raise IndexError(f"Line out of range: {line_no}")
    result = list(lines)
    result[line_no - 1] = text
    return Edit(lines=result)
