"""Unit tests for line edits and their line-number deltas."""

import pytest

from org_outline.edit import Edit, delete_lines, insert_lines, replace_line


class TestInsertLines:
    """Tests for insert_lines."""

    def test_insert_in_middle(self):
        """Inserted lines land at the requested position."""
        edit = insert_lines(["a", "b", "c"], 2, ["x", "y"])

        assert edit.lines == ["a", "x", "y", "b", "c"]
        assert edit.delta == 2
        assert edit.at == 2

    def test_append_at_end(self):
        """Position len + 1 appends."""
        edit = insert_lines(["a"], 2, ["b"])

        assert edit.lines == ["a", "b"]

    def test_input_not_mutated(self):
        """The original list is left alone."""
        lines = ["a", "b"]
        insert_lines(lines, 1, ["x"])

        assert lines == ["a", "b"]

    def test_empty_insert_is_unchanged(self):
        """Inserting nothing returns a zero-delta edit."""
        edit = insert_lines(["a"], 1, [])

        assert edit.lines == ["a"]
        assert edit.delta == 0
        assert edit.at is None

    def test_out_of_range(self):
        """Positions outside 1..len+1 are rejected."""
        with pytest.raises(IndexError):
            insert_lines(["a"], 3, ["x"])
        with pytest.raises(IndexError):
            insert_lines(["a"], 0, ["x"])


class TestDeleteLines:
    """Tests for delete_lines."""

    def test_delete_range(self):
        """Inclusive range is removed."""
        edit = delete_lines(["a", "b", "c", "d"], 2, 3)

        assert edit.lines == ["a", "d"]
        assert edit.delta == -2

    def test_invalid_range(self):
        """Reversed or out-of-bounds ranges are rejected."""
        with pytest.raises(IndexError):
            delete_lines(["a", "b"], 2, 1)
        with pytest.raises(IndexError):
            delete_lines(["a", "b"], 1, 3)


class TestReplaceLine:
    """Tests for replace_line."""

    def test_replace(self):
        """Replacing keeps the line count."""
        edit = replace_line(["a", "b"], 2, "B")

        assert edit.lines == ["a", "B"]
        assert edit.delta == 0

    def test_replace_out_of_range(self):
        with pytest.raises(IndexError):
            replace_line(["a"], 2, "x")


class TestAdjust:
    """Tests for carrying line numbers across edits."""

    def test_lines_before_insert_do_not_move(self):
        """A line above the insertion point keeps its number."""
        edit = insert_lines(["a", "b", "c"], 3, ["x"])

        assert edit.adjust(1) == 1
        assert edit.adjust(2) == 2

    def test_lines_after_insert_shift(self):
        """A line at or below the insertion point moves down."""
        edit = insert_lines(["a", "b", "c"], 2, ["x", "y"])

        assert edit.adjust(2) == 4
        assert edit.adjust(3) == 5

    def test_lines_after_delete_shift_up(self):
        """Lines after a deleted range move up by its size."""
        edit = delete_lines(["a", "b", "c", "d", "e"], 2, 3)

        assert edit.adjust(4) == 2
        assert edit.adjust(1) == 1

    def test_composed_edits(self):
        """then() keeps every step, in order."""
        lines = ["* A", "* B", "* C"]
        first = insert_lines(lines, 2, ["note"])
        second = delete_lines(first.lines, 1, 1)
        edit = first.then(second)

        assert edit.lines == ["note", "* B", "* C"]
        assert edit.delta == 0
        # "* C" was line 3: +1 for the insert, -1 for the delete
        assert edit.adjust(3) == 3
        assert edit.lines[edit.adjust(3) - 1] == "* C"

    def test_unchanged_copies_lines(self):
        """Edit.unchanged never hands back the caller's list."""
        lines = ["a"]
        edit = Edit.unchanged(lines)

        assert edit.lines == lines
        assert edit.lines is not lines
        assert edit.steps == ()
