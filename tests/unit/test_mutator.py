"""Unit tests for heading-level edits."""

from datetime import date
from textwrap import dedent

import pytest

from org_outline.errors import MalformedStructure
from org_outline.headings import get_heading
from org_outline.mutator import (
    CLEAR,
    add_tag,
    append_note,
    complete,
    format_tags,
    promote_line,
    set_planning,
    set_state,
    set_tags,
)
from org_outline.planning import parse_repeater, read_planning


def lines_of(text: str) -> list[str]:
    return dedent(text).strip("\n").split("\n")


class TestSetState:
    """Tests for changing the state keyword."""

    def test_replace_state(self):
        edit = set_state(["* TODO Buy milk"], 1, "NEXT")

        assert edit.lines == ["* NEXT Buy milk"]
        assert edit.delta == 0

    def test_add_state(self):
        assert set_state(["** Buy milk"], 1, "TODO").lines == ["** TODO Buy milk"]

    def test_remove_state_keeps_tags(self):
        edit = set_state(["* TODO Buy milk  :errand:"], 1, None)

        assert edit.lines == ["* Buy milk  :errand:"]

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="Unknown state keyword"):
            set_state(["* TODO Buy milk"], 1, "LATER")

    def test_not_a_heading(self):
        with pytest.raises(MalformedStructure):
            set_state(["* TODO Buy milk", "body"], 2, "NEXT")

    def test_only_heading_line_changes(self):
        """A state change never touches planning, properties or body."""
        lines = lines_of("""
            * TODO Call Bob  :phone:
            SCHEDULED: <2025-01-10 Fri>
            :PROPERTIES:
            :TASK_ID: 20250110093000-4f1c
            :END:
            Ask about the invoice
            """)
        edit = set_state(lines, 1, "WAITING")

        assert edit.lines[0] == "* WAITING Call Bob  :phone:"
        assert edit.lines[1:] == lines[1:]

    def test_custom_keywords(self):
        edit = set_state(["* LATER Task"], 1, "NOW", keywords=("LATER", "NOW"))

        assert edit.lines == ["* NOW Task"]


class TestTags:
    """Tests for the trailing tag block."""

    def test_format_tags(self):
        assert format_tags(["home", "errand"]) == ":home:errand:"
        assert format_tags([]) == ""

    @pytest.mark.parametrize("bad", ["", "two words", "a:b", "tab\there"])
    def test_invalid_tags(self, bad):
        with pytest.raises(ValueError):
            format_tags([bad])

    def test_replace_tags_keeps_separator(self):
        edit = set_tags(["* TODO Call Bob   :phone:"], 1, ["work", "urgent"])

        assert edit.lines == ["* TODO Call Bob   :work:urgent:"]

    def test_add_tags_to_untagged(self):
        edit = set_tags(["* TODO Call Bob"], 1, ["work"])

        assert edit.lines == ["* TODO Call Bob  :work:"]

    def test_remove_tags(self):
        edit = set_tags(["* TODO Call Bob  :phone:"], 1, [])

        assert edit.lines == ["* TODO Call Bob"]

    def test_add_tag(self):
        edit = add_tag(["* TODO Call Bob  :phone:"], 1, "work")

        assert edit.lines == ["* TODO Call Bob  :phone:work:"]

    def test_add_existing_tag_is_noop(self):
        lines = ["* TODO Call Bob  :phone:"]

        assert add_tag(lines, 1, "phone").lines == lines


class TestSetPlanning:
    """Tests for SCHEDULED and DEADLINE edits."""

    def test_insert_scheduled(self):
        edit = set_planning(["* TODO Report", "Body"], 1, scheduled=date(2025, 1, 10))

        assert edit.lines == ["* TODO Report", "SCHEDULED: <2025-01-10 Fri>", "Body"]
        assert edit.delta == 1

    def test_iso_string_accepted(self):
        edit = set_planning(["* TODO Report"], 1, deadline="2025-01-31")

        assert edit.lines[1] == "DEADLINE: <2025-01-31 Fri>"

    def test_invalid_string_rejected(self):
        with pytest.raises(ValueError):
            set_planning(["* TODO Report"], 1, scheduled="next week")

    def test_insert_goes_before_properties(self):
        lines = ["* TODO Report", ":PROPERTIES:", ":TASK_ID: 20250110093000-4f1c", ":END:"]
        edit = set_planning(lines, 1, deadline=date(2025, 1, 31))

        assert edit.lines[1] == "DEADLINE: <2025-01-31 Fri>"
        assert edit.lines[2] == ":PROPERTIES:"

    def test_scheduled_precedes_deadline(self):
        lines = ["* TODO Report", "DEADLINE: <2025-01-31 Fri>"]
        edit = set_planning(lines, 1, scheduled=date(2025, 1, 10))

        assert edit.lines[1:] == ["SCHEDULED: <2025-01-10 Fri>", "DEADLINE: <2025-01-31 Fri>"]

    def test_deadline_follows_scheduled(self):
        lines = ["* TODO Report", "SCHEDULED: <2025-01-10 Fri>", "Body"]
        edit = set_planning(lines, 1, deadline=date(2025, 1, 31))

        assert edit.lines == [
            "* TODO Report",
            "SCHEDULED: <2025-01-10 Fri>",
            "DEADLINE: <2025-01-31 Fri>",
            "Body",
        ]

    def test_deadline_follows_scheduled_past_blank_line(self):
        lines = ["* TODO Report", "", "SCHEDULED: <2025-01-10 Fri>", ":PROPERTIES:", ":K: v", ":END:"]
        edit = set_planning(lines, 1, deadline=date(2025, 1, 31))

        assert edit.lines[2:4] == ["SCHEDULED: <2025-01-10 Fri>", "DEADLINE: <2025-01-31 Fri>"]
        assert edit.lines[4] == ":PROPERTIES:"

    def test_replace_in_place(self):
        lines = ["* TODO Report", "SCHEDULED: <2025-01-10 Fri>"]
        edit = set_planning(lines, 1, scheduled=date(2025, 1, 17))

        assert edit.lines == ["* TODO Report", "SCHEDULED: <2025-01-17 Fri>"]
        assert edit.delta == 0

    def test_both_at_once(self):
        edit = set_planning(
            ["* TODO Report"], 1, scheduled=date(2025, 1, 10), deadline=date(2025, 1, 31)
        )

        assert edit.lines[1:] == ["SCHEDULED: <2025-01-10 Fri>", "DEADLINE: <2025-01-31 Fri>"]

    def test_repeater(self):
        edit = set_planning(
            ["* TODO Review"], 1, scheduled=date(2025, 1, 6), scheduled_repeater=parse_repeater(".+1w")
        )

        assert edit.lines[1] == "SCHEDULED: <2025-01-06 Mon .+1w>"

    def test_clear_scheduled_keeps_deadline_on_same_line(self):
        """Clearing one entry leaves the other entry on a shared line."""
        lines = ["* TODO Report", "SCHEDULED: <2025-01-10 Fri> DEADLINE: <2025-01-31 Fri>"]
        edit = set_planning(lines, 1, scheduled=CLEAR)

        assert edit.lines == ["* TODO Report", "DEADLINE: <2025-01-31 Fri>"]

    def test_clear_scheduled_keeps_deadline_line(self):
        lines = ["* TODO Report", "SCHEDULED: <2025-01-10 Fri>", "DEADLINE: <2025-01-31 Fri>"]
        edit = set_planning(lines, 1, scheduled=CLEAR)

        assert edit.lines == ["* TODO Report", "DEADLINE: <2025-01-31 Fri>"]
        assert edit.delta == -1
        planning = read_planning(edit.lines, get_heading(edit.lines, 1))
        assert planning.scheduled is None
        assert planning.deadline.date == date(2025, 1, 31)

    def test_clear_absent_is_noop(self):
        lines = ["* TODO Report"]

        assert set_planning(lines, 1, scheduled=CLEAR).lines == lines

    def test_none_leaves_entry_alone(self):
        lines = ["* TODO Report", "SCHEDULED: <2025-01-10 Fri>"]

        assert set_planning(lines, 1).lines == lines


class TestComplete:
    """Tests for completing headings."""

    def test_plain_task_becomes_done(self):
        edit = complete(["* NEXT Report"], 1, date(2025, 1, 10))

        assert edit.lines == ["* DONE Report"]

    def test_custom_done_state(self):
        edit = complete(["* NEXT Report"], 1, date(2025, 1, 10), done_state="CANCELLED")

        assert edit.lines == ["* CANCELLED Report"]

    def test_repeating_task_advances(self):
        """A repeating task moves to its next date and keeps its state."""
        lines = ["* TODO Water plants", "SCHEDULED: <2025-01-06 Mon .+1w>"]
        edit = complete(lines, 1, date(2025, 1, 8))

        assert edit.lines == ["* TODO Water plants", "SCHEDULED: <2025-01-15 Wed .+1w>"]

    def test_repeating_deadline_advances(self):
        lines = ["* TODO Rent", "DEADLINE: <2025-01-31 Fri +1m>"]
        edit = complete(lines, 1, date(2025, 1, 30))

        assert edit.lines[1] == "DEADLINE: <2025-02-28 Fri +1m>"


class TestNotes:
    """Tests for append_note and promote_line."""

    def test_note_after_metadata(self):
        lines = ["* TODO Task", ":PROPERTIES:", ":KEY: v", ":END:", "Existing"]
        edit = append_note(lines, 1, "New note")

        assert edit.lines[4:] == ["New note", "", "Existing"]

    def test_note_on_empty_heading(self):
        edit = append_note(["* TODO Task"], 1, "First\nSecond")

        assert edit.lines == ["* TODO Task", "First", "Second"]

    def test_blank_note_is_noop(self):
        assert append_note(["* TODO Task"], 1, "  ").lines == ["* TODO Task"]

    def test_promote_line(self):
        assert promote_line(["Buy milk"], 1).lines == ["* TODO Buy milk"]
        assert promote_line(["   "], 1, state="NEXT").lines == ["* NEXT New Task"]

    def test_promote_heading_rejected(self):
        with pytest.raises(MalformedStructure):
            promote_line(["* TODO Buy milk"], 1)
