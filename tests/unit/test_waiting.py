"""Unit tests for WAITING metadata."""

from datetime import date

import pytest

from org_outline.errors import MalformedStructure
from org_outline.properties import read_block
from org_outline.waiting import (
    WaitingRecord,
    clear,
    decode,
    encode,
    is_follow_up_due,
    summary_lines,
)


RECORD = WaitingRecord(
    who="Alice",
    what="Signed contract",
    requested_on=date(2025, 1, 10),
    channel="email",
)


class TestSummary:
    """Tests for the body summary."""

    def test_full_summary(self):
        record = WaitingRecord(
            who="Alice",
            what="Signed contract",
            requested_on=date(2025, 1, 10),
            follow_up_on=date(2025, 1, 17),
            channel="email",
            priority="high",
            notes="Sent twice",
        )

        assert summary_lines(record) == [
            "",
            "Waiting for: Alice",
            "Expecting: Signed contract",
            "Requested: 2025-01-10 via email",
            "Follow up: 2025-01-17",
            "Priority: high",
            "Notes: Sent twice",
        ]

    def test_partial_summary(self):
        assert summary_lines(WaitingRecord(who="Bob")) == ["", "Waiting for: Bob"]
        assert summary_lines(WaitingRecord(requested_on=date(2025, 1, 10))) == [
            "",
            "Waiting for:",
            "Requested: 2025-01-10",
        ]


class TestEncode:
    """Tests for writing records."""

    def test_encode_into_bare_heading(self):
        edit = encode(["* TODO Contract draft"], 1, RECORD)

        assert edit.lines == [
            "* TODO Contract draft",
            ":PROPERTIES:",
            ":WAITING_FOR: Alice",
            ":WAITING_WHAT: Signed contract",
            ":REQUESTED: 2025-01-10",
            ":CONTEXT: email",
            ":END:",
            "",
            "Waiting for: Alice",
            "Expecting: Signed contract",
            "Requested: 2025-01-10 via email",
        ]
        assert edit.delta == 10

    def test_encode_is_idempotent(self):
        """Encoding twice neither changes nor duplicates anything."""
        lines = ["* TODO Contract draft", "Draft sent Monday", "* TODO Next task"]
        once = encode(lines, 1, RECORD)
        twice = encode(once.lines, 1, RECORD)

        assert twice.lines == once.lines
        assert twice.delta == 0
        assert once.lines.count("Waiting for: Alice") == 1

    def test_body_text_kept_after_summary(self):
        lines = ["* TODO Contract draft", "Draft sent Monday"]
        edit = encode(lines, 1, WaitingRecord(who="Alice"))

        assert edit.lines[-4:] == ["", "Waiting for: Alice", "", "Draft sent Monday"]

    def test_update_replaces_summary(self):
        first = encode(["* TODO Contract draft"], 1, RECORD).lines
        updated = encode(first, 1, WaitingRecord(who="Carol")).lines

        assert "Waiting for: Carol" in updated
        assert "Waiting for: Alice" not in updated
        assert "Expecting: Signed contract" not in updated
        assert read_block(updated, 1).keys() == ["WAITING_FOR"]

    def test_keeps_unrelated_properties(self):
        lines = ["* TODO Task", ":PROPERTIES:", ":TASK_ID: 20250110093000-4f1c", ":END:"]
        edit = encode(lines, 1, WaitingRecord(who="Alice"))

        assert read_block(edit.lines, 1).items() == [
            ("TASK_ID", "20250110093000-4f1c"),
            ("WAITING_FOR", "Alice"),
        ]

    def test_clear(self):
        encoded = encode(["* TODO Contract draft"], 1, RECORD).lines
        cleared = clear(encoded, 1).lines

        assert decode(cleared, 1).is_empty()
        assert not any(line.startswith("Waiting for:") for line in cleared)


class TestDecode:
    """Tests for reading records."""

    def test_roundtrip(self):
        encoded = encode(["* TODO Contract draft"], 1, RECORD).lines

        assert decode(encoded, 1) == RECORD

    def test_roundtrip_keeps_inner_whitespace(self):
        record = WaitingRecord(who="Alice", what="", notes="call  back\tafter lunch")
        encoded = encode(["* TODO Contract draft"], 1, record).lines

        assert decode(encoded, 1) == record

    @pytest.mark.parametrize(
        "record",
        [WaitingRecord(what=" "), WaitingRecord(notes="  indented note"), WaitingRecord(who="Alice ")],
    )
    def test_values_that_would_not_roundtrip_rejected(self, record):
        """Encoding refuses values decode() would hand back stripped."""
        with pytest.raises(ValueError, match="whitespace"):
            encode(["* TODO Contract draft"], 1, record)

    def test_absent_and_empty_differ(self):
        """A present-but-empty key decodes to "" rather than None."""
        lines = ["* WAITING Task", ":PROPERTIES:", ":WAITING_FOR:", ":END:"]
        record = decode(lines, 1)

        assert record.who == ""
        assert record.what is None
        assert not record.is_empty()

    def test_invalid_date(self):
        lines = ["* WAITING Task", ":PROPERTIES:", ":REQUESTED: last week", ":END:"]

        with pytest.raises(MalformedStructure) as exc_info:
            decode(lines, 1)

        assert exc_info.value.line == 3

    def test_no_block(self):
        assert decode(["* WAITING Task"], 1) == WaitingRecord()


class TestFollowUp:
    def test_due(self):
        record = WaitingRecord(follow_up_on=date(2025, 1, 17))

        assert is_follow_up_due(record, today=date(2025, 1, 17))
        assert not is_follow_up_due(record, today=date(2025, 1, 16))
        assert not is_follow_up_due(WaitingRecord(), today=date(2025, 1, 16))
