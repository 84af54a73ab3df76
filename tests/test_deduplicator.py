"""Tests for duplicate detection and row deletion."""

import pytest

import deduplicator
from errors import CaplenaApiError
from fakes import FakeCaplenaClient, destination_row


class TestFindDuplicates:
    def test_same_conversation_and_text(self):
        r1 = destination_row("R1", "a", "x")
        r2 = destination_row("R2", "a", "x")
        r3 = destination_row("R3", "a", "y")

        pairs = deduplicator.find_duplicates([r1, r2, r3])

        assert len(pairs) == 1
        assert pairs[0].original is r1
        assert pairs[0].duplicate is r2
        assert pairs[0].key == "a|x"

    def test_first_seen_is_original_for_every_repeat(self):
        rows = [destination_row(f"R{i}", "a", "x") for i in range(4)]

        pairs = deduplicator.find_duplicates(rows)

        assert [(p.original.id, p.duplicate.id) for p in pairs] == [("R0", "R1"), ("R0", "R2"), ("R0", "R3")]

    def test_rows_without_key_columns_are_skipped(self):
        rows = [
            destination_row("R1", None, "x"),
            destination_row("R2", None, "x"),
            destination_row("R3", "a", None),
            destination_row("R4", "a", ""),
        ]
        assert deduplicator.find_duplicates(rows) == []

    def test_different_conversations_are_not_duplicates(self):
        rows = [destination_row("R1", "a", "x"), destination_row("R2", "b", "x")]
        assert deduplicator.find_duplicates(rows) == []


class TestDeleteRows:
    def test_two_of_ten_fail(self):
        ids = [f"r{i}" for i in range(10)]
        client = FakeCaplenaClient(failing_deletes={"r2", "r7"})

        result = deduplicator.delete_rows(client, "p1", ids, request_delay=0)

        assert result.successful == 8
        assert result.failed == 2
        assert sorted(e.row_id for e in result.errors) == ["r2", "r7"]
        assert client.delete_calls == ids

    def test_pause_between_deletions(self, no_sleep):
        client = FakeCaplenaClient()
        deduplicator.delete_rows(client, "p1", ["a", "b", "c"], request_delay=0.1)
        assert no_sleep == [0.1, 0.1]

    def test_error_dict_uses_row_id(self):
        client = FakeCaplenaClient(failing_deletes={"r1"})
        result = deduplicator.delete_rows(client, "p1", ["r1"], request_delay=0)
        assert result.to_dict()["errors"][0]["rowId"] == "r1"


class TestListAllRows:
    def test_walks_every_page(self):
        rows = [destination_row(f"R{i}", "a", str(i)) for i in range(120)]
        client = FakeCaplenaClient(rows=rows)

        listed = deduplicator.list_all_rows(client, "p1", request_delay=0)

        assert [r.id for r in listed] == [r.id for r in rows]
        assert client.list_pages == [1, 2, 3]

    def test_listing_failure_propagates(self):
        rows = [destination_row(f"R{i}", "a", "x") for i in range(120)]
        client = FakeCaplenaClient(rows=rows, fail_list_page=2)

        with pytest.raises(CaplenaApiError):
            deduplicator.deduplicate_project(client, "p1", request_delay=0)
        assert client.delete_calls == []


class TestDeduplicateProject:
    def _rows(self):
        return [
            destination_row("R1", "a", "x"),
            destination_row("R2", "a", "x"),
            destination_row("R3", "a", "y"),
            destination_row("R4", "b", "y"),
            destination_row("R5", "b", "y"),
        ]

    def test_deletes_duplicates_only(self):
        client = FakeCaplenaClient(rows=self._rows())

        summary = deduplicator.deduplicate_project(client, "p1", request_delay=0)

        assert summary.total_rows == 5
        assert summary.duplicates == 2
        assert summary.deleted == 2
        assert summary.failed == 0
        assert client.delete_calls == ["R2", "R5"]

    def test_dry_run_deletes_nothing(self):
        client = FakeCaplenaClient(rows=self._rows())

        summary = deduplicator.deduplicate_project(client, "p1", dry_run=True, request_delay=0)

        assert summary.duplicates == 2
        assert summary.deleted == 0
        assert client.delete_calls == []
        assert summary.to_dict()["pairs"][0] == {"original": "R1", "duplicate": "R2", "key": "a|x"}

    def test_empty_project(self):
        client = FakeCaplenaClient(rows=self._rows())

        result = deduplicator.empty_project(client, "p1", request_delay=0)

        assert result.successful == 5
        assert client.delete_calls == ["R1", "R2", "R3", "R4", "R5"]
