"""Unit tests for the in-memory query composer."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from teian.models import Alias, Suggestion
from teian.query import DEFAULT_ORDER, SortOrder, filter_records, search_records, sort_records

T0 = datetime(2024, 1, 1)


def _sugg(i: int, username: str, text: str = "", minutes: int = 0) -> Suggestion:
    return Suggestion(id=i, username=username, text=text, created=T0 + timedelta(minutes=minutes))


@pytest.fixture
def records():
    return [
        _sugg(1, "carol", "dark theme please", minutes=2),
        _sugg(2, "alice", "bigger thumbnails", minutes=0),
        _sugg(3, "bob", "dark mode toggle", minutes=3),
        _sugg(4, "alice", "tag autocomplete", minutes=1),
    ]


class TestSortOrder:
    @pytest.mark.parametrize("value", ["ua", "ud", "da", "dd"])
    def test_known_codes(self, value):
        assert SortOrder.parse(value).value == value

    @pytest.mark.parametrize("value", ["", None, "xx", "date"])
    def test_unknown_falls_back_to_newest_first(self, value):
        assert SortOrder.parse(value) is SortOrder.DATE_DESC

    def test_default_is_newest_first(self):
        assert DEFAULT_ORDER is SortOrder.DATE_DESC


class TestFilter:
    def test_username_substring(self, records):
        assert [r.id for r in filter_records(records, username="li")] == [2, 4]

    def test_text_substring(self, records):
        assert [r.id for r in filter_records(records, text="dark")] == [1, 3]

    def test_filters_combine(self, records):
        assert [r.id for r in filter_records(records, username="bob", text="dark")] == [3]

    def test_empty_filters_keep_everything(self, records):
        assert filter_records(records) == records

    def test_case_sensitive(self, records):
        assert filter_records(records, text="Dark") == []

    def test_alias_text_is_comment(self):
        aliases = [
            Alias(id=1, username="a", old="x", new="y", comment="duplicate tag"),
            Alias(id=2, username="b", old="duplicate", new="z", comment=""),
        ]

        assert [a.id for a in filter_records(aliases, text="duplicate")] == [1]


class TestSort:
    def test_username_ascending_is_stable(self, records):
        assert [r.id for r in sort_records(records, "ua")] == [2, 4, 3, 1]

    def test_username_descending_is_stable(self, records):
        assert [r.id for r in sort_records(records, "ud")] == [1, 3, 2, 4]

    def test_date_ascending(self, records):
        assert [r.id for r in sort_records(records, "da")] == [2, 4, 1, 3]

    def test_date_descending(self, records):
        assert [r.id for r in sort_records(records, "dd")] == [3, 1, 4, 2]

    def test_does_not_mutate_input(self, records):
        before = list(records)
        sort_records(records, "ua")

        assert records == before


class TestSearch:
    def test_filter_then_sort(self, records):
        assert [r.id for r in search_records(records, text="dark", order="da")] == [1, 3]

    def test_default_order(self, records):
        assert [r.id for r in search_records(records)] == [3, 1, 4, 2]

    def test_single_match_is_still_filtered(self, records):
        assert [r.id for r in search_records(records, username="carol")] == [1]

    def test_empty_input(self):
        assert search_records([], username="x") == []
