"""Unit tests for SuggestionRepository."""

from __future__ import annotations

from datetime import datetime

import pytest

from teian.db import SUGGESTIONS_BUCKET
from teian.errors import CorruptRecordError, NotFoundError
from teian.models import Suggestion
from teian.repositories import SuggestionRepository, find_by_id


class TestCreate:
    def test_ids_are_allocated_in_order(self, suggestions):
        created = [suggestions.create(user, f"idea {i}") for i, user in enumerate(["alice", "bob", "alice"])]

        assert [s.id for s in created] == [1, 2, 3]

    def test_same_user_ids_have_no_gaps(self, suggestions):
        ids = [suggestions.create("alice", f"idea {i}").id for i in range(25)]

        assert ids == list(range(1, 26))
        assert [s.id for s in suggestions.of_user("alice")] == ids

    def test_create_uses_injected_clock(self, suggestions):
        sugg = suggestions.create("alice", "dark theme")

        assert sugg.created == datetime(2024, 1, 1, 12, 0, 0)
        assert sugg.username == "alice"
        assert sugg.text == "dark theme"

    def test_created_suggestion_is_persisted(self, suggestions):
        sugg = suggestions.create("alice", "dark theme")

        assert suggestions.of_user("alice") == [sugg]

    def test_ids_are_never_reused(self, suggestions):
        first = suggestions.create("alice", "one")
        suggestions.delete("alice", first.id)

        assert suggestions.create("alice", "two").id == first.id + 1


class TestRead:
    def test_unknown_user_has_no_suggestions(self, suggestions):
        assert suggestions.of_user("nobody") == []

    def test_all_visits_users_in_key_order(self, suggestions):
        suggestions.create("bob", "b1")
        suggestions.create("alice", "a1")
        suggestions.create("bob", "b2")

        assert [(s.username, s.text) for s in suggestions.all()] == [
            ("alice", "a1"),
            ("bob", "b1"),
            ("bob", "b2"),
        ]

    def test_all_on_empty_store(self, suggestions):
        assert suggestions.all() == []

    def test_corrupt_value_names_the_key(self, suggestions, store):
        with store.update() as tx:
            tx.bucket(SUGGESTIONS_BUCKET).put("alice", b"garbage")

        with pytest.raises(CorruptRecordError) as excinfo:
            suggestions.of_user("alice")
        assert excinfo.value.key == "alice"


class TestDelete:
    def test_delete_ten_of_twenty(self, suggestions):
        mine = [suggestions.create("alice", f"a{i}") for i in range(10)]
        for i in range(10):
            suggestions.create("bob", f"b{i}")

        for sugg in mine[::2]:
            suggestions.delete("alice", sugg.id)

        assert len(suggestions.all()) == 15
        assert [s.id for s in suggestions.of_user("alice")] == [s.id for s in mine[1::2]]
        assert len(suggestions.of_user("bob")) == 10

    def test_delete_every_suggestion_of_one_user(self, suggestions):
        mine = [suggestions.create("alice", f"a{i}") for i in range(10)]
        theirs = [suggestions.create("bob", f"b{i}") for i in range(10)]
        assert len(suggestions.all()) == 20

        for sugg in mine:
            suggestions.delete("alice", sugg.id)

        assert suggestions.all() == theirs
        assert suggestions.of_user("alice") == []

    def test_delete_missing_id_raises(self, suggestions):
        suggestions.create("alice", "one")

        with pytest.raises(NotFoundError):
            suggestions.delete("alice", 999)

    def test_delete_of_another_users_id_raises(self, suggestions):
        sugg = suggestions.create("alice", "one")

        with pytest.raises(NotFoundError):
            suggestions.delete("bob", sugg.id)
        assert suggestions.of_user("alice") == [sugg]

    def test_not_found_is_a_key_error(self, suggestions):
        with pytest.raises(KeyError):
            suggestions.delete("alice", 1)

    def test_delete_all(self, suggestions):
        suggestions.create("alice", "one")
        suggestions.create("bob", "two")

        assert suggestions.delete_all() == 2
        assert suggestions.all() == []

    def test_sequence_keeps_counting_after_delete_all(self, suggestions):
        suggestions.create("alice", "one")
        suggestions.delete_all()

        assert suggestions.create("alice", "two").id == 2


class TestFindById:
    def test_sorts_in_place_and_finds(self):
        items = [Suggestion(id=i) for i in (5, 1, 3)]

        assert find_by_id(items, 3) == 1
        assert [s.id for s in items] == [1, 3, 5]

    @pytest.mark.parametrize("missing", [0, 2, 6])
    def test_missing_returns_minus_one(self, missing):
        assert find_by_id([Suggestion(id=i) for i in (1, 3, 5)], missing) == -1

    def test_empty_list(self):
        assert find_by_id([], 1) == -1


def test_repository_defaults_to_wall_clock(store):
    before = datetime.now()
    sugg = SuggestionRepository(store).create("alice", "one")

    assert before <= sugg.created <= datetime.now()
