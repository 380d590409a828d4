"""
Filtering and ordering of already-fetched suggestions and aliases.

These helpers never touch the store; callers load a list through a repository
and compose the admin view from it:

    suggs = SuggestionRepository(store).all()
    suggs = search_records(suggs, username="ali", text="theme", order="da")
"""

from __future__ import annotations

from enum import Enum
from typing import List, Sequence, TypeVar, Union

from .models import Alias, Suggestion

R = TypeVar("R", Suggestion, Alias)


class SortOrder(str, Enum):
    USERNAME_ASC = "ua"
    USERNAME_DESC = "ud"
    DATE_ASC = "da"
    DATE_DESC = "dd"

    @classmethod
    def parse(cls, value: Union[str, "SortOrder", None]) -> "SortOrder":
        """Unknown or empty values fall back to newest first."""
        if isinstance(value, SortOrder):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.DATE_DESC


DEFAULT_ORDER = SortOrder.DATE_DESC


def _text_of(record) -> str:
    if isinstance(record, Suggestion):
        return record.text
    return record.comment


def filter_records(records: Sequence[R], username: str = "", text: str = "") -> List[R]:
    """
    Keep records whose username contains `username` and whose text (comment
    for aliases) contains `text`. Empty filters are ignored.
    """
    result = list(records)
    if username:
        result = [r for r in result if username in r.username]
    if text:
        result = [r for r in result if text in _text_of(r)]
    return result


def sort_records(records: Sequence[R], order: Union[str, SortOrder, None] = DEFAULT_ORDER) -> List[R]:
    """Stable sort by username or creation time; equal keys keep their input order."""
    order = SortOrder.parse(order)
    if order in (SortOrder.USERNAME_ASC, SortOrder.USERNAME_DESC):
        return sorted(records, key=lambda r: r.username, reverse=order is SortOrder.USERNAME_DESC)
    return sorted(records, key=lambda r: r.created, reverse=order is SortOrder.DATE_DESC)


def search_records(
    records: Sequence[R],
    username: str = "",
    text: str = "",
    order: Union[str, SortOrder, None] = DEFAULT_ORDER,
) -> List[R]:
    """Filter then sort, the way the admin listing composes a query."""
    result = filter_records(records, username, text)
    if len(result) <= 1:
        return result
    return sort_records(result, order)
