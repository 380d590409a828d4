"""
Repository Layer - High-level database operations.

Each repository wraps one bucket of the store and owns the encode/decode of its
values. Every mutating call runs in a single read-write transaction: read the
current value, change the decoded records, re-encode, write. If anything in
between raises, the transaction rolls back and the bucket is left as it was.

Bucket layout:
    suggestions  key = username        value = encoded list of Suggestion
    aliases      key = str(alias id)   value = encoded Alias
    uploadQuota  key = username        value = encoded byte count

Usage examples:
    from teian.db import open_store
    from teian.repositories import SuggestionRepository, AliasRepository, QuotaLedger

    store = open_store()
    suggestions = SuggestionRepository(store)
    suggestions.create("alice", "Please add a dark theme")
    suggestions.of_user("alice")

    ledger = QuotaLedger(store, cap=50 << 20)
    remaining = ledger.charge("alice", 3 << 20)
"""

from __future__ import annotations

import time
from bisect import bisect_left
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from . import codec
from .db import ALIASES_BUCKET, QUOTA_BUCKET, SUGGESTIONS_BUCKET, Store
from .errors import CorruptRecordError, NotFoundError, OverQuotaError
from .models import Alias, AliasPatch, AliasStatus, Suggestion

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def alias_key(alias_id: int) -> str:
    """Alias IDs are stored under their base-10 representation."""
    return str(int(alias_id))


def find_by_id(suggestions: List[Suggestion], suggestion_id: int) -> int:
    """
    Sort suggestions by ID in place and return the index of suggestion_id.

    Returns -1 if no suggestion has that ID.
    """
    suggestions.sort(key=lambda s: s.id)
    i = bisect_left(suggestions, suggestion_id, key=lambda s: s.id)
    if i < len(suggestions) and suggestions[i].id == suggestion_id:
        return i
    return -1


def _contains(field: str, query: str) -> bool:
    return query in field


# -----------------------------------------------------------------------------
# Suggestion Repository
# -----------------------------------------------------------------------------


class SuggestionRepository:
    """Suggestions kept as one list per username."""

    def __init__(self, store: Store, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    def create(self, username: str, text: str) -> Suggestion:
        """
        Append a new suggestion to the user's list.

        The repository does not validate text; empty input is rejected by the
        caller (see teian.schemas.SuggestionCreate).

        Returns:
            The stored suggestion with its allocated ID and creation time
        """
        with self.store.update() as tx:
            b = tx.bucket(SUGGESTIONS_BUCKET)
            suggestions = self._decode(b.get(username), username)

            sugg = Suggestion(id=b.next_sequence(), username=username, text=text, created=self._clock())
            suggestions.append(sugg)

            b.put(username, codec.encode(suggestions))
        logger.debug(f"Created suggestion {sugg.id} for {username!r}")
        return sugg

    def of_user(self, username: str) -> List[Suggestion]:
        """Suggestions of one user. A user with none yields an empty list."""
        with self.store.view() as tx:
            return self._decode(tx.bucket(SUGGESTIONS_BUCKET).get(username), username)

    def all(self) -> List[Suggestion]:
        """
        Every suggestion of every user.

        Users are visited in key order (username bytes), so the result is not
        ordered by creation time; sort with teian.query when that matters.
        """
        t_start = time.time()
        result: List[Suggestion] = []
        with self.store.view() as tx:
            for username, value in tx.bucket(SUGGESTIONS_BUCKET).items():
                result.extend(self._decode(value, username))
        logger.trace(f"SuggestionRepository.all: {len(result)} suggestions in {time.time() - t_start:.3f}s")
        return result

    def delete(self, username: str, suggestion_id: int):
        """
        Remove one suggestion of a user.

        The user's list is re-sorted by ID as a side effect.

        Raises:
            NotFoundError: if the user has no suggestion with that ID
        """
        with self.store.update() as tx:
            b = tx.bucket(SUGGESTIONS_BUCKET)
            suggestions = self._decode(b.get(username), username)
            i = find_by_id(suggestions, suggestion_id)
            if i < 0:
                raise NotFoundError(f"suggestion {suggestion_id} of {username!r} does not exist")
            del suggestions[i]
            b.put(username, codec.encode(suggestions))
        logger.debug(f"Deleted suggestion {suggestion_id} of {username!r}")

    def delete_all(self) -> int:
        """Wipe the bucket. Returns the number of users removed."""
        with self.store.update() as tx:
            removed = tx.bucket(SUGGESTIONS_BUCKET).clear()
        logger.info(f"Deleted suggestions of {removed} users")
        return removed

    @staticmethod
    def _decode(value: Optional[bytes], username: str) -> List[Suggestion]:
        try:
            return codec.decode(value, Suggestion)
        except CorruptRecordError as exc:
            raise CorruptRecordError(f"could not decode suggestions: {exc}", key=username) from exc


# -----------------------------------------------------------------------------
# Alias Repository
# -----------------------------------------------------------------------------


class AliasRepository:
    """Aliases stored one per key, keyed by their own ID."""

    def __init__(self, store: Store, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    def create(self, username: str, old: str, new: str, comment: str = "") -> Alias:
        """Store a new alias proposal with status NEW."""
        with self.store.update() as tx:
            b = tx.bucket(ALIASES_BUCKET)
            alias = Alias(
                id=b.next_sequence(),
                username=username,
                old=old,
                new=new,
                comment=comment,
                created=self._clock(),
                status=AliasStatus.NEW,
            )
            b.put(alias_key(alias.id), codec.encode_one(alias))
        logger.debug(f"Created alias {alias.id} ({old!r} -> {new!r}) for {username!r}")
        return alias

    def get_by_id(self, alias_id: int) -> Alias:
        """
        Raises:
            NotFoundError: if no alias has that ID
        """
        with self.store.view() as tx:
            return self._get(tx.bucket(ALIASES_BUCKET), alias_id)

    def update(self, alias_id: int, patch: AliasPatch) -> Alias:
        """
        Overwrite old, new, comment and status of an existing alias.

        ID, username and creation time are kept.

        Raises:
            NotFoundError: if no alias has that ID
        """
        with self.store.update() as tx:
            b = tx.bucket(ALIASES_BUCKET)
            alias = self._get(b, alias_id)
            updated = alias.model_copy(
                update={
                    "old": patch.old,
                    "new": patch.new,
                    "comment": patch.comment,
                    "status": AliasStatus(patch.status),
                }
            )
            b.put(alias_key(alias_id), codec.encode_one(updated))
        logger.debug(f"Updated alias {alias_id} (status={updated.status.name})")
        return updated

    def delete(self, alias_id: int):
        """
        Raises:
            NotFoundError: if no alias has that ID
        """
        with self.store.update() as tx:
            if not tx.bucket(ALIASES_BUCKET).delete(alias_key(alias_id)):
                raise NotFoundError(f"alias {alias_id} does not exist")
        logger.debug(f"Deleted alias {alias_id}")

    def delete_all(self) -> int:
        """Wipe the bucket. Returns the number of aliases removed."""
        with self.store.update() as tx:
            removed = tx.bucket(ALIASES_BUCKET).clear()
        logger.info(f"Deleted {removed} aliases")
        return removed

    def all(self) -> List[Alias]:
        """Every alias, most recent ID first."""
        return self._scan()

    def of_user(self, username: str) -> List[Alias]:
        """Aliases proposed by username (exact match), most recent first."""
        return self._scan(lambda a: a.username == username)

    def search(self, query: str) -> List[Alias]:
        """Aliases whose old or new tag contains query."""
        return self._scan(lambda a: _contains(a.old, query) or _contains(a.new, query))

    def search_advanced(self, old: str = "", new: str = "", username: str = "", comment: str = "") -> List[Alias]:
        """
        Aliases matching every non-empty filter by substring.

        With all filters empty every alias is returned.
        """
        filters = [
            (attr, value)
            for attr, value in (("old", old), ("new", new), ("username", username), ("comment", comment))
            if value
        ]
        if not filters:
            return self._scan()
        return self._scan(lambda a: all(_contains(getattr(a, attr), value) for attr, value in filters))

    def _scan(self, predicate: Optional[Callable[[Alias], bool]] = None) -> List[Alias]:
        result: List[Alias] = []
        with self.store.view() as tx:
            for key, value in tx.bucket(ALIASES_BUCKET).items():
                alias = self._decode(value, key)
                if alias is not None and (predicate is None or predicate(alias)):
                    result.append(alias)
        # Keys compare as strings ("10" < "9"); order by the numeric ID instead.
        result.sort(key=lambda a: a.id, reverse=True)
        return result

    def _get(self, bucket, alias_id: int) -> Alias:
        key = alias_key(alias_id)
        alias = self._decode(bucket.get(key), key)
        if alias is None:
            raise NotFoundError(f"alias {alias_id} does not exist")
        return alias

    @staticmethod
    def _decode(value: Optional[bytes], key: str) -> Optional[Alias]:
        try:
            return codec.decode_one(value, Alias)
        except CorruptRecordError as exc:
            raise CorruptRecordError(f"could not decode alias: {exc}", key=key) from exc


# -----------------------------------------------------------------------------
# Quota Ledger
# -----------------------------------------------------------------------------


class QuotaLedger:
    """
    Cumulative upload bytes per user against one fixed cap.

    Usage only grows between resets; a charge that would cross the cap is
    rejected whole and leaves the stored usage untouched.
    """

    def __init__(self, store: Store, cap: int):
        if cap < 0:
            raise ValueError("quota cap must not be negative")
        self.store = store
        self.cap = int(cap)

    def charge(self, username: str, n: int) -> int:
        """
        Add n bytes to the user's usage.

        Returns:
            Bytes remaining under the cap after the charge

        Raises:
            OverQuotaError: if usage + n would exceed the cap
            ValueError: if n is negative
        """
        if n < 0:
            raise ValueError(f"cannot charge a negative amount ({n})")
        with self.store.update() as tx:
            b = tx.bucket(QUOTA_BUCKET)
            usage = self._decode(b.get(username), username)
            new_usage = usage + n
            if new_usage > self.cap:
                logger.info(f"Quota exceeded for {username!r}: {usage} + {n} > {self.cap}")
                raise OverQuotaError(username, usage=usage, requested=n, cap=self.cap)
            b.put(username, codec.encode_int(new_usage))
        return self.cap - new_usage

    def usage(self, username: str) -> int:
        """Bytes charged to username since the last reset (0 if untracked)."""
        with self.store.view() as tx:
            return self._decode(tx.bucket(QUOTA_BUCKET).get(username), username)

    def remaining(self, username: str) -> int:
        return max(self.cap - self.usage(username), 0)

    def reset_all(self) -> int:
        """Forget every user's usage. Returns the number of users reset."""
        with self.store.update() as tx:
            removed = tx.bucket(QUOTA_BUCKET).clear()
        logger.info(f"Upload quota reset for {removed} users")
        return removed

    @staticmethod
    def _decode(value: Optional[bytes], username: str) -> int:
        try:
            return codec.decode_int(value)
        except CorruptRecordError as exc:
            raise CorruptRecordError(f"could not decode quota usage: {exc}", key=username) from exc
