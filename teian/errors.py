"""Error taxonomy for the suggestion store."""

from __future__ import annotations


class TeianError(Exception):
    """Base class for all store errors."""


class CorruptRecordError(TeianError):
    """Bytes stored under a key do not decode into the expected shape."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message if key is None else f"{message} (key={key!r})")
        self.key = key


class NotFoundError(TeianError, KeyError):
    """The requested record does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class OverQuotaError(TeianError):
    """A charge would push a user's usage above the quota cap."""

    def __init__(self, username: str, usage: int, requested: int, cap: int):
        super().__init__(f"quota exceeded for {username!r}: usage {usage} + {requested} > cap {cap}")
        self.username = username
        self.usage = usage
        self.requested = requested
        self.cap = cap


class StorageUnavailableError(TeianError):
    """The underlying database could not be opened, read or written."""


class TransactionError(TeianError):
    """A transaction was used outside its mode or lifetime."""
