"""
Database support functions.
The idea is that none of the repositories deal directly with SQLite.
Any of the file system I/O and the associated settings are in this single file.

The store is an ordered key-value database split into named buckets. Each bucket
is a SQLite table of (key TEXT, value BLOB); per-bucket sequences live in a
reserved `_sequences` table so they commit or roll back with the write that
used them.

    store = Store("teian.db", buckets=["suggestions"])
    with store.update() as tx:
        b = tx.bucket("suggestions")
        b.put("alice", b"...")
    with store.view() as tx:
        value = tx.bucket("suggestions").get("alice")

Only one read-write transaction runs at a time (process-wide lock plus
BEGIN IMMEDIATE). Read-only transactions use their own connection and see a
consistent WAL snapshot regardless of in-flight writers. The store file is
guarded by an exclusive flock on "<path>.lock" for the lifetime of the handle,
so a second process fails to open it once the open timeout elapses.
"""

from __future__ import annotations

import fcntl
import os
import re
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from loguru import logger

from .errors import StorageUnavailableError, TransactionError

# -----------------------------------------------------------------------------
# Bucket names

SUGGESTIONS_BUCKET = "suggestions"
ALIASES_BUCKET = "aliases"
QUOTA_BUCKET = "uploadQuota"

ALL_BUCKETS = (SUGGESTIONS_BUCKET, ALIASES_BUCKET, QUOTA_BUCKET)

SEQUENCE_TABLE = "_sequences"

# SQLite integers are signed 64-bit.
MAX_SEQUENCE = 2**63 - 1

DEFAULT_OPEN_TIMEOUT = 5.0
DEFAULT_RETRY_INTERVAL = 0.1
DEFAULT_BUSY_TIMEOUT = 5.0

# Leading underscore is reserved for internal tables.
_VALID_BUCKET_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


def _validate_bucket_name(name: str) -> str:
    if not isinstance(name, str) or not _VALID_BUCKET_RE.match(name):
        raise ValueError(
            f"Invalid bucket name {name!r}: must be alphanumeric with underscores, starting with a letter"
        )
    return name


def _init_connection(conn: sqlite3.Connection, busy_timeout: float, enable_wal: bool = False):
    """Initialize connection with settings for one writer and concurrent readers."""
    conn.execute(f"PRAGMA busy_timeout={int(busy_timeout * 1000)}")  # milliseconds
    conn.execute("PRAGMA synchronous=NORMAL")
    if enable_wal:
        conn.execute("PRAGMA journal_mode=WAL")


# -----------------------------------------------------------------------------
# Buckets and transactions


class Bucket:
    """A key-ordered namespace, valid only inside the transaction that returned it."""

    def __init__(self, tx: "Transaction", name: str):
        self._tx = tx
        self.name = name

    def get(self, key: str) -> Optional[bytes]:
        """Return the value stored under key, or None."""
        row = self._tx._execute(f'SELECT value FROM "{self.name}" WHERE key = ?', (key,)).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def put(self, key: str, value: bytes):
        self._tx._check_writable()
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"bucket values must be bytes, got {type(value).__name__}")
        self._tx._execute(
            f'INSERT OR REPLACE INTO "{self.name}" (key, value) VALUES (?, ?)',
            (key, sqlite3.Binary(bytes(value))),
        )

    def delete(self, key: str) -> bool:
        """Delete key. Returns False if it was not present."""
        self._tx._check_writable()
        cursor = self._tx._execute(f'DELETE FROM "{self.name}" WHERE key = ?', (key,))
        return cursor.rowcount > 0

    def clear(self) -> int:
        """Delete every key in the bucket. Returns the number of keys removed."""
        self._tx._check_writable()
        cursor = self._tx._execute(f'DELETE FROM "{self.name}"')
        return max(cursor.rowcount, 0)

    def keys(self) -> List[str]:
        cursor = self._tx._execute(f'SELECT key FROM "{self.name}" ORDER BY key')
        return [row[0] for row in cursor.fetchall()]

    def items(self) -> List[Tuple[str, bytes]]:
        """All (key, value) pairs in byte order of the key."""
        cursor = self._tx._execute(f'SELECT key, value FROM "{self.name}" ORDER BY key')
        return [(row[0], bytes(row[1])) for row in cursor.fetchall()]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __contains__(self, key: str) -> bool:
        cursor = self._tx._execute(f'SELECT 1 FROM "{self.name}" WHERE key = ? LIMIT 1', (key,))
        return cursor.fetchone() is not None

    def __len__(self) -> int:
        return self._tx._execute(f'SELECT COUNT(*) FROM "{self.name}"').fetchone()[0]

    def sequence(self) -> int:
        """Current sequence value (0 if never allocated)."""
        row = self._tx._execute(f"SELECT value FROM {SEQUENCE_TABLE} WHERE bucket = ?", (self.name,)).fetchone()
        return int(row[0]) if row else 0

    def next_sequence(self) -> int:
        """Allocate the next identifier for this bucket. Never returns 0."""
        self._tx._check_writable()
        current = self.sequence()
        if current >= MAX_SEQUENCE:
            raise StorageUnavailableError(f"sequence of bucket {self.name!r} is exhausted")
        nxt = current + 1
        self._tx._execute(
            f"INSERT OR REPLACE INTO {SEQUENCE_TABLE} (bucket, value) VALUES (?, ?)",
            (self.name, nxt),
        )
        return nxt


class Transaction:
    """A read-only or read-write view of the store."""

    def __init__(self, conn: sqlite3.Connection, writable: bool, buckets: Iterable[str]):
        self._conn = conn
        self._writable = writable
        self._buckets = frozenset(buckets)
        self._closed = False

    @property
    def writable(self) -> bool:
        return self._writable

    def bucket(self, name: str) -> Bucket:
        if self._closed:
            raise TransactionError("transaction is closed")
        if name not in self._buckets:
            raise TransactionError(f"bucket {name!r} does not exist")
        return Bucket(self, name)

    def _check_writable(self):
        if not self.writable:
            raise TransactionError("cannot write in a read-only transaction")

    def _execute(self, sql: str, params=()) -> sqlite3.Cursor:
        if self._closed:
            raise TransactionError("transaction is closed")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"database operation failed: {exc}") from exc

    def _close(self):
        self._closed = True


# -----------------------------------------------------------------------------
# Store


class Store:
    """
    Handle on the bucket database file.

    Opened once per process and passed to the repositories; close() must run
    on shutdown so the lock file is released and the WAL is checkpointed.
    """

    def __init__(
        self,
        path: str | os.PathLike,
        buckets: Iterable[str] = (),
        timeout: float = DEFAULT_OPEN_TIMEOUT,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ):
        """
        Args:
            path: Path to the SQLite database file (created if missing)
            buckets: Buckets to create if they do not exist yet
            timeout: Max seconds to wait for another process to release the file
            retry_interval: Fixed sleep between lock attempts
            busy_timeout: SQLite busy timeout for the writer connection
        """
        self.path = str(path)
        self.busy_timeout = busy_timeout
        self._buckets: set[str] = set()
        self._write_lock = threading.Lock()
        self._local = threading.local()
        self._closed = False
        self._lock_fd: Optional[int] = None
        self._conn: Optional[sqlite3.Connection] = None

        db_dir = os.path.dirname(self.path)
        try:
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"could not open {self.path}: {exc}") from exc

        self._lock_fd = self._acquire_file_lock(timeout, retry_interval)
        try:
            self._conn = self._connect(enable_wal=True)
            self._conn.execute(f"CREATE TABLE IF NOT EXISTS {SEQUENCE_TABLE} (bucket TEXT PRIMARY KEY, value INTEGER)")
            self._buckets.update(self._existing_buckets())
            for name in buckets:
                self.create_bucket_if_not_exists(name)
        except BaseException:
            self._release()
            raise
        logger.info(f"Opened store {self.path} (buckets: {', '.join(sorted(self._buckets)) or 'none'})")

    # -- opening ---------------------------------------------------------------

    def _acquire_file_lock(self, timeout: float, retry_interval: float) -> int:
        lock_path = self.path + ".lock"
        try:
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as exc:
            raise StorageUnavailableError(f"could not open {lock_path}: {exc}") from exc
        deadline = time.monotonic() + max(timeout, 0)
        attempt = 0
        while True:
            attempt += 1
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                if attempt > 1:
                    logger.debug(f"Acquired {lock_path} after {attempt} attempts")
                return fd
            except BlockingIOError:
                if time.monotonic() + retry_interval > deadline:
                    os.close(fd)
                    raise StorageUnavailableError(
                        f"timed out after {timeout}s waiting for {self.path}: locked by another process"
                    ) from None
                logger.debug(f"{self.path} is locked, retrying in {retry_interval}s")
                time.sleep(retry_interval)
            except OSError as exc:
                os.close(fd)
                raise StorageUnavailableError(f"could not lock {lock_path}: {exc}") from exc

    def _connect(self, enable_wal: bool = False) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self.path,
                timeout=self.busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            _init_connection(conn, self.busy_timeout, enable_wal=enable_wal)
            return conn
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"could not open {self.path}: {exc}") from exc

    def _existing_buckets(self) -> List[str]:
        cursor = self._conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        return [row[0] for row in cursor.fetchall() if _VALID_BUCKET_RE.match(row[0])]

    # -- buckets ---------------------------------------------------------------

    @property
    def buckets(self) -> List[str]:
        return sorted(self._buckets)

    def create_bucket_if_not_exists(self, name: str):
        """Create a bucket. Creating an existing bucket is a no-op."""
        _validate_bucket_name(name)
        if name in self._buckets:
            return
        with self._write_lock:
            self._check_open()
            try:
                self._conn.execute(f'CREATE TABLE IF NOT EXISTS "{name}" (key TEXT PRIMARY KEY, value BLOB NOT NULL)')
            except sqlite3.Error as exc:
                raise StorageUnavailableError(f"could not create bucket {name!r}: {exc}") from exc
            self._buckets.add(name)
        logger.debug(f"Bucket {name!r} ready")

    # -- transactions ----------------------------------------------------------

    def _check_open(self):
        if self._closed:
            raise StorageUnavailableError(f"store {self.path} is closed")

    @contextmanager
    def view(self) -> Iterator[Transaction]:
        """Read-only transaction on a snapshot of the store."""
        self._check_open()
        conn = self._connect()
        tx = Transaction(conn, writable=False, buckets=self._buckets)
        try:
            conn.execute("PRAGMA query_only=ON")
            conn.execute("BEGIN")
            yield tx
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"read transaction failed: {exc}") from exc
        finally:
            tx._close()
            try:
                conn.close()
            except sqlite3.Error:
                logger.opt(exception=True).warning("Failed to close read connection")

    @contextmanager
    def update(self) -> Iterator[Transaction]:
        """
        Read-write transaction. All writes commit together when the block exits
        normally; any exception rolls every write back and is re-raised.
        """
        if getattr(self._local, "in_update", False):
            raise TransactionError("nested read-write transaction")

        with self._write_lock:
            self._check_open()
            self._local.in_update = True
            tx = Transaction(self._conn, writable=True, buckets=self._buckets)
            try:
                try:
                    self._conn.execute("BEGIN IMMEDIATE")
                except sqlite3.Error as exc:
                    raise StorageUnavailableError(f"could not begin write transaction: {exc}") from exc
                try:
                    yield tx
                except BaseException:
                    tx._close()
                    self._rollback()
                    raise
                tx._close()
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    self._rollback()
                    raise StorageUnavailableError(f"commit failed: {exc}") from exc
            finally:
                self._local.in_update = False

    def _rollback(self):
        try:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.opt(exception=True).warning("Rollback failed")

    # -- lifecycle -------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Close the store and release the file lock. Safe to call twice."""
        if self._closed:
            return
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
            self._release()
        logger.info(f"Closed store {self.path}")

    def _release(self):
        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.close()
            except sqlite3.Error:
                logger.opt(exception=True).warning(f"Failed to close {self.path}")
        fd, self._lock_fd = self._lock_fd, None
        if fd is not None:
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# -----------------------------------------------------------------------------
# Store accessor


def open_store(settings_obj=None, path: str | os.PathLike | None = None) -> Store:
    """Open the application store with every bucket the repositories need."""
    if settings_obj is None:
        from config import settings as settings_obj

    db_path = Path(path) if path is not None else Path(settings_obj.db_file)
    return Store(
        db_path,
        buckets=ALL_BUCKETS,
        timeout=settings_obj.db.open_timeout,
        retry_interval=settings_obj.db.retry_interval,
        busy_timeout=settings_obj.db.busy_timeout,
    )
