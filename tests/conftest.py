"""Shared pytest fixtures and test configuration.

This module provides common fixtures and utilities for all tests.
"""

from __future__ import annotations

import os
import sys
import tempfile
from datetime import datetime, timedelta
from typing import Generator

import pytest

# Ensure repo root is on sys.path
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)


def configure_test_env() -> None:
    """Configure environment variables for testing.

    Data directory strategy:
    - If TEIAN_DATA_DIR is already set, use it (user override)
    - Otherwise, default to an isolated temporary directory to avoid touching real data/

    Individual tests open their own store under tmp_path; the data directory
    only matters for code that falls back to settings.db_file.
    """
    if "TEIAN_DATA_DIR" not in os.environ:
        os.environ["TEIAN_DATA_DIR"] = tempfile.mkdtemp(prefix="teian_test_")

    os.environ.setdefault("TEIAN_LOG_LEVEL", "ERROR")


# Configure test environment on import
configure_test_env()


class FakeClock:
    """Deterministic clock advancing a fixed step on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def db_path(tmp_path) -> str:
    """Path of a fresh store file."""
    return str(tmp_path / "teian.db")


@pytest.fixture
def store(db_path) -> Generator:
    """Open store with every application bucket, closed after the test."""
    from teian.db import ALL_BUCKETS, Store

    s = Store(db_path, buckets=ALL_BUCKETS, timeout=0.5, retry_interval=0.05)
    yield s
    s.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def suggestions(store, clock):
    from teian.repositories import SuggestionRepository

    return SuggestionRepository(store, clock=clock)


@pytest.fixture
def aliases(store, clock):
    from teian.repositories import AliasRepository

    return AliasRepository(store, clock=clock)


@pytest.fixture
def ledger(store):
    """Quota ledger with a 10 MiB cap."""
    from teian.repositories import QuotaLedger

    return QuotaLedger(store, cap=10 << 20)
