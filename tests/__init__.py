"""Test package for teian.

- **unit/**: Unit tests for individual modules
  - test_codec.py: Entity codec tests
  - test_db.py: Bucket store, transactions, sequences, file lock
  - test_suggestion_repository.py / test_alias_repository.py / test_quota_ledger.py
  - test_repositories_atomic.py: Rollback of failed repository writes
  - test_query.py: Filter and sort helpers
  - test_schemas.py: Input validation
  - test_scheduler.py: Daily quota reset
  - test_settings.py: Settings loading and config CLI
  - test_cli.py: Management CLI and daemon smoke tests

Running tests:
    pytest tests/
"""
