"""Unit tests for settings loading, path resolution and reload behavior."""

from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import Settings


class TestDefaults:
    def test_db_file_defaults_under_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TEIAN_DATA_DIR", str(tmp_path))
        monkeypatch.delenv("TEIAN_DB_FILE", raising=False)

        s = Settings()

        assert s.data_dir == tmp_path
        assert s.db_file == tmp_path / "teian.db"

    def test_explicit_db_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TEIAN_DB_FILE", str(tmp_path / "other.db"))

        assert Settings().db_file == tmp_path / "other.db"

    def test_quota_defaults(self, monkeypatch):
        for name in ("CAP_BYTES", "RESET_HOUR", "RESET_MINUTE", "RESET_SECOND", "RESET_ENABLED"):
            monkeypatch.delenv(f"TEIAN_QUOTA_{name}", raising=False)

        quota = Settings().quota

        assert quota.cap_bytes == 50 << 20
        assert (quota.reset_hour, quota.reset_minute, quota.reset_second) == (0, 0, 0)
        assert quota.reset_enabled is True


class TestEnvLoading:
    def test_quota_from_env(self, monkeypatch):
        monkeypatch.setenv("TEIAN_QUOTA_CAP_BYTES", "1024")
        monkeypatch.setenv("TEIAN_QUOTA_RESET_HOUR", "4")

        s = Settings()

        assert s.quota.cap_bytes == 1024
        assert s.quota.reset_hour == 4

    def test_db_timeouts_from_env(self, monkeypatch):
        monkeypatch.setenv("TEIAN_DB_OPEN_TIMEOUT", "1.5")

        assert Settings().db.open_timeout == 1.5

    def test_negative_cap_rejected(self, monkeypatch):
        monkeypatch.setenv("TEIAN_QUOTA_CAP_BYTES", "-1")

        with pytest.raises(ValidationError):
            Settings()

    def test_reset_hour_out_of_range_rejected(self, monkeypatch):
        monkeypatch.setenv("TEIAN_QUOTA_RESET_HOUR", "24")

        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_log_format_rejected(self, monkeypatch):
        monkeypatch.setenv("TEIAN_LOG_FORMAT", "xml")

        with pytest.raises(ValidationError):
            Settings()

    def test_string_paths_become_paths(self):
        s = Settings(data_dir="/tmp/teian-data")

        assert isinstance(s.data_dir, Path)
        assert s.db_file == Path("/tmp/teian-data/teian.db")


def test_reload_settings_updates_module_binding(monkeypatch):
    """reload_settings should update both `config.settings` and `config.settings.settings`."""
    import config

    settings_module = importlib.import_module("config.settings")

    old = config.settings

    monkeypatch.setenv("TEIAN_QUOTA_CAP_BYTES", "4096")
    try:
        new = config.reload_settings()

        assert new is not old
        assert new is config.settings
        assert new is settings_module.settings
        assert new.quota.cap_bytes == 4096
    finally:
        monkeypatch.undo()
        config.reload_settings()


class TestConfigCli:
    def test_show_json(self, capsys):
        from config.cli import main

        main(["show", "--json"])

        data = json.loads(capsys.readouterr().out)
        assert isinstance(data["quota"]["cap_bytes"], int)
        assert set(data["db"]) == {"open_timeout", "retry_interval", "busy_timeout"}

    def test_validate_passes_with_defaults(self, capsys):
        from config.cli import main

        with pytest.raises(SystemExit) as excinfo:
            main(["validate"])

        assert excinfo.value.code == 0
        assert "passed" in capsys.readouterr().out

    def test_env_template(self, capsys):
        from config.cli import main

        main(["env"])

        out = capsys.readouterr().out
        assert "TEIAN_QUOTA_CAP_BYTES=" in out
        assert "TEIAN_DB_OPEN_TIMEOUT=" in out
