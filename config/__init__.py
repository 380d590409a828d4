"""
Teian settings package.

`settings` is the process-wide Settings instance built from TEIAN_* environment
variables and `.env`. The store path, open timeouts and the upload quota cap and
reset time all come from here:

    from config import settings
    settings.db_file              # data_dir/teian.db unless TEIAN_DB_FILE is set
    settings.quota.cap_bytes      # TEIAN_QUOTA_CAP_BYTES

`python -m config.cli show|validate|env` prints, checks or exports the values.
"""

from typing import TYPE_CHECKING, cast

import config.settings as _settings_module
from config.settings import Settings, get_settings

if TYPE_CHECKING:
    settings: Settings = _settings_module.settings
else:
    settings = cast(Settings, _settings_module.settings)


def reload_settings() -> Settings:
    """Re-read the environment and rebind both `config.settings` and `config.settings.settings`."""
    new_settings = _settings_module.reload_settings()
    globals()["settings"] = new_settings
    _settings_module.settings = new_settings
    return new_settings


__all__ = ["Settings", "get_settings", "reload_settings", "settings"]
