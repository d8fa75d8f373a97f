# config.py

"""Runtime settings for the reservation and payment engine.

Defaults live in the ``config.json`` shipped next to this module. Any field
can be overridden through an environment variable of the same name (case
insensitive), e.g. ``DATABASE_URL`` or ``LOCK_TIMEOUT_SECS``.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).with_name("config.json")


class Settings(BaseSettings):
    """Engine settings; see ``config.json`` for the shipped defaults."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./dineflow.db"
    redis_url: str | None = None
    # IANA zone the reservation dates and times are expressed in
    timezone: str = "UTC"
    default_duration_mins: int = 60
    lock_timeout_secs: float = 5.0
    currency: str = "usd"
    slow_query_ms: int = 200
    log_level: str = "INFO"
    log_json: bool = True


def _file_values(path: Path) -> dict:
    if not path.exists():
        return {}
    return json.loads(path.read_text())


@lru_cache
def get_settings() -> Settings:
    """Return the process wide :class:`Settings`.

    Environment variables win over ``config.json``. Call
    ``get_settings.cache_clear()`` after changing the environment.
    """

    values = _file_values(CONFIG_FILE)
    for name in Settings.model_fields:
        env_value = os.environ.get(name.upper(), os.environ.get(name))
        if env_value is not None:
            values[name] = env_value
    return Settings(**values)
