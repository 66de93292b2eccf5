"""Environment driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

# Persisted file next to the package, override with JUDGING_DB_PATH
DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "judging.sqlite")


@dataclass(frozen=True)
class Settings:
    db_path: str = DEFAULT_DB_PATH
    log_level: str = "INFO"
    admin_username: str = "admin"
    admin_password: str = "admin"
    session_ttl_hours: int = 12


def load_settings() -> Settings:
    return Settings(
        db_path=os.getenv("JUDGING_DB_PATH", DEFAULT_DB_PATH),
        log_level=os.getenv("JUDGING_LOG_LEVEL", "INFO").upper(),
        admin_username=os.getenv("JUDGING_ADMIN_USERNAME", "admin"),
        admin_password=os.getenv("JUDGING_ADMIN_PASSWORD", "admin"),
        session_ttl_hours=int(os.getenv("JUDGING_SESSION_TTL_HOURS", "12")),
    )
