"""
config.py – Load and validate runtime configuration.

All configuration is loaded from environment variables (or a .env file at
the repository root).  Call `get_config()` once at startup to obtain a
validated Config object.

Risk thresholds and the default scarcity factor live in constants.py.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Repository root: the directory holding waterrisk/
_REPO_ROOT = Path(__file__).resolve().parent.parent

_env_file = _REPO_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class Config:
    """Validated runtime configuration."""

    database_url: str | None = None
    log_level: str = "INFO"
    fetch_timeout_seconds: float = 30.0

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


def get_config(require_database: bool = False) -> Config:
    """
    Read environment variables, validate them, and return a Config.

    Parameters
    ----------
    require_database:
        When True, DATABASE_URL must be set.

    Raises
    ------
    EnvironmentError
        If a required variable is missing or a value cannot be parsed.
    """
    database_url = os.environ.get("DATABASE_URL") or None
    if require_database and not database_url:
        raise EnvironmentError(
            "Missing required environment variable(s): DATABASE_URL\n"
            "Copy .env.example → .env and fill in the values."
        )

    log_level = (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in _VALID_LOG_LEVELS:
        raise EnvironmentError(
            f"LOG_LEVEL must be one of {', '.join(sorted(_VALID_LOG_LEVELS))}, got {log_level!r}"
        )

    raw_timeout = os.environ.get("WATER_RISK_FETCH_TIMEOUT")
    timeout = 30.0
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise EnvironmentError(
                f"WATER_RISK_FETCH_TIMEOUT must be a number of seconds, got {raw_timeout!r}"
            ) from exc
        if timeout <= 0:
            raise EnvironmentError("WATER_RISK_FETCH_TIMEOUT must be > 0")

    return Config(
        database_url=database_url,
        log_level=log_level,
        fetch_timeout_seconds=timeout,
    )
