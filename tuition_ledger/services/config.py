"""Configuration loading for the ledger.

Loads settings from .env file and environment variables with sensible defaults.
Validates values and provides clear error messages.
"""

import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class LedgerSettings:
    """Process-wide ledger settings."""

    database_url: str = "sqlite:///./tuition_ledger.db"
    """SQLAlchemy database URL (default: local SQLite)"""

    log_file: str = "logs/ledger.log"
    """Path to log file (default: logs/ledger.log)"""

    log_level: str = "INFO"
    """Logging level name"""

    timezone: str | None = None
    """IANA timezone of the viewer's local calendar (default: process local time)"""

    auto_approve_cash: bool = False
    """Default for organizations created without an explicit setting"""


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {value!r}")


def load_settings(env_file: str = ".env") -> LedgerSettings:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, LOG_FILE, LOG_LEVEL, LEDGER_TIMEZONE, AUTO_APPROVE_CASH)
    2. .env file in the working directory
    3. Default values

    Returns:
        LedgerSettings with validated values

    Raises:
        ValueError: If a value is invalid
    """
    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(env_path)

    defaults = LedgerSettings()
    database_url = os.getenv("DATABASE_URL", defaults.database_url)
    log_file = os.getenv("LOG_FILE", defaults.log_file)
    log_level = os.getenv("LOG_LEVEL", defaults.log_level).upper()
    timezone = os.getenv("LEDGER_TIMEZONE") or None
    auto_approve_cash = _parse_bool("AUTO_APPROVE_CASH", os.getenv("AUTO_APPROVE_CASH", "false"))

    if not database_url:
        raise ValueError("DATABASE_URL is empty. Set DATABASE_URL or remove it to use the default")

    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ValueError(f"LOG_LEVEL must be a standard logging level, got {log_level!r}")

    if timezone:
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"LEDGER_TIMEZONE is not a known timezone: {timezone!r}") from e

    return LedgerSettings(
        database_url=database_url,
        log_file=log_file,
        log_level=log_level,
        timezone=timezone,
        auto_approve_cash=auto_approve_cash,
    )


def local_today(settings: LedgerSettings | None = None) -> date:
    """Current calendar date in the viewer's local timezone.

    The only place the ledger reads the clock; callers inject the result.
    """
    if settings and settings.timezone:
        return datetime.now(ZoneInfo(settings.timezone)).date()
    return datetime.now().astimezone().date()


__all__ = ["LedgerSettings", "load_settings", "local_today"]
