import logging
import os
import sys
from importlib import metadata
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _set_app_version():
    try:
        version = metadata.version("logcontext")
        if os.environ.get("DEV", False):
            return f"{version}-dev"

        return version
    except metadata.PackageNotFoundError:
        return "DEV"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    app_version: str = _set_app_version()

    # Request seeding
    user_id_header: str = "X-User-ID"
    user_id_context_key: str = "userID"

    # Live logs buffer
    live_logs_enabled: bool = True
    live_logs_capacity: int = 250  # Most recent records kept in memory
    live_logs_path: str = "/actuator/live-logs"

    # Log output
    json_logs: bool = True
    log_file: Optional[str] = None

    # Dev
    testing: bool = False
    dev: bool = False

    @model_validator(mode="after")
    def validate_request_seeding(self):
        """Ensure the seeded header and context key are usable."""
        if not self.user_id_header or not self.user_id_header.strip():
            logging.error("USER_ID_HEADER cannot be blank.")
            sys.exit(1)

        if not self.user_id_context_key or not self.user_id_context_key.strip():
            logging.error("USER_ID_CONTEXT_KEY cannot be blank.")
            sys.exit(1)

        return self

    @model_validator(mode="after")
    def validate_live_logs(self):
        """Ensure the live logs buffer configuration values are sane."""
        if self.live_logs_capacity <= 0:
            logging.error(
                "LIVE_LOGS_CAPACITY must be greater than zero. Current value: %s",
                self.live_logs_capacity,
            )
            sys.exit(1)

        if not self.live_logs_path.startswith("/"):
            logging.error(
                "LIVE_LOGS_PATH must start with '/'. Current value: %s",
                self.live_logs_path,
            )
            sys.exit(1)

        return self


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton, creating it if needed.

    Returns:
        Settings: The application settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override settings (primarily for testing).

    Args:
        settings: The Settings instance to use.
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for test cleanup)."""
    global _settings
    _settings = None


def get_loglevel():
    loglevel = os.getenv("LOGLEVEL", "INFO")

    match loglevel:
        case "INFO":
            return logging.INFO
        case "WARNING":
            return logging.WARNING
        case "ERROR":
            return logging.ERROR
        case "CRITICAL":
            return logging.CRITICAL
        case "DEBUG":
            return logging.DEBUG
        case _:
            return logging.INFO
