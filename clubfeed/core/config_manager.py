"""Configuration management for the clubfeed server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from clubfeed import __version__

logger = logging.getLogger(__name__)

# Upstream feed settings keep their deployment names; the 400 error body names them.
ICAL_URL_ENV = "ICAL_URL"
NEWS_RSS_URL_ENV = "NEWS_RSS_URL"
CORS_ORIGIN_ENV = "CORS_ORIGIN"

DEFAULT_CACHE_TTL_SECONDS = 600
DEFAULT_CALENDAR_LABEL = "Laget.se"


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class ServiceConfig(BaseModel):
    """Resolved runtime configuration."""

    ical_url: Optional[str] = Field(default=None, description="ICS calendar feed URL")
    news_rss_url: Optional[str] = Field(default=None, description="RSS news feed URL")
    cors_origin: str = Field(default="*", description="Allowed CORS origin")

    server_bind: str = "0.0.0.0"  # nosec B104 - default bind; override via env
    server_port: int = 8080

    cache_ttl_seconds: int = Field(default=DEFAULT_CACHE_TTL_SECONDS, ge=1)
    cache_max_entries: int = Field(default=256, ge=1)

    local_timezone: Optional[str] = Field(
        default=None, description="IANA zone for floating ICS date-times"
    )
    calendar_label: str = DEFAULT_CALENDAR_LABEL
    user_agent: str = f"clubfeed/{__version__}"
    request_timeout: float = Field(default=30.0, gt=0)

    log_level: str = "INFO"
    debug_logging: bool = False


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> ServiceConfig:
        """Build configuration from environment variables.

        Recognizes:
        - ICAL_URL -> 'ical_url'
        - NEWS_RSS_URL -> 'news_rss_url'
        - CORS_ORIGIN -> 'cors_origin'
        - CLUBFEED_WEB_HOST or CLUBFEED_SERVER_BIND -> 'server_bind'
        - CLUBFEED_WEB_PORT or CLUBFEED_SERVER_PORT -> 'server_port' (int)
        - CLUBFEED_CACHE_TTL -> 'cache_ttl_seconds' (int)
        - CLUBFEED_CACHE_MAX_ENTRIES -> 'cache_max_entries' (int)
        - CLUBFEED_LOCAL_TIMEZONE -> 'local_timezone'
        - CLUBFEED_CALENDAR_LABEL -> 'calendar_label'
        - CLUBFEED_USER_AGENT -> 'user_agent'
        - CLUBFEED_REQUEST_TIMEOUT -> 'request_timeout' (seconds)
        - CLUBFEED_LOG_LEVEL -> 'log_level'
        - CLUBFEED_DEBUG -> 'debug_logging'

        Returns:
            ServiceConfig instance
        """
        values: dict[str, object] = {}

        string_settings = {
            ICAL_URL_ENV: "ical_url",
            NEWS_RSS_URL_ENV: "news_rss_url",
            CORS_ORIGIN_ENV: "cors_origin",
            "CLUBFEED_LOCAL_TIMEZONE": "local_timezone",
            "CLUBFEED_CALENDAR_LABEL": "calendar_label",
            "CLUBFEED_USER_AGENT": "user_agent",
        }
        for env_name, field in string_settings.items():
            value = _env(env_name)
            if value is not None:
                values[field] = value

        host = _env("CLUBFEED_WEB_HOST") or _env("CLUBFEED_SERVER_BIND")
        if host:
            values["server_bind"] = host

        int_settings = {
            "server_port": _env("CLUBFEED_WEB_PORT") or _env("CLUBFEED_SERVER_PORT"),
            "cache_ttl_seconds": _env("CLUBFEED_CACHE_TTL"),
            "cache_max_entries": _env("CLUBFEED_CACHE_MAX_ENTRIES"),
        }
        for field, raw in int_settings.items():
            if raw is None:
                continue
            try:
                number = int(raw)
            except ValueError:
                logger.warning("Invalid integer for %s=%r; ignoring", field, raw)
                continue
            if number < 1:
                logger.warning("Out of range value for %s=%r; ignoring", field, raw)
                continue
            values[field] = number

        timeout = _env("CLUBFEED_REQUEST_TIMEOUT")
        if timeout:
            try:
                parsed_timeout = float(timeout)
            except ValueError:
                parsed_timeout = 0.0
            if parsed_timeout > 0:
                values["request_timeout"] = parsed_timeout
            else:
                logger.warning("Invalid CLUBFEED_REQUEST_TIMEOUT=%r; ignoring", timeout)

        log_level = _env("CLUBFEED_LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level.upper()

        debug = _env("CLUBFEED_DEBUG")
        if debug:
            values["debug_logging"] = debug.lower() in ("1", "true", "yes", "on")

        return ServiceConfig(**values)

    def load_full_config(self) -> ServiceConfig:
        """Load .env file and build configuration from environment.

        Returns:
            ServiceConfig instance
        """
        self.load_env_file()
        return self.build_config_from_env()
