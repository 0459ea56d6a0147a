"""Runtime configuration read from the environment."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _int_setting(environ, name: str, default: int, minimum: int = 1) -> int:
    value = environ.get(name)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Invalid {name}={value!r}, using {default}")
        return default
    if parsed < minimum:
        logger.warning(f"{name}={parsed} is below {minimum}, using {default}")
        return default
    return parsed


@dataclass
class Config:
    jira_host: str = ""
    jira_user: str = ""
    jira_pass: str = ""
    http_user: Optional[str] = None
    http_pass: Optional[str] = None
    organization_field: str = "customfield_10002"
    max_results: int = 10000
    timeout: int = 60
    workers: int = 6
    cors_origins: str = "*"
    log_level: str = "INFO"
    port: int = 3000

    @property
    def auth_mode(self) -> str:
        """'basic' when an HTTP user is configured, otherwise 'anonymous'."""
        return "basic" if self.http_user else "anonymous"

    @classmethod
    def from_env(cls, environ=None) -> "Config":
        """Read settings from the environment, loading a .env file first."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        return cls(
            jira_host=environ.get("JIRA_HOST", ""),
            jira_user=environ.get("JIRA_USER", ""),
            jira_pass=environ.get("JIRA_PASS", ""),
            http_user=environ.get("HTTP_USER") or None,
            http_pass=environ.get("HTTP_PASS", ""),
            organization_field=environ.get("JIRA_ORGANIZATION_FIELD") or "customfield_10002",
            max_results=_int_setting(environ, "JIRA_MAX_RESULTS", 10000),
            timeout=_int_setting(environ, "JIRA_TIMEOUT", 60),
            workers=_int_setting(environ, "QUERY_WORKERS", 6),
            cors_origins=environ.get("CORS_ORIGINS") or "*",
            log_level=environ.get("LOG_LEVEL") or "INFO",
            port=_int_setting(environ, "PORT", 3000),
        )
