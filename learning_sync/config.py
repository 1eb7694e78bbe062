# learning_sync/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

REQUIRED = (
    "LEARNING_URL_BASE",
    "GOOGLE_EMAIL",
    "GOOGLE_PASSWORD",
    "NOTION_TOKEN",
    "NOTION_CALENDAR_DATABASE_ID",
)
DEFAULT_PORTAL = "learning_google"
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    learning_url_base: str
    google_email: str
    google_password: str
    notion_token: str
    notion_database_id: str
    google_organization_domain: Optional[str] = None
    portal: str = DEFAULT_PORTAL
    headless: bool = False
    log_level: int = logging.INFO

    def __repr__(self) -> str:  # keep secrets out of logs
        return (
            f"Settings(learning_url_base={self.learning_url_base!r}, "
            f"google_email={self.google_email!r}, portal={self.portal!r}, "
            f"notion_database_id={self.notion_database_id!r}, headless={self.headless})"
        )


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment (after reading .env when no mapping is given).

    Every missing required variable is reported in a single ConfigError.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    missing = [name for name in REQUIRED if not (environ.get(name) or "").strip()]
    if missing:
        raise ConfigError(missing)

    return Settings(
        learning_url_base=environ["LEARNING_URL_BASE"].strip().rstrip("/"),
        google_email=environ["GOOGLE_EMAIL"].strip(),
        google_password=environ["GOOGLE_PASSWORD"],
        notion_token=environ["NOTION_TOKEN"].strip(),
        notion_database_id=environ["NOTION_CALENDAR_DATABASE_ID"].strip(),
        google_organization_domain=(environ.get("GOOGLE_ORGANIZATION_DOMAIN") or "").strip() or None,
        portal=(environ.get("LEARNING_PORTAL") or DEFAULT_PORTAL).strip(),
        headless=(environ.get("HEADLESS") or "").strip().lower() in _TRUTHY,
        log_level=_log_level(environ),
    )


def _log_level(environ: Mapping[str, str]) -> int:
    explicit = (environ.get("LOG_LEVEL") or "").strip().upper()
    if explicit:
        level = logging.getLevelName(explicit)
        if isinstance(level, int):
            return level
    if (environ.get("APP_ENV") or "").strip().lower() == "development":
        return logging.DEBUG
    return logging.INFO
