from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


DEFAULT_API_URL = "https://uptime.betterstack.com/api/v2"
DEFAULT_VENDOR_DOMAIN = "uptime.betterstack"


class Settings(BaseModel):
    """
    Laufzeit-Konfiguration, komplett über Env-Variablen (CRONBEAT_*).

    CLI options override single fields via model_copy(update=...).
    """

    api_url: str = DEFAULT_API_URL
    auth_token: Optional[str] = None
    vendor_domain: str = DEFAULT_VENDOR_DOMAIN
    backup_dir: Path = Field(default_factory=Path.home)
    heartbeat_group: Optional[str] = None
    log_level: str = "INFO"
    http_timeout: float = 10.0


_settings: Optional[Settings] = None


def _env(name: str) -> Optional[str]:
    value = os.getenv(f"CRONBEAT_{name}", "").strip()
    return value or None


def load_settings() -> Settings:
    values = {
        "api_url": _env("API_URL"),
        "auth_token": _env("AUTH_TOKEN"),
        "vendor_domain": _env("VENDOR_DOMAIN"),
        "backup_dir": _env("BACKUP_DIR"),
        "heartbeat_group": _env("HEARTBEAT_GROUP"),
        "log_level": _env("LOG_LEVEL"),
        "http_timeout": _env("HTTP_TIMEOUT"),
    }
    return Settings(**{k: v for k, v in values.items() if v is not None})


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests change the environment)."""
    global _settings
    _settings = None
