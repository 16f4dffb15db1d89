"""
RSVP Service — Centralized configuration.

Loads all settings from .env and validates required keys.
Only the entry point reads the singleton; everything else receives the
values it needs through its constructor.
"""

from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_DEFAULT_FROM_EMAIL = "Свадьба <onboarding@resend.dev>"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Resend (transactional email)
    RESEND_API_KEY: str
    RSVP_TO_EMAIL: str
    RSVP_FROM_EMAIL: str = _DEFAULT_FROM_EMAIL

    # HTTP
    PORT: int = 8080
    STATIC_DIR: str = ".."
    EXPORT_SECRET: str = ""

    # Storage: identities and the reminder fence live beside the RSVP log
    RSVP_DATA_PATH: str = "data/rsvps.json"

    # Telegram (optional, the bot is disabled without a token)
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_WEBHOOK_URL: str = ""
    # Echoed by Telegram in X-Telegram-Bot-Api-Secret-Token; generated per
    # process when empty, so set it if the webhook is registered elsewhere
    TELEGRAM_WEBHOOK_SECRET: str = ""
    WEBAPP_URL: str = "https://alexandr-i-daria.ru"

    # Event: WEDDING_DATE (YYYY-MM-DD) enables the reminder loop
    WEDDING_DATE: date | None = None
    WEDDING_PLACE_NAME: str = "Название места, город"
    WEDDING_PLACE_URL: str = "#"
    WEDDING_DATE_DISPLAY: str = "22 июля 2026"
    WEDDING_TIME_DISPLAY: str = "16:30"

    # Reminders
    TIMEZONE: str = "Europe/Moscow"
    REMINDER_HOUR: int = 9
    REMINDER_DAYS_BEFORE: int = 10
    REMINDER_RETRY_FAILED: bool = False

    # Rate limiting of POST /api/rsvp
    RATE_LIMIT_REQUESTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0

    @field_validator("WEDDING_DATE", mode="before")
    @classmethod
    def parse_wedding_date(cls, v: str | date | None) -> date | None:
        if v is None or isinstance(v, date):
            return v
        v = v.strip()
        if not v:
            return None
        try:
            return date.fromisoformat(v)
        except ValueError:
            print(
                f"WARNING: WEDDING_DATE={v!r} is not YYYY-MM-DD, reminders disabled",
                file=sys.stderr,
            )
            return None

    @field_validator("REMINDER_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 23:
            raise ValueError(f"REMINDER_HOUR must be 0-23, got {hour}")
        return hour

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN)

    @property
    def data_dir(self) -> Path:
        return Path(self.RSVP_DATA_PATH).parent

    @property
    def tg_users_path(self) -> Path:
        return self.data_dir / "tg_users.json"

    @property
    def reminder_sent_path(self) -> Path:
        return self.data_dir / "reminder_sent.json"


def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default).strip()


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    resend_key = _env("RESEND_API_KEY")
    to_email = _env("RSVP_TO_EMAIL")

    if not resend_key or not to_email:
        print(
            "ERROR: RESEND_API_KEY and RSVP_TO_EMAIL must be set in .env "
            "(RSVP_FROM_EMAIL may stay empty for testing: onboarding@resend.dev is used)",
            file=sys.stderr,
        )
        sys.exit(1)

    return Settings(
        RESEND_API_KEY=resend_key,
        RSVP_TO_EMAIL=to_email,
        RSVP_FROM_EMAIL=_env("RSVP_FROM_EMAIL") or _DEFAULT_FROM_EMAIL,
        PORT=_env("PORT") or "8080",
        STATIC_DIR=_env("STATIC_DIR") or "..",
        EXPORT_SECRET=_env("EXPORT_SECRET"),
        RSVP_DATA_PATH=_env("RSVP_DATA_PATH") or "data/rsvps.json",
        TELEGRAM_BOT_TOKEN=_env("TELEGRAM_BOT_TOKEN"),
        TELEGRAM_WEBHOOK_URL=_env("TELEGRAM_WEBHOOK_URL"),
        TELEGRAM_WEBHOOK_SECRET=_env("TELEGRAM_WEBHOOK_SECRET"),
        WEBAPP_URL=_env("WEBAPP_URL") or "https://alexandr-i-daria.ru",
        WEDDING_DATE=_env("WEDDING_DATE") or None,
        WEDDING_PLACE_NAME=_env("WEDDING_PLACE_NAME") or "Название места, город",
        WEDDING_PLACE_URL=_env("WEDDING_PLACE_URL") or "#",
        WEDDING_DATE_DISPLAY=_env("WEDDING_DATE_DISPLAY") or "22 июля 2026",
        WEDDING_TIME_DISPLAY=_env("WEDDING_TIME_DISPLAY") or "16:30",
        TIMEZONE=_env("TIMEZONE") or "Europe/Moscow",
        REMINDER_HOUR=_env("REMINDER_HOUR") or "9",
        REMINDER_DAYS_BEFORE=_env("REMINDER_DAYS_BEFORE") or "10",
        REMINDER_RETRY_FAILED=_env("REMINDER_RETRY_FAILED") or "false",
        RATE_LIMIT_REQUESTS=_env("RATE_LIMIT_REQUESTS") or "5",
        RATE_LIMIT_WINDOW_SECONDS=_env("RATE_LIMIT_WINDOW_SECONDS") or "60",
    )


# Singleton, imported by the entry point as:
#   from src.config import settings
settings = _load_settings()
