"""Request bodies accepted by the HTTP API.

Shapes only: field rules (lengths, digit counts) live in the core so the
bot and the HTTP path share them.
"""

from __future__ import annotations

from pydantic import BaseModel


class RsvpRequest(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    telegram_chat_id: int | None = None


class TelegramInitRequest(BaseModel):
    """Sent by the landing page when it is opened as a Telegram Web App."""

    chat_id: int = 0
    first_name: str | None = None
    username: str | None = None
    phone: str | None = None
