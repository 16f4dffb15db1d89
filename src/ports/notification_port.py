"""Notification port — abstract interface for sending messages to guests.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol

from src.core.errors import CollaboratorError


class MessagingError(CollaboratorError):
    """Raised when the messaging provider rejects or fails a send."""


class NotificationPort(Protocol):
    """Abstract chat-messaging interface used by core modules."""

    async def send_message(
        self, chat_id: int, text: str, parse_mode: str | None = None,
    ) -> None: ...

    async def send_with_inline_button(
        self, chat_id: int, text: str, button_text: str, callback_data: str,
    ) -> None: ...

    async def send_web_app_link(
        self, chat_id: int, text: str, url: str, button_text: str,
    ) -> None: ...
