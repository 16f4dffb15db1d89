"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
"""

from __future__ import annotations

import logging

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo
from telegram.error import TelegramError

from src.ports.notification_port import MessagingError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(
        self, chat_id: int, text: str, parse_mode: str | None = None,
    ) -> None:
        await self._send(chat_id, text, parse_mode=parse_mode)

    async def send_with_inline_button(
        self, chat_id: int, text: str, button_text: str, callback_data: str,
    ) -> None:
        keyboard = InlineKeyboardMarkup(
            [[InlineKeyboardButton(button_text, callback_data=callback_data)]]
        )
        await self._send(chat_id, text, parse_mode="Markdown", reply_markup=keyboard)

    async def send_web_app_link(
        self, chat_id: int, text: str, url: str, button_text: str,
    ) -> None:
        keyboard = InlineKeyboardMarkup(
            [[InlineKeyboardButton(button_text, web_app=WebAppInfo(url=url))]]
        )
        await self._send(chat_id, text, parse_mode="Markdown", reply_markup=keyboard)

    async def _send(self, chat_id: int, text: str, **kwargs) -> None:
        try:
            await self._bot.send_message(chat_id=chat_id, text=text, **kwargs)
        except TelegramError as exc:
            raise MessagingError(f"Telegram send to {chat_id} failed: {exc}") from exc
        logger.debug("Telegram message sent to %d", chat_id)
