"""
RSVP Service — Telegram Bot.

The bot is how guests link a Telegram chat to their phone number, so the
RSVP confirmation (with its cancel button) and the reminder can reach them
there. It runs in webhook mode: the HTTP app feeds updates in, there is no
polling updater.

Handlers read their collaborators from `context.bot_data`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Update, User
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.core import messages
from src.core.errors import CollaboratorError, PersistenceError
from src.core.phone import has_min_digits
from src.data.models import ChannelIdentity

if TYPE_CHECKING:
    from src.core.cancellation import CancellationResolver
    from src.data.store import IdentityStore
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_SAVE_FAILED_TEXT = "Не удалось сохранить номер, попробуйте ещё раз позже."


def display_name(user: User | None) -> str:
    """'@username' when the user has one, else their first name."""
    if user is None:
        return ""
    if user.username:
        return f"@{user.username}"
    return user.first_name or ""


async def _save_phone(
    phone: str, update: Update, context: ContextTypes.DEFAULT_TYPE,
) -> None:
    """Register the chat under this phone and confirm."""
    identities: IdentityStore = context.bot_data["identities"]
    chat_id = update.effective_chat.id

    try:
        identities.save(
            ChannelIdentity(
                chat_id=chat_id, phone=phone, name=display_name(update.effective_user),
            )
        )
    except PersistenceError as exc:
        logger.error("Saving phone for chat_id=%d failed: %s", chat_id, exc)
        await update.message.reply_text(_SAVE_FAILED_TEXT)
        return

    await update.message.reply_text(messages.phone_saved(phone), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — greet and offer the RSVP form as a Web App."""
    notifier: NotificationPort = context.bot_data["notifier"]
    webapp_url: str = context.bot_data["webapp_url"]

    try:
        await notifier.send_web_app_link(
            update.effective_chat.id,
            messages.WELCOME_TEXT,
            webapp_url,
            messages.WEBAPP_BUTTON,
        )
    except CollaboratorError as exc:
        logger.error("/start reply failed: %s", exc)


async def cmd_phone(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /phone <number> — link this chat to a phone number."""
    phone = " ".join(context.args or []).strip()
    if not phone:
        await update.message.reply_text(messages.PHONE_USAGE_TEXT)
        return
    await _save_phone(phone, update, context)


# ---------------------------------------------------------------------------
# Message and callback handlers
# ---------------------------------------------------------------------------


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """A bare phone number in any format is saved; other text is ignored."""
    text = (update.message.text or "").strip()
    if not has_min_digits(text):
        return
    await _save_phone(text, update, context)


async def handle_cancel_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE,
) -> None:
    """Handle the inline "cancel" button under an RSVP confirmation."""
    resolver: CancellationResolver = context.bot_data["cancellation"]
    notifier: NotificationPort = context.bot_data["notifier"]

    query = update.callback_query
    await query.answer()

    chat_id = query.from_user.id
    try:
        resolver.cancel(chat_id)
    except PersistenceError as exc:
        logger.error("Cancel for chat_id=%d failed: %s", chat_id, exc)
        return

    try:
        await notifier.send_message(chat_id, messages.CANCELLED_TEXT)
    except CollaboratorError as exc:
        logger.error("Cancel confirmation to chat_id=%d failed: %s", chat_id, exc)


async def _on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Telegram update handling failed: %s", context.error)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    token: str,
    identities: IdentityStore,
    cancellation: CancellationResolver,
    webapp_url: str,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build the webhook-mode Telegram Application with all handlers.

    Args:
        notifier: Notification port implementation. Defaults to
                  TelegramNotifier over the application's bot.
    """
    app = ApplicationBuilder().token(token).updater(None).build()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    # Collaborators in bot_data for handler access
    app.bot_data["identities"] = identities
    app.bot_data["cancellation"] = cancellation
    app.bot_data["notifier"] = notifier
    app.bot_data["webapp_url"] = webapp_url

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("phone", cmd_phone))
    app.add_handler(
        CallbackQueryHandler(handle_cancel_callback, pattern=f"^{messages.CANCEL_CALLBACK}$")
    )
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    app.add_error_handler(_on_error)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app
