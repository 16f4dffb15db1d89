"""RSVP Service — FastAPI application factory.

All long-lived objects (stores, limiter, dispatcher, scheduler, bot) are
built once in create_app and hung on `app.state`; nothing in the core is
a module-level singleton.

Lifespan: starts the Telegram application and the reminder loop, and on
shutdown cancels the loop and drains detached notices.
"""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from telegram.error import TelegramError

from src.api.landing import landing_replacements
from src.api.routes import error_response, router, telegram_router
from src.core import messages
from src.core.cancellation import CancellationResolver
from src.core.dispatch import BackgroundDispatcher
from src.core.errors import CorruptStoreError, PersistenceError, RateLimited, ValidationError
from src.core.rate_limiter import RateLimiter
from src.core.rsvp_service import RsvpService
from src.core.scheduler import ReminderScheduler
from src.data.store import IdentityStore, RsvpStore, SentReminderStore

if TYPE_CHECKING:
    from telegram.ext import Application

    from src.config import Settings
    from src.ports.email_port import EmailPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    state = app.state
    bot_app: Application | None = state.bot_app

    if bot_app is not None:
        await bot_app.initialize()
        await bot_app.start()
        webhook_url = state.settings.TELEGRAM_WEBHOOK_URL
        if webhook_url:
            try:
                await bot_app.bot.set_webhook(url=webhook_url, secret_token=state.webhook_secret)
                logger.info("Telegram webhook set to %s", webhook_url)
            except TelegramError as exc:
                logger.error("Setting Telegram webhook failed: %s", exc)

    scheduler_task: asyncio.Task | None = None
    if state.scheduler is not None:
        scheduler_task = asyncio.create_task(state.scheduler.run(), name="reminder-scheduler")

    logger.info("RSVP service started")
    yield
    logger.info("RSVP service shutting down")

    if scheduler_task is not None:
        scheduler_task.cancel()
        await asyncio.gather(scheduler_task, return_exceptions=True)
    await state.dispatcher.drain()
    if bot_app is not None:
        await bot_app.stop()
        await bot_app.shutdown()


def create_app(
    settings: Settings,
    *,
    email: EmailPort | None = None,
    notifier: NotificationPort | None = None,
    bot_app: Application | None = None,
) -> FastAPI:
    """Wire stores, services and routes.

    Args:
        email: Email port. Defaults to ResendEmailSender.
        notifier: Notification port. Defaults to the bot's TelegramNotifier.
        bot_app: Telegram application. Built from TELEGRAM_BOT_TOKEN when
                 not given; Telegram is off when neither is available.
    """
    rsvps = RsvpStore(settings.RSVP_DATA_PATH)
    sent = SentReminderStore(settings.reminder_sent_path)
    identities = IdentityStore(settings.tg_users_path)
    cancellation = CancellationResolver(identities, rsvps)
    dispatcher = BackgroundDispatcher()

    if email is None:
        from src.adapters.resend_email import ResendEmailSender
        email = ResendEmailSender(settings.RESEND_API_KEY)

    if bot_app is None and settings.telegram_enabled:
        from src.bot.telegram_bot import build_app
        bot_app = build_app(
            settings.TELEGRAM_BOT_TOKEN, identities, cancellation, settings.WEBAPP_URL, notifier,
        )
    if bot_app is not None and notifier is None:
        notifier = bot_app.bot_data["notifier"]
    telegram_on = bot_app is not None
    if telegram_on:
        logger.info("Telegram bot enabled")
        if not settings.TELEGRAM_WEBHOOK_URL and not settings.TELEGRAM_WEBHOOK_SECRET:
            logger.warning(
                "Neither TELEGRAM_WEBHOOK_URL nor TELEGRAM_WEBHOOK_SECRET set, "
                "webhook calls will be rejected",
            )

    event = messages.EventDetails(
        date_display=settings.WEDDING_DATE_DISPLAY,
        time_display=settings.WEDDING_TIME_DISPLAY,
        place_name=settings.WEDDING_PLACE_NAME,
    )
    service = RsvpService(
        rsvps,
        RateLimiter(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS),
        email,
        dispatcher,
        from_email=settings.RSVP_FROM_EMAIL,
        organizer_email=settings.RSVP_TO_EMAIL,
        event=event,
        identities=identities if telegram_on else None,
        notifier=notifier if telegram_on else None,
    )

    scheduler = None
    if settings.WEDDING_DATE is not None:
        scheduler = ReminderScheduler(
            settings.WEDDING_DATE,
            rsvps,
            sent,
            email,
            settings.RSVP_FROM_EMAIL,
            identities=identities if telegram_on else None,
            notifier=notifier if telegram_on else None,
            tz=ZoneInfo(settings.TIMEZONE),
            check_hour=settings.REMINDER_HOUR,
            days_before=settings.REMINDER_DAYS_BEFORE,
            retry_failed=settings.REMINDER_RETRY_FAILED,
        )
    else:
        logger.info("WEDDING_DATE not set, reminders disabled")

    app = FastAPI(title="RSVP Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.rsvps = rsvps
    app.state.sent = sent
    app.state.identities = identities
    app.state.dispatcher = dispatcher
    app.state.rsvp_service = service
    app.state.scheduler = scheduler
    app.state.bot_app = bot_app
    app.state.webhook_secret = settings.TELEGRAM_WEBHOOK_SECRET or secrets.token_urlsafe(32)
    app.state.landing_replacements = landing_replacements(
        settings.WEDDING_PLACE_NAME,
        settings.WEDDING_PLACE_URL,
        settings.WEDDING_DATE_DISPLAY,
        settings.WEDDING_TIME_DISPLAY,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    _register_error_handlers(app)

    app.include_router(router)
    if telegram_on:
        app.include_router(telegram_router)

    # Static files last so API routes and "/" take precedence
    if os.path.isdir(settings.STATIC_DIR):
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR), name="static")

    return app


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RateLimited)
    async def rate_limited_handler(request: Request, exc: RateLimited):
        return error_response(status.HTTP_429_TOO_MANY_REQUESTS, "too many requests")

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        if isinstance(exc, CorruptStoreError):
            logger.critical("Corrupt store on %s, operator action needed: %s", request.url.path, exc)
        else:
            logger.error("Persistence failure on %s: %s", request.url.path, exc)
        message = "failed to load data" if request.method == "GET" else "failed to save"
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
