"""
RSVP Service — Submission flow.

limiter -> validation -> detached notices -> durable append. Every
outbound send runs detached, so a slow or failing provider can neither
hold up the HTTP response nor abort the append.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from src.core import messages
from src.core.errors import CollaboratorError, PersistenceError, RateLimited, ValidationError
from src.core.phone import has_min_digits
from src.data.models import ChannelIdentity, RsvpEntry

if TYPE_CHECKING:
    from src.core.dispatch import BackgroundDispatcher
    from src.core.rate_limiter import RateLimiter
    from src.data.store import IdentityStore, RsvpStore
    from src.ports.email_port import EmailPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200
MAX_EMAIL_LENGTH = 254


@dataclass
class Submission:
    """Trimmed, validated guest input."""

    name: str
    phone: str
    email: str = ""
    telegram_chat_id: int | None = None


def validate_submission(
    name: str | None,
    phone: str | None,
    email: str | None,
    telegram_chat_id: int | None = None,
) -> Submission:
    """Trim and check the guest fields. Raises ValidationError."""
    name = (name or "").strip()
    phone = (phone or "").strip()
    email = (email or "").strip()

    if not name or len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"name required, max {MAX_NAME_LENGTH} chars")
    if not has_min_digits(phone):
        raise ValidationError("phone required, at least 10 digits")
    if email and (len(email) > MAX_EMAIL_LENGTH or "@" not in email):
        raise ValidationError("invalid email")

    return Submission(name=name, phone=phone, email=email, telegram_chat_id=telegram_chat_id)


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class RsvpService:
    """Accepts guest responses. One instance per process, shared by handlers."""

    def __init__(
        self,
        rsvps: RsvpStore,
        limiter: RateLimiter,
        email: EmailPort,
        dispatcher: BackgroundDispatcher,
        *,
        from_email: str,
        organizer_email: str,
        event: messages.EventDetails,
        identities: IdentityStore | None = None,
        notifier: NotificationPort | None = None,
        timestamp: Callable[[], str] = _utc_now,
    ) -> None:
        self._rsvps = rsvps
        self._limiter = limiter
        self._email = email
        self._dispatcher = dispatcher
        self._from_email = from_email
        self._organizer_email = organizer_email
        self._event = event
        self._identities = identities
        self._notifier = notifier
        self._timestamp = timestamp

    @property
    def telegram_enabled(self) -> bool:
        return self._identities is not None and self._notifier is not None

    async def submit(
        self,
        name: str | None,
        phone: str | None,
        email: str | None,
        client_key: str,
        telegram_chat_id: int | None = None,
    ) -> RsvpEntry:
        """Accept one response and return the stored entry.

        Raises:
            RateLimited: the client is over quota; nothing was done.
            ValidationError: bad input; nothing was done.
            PersistenceError: the append failed (notices may already be out).
        """
        if not self._limiter.allow(client_key):
            raise RateLimited("too many requests")

        sub = validate_submission(name, phone, email, telegram_chat_id)

        self._dispatcher.spawn(
            self._notify_organizer(sub), label=f"organizer notice for '{sub.name}'",
        )

        if sub.email:
            thanks = messages.guest_thank_you()
            self._dispatcher.spawn(
                self._email.send(self._from_email, sub.email, thanks.subject, thanks.html),
                label=f"thank-you email to {sub.email}",
            )

        if self.telegram_enabled:
            self._notify_telegram(sub)

        entry = RsvpEntry(
            name=sub.name,
            phone=sub.phone,
            email=sub.email,
            telegram_chat_id=sub.telegram_chat_id,
            at=self._timestamp(),
        )
        self._rsvps.append(entry)
        return entry

    async def _notify_organizer(self, sub: Submission) -> None:
        notice = messages.organizer_notice(sub.name, sub.phone, sub.email)
        try:
            await self._email.send(
                self._from_email, self._organizer_email, notice.subject, notice.html,
            )
        except CollaboratorError as exc:
            logger.error("Organizer notice for '%s' failed: %s", sub.name, exc)

    def _notify_telegram(self, sub: Submission) -> None:
        try:
            if sub.telegram_chat_id is not None:
                self._identities.save(
                    ChannelIdentity(chat_id=sub.telegram_chat_id, phone=sub.phone, name=sub.name)
                )
            identity = self._identities.get_by_phone(sub.phone)
        except PersistenceError as exc:
            logger.error("RSVP '%s': Telegram identity lookup failed: %s", sub.name, exc)
            return

        if identity is None:
            logger.info("RSVP '%s': no Telegram chat registered for this phone", sub.name)
            return

        text = messages.telegram_confirmation(sub.name, self._event)
        self._dispatcher.spawn(
            self._notifier.send_with_inline_button(
                identity.chat_id, text, messages.CANCEL_BUTTON, messages.CANCEL_CALLBACK,
            ),
            label=f"telegram confirmation to {identity.chat_id}",
        )
