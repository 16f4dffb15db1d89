"""
RSVP Service — Reminder Scheduler.

Once a day at 09:00 local time the loop checks whether today is the
reminder date (event date minus ten days). On that day it emails every
guest who left an address and has not been reminded yet, records them in
the sent-set, and broadcasts a Telegram reminder to every registered chat.

The sent-set is the only thing that makes the batch idempotent: the loop
can be restarted, or poll several times on the trigger day, without
emailing anyone twice.

This module is provider-agnostic: it depends on EmailPort and
NotificationPort protocols, not on specific implementations.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, Awaitable, Callable

from src.core import messages
from src.core.errors import CollaboratorError, PersistenceError
from src.data.store import normalize_email

if TYPE_CHECKING:
    from src.data.store import IdentityStore, RsvpStore, SentReminderStore
    from src.ports.email_port import EmailPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

DEFAULT_DAYS_BEFORE = 10
DEFAULT_CHECK_HOUR = 9
MIN_SLEEP_SECONDS = 60.0
STARTUP_DELAY_SECONDS = 60.0


# ---------------------------------------------------------------------------
# Date arithmetic
# ---------------------------------------------------------------------------


def reminder_date(event_date: date, days_before: int = DEFAULT_DAYS_BEFORE) -> date:
    return event_date - timedelta(days=days_before)


def seconds_until_next_check(now: datetime, hour: int = DEFAULT_CHECK_HOUR) -> float:
    """Seconds from `now` to the next HH:00 in now's time zone.

    At or after today's check time, tomorrow's is used. Never less than a
    minute, so a skewed clock cannot spin the loop.
    """
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target = target + timedelta(days=1)
    if now.tzinfo is not None:
        # Aware datetimes sharing a tzinfo subtract as wall time; go through
        # UTC so DST changes are counted.
        delta = target.astimezone(timezone.utc) - now.astimezone(timezone.utc)
    else:
        delta = target - now
    return max(delta.total_seconds(), MIN_SLEEP_SECONDS)


# ---------------------------------------------------------------------------
# The batch
# ---------------------------------------------------------------------------


@dataclass
class ReminderReport:
    """What one firing poll did."""

    emailed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    fenced: int = 0
    telegram_sent: int = 0
    telegram_failed: int = 0


async def send_reminders(
    rsvps: RsvpStore,
    sent: SentReminderStore,
    email: EmailPort,
    sender: str,
    days_before: int = DEFAULT_DAYS_BEFORE,
    identities: IdentityStore | None = None,
    notifier: NotificationPort | None = None,
    retry_failed: bool = False,
) -> ReminderReport:
    """Run the reminder batch once.

    Args:
        retry_failed: When False (default) every attempted address is
            fenced, so a failed send is never repeated. When True only
            confirmed sends are fenced and failures go out again on the
            next poll.

    Raises:
        PersistenceError: the RSVP log or the sent-set could not be loaded.
    """
    report = ReminderReport()

    entries = rsvps.load()
    already = sent.load_set()

    candidates: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        key = normalize_email(entry.email)
        if key and key not in already and key not in seen:
            seen.add(key)
            candidates.append(entry.email.strip())

    body = messages.reminder_email(days_before)
    for to in candidates:
        try:
            await email.send(sender, to, body.subject, body.html)
            report.emailed.append(to)
        except CollaboratorError as exc:
            logger.error("Reminder email to %s failed: %s", to, exc)
            report.failed.append(to)

    to_fence = report.emailed if retry_failed else candidates
    if to_fence:
        try:
            report.fenced = sent.add(to_fence)
        except PersistenceError as exc:
            logger.error("Could not record reminded addresses: %s", exc)
    if candidates:
        logger.info(
            "Reminder emails: %d sent, %d failed", len(report.emailed), len(report.failed),
        )

    if identities is not None and notifier is not None:
        await _broadcast_telegram(identities, notifier, days_before, report)

    return report


async def _broadcast_telegram(
    identities: IdentityStore,
    notifier: NotificationPort,
    days_before: int,
    report: ReminderReport,
) -> None:
    """Best effort, no fence: the batch fires on one day per deployment."""
    try:
        chats = identities.list_all()
    except PersistenceError as exc:
        logger.error("Reminder Telegram: cannot load identities: %s", exc)
        return

    text = messages.telegram_reminder(days_before)
    for identity in chats:
        try:
            await notifier.send_message(identity.chat_id, text, parse_mode="Markdown")
            report.telegram_sent += 1
        except CollaboratorError as exc:
            logger.error("Reminder Telegram to %s failed: %s", identity.name or identity.chat_id, exc)
            report.telegram_failed += 1
    if report.telegram_sent:
        logger.info("Reminder Telegram: sent to %d chat(s)", report.telegram_sent)


# ---------------------------------------------------------------------------
# The loop
# ---------------------------------------------------------------------------


class ReminderScheduler:
    """Daily check that fires the reminder batch on the trigger date."""

    def __init__(
        self,
        event_date: date,
        rsvps: RsvpStore,
        sent: SentReminderStore,
        email: EmailPort,
        sender: str,
        *,
        identities: IdentityStore | None = None,
        notifier: NotificationPort | None = None,
        tz: tzinfo | None = None,
        check_hour: int = DEFAULT_CHECK_HOUR,
        days_before: int = DEFAULT_DAYS_BEFORE,
        retry_failed: bool = False,
        startup_delay: float = STARTUP_DELAY_SECONDS,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rsvps = rsvps
        self._sent = sent
        self._email = email
        self._sender = sender
        self._identities = identities
        self._notifier = notifier
        self._tz = tz
        self._check_hour = check_hour
        self._days_before = days_before
        self._retry_failed = retry_failed
        self._startup_delay = startup_delay
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._sleep = sleep
        self.trigger_date = reminder_date(event_date, days_before)

    def is_firing(self, now: datetime | None = None) -> bool:
        now = now or self._clock()
        return now.date() == self.trigger_date

    async def poll(self) -> ReminderReport | None:
        """One check. Returns the report when the batch ran."""
        if not self.is_firing():
            return None
        logger.info("Reminder date %s reached, running batch", self.trigger_date)
        try:
            return await send_reminders(
                self._rsvps,
                self._sent,
                self._email,
                self._sender,
                days_before=self._days_before,
                identities=self._identities,
                notifier=self._notifier,
                retry_failed=self._retry_failed,
            )
        except PersistenceError as exc:
            logger.error("Reminder batch skipped, will retry next check: %s", exc)
            return None

    async def run(self) -> None:
        """Poll forever. Cancel the task to stop."""
        logger.info(
            "Reminder scheduler started: trigger date %s, daily check at %02d:00",
            self.trigger_date, self._check_hour,
        )
        await self._sleep(self._startup_delay)
        while True:
            try:
                await self.poll()
            except Exception as exc:
                logger.error("Reminder check failed: %s", exc)
            await self._sleep(seconds_until_next_check(self._clock(), self._check_hour))
