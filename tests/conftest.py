"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides stores backed by temp files.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("RESEND_API_KEY", "fake-resend-key-for-tests")
os.environ.setdefault("RSVP_TO_EMAIL", "organizer@example.com")
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["WEDDING_DATE"] = ""

import pytest
from unittest.mock import AsyncMock


@pytest.fixture
def rsvp_store(tmp_path):
    """Return an RsvpStore backed by a temp file."""
    from src.data.store import RsvpStore
    return RsvpStore(tmp_path / "rsvps.json")


@pytest.fixture
def identity_store(tmp_path):
    """Return an IdentityStore backed by a temp file."""
    from src.data.store import IdentityStore
    return IdentityStore(tmp_path / "tg_users.json")


@pytest.fixture
def sent_store(tmp_path):
    """Return a SentReminderStore backed by a temp file."""
    from src.data.store import SentReminderStore
    return SentReminderStore(tmp_path / "reminder_sent.json")


@pytest.fixture
def email_port():
    """An EmailPort whose send() always succeeds."""
    port = AsyncMock()
    port.send = AsyncMock(return_value=None)
    return port


@pytest.fixture
def notifier():
    """A NotificationPort whose sends always succeed."""
    port = AsyncMock()
    port.send_message = AsyncMock(return_value=None)
    port.send_with_inline_button = AsyncMock(return_value=None)
    port.send_web_app_link = AsyncMock(return_value=None)
    return port
