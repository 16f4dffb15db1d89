"""Tests for src.core.rsvp_service — validation and the submission flow.

Email and Telegram ports are AsyncMocks; stores are temp files.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core import messages
from src.core.dispatch import BackgroundDispatcher
from src.core.errors import PersistenceError, RateLimited, ValidationError
from src.core.rate_limiter import RateLimiter
from src.core.rsvp_service import RsvpService, validate_submission
from src.data.models import ChannelIdentity
from src.ports.email_port import EmailError
from src.ports.notification_port import MessagingError

FROM = "Свадьба <onboarding@resend.dev>"
ORGANIZER = "organizer@example.com"
EVENT = messages.EventDetails("22 июля 2026", "16:30", "Усадьба, Москва")
STAMP = "2026-02-13T18:55:36Z"


def _service(rsvp_store, email_port, dispatcher, limiter=None, identities=None, notifier=None):
    return RsvpService(
        rsvp_store,
        limiter or RateLimiter(5, 60),
        email_port,
        dispatcher,
        from_email=FROM,
        organizer_email=ORGANIZER,
        event=EVENT,
        identities=identities,
        notifier=notifier,
        timestamp=lambda: STAMP,
    )


# ---------------------------------------------------------------------------
# validate_submission
# ---------------------------------------------------------------------------


class TestValidateSubmission:
    def test_trims_fields(self):
        sub = validate_submission("  Иван ", " +7 999 123 45 67 ", " i@example.com ")
        assert sub.name == "Иван"
        assert sub.phone == "+7 999 123 45 67"
        assert sub.email == "i@example.com"

    def test_name_required(self):
        with pytest.raises(ValidationError, match="name required"):
            validate_submission("   ", "79991234567", "")

    def test_name_too_long(self):
        with pytest.raises(ValidationError, match="max 200"):
            validate_submission("x" * 201, "79991234567", "")

    def test_name_at_limit(self):
        assert validate_submission("x" * 200, "79991234567", "").name == "x" * 200

    def test_phone_needs_ten_digits(self):
        with pytest.raises(ValidationError, match="phone required"):
            validate_submission("Иван", "12-34-56-78-9", "")

    def test_email_optional(self):
        assert validate_submission("Иван", "79991234567", None).email == ""

    def test_email_needs_at_sign(self):
        with pytest.raises(ValidationError, match="invalid email"):
            validate_submission("Иван", "79991234567", "nope")

    def test_email_too_long(self):
        with pytest.raises(ValidationError, match="invalid email"):
            validate_submission("Иван", "79991234567", "a" * 250 + "@b.ru")


# ---------------------------------------------------------------------------
# RsvpService.submit
# ---------------------------------------------------------------------------


class TestSubmit:
    @pytest.mark.asyncio
    async def test_stores_entry_and_notifies(self, rsvp_store, email_port):
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        entry = await service.submit(
            " Иван ", "+7 999 123 45 67", "i@example.com", client_key="1.2.3.4",
        )
        await dispatcher.drain()

        assert entry.at == STAMP
        assert rsvp_store.load() == [entry]
        subjects = {c.args[1]: c.args[2] for c in email_port.send.call_args_list}
        assert set(subjects) == {ORGANIZER, "i@example.com"}
        assert subjects[ORGANIZER] == "Ответил(а) Иван"

    @pytest.mark.asyncio
    async def test_first_request_is_recorded_verbatim(self, rsvp_store):
        email_port = AsyncMock()
        email_port.send = AsyncMock(side_effect=EmailError("resend down"))
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        await service.submit("A", "+7 999 111 22 33", "", client_key="first")
        await dispatcher.drain()

        [entry] = rsvp_store.load()
        assert entry.to_dict() == {
            "name": "A", "phone": "+7 999 111 22 33", "email": "", "at": STAMP,
        }

    @pytest.mark.asyncio
    async def test_no_thank_you_without_email(self, rsvp_store, email_port):
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        await service.submit("Иван", "79991234567", "", client_key="k")
        await dispatcher.drain()

        assert email_port.send.await_count == 1

    @pytest.mark.asyncio
    async def test_validation_error_touches_nothing(self, rsvp_store, email_port):
        service = _service(rsvp_store, email_port, BackgroundDispatcher())

        with pytest.raises(ValidationError):
            await service.submit("", "79991234567", "", client_key="k")

        email_port.send.assert_not_called()
        assert not rsvp_store.path.exists()

    @pytest.mark.asyncio
    async def test_rate_limited_touches_nothing(self, rsvp_store, email_port):
        limiter = MagicMock()
        limiter.allow.return_value = False
        service = _service(rsvp_store, email_port, BackgroundDispatcher(), limiter=limiter)

        with pytest.raises(RateLimited):
            await service.submit("Иван", "79991234567", "", client_key="k")

        limiter.allow.assert_called_once_with("k")
        email_port.send.assert_not_called()
        assert rsvp_store.load() == []

    @pytest.mark.asyncio
    async def test_limiter_counts_invalid_requests(self, rsvp_store, email_port):
        service = _service(
            rsvp_store, email_port, BackgroundDispatcher(), limiter=RateLimiter(2, 60),
        )
        for _ in range(2):
            with pytest.raises(ValidationError):
                await service.submit("", "", "", client_key="k")
        with pytest.raises(RateLimited):
            await service.submit("Иван", "79991234567", "", client_key="k")

    @pytest.mark.asyncio
    async def test_email_failures_never_block_append(self, rsvp_store):
        email_port = AsyncMock()
        email_port.send = AsyncMock(side_effect=EmailError("resend down"))
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        await service.submit("Иван", "79991234567", "i@example.com", client_key="k")
        await dispatcher.drain()

        assert len(rsvp_store.load()) == 1
        assert email_port.send.await_count == 2

    @pytest.mark.asyncio
    async def test_slow_email_provider_does_not_delay_submit(self, rsvp_store):
        release = asyncio.Event()

        async def stalled_send(*args):
            await release.wait()

        email_port = AsyncMock()
        email_port.send = AsyncMock(side_effect=stalled_send)
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        await asyncio.wait_for(
            service.submit("Иван", "79991234567", "", client_key="k"), timeout=1,
        )

        assert len(rsvp_store.load()) == 1
        assert dispatcher.pending == 1
        release.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0
        assert email_port.send.call_args.args[1] == ORGANIZER

    @pytest.mark.asyncio
    async def test_unexpected_email_error_does_not_block_append(self, rsvp_store):
        email_port = AsyncMock()
        email_port.send = AsyncMock(side_effect=RuntimeError("boom"))
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        await service.submit("Иван", "79991234567", "", client_key="k")
        await dispatcher.drain()

        assert len(rsvp_store.load()) == 1

    @pytest.mark.asyncio
    async def test_append_failure_propagates(self, tmp_path, email_port):
        from src.data.store import RsvpStore

        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        service = _service(RsvpStore(blocker / "rsvps.json"), email_port, BackgroundDispatcher())

        with pytest.raises(PersistenceError):
            await service.submit("Иван", "79991234567", "", client_key="k")

    @pytest.mark.asyncio
    async def test_accepted_submissions_all_land(self, rsvp_store, email_port):
        dispatcher = BackgroundDispatcher()
        service = _service(rsvp_store, email_port, dispatcher)

        for i in range(3):
            await service.submit(f"Гость {i}", f"7999123456{i}", "", client_key=f"ip{i}")
        await dispatcher.drain()

        assert [e.name for e in rsvp_store.load()] == ["Гость 0", "Гость 1", "Гость 2"]


class TestSubmitTelegram:
    @pytest.mark.asyncio
    async def test_confirmation_to_registered_chat(
        self, rsvp_store, identity_store, email_port, notifier,
    ):
        identity_store.save(ChannelIdentity(555, "79991234567", "@ivan"))
        dispatcher = BackgroundDispatcher()
        service = _service(
            rsvp_store, email_port, dispatcher, identities=identity_store, notifier=notifier,
        )

        await service.submit("Иван", "+7 (999) 123-45-67", "", client_key="k")
        await dispatcher.drain()

        notifier.send_with_inline_button.assert_awaited_once()
        chat_id, text, button, callback = notifier.send_with_inline_button.call_args.args
        assert chat_id == 555
        assert "Иван" in text
        assert "22 июля 2026" in text
        assert button == messages.CANCEL_BUTTON
        assert callback == messages.CANCEL_CALLBACK

    @pytest.mark.asyncio
    async def test_chat_id_in_payload_registers_identity(
        self, rsvp_store, identity_store, email_port, notifier,
    ):
        dispatcher = BackgroundDispatcher()
        service = _service(
            rsvp_store, email_port, dispatcher, identities=identity_store, notifier=notifier,
        )

        entry = await service.submit(
            "Иван", "+7 999 123 45 67", "", client_key="k", telegram_chat_id=777,
        )
        await dispatcher.drain()

        assert entry.telegram_chat_id == 777
        assert identity_store.get_by_phone("79991234567").chat_id == 777
        assert notifier.send_with_inline_button.call_args.args[0] == 777

    @pytest.mark.asyncio
    async def test_unregistered_phone_gets_no_message(
        self, rsvp_store, identity_store, email_port, notifier,
    ):
        identity_store.save(ChannelIdentity(555, "71112223344"))
        dispatcher = BackgroundDispatcher()
        service = _service(
            rsvp_store, email_port, dispatcher, identities=identity_store, notifier=notifier,
        )

        await service.submit("Иван", "79991234567", "", client_key="k")
        await dispatcher.drain()

        notifier.send_with_inline_button.assert_not_called()

    @pytest.mark.asyncio
    async def test_telegram_failure_does_not_block_append(
        self, rsvp_store, identity_store, email_port, notifier,
    ):
        identity_store.save(ChannelIdentity(555, "79991234567"))
        notifier.send_with_inline_button = AsyncMock(side_effect=MessagingError("blocked"))
        dispatcher = BackgroundDispatcher()
        service = _service(
            rsvp_store, email_port, dispatcher, identities=identity_store, notifier=notifier,
        )

        await service.submit("Иван", "79991234567", "", client_key="k")
        await dispatcher.drain()

        assert len(rsvp_store.load()) == 1

    @pytest.mark.asyncio
    async def test_corrupt_identity_store_does_not_block_append(
        self, rsvp_store, identity_store, email_port, notifier,
    ):
        identity_store.path.write_text("{bad", encoding="utf-8")
        dispatcher = BackgroundDispatcher()
        service = _service(
            rsvp_store, email_port, dispatcher, identities=identity_store, notifier=notifier,
        )

        await service.submit("Иван", "79991234567", "", client_key="k", telegram_chat_id=1)
        await dispatcher.drain()

        assert len(rsvp_store.load()) == 1
        notifier.send_with_inline_button.assert_not_called()

    def test_telegram_disabled_without_notifier(self, rsvp_store, identity_store, email_port):
        service = _service(rsvp_store, email_port, BackgroundDispatcher(), identities=identity_store)
        assert service.telegram_enabled is False
