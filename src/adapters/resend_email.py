"""Resend email adapter — implements EmailPort over the Resend REST API.

https://resend.com/docs/api-reference/emails/send-email
"""

from __future__ import annotations

import logging

import httpx

from src.ports.email_port import EmailError

logger = logging.getLogger(__name__)

_RESEND_EMAILS_URL = "https://api.resend.com/emails"
_TIMEOUT_SECONDS = 10


class ResendEmailSender:
    """Resend implementation of EmailPort."""

    def __init__(self, api_key: str, url: str = _RESEND_EMAILS_URL) -> None:
        self._api_key = api_key
        self._url = url

    async def send(self, sender: str, to: str, subject: str, html: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.post(
                    self._url,
                    json={
                        "from": sender,
                        "to": [to],
                        "subject": subject,
                        "html": html,
                    },
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                resp.raise_for_status()
                data = resp.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected response body {data!r}")
            message_id = data.get("id", "?")
        except httpx.HTTPStatusError as exc:
            raise EmailError(
                f"Resend rejected email to {to}: {exc.response.status_code} {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise EmailError(f"Resend request for {to} failed: {exc}") from exc

        logger.info("Email '%s' sent to %s (id=%s)", subject, to, message_id)
