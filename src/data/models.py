"""
RSVP Service — Data Models.

Records persisted by the JSON stores in src.data.store. Each model knows
how to turn itself into the plain dict written to disk and back, and
tolerates missing keys so older files keep loading.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class RsvpEntry:
    """A guest response, appended once and never edited in place."""

    name: str
    phone: str                            # raw, as the guest typed it
    email: str = ""                       # "" when not given
    telegram_chat_id: int | None = None
    at: str = ""                          # UTC, e.g. "2026-02-13T18:55:36Z"

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.telegram_chat_id is None:
            del data["telegram_chat_id"]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> RsvpEntry:
        return cls(
            name=data.get("name", ""),
            phone=data.get("phone", ""),
            email=data.get("email", ""),
            telegram_chat_id=data.get("telegram_chat_id"),
            at=data.get("at", ""),
        )


@dataclass
class ChannelIdentity:
    """A Telegram chat registered for notices.

    `phone` holds the normalized key (digits only), possibly "" for a chat
    that opened the Web App but has not shared a number yet.
    """

    chat_id: int
    phone: str
    name: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> ChannelIdentity:
        return cls(
            chat_id=int(data["chat_id"]),
            phone=data.get("phone", ""),
            name=data.get("name", ""),
        )
