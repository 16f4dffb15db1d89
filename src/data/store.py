"""
RSVP Service — JSON record stores.

The Memory pillar: guest responses, Telegram identities and the reminder
fence persist as flat JSON arrays, one file per store, surviving restarts.

Every operation is a whole-file read-modify-write under the store's own
lock, so a store is safe to share between request handlers, the bot and
the reminder loop. Sequences that span two stores are not atomic.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Generic, Hashable, Iterable, TypeVar

from src.core.errors import CorruptStoreError, PersistenceError
from src.core.phone import normalize_phone, same_contact
from src.data.models import ChannelIdentity, RsvpEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordStore(Generic[T]):
    """A list of records kept in a single JSON file.

    Args:
        path: Backing file. Parent directories are created on first write.
        encode: Record -> JSON-ready value.
        decode: JSON value -> record. Any exception it raises marks the
            file as corrupt.
    """

    def __init__(
        self,
        path: str | Path,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        self._path = Path(path)
        self._encode = encode
        self._decode = decode
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # -- public operations ---------------------------------------------------

    def load(self) -> list[T]:
        """Return every record. A missing file is an empty store."""
        with self._lock:
            return self._read()

    def append(self, record: T) -> None:
        with self._lock:
            records = self._read()
            records.append(record)
            self._write(records)

    def upsert(self, record: T, key_of: Callable[[T], Hashable]) -> bool:
        """Replace the first record with the same key, or append.

        Returns True when an existing record was replaced.
        """
        key = key_of(record)
        with self._lock:
            records = self._read()
            for i, existing in enumerate(records):
                if key_of(existing) == key:
                    records[i] = record
                    self._write(records)
                    return True
            records.append(record)
            self._write(records)
            return False

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        """Return the first matching record, or None."""
        with self._lock:
            for record in self._read():
                if predicate(record):
                    return record
        return None

    def remove_where(self, predicate: Callable[[T], bool]) -> int:
        """Drop every matching record and persist. Returns how many went."""
        with self._lock:
            records = self._read()
            kept = [r for r in records if not predicate(r)]
            removed = len(records) - len(kept)
            if removed:
                self._write(kept)
            return removed

    # -- file I/O (caller holds the lock) -------------------------------------

    def _read(self) -> list[T]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self._path}: {exc}", str(self._path)) from exc

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
            if data is None:
                return []
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return [self._decode(item) for item in data]
        except Exception as exc:
            logger.error("Store file %s is corrupt: %s", self._path, exc)
            raise CorruptStoreError(
                f"Cannot decode {self._path}: {exc}", str(self._path),
            ) from exc

    def _write(self, records: list[T]) -> None:
        payload = json.dumps(
            [self._encode(r) for r in records], ensure_ascii=False, indent=2,
        )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self._path}: {exc}", str(self._path)) from exc


# ---------------------------------------------------------------------------
# RSVP log
# ---------------------------------------------------------------------------


class RsvpStore(RecordStore[RsvpEntry]):
    """Append-only log of guest responses."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, encode=RsvpEntry.to_dict, decode=RsvpEntry.from_dict)

    def append(self, record: RsvpEntry) -> None:
        super().append(record)
        logger.info("RSVP stored: '%s' (%d digits)", record.name, len(normalize_phone(record.phone)))

    def find_by_phone(self, phone: str) -> RsvpEntry | None:
        return self.find(lambda e: same_contact(e.phone, phone))

    def remove_by_phone(self, phone: str) -> int:
        """Remove every entry for this contact. Empty keys match nothing."""
        removed = self.remove_where(lambda e: same_contact(e.phone, phone))
        if removed:
            logger.info("Removed %d RSVP entr%s", removed, "y" if removed == 1 else "ies")
        return removed


# ---------------------------------------------------------------------------
# Telegram identities
# ---------------------------------------------------------------------------


def _identity_key(identity: ChannelIdentity) -> tuple[str, Any]:
    # Chats that have not shared a phone yet are keyed by chat id, so two of
    # them never collide on the empty key.
    if identity.phone:
        return ("phone", identity.phone)
    return ("chat", identity.chat_id)


class IdentityStore(RecordStore[ChannelIdentity]):
    """Telegram chats keyed by normalized phone, at most one per key."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, encode=ChannelIdentity.to_dict, decode=ChannelIdentity.from_dict)

    def save(self, identity: ChannelIdentity) -> ChannelIdentity:
        """Upsert by phone key.

        The phone is normalized before storing. Once a chat registers a
        phone its placeholder record is dropped, also when the phone was
        previously held by another chat, so the chat is never listed twice.
        """
        identity = ChannelIdentity(
            chat_id=identity.chat_id,
            phone=normalize_phone(identity.phone),
            name=identity.name,
        )
        self.upsert(identity, _identity_key)
        if identity.phone:
            placeholder = ("chat", identity.chat_id)
            self.remove_where(lambda i: _identity_key(i) == placeholder)

        logger.info("Telegram identity saved: chat_id=%d", identity.chat_id)
        return identity

    def get_by_phone(self, phone: str) -> ChannelIdentity | None:
        return self.find(lambda i: same_contact(i.phone, phone))

    def get_by_chat_id(self, chat_id: int) -> ChannelIdentity | None:
        """First identity for this chat, preferring one that has a phone."""
        fallback = None
        for identity in self.load():
            if identity.chat_id != chat_id:
                continue
            if identity.phone:
                return identity
            if fallback is None:
                fallback = identity
        return fallback

    def list_all(self) -> list[ChannelIdentity]:
        return self.load()


# ---------------------------------------------------------------------------
# Reminder fence
# ---------------------------------------------------------------------------


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class SentReminderStore(RecordStore[str]):
    """Email addresses that already received the reminder."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, encode=str, decode=_decode_email)

    def load_set(self) -> set[str]:
        return {normalize_email(e) for e in self.load() if normalize_email(e)}

    def add(self, emails: Iterable[str]) -> int:
        """Add addresses not yet present. Returns how many were new."""
        with self._lock:
            records = self._read()
            seen = {normalize_email(e) for e in records}
            added = 0
            for email in emails:
                email = normalize_email(email)
                if email and email not in seen:
                    seen.add(email)
                    records.append(email)
                    added += 1
            if added:
                self._write(records)
        return added


def _decode_email(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected an email string, got {type(value).__name__}")
    return value
