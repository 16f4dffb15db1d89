"""Cancel a guest's RSVP from their Telegram chat.

Joins the chat to an RSVP entry through the normalized phone key and
removes the entry. This is a compensating action across two stores, not a
transaction: the identity stays registered, so the guest can submit again
and be matched by the same key.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.data.store import IdentityStore, RsvpStore

logger = logging.getLogger(__name__)


class CancellationResolver:
    """Resolve a chat id to a phone key and drop the matching RSVPs."""

    def __init__(self, identities: IdentityStore, rsvps: RsvpStore) -> None:
        self._identities = identities
        self._rsvps = rsvps

    def cancel(self, chat_id: int) -> int:
        """Remove every RSVP for the chat's phone. Returns how many were removed.

        An unknown chat, or one without a phone, is nothing to cancel.
        """
        identity = self._identities.get_by_chat_id(chat_id)
        if identity is None or not identity.phone:
            logger.info("Cancel from chat_id=%d: no registered phone, nothing to do", chat_id)
            return 0

        removed = self._rsvps.remove_by_phone(identity.phone)
        logger.info("Cancel from chat_id=%d removed %d RSVP(s)", chat_id, removed)
        return removed
