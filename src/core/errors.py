"""
RSVP Service — Error taxonomy.

Every failure the core can surface maps to one of these types. The HTTP
layer turns them into status codes; the scheduler and detached dispatch
log them and carry on.
"""

from __future__ import annotations


class RsvpError(Exception):
    """Base class for all service errors."""


class ValidationError(RsvpError):
    """Guest-supplied fields are missing or malformed.

    Raised before any store is touched, so there is never partial state.
    The message is safe to show to the guest.
    """


class RateLimited(RsvpError):
    """The client exceeded its submission quota."""


class PersistenceError(RsvpError):
    """A backing file could not be read or written."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class CorruptStoreError(PersistenceError):
    """A backing file exists but cannot be decoded.

    Kept distinct from a plain read failure: an operator has to look at
    the file, otherwise the next write would silently drop every record.
    """


class CollaboratorError(RsvpError):
    """An outbound send (email, Telegram) failed. Logged, never retried."""
