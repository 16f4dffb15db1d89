"""Email port — abstract interface for transactional email.

Core modules depend on this protocol, never on a specific email provider.
"""

from __future__ import annotations

from typing import Protocol

from src.core.errors import CollaboratorError


class EmailError(CollaboratorError):
    """Raised when the email provider fails to accept a message."""


class EmailPort(Protocol):
    """Abstract email interface used by core modules."""

    async def send(self, sender: str, to: str, subject: str, html: str) -> None: ...
