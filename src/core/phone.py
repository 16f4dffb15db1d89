"""Phone keys — the join between RSVP entries and Telegram identities.

No I/O: this module only transforms strings.
"""

from __future__ import annotations

MIN_PHONE_DIGITS = 10


def normalize_phone(raw: str | None) -> str:
    """Strip everything that is not an ASCII digit. May return ""."""
    if not raw:
        return ""
    return "".join(ch for ch in raw if "0" <= ch <= "9")


def same_contact(a: str | None, b: str | None) -> bool:
    """True iff both phones normalize to the same non-empty key.

    Two blank or garbage phones must never be treated as one contact.
    """
    key = normalize_phone(a)
    return key != "" and key == normalize_phone(b)


def has_min_digits(raw: str | None, minimum: int = MIN_PHONE_DIGITS) -> bool:
    return len(normalize_phone(raw)) >= minimum
