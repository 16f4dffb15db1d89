"""Landing page: index.html with the event details filled in."""

from __future__ import annotations

import logging
from html import escape
from pathlib import Path

logger = logging.getLogger(__name__)


def landing_replacements(
    place_name: str, place_url: str, date_display: str, time_display: str,
) -> dict[str, str]:
    return {
        "{{WEDDING_PLACE_NAME}}": escape(place_name),
        "{{WEDDING_PLACE_URL}}": escape(place_url),
        "{{WEDDING_DATE_DISPLAY}}": escape(date_display),
        "{{WEDDING_TIME_DISPLAY}}": escape(time_display),
    }


def render_index(static_dir: str | Path, replacements: dict[str, str]) -> str | None:
    """Return index.html with placeholders substituted, or None if it is missing."""
    index = Path(static_dir) / "index.html"
    try:
        html = index.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Cannot read %s: %s", index, exc)
        return None
    for placeholder, value in replacements.items():
        html = html.replace(placeholder, value)
    return html
