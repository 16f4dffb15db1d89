"""Spreadsheet export of the RSVP log.

Read-only over the store: the caller passes the loaded entries in.
"""

from __future__ import annotations

import io
from datetime import datetime
from typing import Iterable

from openpyxl import Workbook

from src.data.models import RsvpEntry

EXPORT_SHEET = "Ответы"
EXPORT_COLUMNS = ("ФИО", "Телефон", "Почта", "Дата")
EXPORT_FILENAME = "rsvp.xlsx"
EXPORT_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def format_export_date(at: str) -> str:
    """'2026-02-13T18:55:36Z' -> '13.02.2026 18:55'. Unparseable input is kept."""
    try:
        parsed = datetime.fromisoformat(at.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return at
    return parsed.strftime("%d.%m.%Y %H:%M")


def render_xlsx(entries: Iterable[RsvpEntry]) -> bytes:
    """Render entries into a one-sheet workbook in the fixed column order."""
    wb = Workbook()
    ws = wb.active
    ws.title = EXPORT_SHEET
    ws.append(EXPORT_COLUMNS)
    for entry in entries:
        ws.append([entry.name, entry.phone, entry.email, format_export_date(entry.at)])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
