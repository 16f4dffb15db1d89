"""HTTP routes.

Every handler reads its collaborators from `request.app.state`, which
create_app fills once at startup. Errors from the core propagate to the
exception handlers registered in src.api.app.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import ValidationError as SchemaError
from telegram import Update

from src.api.landing import render_index
from src.api.schemas import RsvpRequest, TelegramInitRequest
from src.core.export import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, render_xlsx
from src.core.rate_limiter import client_key
from src.data.models import ChannelIdentity

if TYPE_CHECKING:
    from src.core.rsvp_service import RsvpService
    from src.data.store import IdentityStore, RsvpStore

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 4 * 1024
WEBHOOK_SECRET_HEADER = "x-telegram-bot-api-secret-token"

router = APIRouter()
telegram_router = APIRouter(prefix="/api/tg", tags=["telegram"])


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_json_body(request: Request) -> bytes | JSONResponse:
    """Enforce JSON content type and the body size cap."""
    if "application/json" not in request.headers.get("content-type", ""):
        return error_response(
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "content-type must be application/json",
        )
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > MAX_BODY_SIZE:
        return error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "request body too large")
    body = await request.body()
    if len(body) > MAX_BODY_SIZE:
        return error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "request body too large")
    return body


# ---------------------------------------------------------------------------
# RSVP
# ---------------------------------------------------------------------------


@router.post("/api/rsvp")
async def submit_rsvp(request: Request):
    """Accept a guest response."""
    body = await _read_json_body(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        payload = RsvpRequest.model_validate_json(body)
    except SchemaError:
        return error_response(status.HTTP_400_BAD_REQUEST, "invalid json")

    service: RsvpService = request.app.state.rsvp_service
    key = client_key(
        request.client.host if request.client else None,
        request.headers.get("x-forwarded-for"),
    )
    await service.submit(
        payload.name,
        payload.phone,
        payload.email,
        client_key=key,
        telegram_chat_id=payload.telegram_chat_id,
    )
    return {"ok": True}


@router.get("/api/export")
async def export_rsvps(request: Request):
    """Download every RSVP as a spreadsheet. Needs the export secret."""
    secret: str = request.app.state.settings.EXPORT_SECRET
    key = request.headers.get("x-export-key") or request.query_params.get("key", "")
    if not secret or not secrets.compare_digest(key.encode(), secret.encode()):
        return error_response(status.HTTP_401_UNAUTHORIZED, "unauthorized")

    rsvps: RsvpStore = request.app.state.rsvps
    entries = rsvps.load()
    logger.info("Export of %d RSVP(s)", len(entries))
    return Response(
        content=render_xlsx(entries),
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/", response_class=HTMLResponse)
async def landing_page(request: Request):
    state = request.app.state
    html = render_index(state.settings.STATIC_DIR, state.landing_replacements)
    if html is None:
        return error_response(status.HTTP_404_NOT_FOUND, "not found")
    return HTMLResponse(html)


# ---------------------------------------------------------------------------
# Telegram
# ---------------------------------------------------------------------------


@telegram_router.post("/webhook")
async def telegram_webhook(request: Request):
    """Feed a Telegram update to the bot application.

    Telegram echoes the secret given to set_webhook in a header; anything
    without it is rejected before the bot sees it.
    """
    expected: str = request.app.state.webhook_secret
    given = request.headers.get(WEBHOOK_SECRET_HEADER, "")
    if not expected or not secrets.compare_digest(given.encode(), expected.encode()):
        logger.warning("Telegram webhook call without a valid secret token")
        return Response(status_code=status.HTTP_403_FORBIDDEN)

    bot_app = request.app.state.bot_app
    try:
        data = await request.json()
    except ValueError:
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    update = Update.de_json(data, bot_app.bot)
    await bot_app.process_update(update)
    return Response(status_code=status.HTTP_200_OK)


@telegram_router.post("/init")
async def telegram_init(request: Request):
    """Remember the chat of a guest who opened the site inside Telegram."""
    try:
        payload = TelegramInitRequest.model_validate_json(await request.body())
    except SchemaError:
        return error_response(status.HTTP_400_BAD_REQUEST, "invalid json")
    if not payload.chat_id:
        return error_response(status.HTTP_400_BAD_REQUEST, "chat_id required")

    if payload.username:
        name = f"@{payload.username}"
    else:
        name = payload.first_name or "Telegram User"

    identities: IdentityStore = request.app.state.identities
    identities.save(ChannelIdentity(chat_id=payload.chat_id, phone=payload.phone or "", name=name))
    return {"ok": True}
