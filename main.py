"""
RSVP Service — Entry Point.

Single entry point: `python main.py` starts the HTTP server (and, when a
token is configured, the Telegram bot in webhook mode).
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

import uvicorn

from src.api.app import create_app
from src.config import settings


def main() -> None:
    app = create_app(settings)
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)


if __name__ == "__main__":
    main()
