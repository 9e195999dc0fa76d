"""Logging configuration for the application."""

import logging
import sys

from bookstore.core.config import Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure application-wide logging.

    Level is DEBUG when settings.debug is True, otherwise INFO.
    Output goes to stdout. Cache HIT/MISS/SET/DELETE lines are logged at
    DEBUG, so they only appear in debug mode.
    """
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is controlled by DATABASE_ECHO, not by debug.
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

