from __future__ import annotations

import logging
from logging import Logger

from app.core.config import settings


def configure_logging() -> Logger:
    """Базовая настройка логов для всего приложения, вызывается один раз при старте."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("app")
