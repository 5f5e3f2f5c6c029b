"""Runtime settings and logging setup."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "deeper"


class Settings:
    DEBUG: bool = os.environ.get("DEEPER_DEBUG", "0") == "1"
    DATA_DIR: str = os.environ.get("DEEPER_HOME", ".deeper")
    DB_FILE: str = "deeper.db"
    LOG_DIR: str = os.environ.get("DEEPER_LOG_DIR", os.path.join(DATA_DIR, "log"))
    LOG_FILE: str = "deeper.log"
    HISTORY_LIMIT: int = 100
    AVOID_IMMEDIATE_REPEAT: bool = os.environ.get("DEEPER_AVOID_REPEAT", "0") == "1"

    def db_path(self) -> Path:
        return Path(self.DATA_DIR) / self.DB_FILE


settings = Settings()


def setup_logging() -> logging.Logger:
    """Attach the rotating file handler to the package logger once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    if any(isinstance(handler, RotatingFileHandler) for handler in logger.handlers):
        return logger

    os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(file_handler)
    return logger
