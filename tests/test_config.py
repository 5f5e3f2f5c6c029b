import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from deeper.config import LOGGER_NAME, settings, setup_logging
from deeper.content_loader import default_deck
from deeper.models import DEFAULT_DECK_ID


def test_db_path_under_data_dir(monkeypatch: Any) -> None:
    monkeypatch.setattr(settings, "DATA_DIR", "/tmp/deeper-home")
    assert settings.db_path() == Path("/tmp/deeper-home") / "deeper.db"


def test_setup_logging_adds_one_file_handler(tmp_path: Path, monkeypatch: Any) -> None:
    log_dir = tmp_path / "log"
    monkeypatch.setattr(settings, "LOG_DIR", str(log_dir))
    logger = logging.getLogger(LOGGER_NAME)
    existing = list(logger.handlers)
    try:
        for handler in existing:
            logger.removeHandler(handler)
        setup_logging()
        setup_logging()
        handlers = [handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)]
        assert len(handlers) == 1
        assert (log_dir / settings.LOG_FILE).exists()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for handler in existing:
            logger.addHandler(handler)


def test_settings_defaults_and_default_deck_sentinel() -> None:
    assert settings.DB_FILE == "deeper.db"
    assert settings.HISTORY_LIMIT == 100
    assert default_deck([]).id == DEFAULT_DECK_ID == "default"
    assert not hasattr(settings, "DEFAULT_DECK_ID")
