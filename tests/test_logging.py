from __future__ import annotations

import logging

from compass_caging.config import Settings
from compass_caging.logging_config import get_logger, setup_logging


def test_setup_logging_replaces_handler_and_uses_settings_level() -> None:
    setup_logging(Settings(LOG_LEVEL="DEBUG"))
    app_logger = setup_logging(Settings(LOG_LEVEL="WARNING"), service_name="caging-test")

    assert app_logger.name == "compass_caging"
    assert len(app_logger.handlers) == 1
    assert app_logger.level == logging.WARNING
    assert "caging-test" in app_logger.handlers[0].formatter._fmt
    assert logging.getLogger("alembic").level == logging.WARNING


def test_unknown_level_falls_back_to_info_and_debug_opens_libraries() -> None:
    app_logger = setup_logging(Settings(LOG_LEVEL="chatty", DEBUG=True))

    assert app_logger.level == logging.INFO
    assert logging.getLogger("sqlalchemy.engine").level == logging.DEBUG

    setup_logging(Settings())


def test_get_logger_keeps_names_inside_the_app_namespace() -> None:
    assert get_logger("compass_caging.batches").name == "compass_caging.batches"
    assert get_logger("compass_caging").name == "compass_caging"
    assert get_logger("scripts.backfill").name == "compass_caging.scripts.backfill"
