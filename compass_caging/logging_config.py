"""
Logging for the caging service.

Every module logs under the ``compass_caging`` namespace, which gets one
stdout handler tagged with the service name. The migration, database and
multipart libraries stay at WARNING unless ``DEBUG`` is set.
"""

import logging
import sys

from .config import Settings

APP_LOGGER = "compass_caging"
LIBRARY_LOGGERS = ("alembic", "sqlalchemy.engine", "multipart", "python_multipart")
LOG_FORMAT = "%(asctime)s - {service} - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings, service_name: str = "compass-caging") -> logging.Logger:
    """
    Configure the application logger from the settings.

    Safe to call more than once: each call replaces the handler instead of
    stacking another one, so building several apps in one process (as the
    tests do) does not duplicate lines.

    Args:
        settings: Supplies ``LOG_LEVEL`` and ``DEBUG``
        service_name: Tag written into every line

    Returns:
        The ``compass_caging`` logger
    """
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(LOG_FORMAT.format(service=service_name), datefmt="%Y-%m-%d %H:%M:%S")
    )

    app_logger = logging.getLogger(APP_LOGGER)
    for existing in list(app_logger.handlers):
        app_logger.removeHandler(existing)
    app_logger.addHandler(handler)
    app_logger.setLevel(level)

    library_level = logging.DEBUG if settings.DEBUG else logging.WARNING
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``compass_caging`` namespace."""
    if name != APP_LOGGER and not name.startswith(f"{APP_LOGGER}."):
        name = f"{APP_LOGGER}.{name}"
    return logging.getLogger(name)
