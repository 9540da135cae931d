"""
JSON log setup shared by the order API and the storefront session.

Every record goes to stdout as one JSON object carrying the emitting service,
so the API and the storefront can share one log stream. Context passed through
``extra=`` lands as top-level keys; reserved LogRecord attribute names
(``created``, ``name``, ``message`` ...) cannot be used there.
"""

import logging
import sys

from pythonjsonlogger import jsonlogger

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def build_formatter(service: str | None = None) -> jsonlogger.JsonFormatter:
    return jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": service} if service else {},
    )


def setup_logging(log_level: str = "INFO", service: str | None = None) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if root_logger.handlers:
        root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(service))
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
