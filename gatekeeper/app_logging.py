"""Structured logging for the gatekeeper service."""

import logging
from pythonjsonlogger import jsonlogger

SERVICE_LOGGERS = [
    'gatekeeper.controllers',
    'gatekeeper.services',
    'gatekeeper.routes',
]


def setup_logger(level: int = logging.INFO) -> logging.Logger:
    """Attach a JSON formatter to the root logger."""
    logger = logging.getLogger()
    if any(getattr(h, '_gatekeeper', False) for h in logger.handlers):
        logger.setLevel(level)
        return logger
    logHandler = logging.StreamHandler()
    logHandler._gatekeeper = True  # type: ignore
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
    logger.setLevel(level)
    return logger


def auth_debug() -> None:
    """Sets the service loggers to DEBUG."""
    for name in SERVICE_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG)
