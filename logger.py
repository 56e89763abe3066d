import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path(os.getenv("LOG_DIR", "/app/logs"))  # volume from docker-compose
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()

logger = logging.getLogger("policy_scanner")
logger.setLevel(LOG_LEVEL)

formatter = logging.Formatter(
    "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)


class MaxInfoFilter(logging.Filter):
    """Keeps errors out of the activity log; they go to scanner_errors.log."""

    def filter(self, record):
        return record.levelno < logging.ERROR


def _rotating(filename: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(LOG_DIR / filename, maxBytes=5_000_000, backupCount=5)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


# module may be imported under several names in tests; attach handlers once
if not logger.handlers:
    activity_handler = _rotating("scanner.log", logging.INFO)
    activity_handler.addFilter(MaxInfoFilter())

    error_handler = _rotating("scanner_errors.log", logging.ERROR)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)

    logger.addHandler(activity_handler)
    logger.addHandler(error_handler)
    logger.addHandler(console_handler)

logger.propagate = False


def get_logger(component: str) -> logging.Logger:
    """Child logger, e.g. ``policy_scanner.expiration_scanner``."""
    return logger.getChild(component)
