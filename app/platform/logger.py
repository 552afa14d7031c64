import logging
import os
from logging.handlers import RotatingFileHandler

from app.platform.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

log_dir = os.path.join(os.getcwd(), settings.LOG_DIR)
os.makedirs(log_dir, exist_ok=True)
log_file_path = os.path.join(log_dir, settings.LOG_FILE)


def _level() -> int:
    # DEBUG mode surfaces the browser traces on the console
    if settings.DEBUG:
        return logging.DEBUG
    return logging.getLevelName(settings.LOG_LEVEL.upper())


def get_logger(name: str) -> logging.Logger:
    """
    Logger writing to the console and to a rotating file under ``LOG_DIR``.
    The file only ever receives INFO and above.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    level = _level()
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(log_file_path, maxBytes=10_000_000, backupCount=5)
    file_handler.setFormatter(formatter)
    file_handler.setLevel(max(level, logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger


def browser_action(logger: logging.Logger, action: str, url: str, **data) -> None:
    """Debug-level trace of a single browser interaction."""
    extra = ", ".join(f"{key}={value}" for key, value in data.items())
    logger.debug(f"Browser {action} on {url}" + (f" ({extra})" if extra else ""))


def performance_metric(logger: logging.Logger, metric: str, value, unit: str = "ms") -> None:
    logger.info(f"Performance: {metric}={value}{unit}")
