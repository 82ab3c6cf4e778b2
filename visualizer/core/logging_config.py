"""Logging setup for applications embedding the visualizer core."""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from visualizer.core.config import settings, PROJECT_ROOT

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``visualizer`` logger hierarchy.

    Installs a console handler and, when a log file is configured, a rotating
    file handler. Calling it twice does not duplicate handlers.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
        log_file: Log file path (defaults to settings.LOG_FILE)

    Returns:
        The configured package logger
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_file = log_file if log_file is not None else settings.LOG_FILE

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    package_logger = logging.getLogger("visualizer")
    package_logger.setLevel(level_name)

    for handler in list(package_logger.handlers):
        if getattr(handler, "_visualizer_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler._visualizer_handler = True
    package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        if not log_path.is_absolute():
            log_path = PROJECT_ROOT / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        file_handler._visualizer_handler = True
        package_logger.addHandler(file_handler)

    # Request/response chatter from httpx stays at WARNING unless debugging
    logging.getLogger("httpx").setLevel(logging.DEBUG if level_name == "DEBUG" else logging.WARNING)

    return package_logger
