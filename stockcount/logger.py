import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import settings

LOG_FILENAME = "app.log"


def _file_handler(log_dir: Path, log_level) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILENAME, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"  # 5 MB
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    return handler


def setup_logger(
    name: str = "stockcount",
    log_level: int | str = logging.INFO,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Sets up the named logger with both console (StreamHandler) and file (RotatingFileHandler) output.
    Module loggers created with logging.getLogger(__name__) inside the package propagate here.
    Calling it again keeps the console handler and moves the file handler to the new log_dir.
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    log_dir = Path(log_dir or settings.LOG_DIR)
    log_file = os.path.abspath(log_dir / LOG_FILENAME)

    file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    for handler in file_handlers:
        if handler.baseFilename != log_file:
            logger.removeHandler(handler)
            handler.close()
    if not any(h.baseFilename == log_file for h in file_handlers):
        logger.addHandler(_file_handler(log_dir, log_level))

    # Prevent adding the console handler multiple times if logger is already set up
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)

    return logger
