import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from course_setup.core.constants import LOG_DIR, LOG_FILENAME


def setup_logger(name: str,
                 log_file: Optional[str] = None,
                 level: int = logging.DEBUG,
                 console_level: int = logging.WARNING) -> logging.Logger:
    """
    Setup a standardized logger with console and optional file output.

    Args:
        name: Logger name (usually __name__)
        log_file: Optional path to log file. If provided, logs will be written there.
        level: Logger level (default: logging.DEBUG, so the file sees everything)
        console_level: Level for the console handler. Progress output for the user
            is printed by the installer itself, so the console only shows problems.

    Returns:
        Configured Logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times if logger is reused
    if logger.handlers:
        return logger

    console_formatter = logging.Formatter('%(levelname)s: %(message)s')
    file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=5*1024*1024,  # 5 MB
                backupCount=3
            )
        except OSError:
            # Read-only home (e.g. some cluster nodes): console only
            return logger
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


def default_log_file() -> Path:
    return Path(LOG_DIR).expanduser() / LOG_FILENAME


def get_project_logger(name: str, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Get a logger configured for the project, writing to ~/.course_setup/logs
    unless another log file is given.
    """
    return setup_logger(name, str(log_file or default_log_file()))
