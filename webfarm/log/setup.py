import logging
import sys
from pathlib import Path
from typing import Optional

from webfarm.local.config import effective_settings as config

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """The formatter shared by the console and file handlers of the worker host."""

    def __init__(self) -> None:
        super().__init__(fmt=LOG_FORMAT)


def setup_logging(console_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """
    Configures the root logger for the worker host.
    This sets up a console handler and, when enabled, a file handler,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_file: Optional log file path. Defaults to `LOG_FILE_PATH` when `LOG_TO_FILE` is set.
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- File Handler (conditional) ---
    if log_file is None and config.LOG_TO_FILE:
        log_file = config.LOG_FILE_PATH
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(MainFormatter())
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.error(f"Failed to initialize file logging handler at '{log_file}': {e}. Logging to file will be disabled.")
