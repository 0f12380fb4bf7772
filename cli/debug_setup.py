"""Logging setup for the CLI"""

import logging
import os

import settings

DEBUG_LOG_FILE = "energy_monitor_debug.log"

logger = logging.getLogger(__name__)


def setup_logging(debug: bool, log_file: str = DEBUG_LOG_FILE) -> None:
    """
    Configure the root logger

    Without --debug, records at LOG_LEVEL and above go to stderr. With --debug,
    everything is written to stderr and appended to the debug log file.

    Args:
        debug: Whether debug mode is enabled
        log_file: Debug log path, relative to the working directory
    """
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not debug:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        root_logger.setLevel(level if isinstance(level, int) else logging.WARNING)
        return

    root_logger.setLevel(logging.DEBUG)
    console_handler.setLevel(logging.DEBUG)

    log_path = os.path.abspath(log_file)
    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger.info(f"Debug logging enabled - appending to {log_path}")
