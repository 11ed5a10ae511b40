"""Logging setup for the HR assistant entry points."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

DEFAULT_LOG_DIR = "~/.hr-assistant/logs"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(debug: Optional[bool] = None, log_dir: Optional[str] = None) -> str:
    """Configure logging to stderr and a rotating log file.

    Args:
        debug: Force DEBUG level. If None, DEBUG is used when HR_ASSISTANT_DEBUG is set.
        log_dir: Directory for the log file. Defaults to ~/.hr-assistant/logs.

    Returns:
        Path of the log file.
    """
    # Create logs directory if it doesn't exist
    log_dir = os.path.expanduser(log_dir or DEFAULT_LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "hr-assistant.log")

    handlers: List[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        RotatingFileHandler(
            log_file,
            mode="a",
            encoding="utf-8",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        ),
    ]

    if debug is None:
        debug = bool(os.getenv("HR_ASSISTANT_DEBUG"))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # The HTTP clients are chatty at DEBUG
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(f"Logging to file: {log_file}")
    return log_file
