"""Logging configuration."""

import logging
import re
from pathlib import Path
from typing import Optional

from keybook.models.config import AppConfig

_PASS_LITERAL = re.compile(r"""pass:(?:'[^']*'|"[^"]*"|\S)*""")


def mask_secrets(text: str) -> str:
    """Replace literal `pass:<secret>` arguments with `pass:***`."""
    return _PASS_LITERAL.sub("pass:***", text)


class SecretMaskingFilter(logging.Filter):
    """Masks `pass:` literals in every record before a handler formats it."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = ()
        return True


def setup_logger(config: Optional[AppConfig] = None) -> logging.Logger:
    """
    Configure the keybook logger.

    Console output is always on. A log file is added when `logging.file` is set.

    Args:
        config: Application configuration

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("keybook")

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    level = logging.INFO
    if config is not None:
        level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logger.setLevel(level)
    logger.addFilter(SecretMaskingFilter())

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    if config is not None and config.logging.file:
        log_file = Path(config.logging.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(config.logging.format))
        logger.addHandler(file_handler)

    return logger
