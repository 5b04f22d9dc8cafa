"""
Structured logging configuration for SMS transaction extraction.
Message bodies carry account and card numbers, so they are masked before logging.
"""
import logging
import os
import re
import sys
from typing import Optional

# Digit runs long enough to be account, card or reference numbers
_SENSITIVE_DIGITS = re.compile(r"\d{4,}")


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env LOG_LEVEL or INFO.

    Returns:
        Configured logger instance
    """
    log_level = getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), None)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)

        formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def mask_digits(text: Optional[str], keep_last: int = 2) -> str:
    """
    Mask long digit runs so message text can be logged safely.

    Args:
        text: Message text
        keep_last: Number of trailing digits left visible

    Returns:
        Text with each run of 4+ digits replaced by asterisks
    """
    if not text:
        return ""

    def _mask(match: "re.Match[str]") -> str:
        digits = match.group(0)
        return "*" * (len(digits) - keep_last) + digits[-keep_last:]

    return _SENSITIVE_DIGITS.sub(_mask, text)
