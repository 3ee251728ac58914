"""
Logging configuration with masking for participant identifiers
"""
import logging
import re
from typing import Any, Optional

from chuksbot.core.config import settings


# Patterns to mask in logs
MASK_PATTERNS = [
    (r"\b(\+?\d{3,4})\d{4,7}(\d{3})\b", r"\1****\2"),
    (r"[\w.+-]+@[\w-]+\.[\w.-]+", "***@***"),
    (r"\b(HEALTH|QUOTE)_[\w-]+_\d+\b", r"\1_***"),
]


class MaskingFormatter(logging.Formatter):
    """Formatter that masks phone numbers, e-mail addresses and payment references."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("chuksbot")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
        console_handler.setFormatter(MaskingFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Child logger of the application logger."""
    if name.startswith("chuksbot"):
        return logging.getLogger(name)
    return logger.getChild(name)


def log_session_event(
    event_type: str,
    user_id: str,
    details: Optional[dict[str, Any]] = None,
) -> None:
    """Log a session lifecycle event (reset, timeout, deferred completion)."""
    logger.info(
        f"SESSION: {event_type} | user={user_id} | details={details or {}}"
    )
