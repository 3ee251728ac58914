"""
Core module exports
"""
from chuksbot.core.config import settings, get_settings, Settings
from chuksbot.core.logging import logger, get_logger, log_session_event

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "logger",
    "get_logger",
    "log_session_event",
]
