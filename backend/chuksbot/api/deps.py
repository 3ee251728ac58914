"""
API dependencies
"""
from chuksbot.services.chat import get_chat_service

__all__ = [
    "get_chat_service",
]
