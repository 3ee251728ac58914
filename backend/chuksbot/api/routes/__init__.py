"""
API routes package
"""
from chuksbot.api.routes import webhook

__all__ = [
    "webhook",
]
