"""
Outbound notification channel.

Delivers bot messages to a participant outside of a webhook reply: deferred
task results, failure notices and, in live mode, ordinary replies.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import httpx

from chuksbot.core.config import settings
from chuksbot.core.logging import get_logger

logger = get_logger(__name__)


class Notifier(ABC):
    """Sends a text message to a participant."""

    @abstractmethod
    async def send(self, user_id: str, text: str) -> bool:
        """Return True when the message was accepted by the channel."""
        pass

    async def aclose(self) -> None:
        pass


class LoggingNotifier(Notifier):
    """Test-mode channel: logs and remembers messages instead of sending them."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    async def send(self, user_id: str, text: str) -> bool:
        self.sent.append((user_id, text))
        logger.info(f"TEST MODE - would send to {user_id}: {text[:80]!r}")
        return True


def _message_id(response: httpx.Response) -> Optional[str]:
    """Message id from an accepted send, if the reply carries one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    messages = body.get("messages")
    if not isinstance(messages, list) or not messages or not isinstance(messages[0], dict):
        return None
    return messages[0].get("id")


class WhatsAppNotifier(Notifier):
    """360dialog WhatsApp Business API client."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://waba-v2.360dialog.io",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, user_id: str, text: str) -> bool:
        if not self.api_key:
            logger.error("WhatsApp API key not configured; message dropped")
            return False

        payload = {
            "messaging_product": "whatsapp",
            "to": user_id,
            "type": "text",
            "text": {"body": text},
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/messages",
                json=payload,
                headers={"D360-API-KEY": self.api_key},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"WhatsApp API error for {user_id}: {exc}")
            return False

        message_id = _message_id(response)
        logger.info(f"Message sent to {user_id} (id={message_id})")
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


def build_notifier() -> Notifier:
    """Notifier for the configured mode."""
    if settings.WHATSAPP_TEST_MODE:
        return LoggingNotifier()
    return WhatsAppNotifier(settings.WHATSAPP_API_KEY, settings.WHATSAPP_BASE_URL)
