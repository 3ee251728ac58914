"""
Chat Service - wires the session store, deferred runner, timeout monitor and
router together and exposes them to the webhook
"""
from typing import Any, Dict, Optional

from chuksbot.core.config import settings
from chuksbot.core.logging import logger
from chuksbot.orchestration.locks import UserLocks
from chuksbot.orchestration.router import StateRouter
from chuksbot.services.deferred import DeferredTaskRunner
from chuksbot.services.insurance_api import InsuranceApiClient, build_insurance_api
from chuksbot.services.notifier import Notifier, build_notifier
from chuksbot.services.session_store import SessionStore, build_session_store
from chuksbot.services.timeout_monitor import SessionSweeper, TimeoutMonitor


class ChatService:
    """Owns every conversation component for the lifetime of the application."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        notifier: Optional[Notifier] = None,
        api: Optional[InsuranceApiClient] = None,
        deferred_delay_seconds: Optional[float] = None,
        run_scheduler: Optional[bool] = None,
    ):
        self.store = store or build_session_store()
        self.notifier = notifier or build_notifier()
        self.api = api or build_insurance_api()
        self.locks = UserLocks()
        self.deferred = DeferredTaskRunner(
            self.store,
            self.notifier,
            self.locks,
            delay_seconds=(
                settings.DEFERRED_DELAY_SECONDS if deferred_delay_seconds is None else deferred_delay_seconds
            ),
            workers=settings.DEFERRED_WORKERS,
        )
        self.monitor = TimeoutMonitor(self.store, settings.SESSION_TIMEOUT_MS, self.deferred)
        self.sweeper = SessionSweeper(self.monitor, settings.SWEEP_INTERVAL_SECONDS)
        self.router = StateRouter(self.store, self.monitor, self.deferred, self.api, self.locks)
        self.run_scheduler = settings.RUN_SCHEDULER if run_scheduler is None else run_scheduler

    async def start(self) -> None:
        await self.deferred.start()
        if self.run_scheduler:
            self.sweeper.start()
        logger.info("Chat service started")

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.deferred.stop()
        await self.notifier.aclose()
        await self.api.aclose()
        logger.info("Chat service stopped")

    async def process_message(self, user_id: str, message: str) -> Dict[str, Any]:
        """
        Route a participant's message and return the reply.

        Args:
            user_id: Participant id (sender phone number)
            message: Message text

        Returns:
            Reply text and the resulting state
        """
        logger.info(f"Processing message from {user_id}")
        result = await self.router.dispatch(user_id, message)
        return {
            "user_id": user_id,
            "response": result.message,
            "state": result.state.value,
        }

    async def send(self, user_id: str, text: str) -> bool:
        return await self.notifier.send(user_id, text)


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get the process-wide chat service instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
