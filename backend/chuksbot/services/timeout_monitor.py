"""
Inactivity timeout handling.

``TimeoutMonitor.check`` runs at the start of every dispatch. The durable
tier expires idle records through its own TTL, so the periodic sweep only
has to clean the in-memory fallback tier.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

from chuksbot.core.logging import logger, log_session_event
from chuksbot.orchestration import messages
from chuksbot.services.deferred import DeferredTaskRunner
from chuksbot.services.session_store import SessionStore


@dataclass
class TimeoutCheck:
    timed_out: bool
    message: Optional[str] = None


class TimeoutMonitor:
    """Detects and clears sessions idle for longer than the threshold."""

    def __init__(
        self,
        store: SessionStore,
        timeout_ms: int = 600_000,
        deferred: Optional[DeferredTaskRunner] = None,
    ):
        self.store = store
        self.timeout_ms = timeout_ms
        self.deferred = deferred

    def is_expired(self, last_activity: int) -> bool:
        return self.store.now_ms() - last_activity > self.timeout_ms

    def check(self, user_id: str) -> TimeoutCheck:
        session = self.store.get(user_id)
        if session.is_new or not self.is_expired(session.last_activity):
            return TimeoutCheck(timed_out=False)

        self.store.delete(user_id)
        if self.deferred is not None:
            self.deferred.cancel(user_id)
        log_session_event("timeout", user_id, {
            "state": session.state,
            "idle_ms": self.store.now_ms() - session.last_activity,
        })
        return TimeoutCheck(timed_out=True, message=messages.TIMEOUT_NOTICE)

    def sweep(self) -> int:
        """Evict fallback-tier sessions past the threshold. Returns the count."""
        if self.store.fallback is None:
            return 0
        cutoff = self.store.now_ms() - self.timeout_ms
        evicted = self.store.fallback.sweep(cutoff)
        if evicted:
            logger.info(f"Session sweep: removed {len(evicted)} idle sessions")
        return len(evicted)


class SessionSweeper:
    """Background task calling ``TimeoutMonitor.sweep`` on a fixed interval."""

    def __init__(self, monitor: TimeoutMonitor, interval_seconds: float = 600):
        self.monitor = monitor
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.monitor.sweep()
            except Exception as e:
                logger.error(f"Session sweep error: {e}")

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop(), name="session-sweeper")
            logger.info("Session sweeper started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")

    @property
    def running(self) -> bool:
        return self._task is not None
