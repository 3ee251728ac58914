"""
Session Store Service - Redis-backed session storage with in-memory fallback.
"""
import copy
import json
import time
from typing import Any, Callable, Dict, List, Optional
from abc import ABC, abstractmethod

from chuksbot.core.config import settings
from chuksbot.core.logging import logger
from chuksbot.orchestration.session import Session
from chuksbot.orchestration.states import State


KEY_PREFIX = "chuksbot:session:"


class SessionBackend(ABC):
    """Key/value store with expiry holding raw session records."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Get a record by key."""
        pass

    @abstractmethod
    def set_with_ttl(self, key: str, record: Dict[str, Any], ttl_seconds: int) -> None:
        """Write a record, resetting its expiry window."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a record."""
        pass


class InMemorySessionBackend(SessionBackend):
    """
    Process-local fallback tier.

    Records never expire on their own; ``sweep`` evicts idle entries and is
    driven by the session sweeper.
    """

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def set_with_ttl(self, key: str, record: Dict[str, Any], ttl_seconds: int) -> None:
        self._records[key] = copy.deepcopy(record)

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def sweep(self, cutoff_ms: int) -> List[str]:
        """Evict records whose last activity is older than ``cutoff_ms``."""
        expired = [
            key for key, record in self._records.items()
            if int(record.get("lastActivity") or 0) < cutoff_ms
        ]
        for key in expired:
            del self._records[key]
        return expired

    def count(self) -> int:
        return len(self._records)


class RedisSessionBackend(SessionBackend):
    """Redis-backed primary tier."""

    def __init__(self, redis_url: Optional[str] = None, client: Any = None):
        if client is None:
            import redis
            client = redis.from_url(redis_url, decode_responses=True)
        self._redis = client

    def ping(self) -> bool:
        return bool(self._redis.ping())

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        data = self._redis.get(key)
        if data:
            return json.loads(data)
        return None

    def set_with_ttl(self, key: str, record: Dict[str, Any], ttl_seconds: int) -> None:
        self._redis.setex(key, ttl_seconds, json.dumps(record, default=str))

    def delete(self, key: str) -> None:
        self._redis.delete(key)


class FallbackSessionBackend(SessionBackend):
    """
    Tries the primary tier first and degrades to the secondary tier when the
    primary raises. The two tiers are not synchronised with each other.
    """

    def __init__(self, primary: SessionBackend, secondary: SessionBackend):
        self.primary = primary
        self.secondary = secondary

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            return self.primary.get(key)
        except Exception as e:
            logger.warning(f"Primary session store read failed, using fallback: {e}")
            return self.secondary.get(key)

    def set_with_ttl(self, key: str, record: Dict[str, Any], ttl_seconds: int) -> None:
        try:
            self.primary.set_with_ttl(key, record, ttl_seconds)
        except Exception as e:
            logger.warning(f"Primary session store write failed, using fallback: {e}")
            self.secondary.set_with_ttl(key, record, ttl_seconds)

    def delete(self, key: str) -> None:
        try:
            self.primary.delete(key)
        except Exception as e:
            logger.warning(f"Primary session store delete failed: {e}")
        self.secondary.delete(key)


class SessionStore:
    """Read/merge/write of one session record per participant."""

    def __init__(
        self,
        backend: SessionBackend,
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.time,
        fallback: Optional[InMemorySessionBackend] = None,
    ):
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        # In-memory tier swept by the session sweeper
        self.fallback = fallback

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _key(self, session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    def get(self, session_id: str) -> Session:
        """Stored session, or a transient default one that is not written."""
        record = self.backend.get(self._key(session_id))
        if record is None:
            return Session.default(session_id, self.now_ms())
        return Session.from_record(session_id, record)

    def save(
        self,
        session_id: str,
        state: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Session:
        """
        Overwrite the state (when given), shallow-merge ``data`` and write the
        record back with a fresh expiry window.

        This is a plain read-modify-write; callers serialise per participant.
        """
        session = self.get(session_id)
        if state is not None:
            session.state = state.value if isinstance(state, State) else str(state)
        if data:
            session.data.update(data)
        session.last_activity = self.now_ms()
        session.is_new = False
        self.backend.set_with_ttl(self._key(session_id), session.to_record(), self.ttl_seconds)
        return session

    def delete(self, session_id: str) -> None:
        """Remove the session from every tier."""
        self.backend.delete(self._key(session_id))


def build_session_store(
    redis_url: Optional[str] = None,
    clock: Callable[[], float] = time.time,
) -> SessionStore:
    """Build the two-tier store, or a memory-only one when Redis is not configured."""
    fallback = InMemorySessionBackend()
    redis_url = settings.REDIS_URL if redis_url is None else redis_url

    if redis_url and settings.APP_ENV != "development":
        primary = RedisSessionBackend(redis_url)
        try:
            primary.ping()
            logger.info("Using Redis session store with in-memory fallback")
        except Exception as e:
            logger.warning(f"Redis unreachable at startup, serving from in-memory fallback: {e}")
        backend: SessionBackend = FallbackSessionBackend(primary, fallback)
    else:
        logger.info("Using in-memory session store (development mode)")
        backend = fallback

    return SessionStore(
        backend,
        ttl_seconds=settings.SESSION_TTL_SECONDS,
        clock=clock,
        fallback=fallback,
    )
