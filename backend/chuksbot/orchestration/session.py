"""
Session data model.

One Session exists per conversation participant. The persisted record is the
JSON object produced by ``Session.to_record``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from chuksbot.orchestration.states import HOME_STATE

# Session data key holding the id of the deferred job the session waits on
PENDING_TASK_KEY = "pending_task"


@dataclass
class Session:
    """Conversational progress of one participant."""
    id: str
    state: str = HOME_STATE.value
    data: Dict[str, Any] = field(default_factory=dict)
    last_activity: int = 0  # epoch milliseconds
    is_new: bool = True

    @classmethod
    def default(cls, session_id: str, now_ms: int) -> "Session":
        """Transient session for an id that has no stored record yet."""
        return cls(id=session_id, last_activity=now_ms, is_new=True)

    @classmethod
    def from_record(cls, session_id: str, record: Dict[str, Any]) -> "Session":
        return cls(
            id=session_id,
            state=record.get("state") or HOME_STATE.value,
            data=dict(record.get("data") or {}),
            last_activity=int(record.get("lastActivity") or 0),
            is_new=bool(record.get("isNew", False)),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "data": dict(self.data),
            "lastActivity": self.last_activity,
            "isNew": self.is_new,
        }

    @property
    def pending_task(self) -> Optional[str]:
        return self.data.get(PENDING_TASK_KEY)
