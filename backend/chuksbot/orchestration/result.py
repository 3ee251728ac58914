"""
Reply type shared by the router, state handlers and deferred tasks.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

from chuksbot.orchestration.states import State


@dataclass
class HandlerResult:
    """
    Reply text plus the state the conversation moves to.

    ``data`` is merged into the session; ``reset`` clears the session before
    the new state is written (transaction finished or cancelled).
    """
    message: str
    state: State
    data: Dict[str, Any] = field(default_factory=dict)
    reset: bool = False


DeferredTask = Callable[[], Awaitable[HandlerResult]]
