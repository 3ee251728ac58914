"""
Orchestration package - conversation states, sessions and message routing
"""
from chuksbot.orchestration.states import State, HOME_STATE, STATE_PREDECESSORS
from chuksbot.orchestration.session import Session
from chuksbot.orchestration.result import HandlerResult

__all__ = [
    "State",
    "HOME_STATE",
    "STATE_PREDECESSORS",
    "Session",
    "HandlerResult",
]
