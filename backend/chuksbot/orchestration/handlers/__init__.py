"""
State Handlers

One handler per state family. Each handler:
1. Parses and validates the participant's input
2. Picks the next state
3. Builds the reply, or hands slow work to the deferred runner
"""
from chuksbot.orchestration.handlers.base import HandlerContext, StateHandler
from chuksbot.orchestration.handlers.registry import HANDLERS, build_handler_map

__all__ = [
    "HandlerContext",
    "StateHandler",
    "HANDLERS",
    "build_handler_map",
]
