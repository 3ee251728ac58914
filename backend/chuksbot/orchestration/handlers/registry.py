"""
Handler Registry

Maps every conversation state to the handler of its state family.
"""
from typing import Dict, List, Optional

from chuksbot.orchestration.handlers.base import StateHandler
from chuksbot.orchestration.handlers.health import HealthInsuranceHandler
from chuksbot.orchestration.handlers.menus import (
    AgentHandler,
    FaqHandler,
    LearnHandler,
    MainMenuHandler,
    ProcessingHandler,
    QuoteCategoryHandler,
)
from chuksbot.orchestration.handlers.payment import PaymentHandler
from chuksbot.orchestration.handlers.policy_claims import ClaimsHandler, PolicyHandler
from chuksbot.orchestration.handlers.quotes import QuoteFlowHandler
from chuksbot.orchestration.states import State


def default_handlers() -> List[StateHandler]:
    return [
        MainMenuHandler(),
        QuoteCategoryHandler(),
        ProcessingHandler(),
        HealthInsuranceHandler(),
        QuoteFlowHandler(),
        PaymentHandler(),
        PolicyHandler(),
        ClaimsHandler(),
        LearnHandler(),
        FaqHandler(),
        AgentHandler(),
    ]


def build_handler_map(handlers: Optional[List[StateHandler]] = None) -> Dict[State, StateHandler]:
    """
    Build the state -> handler table.

    Raises:
        RuntimeError: if a state is claimed twice or left without a handler
    """
    handler_map: Dict[State, StateHandler] = {}
    for handler in handlers if handlers is not None else default_handlers():
        for state in handler.states:
            if state in handler_map:
                raise RuntimeError(
                    f"State {state.value} claimed by both {type(handler_map[state]).__name__} "
                    f"and {type(handler).__name__}"
                )
            handler_map[state] = handler

    missing = [state.value for state in State if state not in handler_map]
    if missing:
        raise RuntimeError(f"No handler registered for states: {', '.join(missing)}")
    return handler_map


HANDLERS: Dict[State, StateHandler] = build_handler_map()
