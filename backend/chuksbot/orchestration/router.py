"""
Message Router

Single entry point for an inbound message. Runs, in order:
1. Inactivity timeout check
2. Global interrupts (greetings restart, "back" steps to the predecessor)
3. State-specific handler lookup and dispatch
4. Session persistence of the handler's result

The whole cycle runs under the participant's lock, so two messages from the
same participant never interleave their read-modify-write.
"""
from typing import Dict, Optional

from chuksbot.core.logging import logger, log_session_event
from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import HandlerContext, StateHandler, normalize_input
from chuksbot.orchestration.handlers.registry import HANDLERS
from chuksbot.orchestration.locks import UserLocks
from chuksbot.orchestration.result import HandlerResult
from chuksbot.orchestration.states import HOME_STATE, State, parse_state, predecessor_of
from chuksbot.services.deferred import DeferredTaskRunner
from chuksbot.services.insurance_api import InsuranceApiClient
from chuksbot.services.session_store import SessionStore
from chuksbot.services.timeout_monitor import TimeoutMonitor


GREETINGS = {"hi", "hello", "hey", "start", "menu", "restart", "help"}
BACK_COMMANDS = {"back", "previous"}


def is_greeting(user_input: str) -> bool:
    if user_input in GREETINGS:
        return True
    first_word = user_input.split(" ", 1)[0]
    return first_word in GREETINGS


class StateRouter:
    """Dispatches inbound text to the handler of the participant's current state."""

    def __init__(
        self,
        store: SessionStore,
        monitor: TimeoutMonitor,
        deferred: DeferredTaskRunner,
        api: InsuranceApiClient,
        locks: UserLocks,
        handlers: Optional[Dict[State, StateHandler]] = None,
    ):
        self.store = store
        self.monitor = monitor
        self.deferred = deferred
        self.api = api
        self.locks = locks
        self.handlers = handlers if handlers is not None else HANDLERS

    async def dispatch(self, user_id: str, raw_text: str) -> HandlerResult:
        """
        Route one inbound message.

        Args:
            user_id: Participant id (the sender's phone number)
            raw_text: Message text as received

        Returns:
            The reply and the state the session is now in
        """
        async with self.locks.hold(user_id):
            return await self._dispatch(user_id, raw_text)

    async def _dispatch(self, user_id: str, raw_text: str) -> HandlerResult:
        check = self.monitor.check(user_id)
        if check.timed_out:
            return HandlerResult(check.message, HOME_STATE)

        text = (raw_text or "").strip()
        user_input = normalize_input(text)
        session = self.store.get(user_id)

        if is_greeting(user_input):
            return self._restart(user_id)

        state = parse_state(session.state)
        if state is None:
            return self._recover(user_id, session.state, messages.UNKNOWN_STATE)

        if user_input in BACK_COMMANDS:
            return self._go_back(user_id, state, session.data)

        handler = self.handlers.get(state)
        if handler is None:
            return self._recover(user_id, state.value, messages.UNKNOWN_STATE)

        ctx = HandlerContext(
            user_id=user_id,
            state=state,
            input=user_input,
            text=text,
            session=session,
            deferred=self.deferred,
            api=self.api,
            now_ms=self.store.now_ms(),
        )
        try:
            result = await handler.handle(ctx)
        except Exception as e:
            logger.error(f"Handler for {state.value} failed for {user_id}: {e}", exc_info=True)
            return self._recover(user_id, state.value, messages.HANDLER_ERROR)

        if not isinstance(getattr(result, "state", None), State):
            return self._recover(user_id, str(getattr(result, "state", None)), messages.UNKNOWN_STATE)

        self._persist(user_id, result)
        return result

    def _restart(self, user_id: str) -> HandlerResult:
        self.deferred.cancel(user_id)
        self.store.delete(user_id)
        self.store.save(user_id, HOME_STATE)
        log_session_event("restart", user_id)
        return HandlerResult(messages.WELCOME, HOME_STATE)

    def _go_back(self, user_id: str, state: State, data: dict) -> HandlerResult:
        previous = predecessor_of(state)
        if previous is None:
            self.store.save(user_id, state)
            return HandlerResult(messages.CANNOT_GO_BACK, state)
        self.store.save(user_id, previous)
        return HandlerResult(self.handlers[previous].prompt(previous, data), previous)

    def _recover(self, user_id: str, bad_state: str, message: str) -> HandlerResult:
        logger.warning(f"Resetting session for {user_id} from state {bad_state!r}")
        self.deferred.cancel(user_id)
        self.store.delete(user_id)
        self.store.save(user_id, HOME_STATE)
        return HandlerResult(message, HOME_STATE)

    def _persist(self, user_id: str, result: HandlerResult) -> None:
        if result.reset:
            self.deferred.cancel(user_id)
            self.store.delete(user_id)
        self.store.save(user_id, result.state, result.data)
