"""
Base utilities for state handlers.

Provides:
- The handler interface and the context handed to it
- Input parsing and validation helpers
- Table-driven question steps
- Formatting helpers
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from chuksbot.orchestration import messages
from chuksbot.orchestration.result import DeferredTask, HandlerResult
from chuksbot.orchestration.session import Session
from chuksbot.orchestration.states import State
from chuksbot.services.deferred import DeferredTaskRunner
from chuksbot.services.insurance_api import InsuranceApiClient


@dataclass
class HandlerContext:
    """Everything a handler may look at for one inbound message."""
    user_id: str
    state: State
    input: str          # normalized (trimmed, lower-cased)
    text: str           # raw text, trimmed
    session: Session
    deferred: DeferredTaskRunner
    api: InsuranceApiClient
    now_ms: int = 0

    @property
    def data(self) -> Dict[str, Any]:
        return self.session.data

    def defer(self, interim_message: str, task: DeferredTask) -> HandlerResult:
        """Hand slow work to the deferred runner and reply with the interim message."""
        return self.deferred.run_deferred(self.user_id, interim_message, task)


class StateHandler(ABC):
    """Handles every state of one state family."""

    states: Tuple[State, ...] = ()

    @abstractmethod
    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        """Process one message in ``ctx.state`` and return the reply plus next state."""

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        """Canonical prompt of ``state``, shown when the participant goes back to it."""
        return messages.DEFAULT_PROMPT


# ----------------------------------------------------------------------
# Input parsing
# ----------------------------------------------------------------------

def normalize_input(text: str) -> str:
    """Trim, case-fold and collapse inner whitespace."""
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def parse_yes_no(text: str) -> Optional[bool]:
    """
    Parse user input for yes/no responses.

    Returns:
        True for yes, False for no, None if unclear
    """
    text_lower = text.lower().strip()

    yes_patterns = [
        r'^1$', r'^y(es)?$', r'^yeah?$', r'^yep$', r'^yup$', r'^sure$',
        r'^ok(ay)?$', r'^correct$', r'^i (agree|accept|confirm)$', r'^agree$',
    ]
    no_patterns = [
        r'^2$', r'^no?$', r'^nope$', r'^nah$', r'^not really$', r'^i (disagree|decline)$',
    ]

    for pattern in yes_patterns:
        if re.match(pattern, text_lower):
            return True
    for pattern in no_patterns:
        if re.match(pattern, text_lower):
            return False

    return None


def match_option(user_input: str, options: Sequence[Tuple[str, Sequence[str]]]) -> Optional[str]:
    """
    Pick an option by its 1-based number or by keyword.

    Args:
        user_input: Normalized input
        options: (value, keywords) pairs in menu order

    Returns:
        The chosen value, or None
    """
    for index, (value, _keywords) in enumerate(options, start=1):
        if user_input == str(index):
            return value
    for value, keywords in options:
        if any(keyword in user_input for keyword in keywords):
            return value
    return None


def parse_amount(text: str) -> Optional[int]:
    cleaned = re.sub(r"[₦,\s]", "", text or "")
    if not cleaned.isdigit():
        return None
    return int(cleaned)


def parse_int(text: str) -> Optional[int]:
    cleaned = (text or "").strip()
    return int(cleaned) if cleaned.isdigit() else None


def is_valid_email(text: str) -> bool:
    return re.match(r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$", text.strip()) is not None


def normalize_phone(text: str) -> Optional[str]:
    """Nigerian phone number in local 11-digit form, or None."""
    digits = re.sub(r"[\s-]", "", text or "")
    if digits.startswith("+234"):
        digits = "0" + digits[4:]
    elif digits.startswith("234") and len(digits) == 13:
        digits = "0" + digits[3:]
    if re.match(r"^0[789][01]\d{8}$", digits):
        return digits
    return None


def parse_date(text: str) -> Optional[str]:
    """DD/MM/YYYY (or DD-MM-YYYY) to ISO date, rejecting future dates."""
    for fmt in ("%d/%m/%Y", "%d-%m-%Y"):
        try:
            value = datetime.strptime(text.strip(), fmt)
        except ValueError:
            continue
        if value > datetime.now():
            return None
        return value.date().isoformat()
    return None


# ----------------------------------------------------------------------
# Question steps
# ----------------------------------------------------------------------

Parser = Callable[[str, str], Any]


@dataclass
class FieldStep:
    """One question: prompt, the session field it fills and how to parse the answer."""
    state: State
    key: str
    prompt: str
    parse: Parser
    error: str = "That doesn't look right. Please try again."

    def read(self, ctx: HandlerContext) -> Any:
        return self.parse(ctx.input, ctx.text)


def text_answer(min_length: int = 2) -> Parser:
    def parse(user_input: str, text: str) -> Optional[str]:
        return text if len(text) >= min_length else None
    return parse


def optional_text_answer() -> Parser:
    def parse(user_input: str, text: str) -> Optional[str]:
        return "" if user_input == "skip" else (text or None)
    return parse


def choice_answer(options: Sequence[Tuple[str, Sequence[str]]]) -> Parser:
    def parse(user_input: str, text: str) -> Optional[str]:
        return match_option(user_input, options)
    return parse


def exact_choice_answer(options: Sequence[str]) -> Parser:
    """Choice by number or by the exact (case-insensitive) option text."""
    def parse(user_input: str, text: str) -> Optional[str]:
        for index, value in enumerate(options, start=1):
            if user_input in (str(index), value.lower()):
                return value
        return None
    return parse


def amount_answer(minimum: int = 0) -> Parser:
    def parse(user_input: str, text: str) -> Optional[int]:
        amount = parse_amount(text)
        return amount if amount is not None and amount >= minimum else None
    return parse


def int_answer(minimum: int, maximum: int) -> Parser:
    def parse(user_input: str, text: str) -> Optional[int]:
        value = parse_int(text)
        return value if value is not None and minimum <= value <= maximum else None
    return parse


def year_answer() -> Parser:
    return int_answer(1980, datetime.now().year + 1)


def yes_no_answer() -> Parser:
    def parse(user_input: str, text: str) -> Optional[bool]:
        return parse_yes_no(user_input)
    return parse


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------

def format_amount(amount: Optional[float]) -> str:
    if amount is None:
        return "N/A"
    return f"{int(round(amount)):,}"


def numbered(items: List[str]) -> str:
    return "\n".join(f"{index}. {item}" for index, item in enumerate(items, start=1))


def options_menu(options: Sequence[Tuple[str, Sequence[str]]]) -> str:
    return numbered([value.replace("_", " ").title() for value, _ in options])
