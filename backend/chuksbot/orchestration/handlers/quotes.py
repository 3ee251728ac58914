"""
Quote flows for auto, device, life, property, salary and credit insurance.

Every product is a table of question steps followed by a plans state that
shows the premium. One handler serves all of them.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import (
    FieldStep,
    HandlerContext,
    StateHandler,
    amount_answer,
    choice_answer,
    format_amount,
    int_answer,
    match_option,
    text_answer,
    year_answer,
    yes_no_answer,
)
from chuksbot.orchestration.handlers.payment import payment_options_message
from chuksbot.orchestration.result import HandlerResult
from chuksbot.orchestration.states import QUOTE_FLOW_ORDERS, State


@dataclass
class Quote:
    premium: int
    period: str                     # "year" or "month"
    summary: List[str]
    coverage: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)


@dataclass
class QuoteFlow:
    key: str
    title: str
    intro: str
    steps: List[FieldStep]
    plans_state: State
    quote: Optional[Callable[[Dict[str, Any]], Quote]] = None

    @property
    def waitlist(self) -> bool:
        return self.quote is None


YES_NO = "\n\n1️⃣ Yes\n2️⃣ No"


# ----------------------------------------------------------------------
# Premium calculations
# ----------------------------------------------------------------------

def auto_quote(data: Dict[str, Any]) -> Quote:
    value = data["autoValue"]
    return Quote(
        premium=round(value * 0.05),
        period="year",
        summary=[
            f"Vehicle: {data.get('autoYear')} {data.get('autoBrand')} {data.get('autoModel')}",
            f"Type: {data.get('autoType')}",
            f"Value: ₦{format_amount(value)}",
        ],
        coverage=[
            "Accident damage",
            "Fire & theft",
            "Third-party liability",
            "Roadside assistance",
        ],
    )


def device_quote(data: Dict[str, Any]) -> Quote:
    value = data["deviceValue"]
    return Quote(
        premium=round(value * 0.08),
        period="year",
        summary=[
            f"Device: {data.get('deviceBrand')} {data.get('deviceModel')} ({data.get('deviceType')})",
            f"Condition: {data.get('deviceCondition')}",
            f"Value: ₦{format_amount(value)}",
        ],
        coverage=[
            "Screen damage",
            "Liquid damage",
            "Theft & robbery",
            "Hardware malfunction",
        ],
    )


def life_quote(data: Dict[str, Any]) -> Quote:
    sum_insured = data["lifeSum"]
    age = data["lifeAge"]
    extra = []
    if data.get("lifeConditions"):
        extra.append("_A medical review may be required for pre-existing conditions._")
    return Quote(
        premium=round(sum_insured * 0.001 + age * 100),
        period="month",
        summary=[
            f"Age: {age}",
            f"Dependents: {'Yes' if data.get('lifeDependents') else 'No'}",
            f"Sum Insured: ₦{format_amount(sum_insured)}",
        ],
        coverage=[
            "Death benefit payout",
            "Terminal illness cover",
            "Permanent disability",
        ],
        extra=extra,
    )


PROPERTY_COVERAGE_RATES = {
    "Fire only": 0.002,
    "Fire & Theft": 0.003,
    "Fire, Theft & Flood": 0.004,
    "All-risk": 0.005,
}


def property_quote(data: Dict[str, Any]) -> Quote:
    value = data["propertyValue"]
    coverage = data["propertyCoverage"]
    return Quote(
        premium=round(value * PROPERTY_COVERAGE_RATES.get(coverage, 0.003)),
        period="year",
        summary=[
            f"Property: {data.get('propertyType')} in {data.get('propertyState')}",
            f"Coverage: {coverage}",
            f"Value: ₦{format_amount(value)}",
        ],
    )


def credit_quote(data: Dict[str, Any]) -> Quote:
    amount = data["creditAmount"]
    duration = data["creditDuration"]
    total = round(amount * 0.02)
    return Quote(
        premium=round(total / duration),
        period="month",
        summary=[
            f"Loan Type: {data.get('creditType')}",
            f"Loan Amount: ₦{format_amount(amount)}",
            f"Duration: {duration} months",
        ],
        extra=[f"Total Premium: ₦{format_amount(total)}"],
    )


# ----------------------------------------------------------------------
# Flow tables
# ----------------------------------------------------------------------

def _flow(key: str, title: str, intro: str, questions: List[Tuple[str, str, Any, str]],
          quote: Optional[Callable[[Dict[str, Any]], Quote]] = None) -> QuoteFlow:
    order = QUOTE_FLOW_ORDERS[key]
    steps = [
        FieldStep(state=state, key=name, prompt=prompt, parse=parse, error=error)
        for state, (name, prompt, parse, error) in zip(order, questions)
    ]
    return QuoteFlow(key=key, title=title, intro=intro, steps=steps, plans_state=order[-1], quote=quote)


QUOTE_FLOWS: Dict[str, QuoteFlow] = {
    "auto": _flow(
        "auto", "Auto Insurance",
        "🚗 *Auto Insurance Quote*\n\nLet's find the right cover for your vehicle.",
        [
            ("autoType",
             "What type of cover do you need?\n\n1️⃣ Comprehensive\n2️⃣ Third-party\n3️⃣ Fleet (Business)",
             choice_answer([("Comprehensive", ["comprehensive"]),
                            ("Third-party", ["third", "party"]),
                            ("Fleet", ["fleet", "business"])]),
             "Please select 1, 2 or 3."),
            ("autoBrand", "What is your vehicle brand?\n\n_Examples: Toyota, Honda, Mercedes, etc._",
             text_answer(), "Please enter the vehicle brand."),
            ("autoModel", "What is the vehicle model?\n\n_Examples: Camry, Accord, C-Class, etc._",
             text_answer(1), "Please enter the vehicle model."),
            ("autoYear", "What year was the vehicle manufactured?\n\n_Example: 2020_",
             year_answer(), "Please enter a valid year (e.g., 2020)"),
            ("autoValue", "What is the estimated value of your vehicle (in Naira)?\n\n_Example: 5000000_",
             amount_answer(100_000), "Please enter a valid amount (e.g., 5000000)"),
        ],
        auto_quote,
    ),
    "device": _flow(
        "device", "Device Insurance",
        "📱 *Device Insurance Quote*\n\nLet's protect your gadget.",
        [
            ("deviceType", "What type of device?\n\n1️⃣ Phone\n2️⃣ Laptop\n3️⃣ Tablet",
             choice_answer([("Phone", ["phone"]), ("Laptop", ["laptop"]), ("Tablet", ["tablet"])]),
             "Please select 1, 2 or 3."),
            ("deviceBrand", "What is the device brand?\n\n_Examples: Apple, Samsung, HP, etc._",
             text_answer(), "Please enter the device brand."),
            ("deviceModel", "What is the device model?\n\n_Examples: iPhone 14, Galaxy S23, etc._",
             text_answer(1), "Please enter the device model."),
            ("deviceCondition", "What is the condition of the device?\n\n1️⃣ New\n2️⃣ Used",
             choice_answer([("New", ["new"]), ("Used", ["used", "old"])]),
             "Please select 1 or 2."),
            ("deviceValue", "What is the value of the device (in Naira)?\n\n_Example: 350000_",
             amount_answer(10_000), "Please enter a valid amount (e.g., 350000)"),
        ],
        device_quote,
    ),
    "life": _flow(
        "life", "Life Insurance",
        "❤️ *Life Insurance Quote*\n\nSecure your family's future.",
        [
            ("lifeAge", "How old are you?\n\n_Example: 35_",
             int_answer(18, 100), "Please enter a valid age between 18 and 100."),
            ("lifeDependents", "Do you have dependents (spouse, children)?" + YES_NO,
             yes_no_answer(), "Please reply 1 for Yes or 2 for No."),
            ("lifeSum", "How much cover would you like (in Naira)?\n\n_Example: 5000000_",
             amount_answer(500_000), "Please enter a valid amount of at least ₦500,000."),
            ("lifeConditions", "Do you have any pre-existing medical conditions?" + YES_NO,
             yes_no_answer(), "Please reply 1 for Yes or 2 for No."),
        ],
        life_quote,
    ),
    "property": _flow(
        "property", "Property Insurance",
        "🏠 *Property Insurance Quote*\n\nProtect your home or business.",
        [
            ("propertyType", "What type of property?\n\n1️⃣ House\n2️⃣ Shop\n3️⃣ Office",
             choice_answer([("House", ["house", "home"]), ("Shop", ["shop", "store"]), ("Office", ["office"])]),
             "Please select 1, 2 or 3."),
            ("propertyState", "In which state is the property located?\n\n_Example: Lagos_",
             text_answer(), "Please enter the state."),
            ("propertyValue", "What is the property value (in Naira)?\n\n_Example: 15000000_",
             amount_answer(500_000), "Please enter a valid amount (e.g., 15000000)"),
            ("propertyCoverage",
             "What coverage do you need?\n\n1️⃣ Fire only\n2️⃣ Fire & Theft\n3️⃣ Fire, Theft & Flood\n4️⃣ All-risk",
             choice_answer([("Fire only", ["fire only"]),
                            ("Fire & Theft", ["theft"]),
                            ("Fire, Theft & Flood", ["flood"]),
                            ("All-risk", ["all", "comprehensive"])]),
             "Please select 1, 2, 3, or 4."),
        ],
        property_quote,
    ),
    "salary": _flow(
        "salary", "Salary Insurance",
        "💰 *Salary Insurance Quote*\n\nProtect your income.",
        [
            ("salaryAmount", "What is your monthly salary (in Naira)?\n\n_Example: 150000_",
             amount_answer(50_000), "Please enter a valid monthly salary (e.g., 150000)"),
            ("salaryEmployment",
             "What is your employment type?\n\n1️⃣ Permanent / Full-time\n2️⃣ Contract\n3️⃣ Self-employed",
             choice_answer([("Permanent", ["permanent", "full"]),
                            ("Contract", ["contract"]),
                            ("Self-employed", ["self"])]),
             "Please select 1, 2, or 3."),
            ("salaryCoverage",
             "What would you like to be covered against?\n\n1️⃣ Illness\n2️⃣ Job loss\n3️⃣ Disability\n4️⃣ Comprehensive",
             choice_answer([("Illness", ["illness"]),
                            ("Job loss", ["job"]),
                            ("Disability", ["disability"]),
                            ("Comprehensive", ["comprehensive", "all"])]),
             "Please select 1, 2, 3, or 4."),
        ],
    ),
    "credit": _flow(
        "credit", "Credit Insurance",
        "💳 *Credit Insurance Quote*\n\nProtect your loan repayments.",
        [
            ("creditAmount", "What is the loan amount (in Naira)?\n\n_Example: 1000000_",
             amount_answer(100_000), "Please enter a valid loan amount (e.g., 1000000)"),
            ("creditDuration", "What is the loan duration (in months)?\n\n_Example: 12, 24, 36, etc._",
             int_answer(3, 120), "Please enter a valid duration between 3 and 120 months."),
            ("creditType", "What type of loan is this?\n\n1️⃣ Personal loan\n2️⃣ Business loan\n3️⃣ Mortgage",
             choice_answer([("Personal", ["personal"]), ("Business", ["business"]), ("Mortgage", ["mortgage"])]),
             "Please select 1, 2, or 3."),
        ],
        credit_quote,
    ),
}

WAITLIST_MESSAGE = """🚧 *{title} - Coming Soon*

This product is currently under development.

Would you like to:
1️⃣ Join the waitlist
2️⃣ Back to menu"""

PLAN_OPTIONS = [
    ("buy", ["yes", "buy"]),
    ("save", ["save"]),
    ("menu", ["menu"]),
]


def quote_message(flow: QuoteFlow, data: Dict[str, Any]) -> str:
    if flow.waitlist:
        return WAITLIST_MESSAGE.format(title=flow.title)

    quote = flow.quote(data)
    lines = [f"✅ *Your {flow.title} Quote*", ""]
    lines += quote.summary
    lines += ["", f"*{'Annual' if quote.period == 'year' else 'Monthly'} Premium: ₦{format_amount(quote.premium)}*"]
    lines += quote.extra
    if quote.coverage:
        lines += ["", "Coverage includes:"]
        lines += [f"• {item}" for item in quote.coverage]
    lines += [
        "",
        "Would you like to proceed?",
        "",
        "1️⃣ Yes, buy now",
        "2️⃣ Save quote",
        "3️⃣ Back to menu",
    ]
    return "\n".join(lines)


class QuoteFlowHandler(StateHandler):
    """Question steps and plan selection for every table-driven quote flow."""

    def __init__(self, flows: Optional[Dict[str, QuoteFlow]] = None):
        self.flows = flows or QUOTE_FLOWS
        self._steps: Dict[State, Tuple[QuoteFlow, int]] = {}
        self._plans: Dict[State, QuoteFlow] = {}
        for flow in self.flows.values():
            for index, step in enumerate(flow.steps):
                self._steps[step.state] = (flow, index)
            self._plans[flow.plans_state] = flow
        self.states = tuple(self._steps) + tuple(self._plans)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.state in self._plans:
            return self._select_plan(self._plans[ctx.state], ctx)

        flow, index = self._steps[ctx.state]
        step = flow.steps[index]
        value = step.read(ctx)
        if value is None:
            return HandlerResult(messages.retry(step.error, step.prompt), ctx.state)

        answer = {step.key: value}
        if index + 1 < len(flow.steps):
            following = flow.steps[index + 1]
            return HandlerResult(following.prompt, following.state, answer)
        return HandlerResult(
            quote_message(flow, {**ctx.data, **answer}),
            flow.plans_state,
            answer,
        )

    def _select_plan(self, flow: QuoteFlow, ctx: HandlerContext) -> HandlerResult:
        if flow.waitlist:
            if ctx.input == "1" or "join" in ctx.input or "waitlist" in ctx.input:
                return HandlerResult(
                    f"✅ Great! You've been added to the waitlist. We'll notify you as soon as "
                    f"{flow.title} is available.\n\nType MENU to return to the main menu.",
                    State.MAIN_MENU,
                    reset=True,
                )
            if ctx.input == "2":
                return HandlerResult(messages.MAIN_MENU, State.MAIN_MENU)
            return HandlerResult("Please select 1 or 2.", flow.plans_state)

        choice = match_option(ctx.input, PLAN_OPTIONS)
        if choice == "buy":
            quote = flow.quote(ctx.data)
            return HandlerResult(
                payment_options_message(quote.premium, quote.period),
                State.PAYMENT_METHOD,
                {"product": flow.key, "premium": quote.premium, "premiumPeriod": quote.period},
            )
        if choice == "save":
            return HandlerResult(
                "✅ Quote saved! I'll send you a reminder in 24 hours.\n\n"
                "Type MENU to return to the main menu.",
                State.MAIN_MENU,
                {"savedQuote": flow.key},
            )
        if choice == "menu":
            return HandlerResult(messages.MAIN_MENU, State.MAIN_MENU)
        return HandlerResult("Please select 1, 2, or 3.", flow.plans_state)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        if state in self._plans:
            return quote_message(self._plans[state], data)
        flow, index = self._steps[state]
        return flow.steps[index].prompt
