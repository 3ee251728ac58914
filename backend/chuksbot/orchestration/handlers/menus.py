"""
Navigation and information handlers.

Main menu, quote category selection, product information, FAQs, the agent
hand-off and the processing placeholder state.
"""
from typing import Any, Dict

from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import HandlerContext, StateHandler, match_option
from chuksbot.orchestration.handlers.health import plans_list_message
from chuksbot.orchestration.handlers.policy_claims import AGENT_PROMPT
from chuksbot.orchestration.handlers.quotes import QUOTE_FLOWS
from chuksbot.orchestration.result import HandlerResult
from chuksbot.orchestration.states import State


MAIN_MENU_OPTIONS = [
    ("quote", ["quote"]),
    ("learn", ["learn", "product"]),
    ("policy", ["policy", "manage"]),
    ("claims", ["claim", "support"]),
    ("faq", ["faq", "question"]),
]

QUOTE_CATEGORY_OPTIONS = [
    ("health", ["health"]),
    ("auto", ["auto", "car"]),
    ("device", ["device", "phone", "gadget"]),
    ("life", ["life"]),
    ("property", ["property", "home"]),
    ("salary", ["salary", "income"]),
    ("credit", ["credit", "loan"]),
    ("travel", ["travel"]),
]

TRAVEL_COMING_SOON = """✈️ *Travel Insurance*

Travel insurance is coming soon! We're working hard to bring you comprehensive travel coverage.

Please choose another insurance type or type MENU to return to the main menu."""


class MainMenuHandler(StateHandler):
    states = (State.MAIN_MENU,)

    _targets = {
        "quote": (State.QUOTE_CATEGORY, messages.QUOTE_CATEGORIES),
        "learn": (State.LEARN_PRODUCTS, messages.LEARN_PRODUCTS),
        "policy": (State.POLICY_LOOKUP, messages.POLICY_LOOKUP_PROMPT),
        "claims": (State.CLAIMS_MENU, messages.CLAIMS_MENU),
        "faq": (State.FAQ_CATEGORY, messages.FAQ_MENU),
    }

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        choice = match_option(ctx.input, MAIN_MENU_OPTIONS)
        if choice is None:
            return HandlerResult(f"I didn't quite catch that. {messages.MAIN_MENU}", State.MAIN_MENU)
        state, message = self._targets[choice]
        return HandlerResult(message, state)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        return messages.MAIN_MENU


class QuoteCategoryHandler(StateHandler):
    states = (State.QUOTE_CATEGORY,)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        choice = match_option(ctx.input, QUOTE_CATEGORY_OPTIONS)
        if choice is None:
            return HandlerResult(
                "I didn't understand that selection. Please choose a number between 1-8, "
                "or type MENU to return to the main menu.",
                State.QUOTE_CATEGORY,
            )
        if choice == "travel":
            return HandlerResult(TRAVEL_COMING_SOON, State.QUOTE_CATEGORY)
        if choice == "health":
            return HandlerResult(
                plans_list_message(),
                State.HEALTH_PLANS_LIST,
                {"insuranceType": "health"},
            )

        flow = QUOTE_FLOWS[choice]
        return HandlerResult(
            f"{flow.intro}\n\n{flow.steps[0].prompt}",
            flow.steps[0].state,
            {"insuranceType": choice},
        )

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        return messages.QUOTE_CATEGORIES


# ----------------------------------------------------------------------
# Product information
# ----------------------------------------------------------------------

PRODUCTS: Dict[str, Dict[str, Any]] = {
    "health": {
        "title": "🏥 *Health Insurance*",
        "overview": "Comprehensive medical coverage for you and your family.",
        "coverage": [
            "Hospital bills & surgeries",
            "Outpatient consultations",
            "Prescription medications",
            "Diagnostic tests & scans",
            "Maternity care",
            "Emergency ambulance",
        ],
        "price": "From ₦25,000/year (individual) to ₦120,000/year (family)",
    },
    "auto": {
        "title": "🚗 *Auto Insurance*",
        "overview": "Protection for your vehicle against accidents, theft, and damage.",
        "coverage": [
            "Accident repairs",
            "Fire & theft",
            "Third-party liability",
            "Flood damage",
            "Towing & roadside assistance",
        ],
        "price": "From ₦15,000/year (third-party) to 5% of vehicle value (comprehensive)",
    },
    "life": {
        "title": "❤️ *Life Insurance*",
        "overview": "Financial security for your loved ones when you're gone.",
        "coverage": [
            "Death benefit payout",
            "Terminal illness cover",
            "Permanent disability",
            "Funeral expenses",
        ],
        "price": "From ₦10,000/month (₦1M coverage) to ₦100,000/month (₦20M+ coverage)",
    },
    "device": {
        "title": "📱 *Device Insurance*",
        "overview": "Protect your phones, laptops, and tablets from damage and theft.",
        "coverage": [
            "Cracked/broken screens",
            "Liquid damage",
            "Theft & robbery",
            "Hardware malfunction",
        ],
        "price": "From ₦3,000/year (basic phones) to ₦15,000/year (premium devices)",
    },
    "property": {
        "title": "🏠 *Property Insurance*",
        "overview": "Coverage for your home, shop, or office against various risks.",
        "coverage": [
            "Fire damage",
            "Theft & burglary",
            "Flood & natural disasters",
            "Building & contents",
        ],
        "price": "From ₦30,000/year (basic fire) to 0.5% of property value (all-risk)",
    },
    "salary": {
        "title": "💰 *Salary Insurance*",
        "overview": "Income protection when you can't work due to illness, job loss, or disability.",
        "coverage": [
            "Monthly salary replacement (up to 6-12 months)",
            "Job loss protection",
            "Disability benefits",
        ],
        "price": "🚧 Coming Soon",
        "coming_soon": True,
    },
    "travel": {
        "title": "✈️ *Travel Insurance*",
        "overview": "Protection when traveling domestically or internationally.",
        "coverage": [
            "Medical emergencies abroad",
            "Trip cancellation/interruption",
            "Lost/delayed luggage",
            "Emergency evacuation",
        ],
        "price": "🚧 Coming Soon",
        "coming_soon": True,
    },
}

# Menu order of LEARN_PRODUCTS
PRODUCT_ORDER = ["health", "auto", "life", "device", "property", "salary", "travel"]


def product_detail_message(product_key: str) -> str:
    product = PRODUCTS[product_key]
    lines = [product["title"], "", "*Overview:*", product["overview"], "", "*What it covers:*"]
    lines += [f"• {item}" for item in product["coverage"]]
    lines += ["", "*Price Range:*", product["price"], "", "Would you like to:"]
    if product.get("coming_soon"):
        lines.append("1️⃣ Join waitlist")
    else:
        lines.append("1️⃣ Get a quote")
    lines += ["2️⃣ Back to products", "3️⃣ Main menu"]
    return "\n".join(lines)


class LearnHandler(StateHandler):
    states = (State.LEARN_PRODUCTS, State.PRODUCT_DETAIL)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.state == State.LEARN_PRODUCTS:
            return self._select_product(ctx)
        return self._product_detail(ctx)

    def _select_product(self, ctx: HandlerContext) -> HandlerResult:
        options = [(key, [key]) for key in PRODUCT_ORDER]
        product = match_option(ctx.input, options)
        if product is None:
            return HandlerResult("Please select a number between 1-7.", State.LEARN_PRODUCTS)
        return HandlerResult(
            product_detail_message(product),
            State.PRODUCT_DETAIL,
            {"selectedProduct": product},
        )

    def _product_detail(self, ctx: HandlerContext) -> HandlerResult:
        product = ctx.data.get("selectedProduct")
        if product not in PRODUCTS:
            return HandlerResult(messages.LEARN_PRODUCTS, State.LEARN_PRODUCTS)

        if ctx.input == "1":
            if PRODUCTS[product].get("coming_soon"):
                return HandlerResult(
                    f"✅ Great! You've been added to the {product} insurance waitlist.\n\n"
                    "Type MENU to return to the main menu.",
                    State.MAIN_MENU,
                    reset=True,
                )
            return HandlerResult(messages.QUOTE_CATEGORIES, State.QUOTE_CATEGORY)
        if ctx.input == "2" or "products" in ctx.input:
            return HandlerResult(messages.LEARN_PRODUCTS, State.LEARN_PRODUCTS)
        if ctx.input == "3":
            return HandlerResult(messages.MAIN_MENU, State.MAIN_MENU)
        return HandlerResult("Please select 1, 2, or 3.", State.PRODUCT_DETAIL)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        product = data.get("selectedProduct")
        if state == State.PRODUCT_DETAIL and product in PRODUCTS:
            return product_detail_message(product)
        return messages.LEARN_PRODUCTS


# ----------------------------------------------------------------------
# FAQs
# ----------------------------------------------------------------------

FAQS = [
    ("Health Insurance FAQs", [
        ("What does health insurance cover?",
         "Hospital bills, outpatient care, medications, diagnostic tests, and more."),
        ("Can I add family members?", "Yes, you can add spouse and children to your plan."),
        ("Are pre-existing conditions covered?",
         "Some conditions may have waiting periods. Contact us for details."),
    ]),
    ("Auto Insurance FAQs", [
        ("What's the difference between comprehensive and third-party?",
         "Comprehensive covers your car + others. Third-party only covers others."),
        ("How long does claims take?", "5-10 business days after inspection."),
        ("Do I need to renew?", "Yes, annually before expiry date."),
    ]),
    ("Life Insurance FAQs", [
        ("Who receives the payout?", "Your named beneficiaries."),
        ("When does coverage start?", "Immediately after payment and approval."),
        ("What if I miss a payment?", "You have a 30-day grace period."),
    ]),
    ("Device Insurance FAQs", [
        ("Are used devices covered?", "Yes, if less than 2 years old."),
        ("How many claims can I make?", "Up to 2 per year."),
        ("What about stolen devices?", "Covered with police report."),
    ]),
    ("Payment & Billing FAQs", [
        ("Payment methods?", "Card, transfer, USSD, or installments."),
        ("Can I pay monthly?", "Yes, for most products."),
        ("Refund policy?", "Available within 14 days if no claims made."),
    ]),
    ("Claims FAQs", [
        ("How long do claims take?", "3-10 business days depending on type."),
        ("What documents needed?", "Policy number, incident description, supporting docs."),
        ("Can I track my claim?", "Yes, using your claim ID."),
    ]),
    ("General Insurance Questions", [
        ("How do I cancel my policy?", "Contact us 30 days before renewal."),
        ("Can I upgrade my plan?", "Yes, at any time with price adjustment."),
        ("What is a premium?", "The amount you pay for insurance coverage."),
    ]),
]


class FaqHandler(StateHandler):
    states = (State.FAQ_CATEGORY,)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        index = int(ctx.input) - 1 if ctx.input.isdigit() else -1
        if not 0 <= index < len(FAQS):
            return HandlerResult(f"Please select a number between 1-{len(FAQS)}.", State.FAQ_CATEGORY)

        title, questions = FAQS[index]
        lines = [f"❓ *{title}*", ""]
        for number, (question, answer) in enumerate(questions, start=1):
            lines.append(f"{number}. *Q:* {question}")
            lines.append(f"   *A:* {answer}")
            lines.append("")
        lines.append("Type MENU to return to main menu or pick another category.")
        return HandlerResult("\n".join(lines), State.FAQ_CATEGORY)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        return messages.FAQ_MENU


class AgentHandler(StateHandler):
    states = (State.AGENT_CONNECT,)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        return HandlerResult(
            "✅ Your message has been forwarded to our support team.\n\n"
            f"\"{ctx.text}\"\n\n"
            "An agent will contact you within:\n"
            "• 5-10 minutes (during business hours)\n"
            "• Next business day (outside hours)\n\n"
            "Business Hours: Mon-Fri, 9 AM - 5 PM\n\n"
            "Type MENU to return.",
            State.MAIN_MENU,
            {"agentRequest": ctx.text},
        )

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        return AGENT_PROMPT


class ProcessingHandler(StateHandler):
    """Any input while a deferred task is in flight."""

    states = (State.PROCESSING,)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        return HandlerResult(messages.STILL_PROCESSING, State.PROCESSING)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        return messages.STILL_PROCESSING
