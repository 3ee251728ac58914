"""
Policy management and claims.

Policy lookup, claim submission and claim tracking query the insurance
backend and therefore run as deferred tasks.
"""
from typing import Any, Dict, Optional

from chuksbot.core.logging import log_session_event
from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import (
    HandlerContext,
    StateHandler,
    format_amount,
    match_option,
)
from chuksbot.orchestration.handlers.payment import payment_options_message
from chuksbot.orchestration.result import HandlerResult
from chuksbot.orchestration.states import State


POLICY_OPTIONS_MENU = """What would you like to do?

1️⃣ View full policy details
2️⃣ Download policy document
3️⃣ Pay renewal
4️⃣ Update information
5️⃣ Back to menu"""

POLICY_OPTIONS = [
    ("view", ["view", "details"]),
    ("download", ["download"]),
    ("renew", ["renew", "pay"]),
    ("update", ["update"]),
    ("menu", ["menu"]),
]

CLAIM_TYPES = ["Health", "Auto", "Device", "Life", "Property"]

CLAIM_TYPE_PROMPT = """📋 *Make a Claim*

What type of insurance is this claim for?

1️⃣ Health Insurance
2️⃣ Auto Insurance
3️⃣ Device Insurance
4️⃣ Life Insurance
5️⃣ Property Insurance

Please select the type."""

CLAIM_TRACKING_PROMPT = "🔍 *Track Your Claim*\n\nPlease provide your Claim ID.\n\n_Example: CLM12345_"

CLAIM_LOCATION_PROMPT = "📍 Where did this happen?\n\n_Please provide the location._"

CLAIM_DOCUMENTS_PROMPT = """📎 *Upload Supporting Documents*

Please upload:
• Photos of damage/incident
• Receipts or invoices
• Police report (if applicable)

After uploading, reply "DONE"

Or reply "SKIP" if you don't have documents now."""

AGENT_PROMPT = "👤 *Connect with an Agent*\n\nI'm connecting you with one of our support agents.\n\nPlease briefly describe your issue:"

CLAIMS_MENU_OPTIONS = [
    ("make", ["make", "file"]),
    ("track", ["track", "status"]),
    ("agent", ["agent", "speak"]),
]


def claim_description_prompt(claim_type: Optional[str]) -> str:
    return f"📝 *{claim_type or 'Insurance'} Insurance Claim*\n\nPlease describe what happened:\n\n_Be as detailed as possible._"


def policy_summary_message(policy: Dict[str, Any]) -> str:
    return f"""✅ *Policy Found*

Policy Number: {policy.get('number', 'N/A')}
Type: {policy.get('type', 'N/A')}
Status: {policy.get('status', 'N/A')}
Renewal Date: {policy.get('renewal', 'N/A')}
Premium: ₦{format_amount(policy.get('premium'))}

{POLICY_OPTIONS_MENU}"""


class PolicyHandler(StateHandler):
    states = (State.POLICY_LOOKUP, State.POLICY_OPTIONS)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.state == State.POLICY_LOOKUP:
            return self._lookup(ctx)
        return self._options(ctx)

    def _lookup(self, ctx: HandlerContext) -> HandlerResult:
        identifier = ctx.text.strip()
        if len(identifier) < 5:
            return HandlerResult(
                messages.retry("Please enter a valid policy number or phone number.", messages.POLICY_LOOKUP_PROMPT),
                State.POLICY_LOOKUP,
            )
        api = ctx.api

        async def task() -> HandlerResult:
            found = await api.lookup_policy(identifier)
            if not found:
                return HandlerResult(
                    "❌ Policy not found. Please check your policy number or phone number and try again.\n\n"
                    "Type MENU to return to the main menu.",
                    State.POLICY_LOOKUP,
                )
            policy = {
                "number": found.get("number") or found.get("policyNumber"),
                "type": found.get("type"),
                "status": found.get("status"),
                "renewal": found.get("renewal") or found.get("renewalDate"),
                "premium": found.get("premium"),
                "documentUrl": found.get("documentUrl"),
            }
            return HandlerResult(policy_summary_message(policy), State.POLICY_OPTIONS, {"policy": policy})

        return ctx.defer(messages.loading("Looking up your policy"), task)

    def _options(self, ctx: HandlerContext) -> HandlerResult:
        policy = ctx.data.get("policy") or {}
        choice = match_option(ctx.input, POLICY_OPTIONS)
        if choice == "view":
            return HandlerResult(
                f"📋 *Full Policy Details*\n\n"
                f"Policy Number: {policy.get('number', 'N/A')}\n"
                f"Type: {policy.get('type', 'N/A')}\n"
                f"Status: {policy.get('status', 'N/A')}\n"
                f"Renewal Date: {policy.get('renewal', 'N/A')}\n"
                f"Premium: ₦{format_amount(policy.get('premium'))}\n\n"
                f"{POLICY_OPTIONS_MENU}",
                State.POLICY_OPTIONS,
            )
        if choice == "download":
            link = policy.get("documentUrl") or f"https://policies.skydd.com/{policy.get('number', '')}.pdf"
            return HandlerResult(
                f"📄 Your policy document is ready.\n\nDownload link: {link}\n\nType MENU to return to main menu.",
                State.MAIN_MENU,
            )
        if choice == "renew":
            return HandlerResult(
                payment_options_message(policy.get("premium")),
                State.PAYMENT_METHOD,
                {"product": policy.get("type") or "renewal", "premium": policy.get("premium"), "premiumPeriod": None},
            )
        if choice == "update":
            return HandlerResult(
                "📝 *Update Information*\n\n"
                "To update your contact details, address or beneficiaries, reply 3 from the "
                "Claims & Support menu to speak with an agent.\n\n"
                f"{POLICY_OPTIONS_MENU}",
                State.POLICY_OPTIONS,
            )
        if choice == "menu":
            return HandlerResult(messages.MAIN_MENU, State.MAIN_MENU)
        return HandlerResult("Please select an option (1-5).", State.POLICY_OPTIONS)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        if state == State.POLICY_OPTIONS and data.get("policy"):
            return policy_summary_message(data["policy"])
        return messages.POLICY_LOOKUP_PROMPT


class ClaimsHandler(StateHandler):
    states = (
        State.CLAIMS_MENU,
        State.CLAIM_TYPE,
        State.CLAIM_DESCRIPTION,
        State.CLAIM_LOCATION,
        State.CLAIM_DOCUMENTS,
        State.CLAIM_TRACKING,
    )

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.state == State.CLAIMS_MENU:
            return self._menu(ctx)
        if ctx.state == State.CLAIM_TYPE:
            return self._claim_type(ctx)
        if ctx.state == State.CLAIM_DESCRIPTION:
            if len(ctx.text) < 10:
                return HandlerResult(
                    messages.retry("Please give us a little more detail (at least 10 characters).",
                                   claim_description_prompt(ctx.data.get("claimType"))),
                    State.CLAIM_DESCRIPTION,
                )
            return HandlerResult(CLAIM_LOCATION_PROMPT, State.CLAIM_LOCATION, {"claimDescription": ctx.text})
        if ctx.state == State.CLAIM_LOCATION:
            if len(ctx.text) < 2:
                return HandlerResult(messages.retry("Please enter the location.", CLAIM_LOCATION_PROMPT),
                                     State.CLAIM_LOCATION)
            return HandlerResult(CLAIM_DOCUMENTS_PROMPT, State.CLAIM_DOCUMENTS, {"claimLocation": ctx.text})
        if ctx.state == State.CLAIM_DOCUMENTS:
            return self._documents(ctx)
        return self._track(ctx)

    def _menu(self, ctx: HandlerContext) -> HandlerResult:
        choice = match_option(ctx.input, CLAIMS_MENU_OPTIONS)
        if choice == "make":
            return HandlerResult(CLAIM_TYPE_PROMPT, State.CLAIM_TYPE)
        if choice == "track":
            return HandlerResult(CLAIM_TRACKING_PROMPT, State.CLAIM_TRACKING)
        if choice == "agent":
            return HandlerResult(AGENT_PROMPT, State.AGENT_CONNECT)
        return HandlerResult("Please select 1, 2, or 3.", State.CLAIMS_MENU)

    def _claim_type(self, ctx: HandlerContext) -> HandlerResult:
        claim_type = match_option(ctx.input, [(name, [name.lower()]) for name in CLAIM_TYPES])
        if claim_type is None:
            return HandlerResult("Please select a number between 1-5.", State.CLAIM_TYPE)
        return HandlerResult(
            claim_description_prompt(claim_type),
            State.CLAIM_DESCRIPTION,
            {"claimType": claim_type},
        )

    def _documents(self, ctx: HandlerContext) -> HandlerResult:
        if "done" not in ctx.input and "skip" not in ctx.input:
            return HandlerResult(
                'Please reply "DONE" when finished uploading, or "SKIP" to continue without documents.',
                State.CLAIM_DOCUMENTS,
            )
        api = ctx.api
        user_id = ctx.user_id
        claim = {
            "phone": user_id,
            "type": ctx.data.get("claimType"),
            "description": ctx.data.get("claimDescription"),
            "location": ctx.data.get("claimLocation"),
            "documentsProvided": "done" in ctx.input,
        }

        async def task() -> HandlerResult:
            submitted = await api.submit_claim(claim)
            claim_id = submitted.get("claimId") or submitted.get("id")
            log_session_event("claim_submitted", user_id, {"claim_id": claim_id})
            return HandlerResult(
                f"""✅ *Claim Submitted Successfully*

Your Claim ID: *{claim_id}*

We've received your claim and will review it within 24-48 hours.

Track your claim anytime from the Claims & Support menu.

Type MENU for more options.""",
                State.MAIN_MENU,
                reset=True,
            )

        return ctx.defer(messages.loading("Submitting your claim"), task)

    def _track(self, ctx: HandlerContext) -> HandlerResult:
        claim_id = ctx.text.strip().upper()
        if len(claim_id) < 4:
            return HandlerResult(messages.retry("Please enter a valid Claim ID.", CLAIM_TRACKING_PROMPT),
                                 State.CLAIM_TRACKING)
        api = ctx.api

        async def task() -> HandlerResult:
            claim = await api.claim_status(claim_id)
            if not claim:
                return HandlerResult(
                    f"❌ We couldn't find a claim with ID *{claim_id}*.\n\n"
                    "Please check the ID and try again, or type MENU to return.",
                    State.CLAIM_TRACKING,
                )
            return HandlerResult(
                f"""🔍 *Claim Status*

Claim ID: {claim_id}
Type: {claim.get('type', 'N/A')}
Status: {claim.get('status', 'N/A')}
Submitted: {claim.get('submitted') or claim.get('createdAt') or 'N/A'}
Amount: ₦{format_amount(claim.get('amount'))}

We'll notify you once your claim is processed.

Type MENU to return to main menu.""",
                State.MAIN_MENU,
            )

        return ctx.defer(messages.loading("Checking your claim status"), task)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        prompts = {
            State.CLAIMS_MENU: messages.CLAIMS_MENU,
            State.CLAIM_TYPE: CLAIM_TYPE_PROMPT,
            State.CLAIM_DESCRIPTION: claim_description_prompt(data.get("claimType")),
            State.CLAIM_LOCATION: CLAIM_LOCATION_PROMPT,
            State.CLAIM_DOCUMENTS: CLAIM_DOCUMENTS_PROMPT,
            State.CLAIM_TRACKING: CLAIM_TRACKING_PROMPT,
        }
        return prompts[state]
