"""
Payment method selection, confirmation and verification.

Payment initiation and verification talk to the insurance backend, so they
run as deferred tasks. The verification task factory is shared with the
health flow, which enrolls the participant once payment clears.
"""
import re
from typing import Any, Awaitable, Callable, Dict, Optional

from chuksbot.core.logging import logger, log_session_event
from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import (
    HandlerContext,
    StateHandler,
    format_amount,
    match_option,
)
from chuksbot.orchestration.result import DeferredTask, HandlerResult
from chuksbot.orchestration.states import State


MAX_PAYMENT_ATTEMPTS = 5
SERVICE_CHARGE_RATE = 0.03
PAID_STATUSES = {"success", "successful", "paid", "completed"}
CONFIRM_WORDS = {"paid", "done", "completed", "confirm", "confirmed"}
NEGATIONS = {"not", "no", "yet", "havent", "haven", "didnt", "didn", "never"}

BANK_DETAILS = "Bank: GTBank\nAccount: 0123456789\nName: Skydd Insurance Ltd"

PAYMENT_METHOD_OPTIONS = [
    ("online", ["online", "card"]),
    ("transfer", ["transfer", "bank"]),
    ("ussd", ["ussd"]),
    ("cancel", ["cancel"]),
]

CONFIRM_PROMPT = 'Please reply with "PAID" after completing payment, or "CANCEL" to go back.'

OnPaid = Callable[[Dict[str, Any]], Awaitable[HandlerResult]]


def payment_options_message(premium: Optional[float], period: Optional[str] = None) -> str:
    suffix = f"/{period}" if period else ""
    return f"""💳 *Payment Options*

Your premium: ₦{format_amount(premium)}{suffix}

How would you like to pay?

1️⃣ Pay Online (Card/Bank)
2️⃣ Bank Transfer
3️⃣ USSD
4️⃣ Cancel

_Select your preferred payment method._"""


def payment_reference(prefix: str, user_id: str, now_ms: int) -> str:
    return f"{prefix}_{user_id}_{now_ms}"


def with_service_charge(premium: float) -> int:
    return int(round(premium)) + int(round(premium * SERVICE_CHARGE_RATE))


def online_payment_message(link: str, reference: str, amount: Optional[float]) -> str:
    return f"""💳 *Pay Online*

Amount: ₦{format_amount(amount)}
Reference: {reference}

Click the link below to complete your payment:
{link}

After payment, reply *PAID* and I'll confirm it.
Reply *CANCEL* to stop."""


def is_paid(verification: Dict[str, Any], expected_amount: Optional[float]) -> bool:
    """
    Decide whether a verification response represents a completed payment.

    The paid amount may differ from the expected amount by up to 5% (at
    least ₦5) to absorb gateway fees and rounding.
    """
    status = str(verification.get("status") or verification.get("paymentStatus") or "").lower()
    if status not in PAID_STATUSES:
        return False
    paid_amount = verification.get("amount") or verification.get("amountPaid")
    if not expected_amount or paid_amount is None:
        return True
    try:
        paid_amount = float(paid_amount)
    except (TypeError, ValueError):
        return False
    return abs(paid_amount - expected_amount) <= max(5, expected_amount * 0.05)


def initiate_payment_task(
    ctx: HandlerContext,
    reference: str,
    amount: float,
    next_state: State,
    extra: Optional[Dict[str, Any]] = None,
) -> DeferredTask:
    """Deferred task creating an online payment and returning its checkout link."""
    api = ctx.api
    payload = {
        "reference": reference,
        "amount": amount,
        "phone": ctx.user_id,
        "email": ctx.data.get("email"),
        "product": ctx.data.get("product") or ctx.data.get("insuranceType"),
    }

    async def task() -> HandlerResult:
        payment = await api.initiate_payment(payload)
        link = payment.get("checkoutUrl") or payment.get("paymentLink") or payment.get("link")
        if not link:
            logger.warning(f"Payment {reference} created without a checkout link")
            return HandlerResult(
                "😔 We couldn't generate a payment link right now.\n\nType MENU to start again.",
                State.MAIN_MENU,
                reset=True,
            )
        return HandlerResult(
            online_payment_message(link, reference, amount),
            next_state,
            {
                "paymentReference": reference,
                "paymentMethod": "online",
                "totalAmount": amount,
                "paymentAttempts": 0,
                **(extra or {}),
            },
        )

    return task


def verify_payment_task(ctx: HandlerContext, on_paid: OnPaid, retry_state: State) -> DeferredTask:
    """
    Deferred task verifying the session's payment reference.

    A confirmed payment hands over to ``on_paid``; otherwise the participant
    stays in ``retry_state`` with the attempt counter bumped.
    """
    api = ctx.api
    user_id = ctx.user_id
    data = dict(ctx.data)
    reference = data.get("paymentReference")
    attempts = data.get("paymentAttempts", 0) + 1

    async def task() -> HandlerResult:
        verification = await api.verify_payment(reference)
        if is_paid(verification, data.get("totalAmount")):
            log_session_event("payment_verified", user_id, {"reference": reference})
            return await on_paid({**data, "payment": verification})

        log_session_event("payment_pending", user_id, {"reference": reference, "attempt": attempts})
        return HandlerResult(
            "⏳ We haven't received your payment yet.\n\n"
            f"Reference: {reference}\n"
            f"Attempt {attempts} of {MAX_PAYMENT_ATTEMPTS}.\n\n"
            "Reply *PAID* once the payment has gone through, or *CANCEL* to stop.",
            retry_state,
            {"paymentAttempts": attempts},
        )

    return task


def check_before_verify(ctx: HandlerContext) -> Optional[HandlerResult]:
    """Reply that ends the payment instead of verifying, or None to go ahead."""
    if not ctx.data.get("paymentReference"):
        return HandlerResult(
            "Payment reference not found. Please start the payment process again.\n\n"
            "Type MENU to return to main menu.",
            State.MAIN_MENU,
            reset=True,
        )
    if ctx.data.get("paymentAttempts", 0) >= MAX_PAYMENT_ATTEMPTS:
        log_session_event("payment_attempts_exceeded", ctx.user_id, {
            "reference": ctx.data.get("paymentReference"),
        })
        return HandlerResult(
            "❌ You have exceeded the maximum number of payment verification attempts "
            f"({MAX_PAYMENT_ATTEMPTS}).\n\nPlease contact support or try again later.\n\n"
            "Type MENU to return to main menu.",
            State.MAIN_MENU,
            reset=True,
        )
    return None


def wants_to_confirm(user_input: str) -> bool:
    """True when the participant says the payment went through ("I have paid", "done")."""
    words = set(re.findall(r"[a-z]+", user_input.lower()))
    if words & NEGATIONS:
        return False
    return bool(words & CONFIRM_WORDS)


def cancelled_payment() -> HandlerResult:
    return HandlerResult(f"Payment cancelled.\n\n{messages.MAIN_MENU}", State.MAIN_MENU, reset=True)


def activate_policy(user_id: str, now_ms: int) -> OnPaid:
    async def on_paid(data: Dict[str, Any]) -> HandlerResult:
        payment = data.get("payment") or {}
        policy_number = payment.get("policyNumber") or "SKY" + str(now_ms)[-8:]
        log_session_event("policy_activated", user_id, {"policy": policy_number})
        return HandlerResult(
            f"""🎉 *Payment Successful!*

Your policy is now active!

📋 *Policy Details:*
Policy Number: {policy_number}

📄 Your policy document has been sent to your email.

Type MENU for more options.""",
            State.MAIN_MENU,
            reset=True,
        )
    return on_paid


class PaymentHandler(StateHandler):
    states = (State.PAYMENT_METHOD, State.PAYMENT_CONFIRMATION)

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.state == State.PAYMENT_METHOD:
            return self._choose_method(ctx)
        return self._confirm(ctx)

    def _choose_method(self, ctx: HandlerContext) -> HandlerResult:
        method = match_option(ctx.input, PAYMENT_METHOD_OPTIONS)
        if method is None:
            return HandlerResult("Please select 1, 2, 3 or 4.", State.PAYMENT_METHOD)
        if method == "cancel":
            return cancelled_payment()

        premium = ctx.data.get("premium")
        reference = payment_reference("QUOTE", ctx.user_id, ctx.now_ms)
        if method == "online":
            return ctx.defer(
                messages.loading("Generating your payment link"),
                initiate_payment_task(ctx, reference, premium, State.PAYMENT_CONFIRMATION),
            )

        data = {
            "paymentReference": reference,
            "paymentMethod": method,
            "totalAmount": premium,
            "paymentAttempts": 0,
        }
        if method == "transfer":
            message = f"""🏦 *Bank Transfer*

Transfer ₦{format_amount(premium)} to:
{BANK_DETAILS}

Use *{reference}* as the narration.

After transfer, reply *PAID*."""
        else:
            message = f"""📱 *USSD Payment*

Dial: *737*50*{premium}*0123456789#

Use *{reference}* as the narration.

After payment, reply *PAID*."""
        return HandlerResult(message, State.PAYMENT_CONFIRMATION, data)

    def _confirm(self, ctx: HandlerContext) -> HandlerResult:
        if "cancel" in ctx.input:
            return cancelled_payment()
        if not wants_to_confirm(ctx.input):
            return HandlerResult(CONFIRM_PROMPT, State.PAYMENT_CONFIRMATION)

        stop = check_before_verify(ctx)
        if stop is not None:
            return stop
        return ctx.defer(
            messages.loading("Verifying your payment"),
            verify_payment_task(
                ctx,
                activate_policy(ctx.user_id, ctx.now_ms),
                State.PAYMENT_CONFIRMATION,
            ),
        )

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        if state == State.PAYMENT_METHOD:
            return payment_options_message(data.get("premium"), data.get("premiumPeriod"))
        return CONFIRM_PROMPT
