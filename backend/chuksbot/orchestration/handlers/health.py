"""
Health insurance flow.

Plan selection, the registration questionnaire, declarations, review with
edit-in-place, payment and enrollment. The provider catalog, payment and
enrollment calls run as deferred tasks.
"""
from typing import Any, Dict, List, Optional

from chuksbot.core.logging import log_session_event
from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import (
    FieldStep,
    HandlerContext,
    StateHandler,
    choice_answer,
    exact_choice_answer,
    format_amount,
    is_valid_email,
    match_option,
    normalize_phone,
    optional_text_answer,
    parse_date,
    parse_yes_no,
    text_answer,
)
from chuksbot.orchestration.handlers.payment import (
    CONFIRM_PROMPT,
    OnPaid,
    cancelled_payment,
    check_before_verify,
    initiate_payment_task,
    payment_reference,
    verify_payment_task,
    wants_to_confirm,
    with_service_charge,
)
from chuksbot.orchestration.result import DeferredTask, HandlerResult
from chuksbot.orchestration.states import HEALTH_REGISTRATION_ORDER, State
from chuksbot.services.insurance_api import InsuranceApiClient, InsuranceApiError


HEALTH_PLANS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "title": "Bronze Plan",
        "cost": 25_000,
        "period": "year",
        "benefits": ["Outpatient care", "Basic lab tests", "Malaria & typhoid treatment", "Emergency care"],
    },
    {
        "id": 2,
        "title": "Silver Plan",
        "cost": 45_000,
        "period": "year",
        "benefits": ["Everything in Bronze", "Specialist consultations", "Minor surgeries", "Maternity care"],
    },
    {
        "id": 3,
        "title": "Gold Plan",
        "cost": 75_000,
        "period": "year",
        "benefits": ["Everything in Silver", "Major surgeries", "Dental & optical", "Annual health check"],
    },
]

MAX_PROVIDERS = 10


def plans_list_message() -> str:
    lines = ["🏥 *Health Insurance Plans*", "", "Choose from our available plans:", ""]
    for plan in HEALTH_PLANS:
        lines.append(f"*{plan['id']}. {plan['title']}*")
        lines.append(f"Premium: ₦{format_amount(plan['cost'])}/{plan['period']}")
        lines.append("")
    lines.append(f"_Reply with a number (1-{len(HEALTH_PLANS)}) to select a plan._")
    lines.append("_Or reply with the number + 'D' (e.g., 1D) to view detailed coverage._")
    return "\n".join(lines)


def plan_details_message(plan: Dict[str, Any]) -> str:
    lines = [f"🏥 *{plan['title']}*", "", f"Premium: ₦{format_amount(plan['cost'])}/{plan['period']}", "", "*Benefits:*"]
    lines += [f"• {benefit}" for benefit in plan["benefits"]]
    lines += ["", f"Reply *{plan['id']}* to choose this plan, or BACK to see all plans."]
    return "\n".join(lines)


def provider_list_message(providers: List[Dict[str, Any]]) -> str:
    lines = ["🏥 *Select a Healthcare Provider*", ""]
    for index, provider in enumerate(providers, start=1):
        lines.append(f"{index}. *{provider['name']}*")
        if provider.get("address"):
            lines.append(f"   {provider['address']}")
    lines += ["", f"_Reply with a number (1-{len(providers)})._"]
    return "\n".join(lines)


def review_message(data: Dict[str, Any]) -> str:
    plan = data.get("planName", "N/A")
    middle = f" {data['middlename']}" if data.get("middlename") else ""
    return f"""📋 *Review Your Details*

*Plan:* {plan} (₦{format_amount(data.get('planPremium'))})

*Name:* {data.get('firstname', '')}{middle} {data.get('surname', '')}
*Date of Birth:* {data.get('dob', 'N/A')}
*Gender:* {data.get('gender', 'N/A')}
*Email:* {data.get('email', 'N/A')}
*Phone:* {data.get('phone', 'N/A')}
*Marital Status:* {data.get('maritalStatus', 'N/A')}
*Location:* {data.get('lga', 'N/A')}, {data.get('state', 'N/A')}
*Address:* {data.get('address', 'N/A')}
*Blood Group:* {data.get('bloodGroup', 'N/A')}
*Provider:* {data.get('providerName', 'N/A')}
*Preferred Hospital:* {data.get('hospital') or 'N/A'}

1️⃣ Confirm and pay
2️⃣ Edit details
3️⃣ Cancel"""


def payment_summary_message(data: Dict[str, Any]) -> str:
    premium = data.get("planPremium") or 0
    total = with_service_charge(premium)
    return f"""💳 *Payment Summary*

Plan: {data.get('planName', 'N/A')}
Premium: ₦{format_amount(premium)}
Service charge (3%): ₦{format_amount(total - int(round(premium)))}
*Total: ₦{format_amount(total)}*

1️⃣ Pay now
2️⃣ Cancel"""


REVIEW_EDIT_MENU = """✏️ *What would you like to edit?*

1️⃣ Personal information
2️⃣ Marital status
3️⃣ State / LGA
4️⃣ Address
5️⃣ Healthcare provider
6️⃣ Back to review"""

PERSONAL_EDIT_MENU = """✏️ *Edit Personal Information*

1️⃣ Surname
2️⃣ Middle name
3️⃣ First name
4️⃣ Email
5️⃣ Phone number
6️⃣ Back"""

ENROLLMENT_RETRY_PROMPT = (
    "⚠️ Your payment was received but we couldn't complete your enrollment.\n\n"
    "Reply *RETRY* to try again. Your payment is safe."
)

REVIEW_EDIT_TARGETS = {
    "2": State.HEALTH_REG_MARITAL,
    "3": State.HEALTH_REG_STATE,
    "4": State.HEALTH_REG_ADDRESS,
}

PERSONAL_EDIT_TARGETS = {
    "1": State.HEALTH_REG_SURNAME,
    "2": State.HEALTH_REG_MIDDLENAME,
    "3": State.HEALTH_REG_FIRSTNAME,
    "4": State.HEALTH_REG_EMAIL,
    "5": State.HEALTH_REG_PHONE,
}

# In edit mode these steps continue to the step that depends on them
EDIT_CONTINUES = {State.HEALTH_REG_STATE, State.HEALTH_REG_LGA}


def _email_answer(user_input: str, text: str) -> Optional[str]:
    return text.strip() if is_valid_email(text) else None


def _phone_answer(user_input: str, text: str) -> Optional[str]:
    return normalize_phone(text)


def _dob_answer(user_input: str, text: str) -> Optional[str]:
    return parse_date(text)


REGISTRATION_STEPS: Dict[State, FieldStep] = {
    step.state: step for step in [
        FieldStep(State.HEALTH_REG_SURNAME, "surname", "What is your *Surname* (Last Name)?",
                  text_answer(), "Please enter a valid surname (at least 2 characters)."),
        FieldStep(State.HEALTH_REG_MIDDLENAME, "middlename",
                  "What is your *Middle Name*?\n\n_Type \"SKIP\" if you don't have a middle name._",
                  optional_text_answer(), "Please enter your middle name or SKIP."),
        FieldStep(State.HEALTH_REG_FIRSTNAME, "firstname", "What is your *First Name*?",
                  text_answer(), "Please enter a valid first name (at least 2 characters)."),
        FieldStep(State.HEALTH_REG_DOB, "dob",
                  "What is your *Date of Birth*?\n\n_Format: DD/MM/YYYY_\n_Example: 15/04/1990_",
                  _dob_answer, "Please enter a valid date of birth in DD/MM/YYYY format."),
        FieldStep(State.HEALTH_REG_GENDER, "gender", "What is your *Gender*?\n\n1️⃣ Male\n2️⃣ Female",
                  exact_choice_answer(["Male", "Female"]),
                  "Please select 1 for Male or 2 for Female."),
        FieldStep(State.HEALTH_REG_EMAIL, "email",
                  "What is your *Email Address*?\n\n_Example: john@example.com_",
                  _email_answer, "Please enter a valid email address."),
        FieldStep(State.HEALTH_REG_PHONE, "phone",
                  "What is your *Phone Number*?\n\n_Please enter your 11-digit Nigerian phone number_\n"
                  "_Example: 08012345678_",
                  _phone_answer, "Please enter a valid 11-digit Nigerian phone number."),
        FieldStep(State.HEALTH_REG_MARITAL, "maritalStatus",
                  "What is your *Marital Status*?\n\n1️⃣ Single\n2️⃣ Married\n3️⃣ Widowed\n4️⃣ Separated\n5️⃣ Divorced",
                  choice_answer([("Single", ["single"]), ("Married", ["married"]), ("Widowed", ["widow"]),
                                 ("Separated", ["separated"]), ("Divorced", ["divorced"])]),
                  "Please select a number between 1 and 5."),
        FieldStep(State.HEALTH_REG_STATE, "state", "What *State* do you live in?\n\n_Example: Lagos_",
                  text_answer(), "Please enter a valid state."),
        FieldStep(State.HEALTH_REG_LGA, "lga", "What is your *Local Government Area (LGA)*?\n\n_Example: Ikeja_",
                  text_answer(), "Please enter a valid LGA."),
        FieldStep(State.HEALTH_REG_ADDRESS, "address", "What is your *Home Address*?",
                  text_answer(5), "Please enter your full home address."),
        FieldStep(State.HEALTH_REG_BLOODGROUP, "bloodGroup",
                  "What is your *Blood Group*?\n\n1️⃣ A+\n2️⃣ A-\n3️⃣ B+\n4️⃣ B-\n5️⃣ AB+\n6️⃣ AB-\n7️⃣ O+\n8️⃣ O-",
                  exact_choice_answer(["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]),
                  "Please select a number between 1 and 8."),
        FieldStep(State.HEALTH_REG_HOSPITAL, "hospital",
                  "Do you have a *Preferred Hospital* within this provider's network?\n\n"
                  "_Type the hospital name or \"SKIP\"._",
                  optional_text_answer(), "Please enter a hospital name or SKIP."),
    ]
}

DECLARATIONS = {
    State.HEALTH_DECLARATION_1: "📜 *Declaration 1 of 3*\n\n"
                                "I confirm that the information I have provided is true and complete.\n\n"
                                "1️⃣ I agree\n2️⃣ I disagree",
    State.HEALTH_DECLARATION_2: "📜 *Declaration 2 of 3*\n\n"
                                "I authorize the insurer and my healthcare provider to access my medical records "
                                "for the purpose of this cover.\n\n1️⃣ I agree\n2️⃣ I disagree",
    State.HEALTH_DECLARATION_3: "📜 *Declaration 3 of 3*\n\n"
                                "I accept the terms and conditions of the selected plan, including waiting periods "
                                "for pre-existing conditions.\n\n1️⃣ I agree\n2️⃣ I disagree",
}


def _next_in_order(state: State) -> State:
    return HEALTH_REGISTRATION_ORDER[HEALTH_REGISTRATION_ORDER.index(state) + 1]


def load_providers_task(ctx: HandlerContext, answer: Dict[str, Any]) -> DeferredTask:
    """Deferred task fetching the provider catalog for the participant's LGA."""
    api: InsuranceApiClient = ctx.api
    lga = answer.get("lga") or ctx.data.get("lga")

    async def task() -> HandlerResult:
        providers = await api.list_providers(lga)
        if not providers:
            return HandlerResult(
                f"😔 We couldn't find healthcare providers in *{lga}*.\n\n"
                "Please enter a different *Local Government Area (LGA)*.",
                State.HEALTH_REG_LGA,
                answer,
            )
        options = [
            {"id": p["id"], "name": p["name"], "address": p.get("address", "")}
            for p in providers[:MAX_PROVIDERS]
        ]
        return HandlerResult(
            provider_list_message(options),
            State.HEALTH_PROVIDER_SELECT,
            {**answer, "providers": options},
        )

    return task


def build_enrollment(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "surname": data.get("surname"),
        "firstname": data.get("firstname"),
        "middlename": data.get("middlename") or "",
        "dob": data.get("dob"),
        "gender": data.get("gender"),
        "email": data.get("email"),
        "phone": data.get("phone"),
        "marital_status": data.get("maritalStatus"),
        "state": data.get("state"),
        "lga": data.get("lga"),
        "address": data.get("address"),
        "blood_group": data.get("bloodGroup"),
        "provider_id": data.get("providerId"),
        "hospital": data.get("hospital") or "",
        "plan_id": data.get("planId"),
        "payment_reference": data.get("paymentReference"),
    }


def enroll(api: InsuranceApiClient, user_id: str) -> OnPaid:
    """Submit the enrollment once payment has cleared."""
    async def on_paid(data: Dict[str, Any]) -> HandlerResult:
        try:
            enrollment = await api.submit_enrollment(build_enrollment(data))
        except InsuranceApiError:
            log_session_event("enrollment_failed", user_id, {"reference": data.get("paymentReference")})
            return HandlerResult(
                ENROLLMENT_RETRY_PROMPT,
                State.HEALTH_INITIATE_ENROLLMENT,
                {"paymentVerified": True},
            )

        policy_number = enrollment.get("policyNumber") or enrollment.get("enrolleeId") or "Pending"
        log_session_event("enrollment_completed", user_id, {"policy": policy_number})
        return HandlerResult(
            f"""✅ *Health Insurance Registration Complete!*

🎉 Your health insurance policy has been successfully created!

📋 *Registration Details:*
Name: {data.get('firstname')} {data.get('surname')}
Plan: {data.get('planName')}
Provider: {data.get('providerName')}
Policy Number: {policy_number}

You will receive confirmation details shortly.

Reply with anything to return to the main menu.""",
            State.HEALTH_POLICY_ACTIVATED,
            {"policyNumber": policy_number, "paymentVerified": True},
        )

    return on_paid


class HealthInsuranceHandler(StateHandler):
    states = (
        State.HEALTH_PLANS_LIST,
        State.HEALTH_PLAN_DETAILS,
        *HEALTH_REGISTRATION_ORDER,
        State.HEALTH_REVIEW_EDIT,
        State.HEALTH_PERSONAL_EDIT,
        State.HEALTH_PAYMENT,
        State.HEALTH_PAYMENT_VERIFY,
        State.HEALTH_INITIATE_ENROLLMENT,
        State.HEALTH_POLICY_ACTIVATED,
    )

    async def handle(self, ctx: HandlerContext) -> HandlerResult:
        state = ctx.state
        if state in (State.HEALTH_PLANS_LIST, State.HEALTH_PLAN_DETAILS):
            return self._select_plan(ctx)
        if state in REGISTRATION_STEPS:
            return self._answer_step(ctx, REGISTRATION_STEPS[state])
        if state == State.HEALTH_PROVIDER_SELECT:
            return self._select_provider(ctx)
        if state in DECLARATIONS:
            return self._declaration(ctx)
        if state == State.HEALTH_REVIEW:
            return self._review(ctx)
        if state == State.HEALTH_REVIEW_EDIT:
            return self._review_edit(ctx)
        if state == State.HEALTH_PERSONAL_EDIT:
            return self._personal_edit(ctx)
        if state == State.HEALTH_PAYMENT:
            return self._payment(ctx)
        if state == State.HEALTH_PAYMENT_VERIFY:
            return self._verify(ctx)
        if state == State.HEALTH_INITIATE_ENROLLMENT:
            return self._retry_enrollment(ctx)
        # HEALTH_POLICY_ACTIVATED: the transaction is over
        return HandlerResult(messages.MAIN_MENU, State.MAIN_MENU, reset=True)

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def _select_plan(self, ctx: HandlerContext) -> HandlerResult:
        wants_details = ctx.input.endswith("d") or "detail" in ctx.input
        digits = "".join(ch for ch in ctx.input if ch.isdigit())
        number = int(digits) if digits else 0
        if not 1 <= number <= len(HEALTH_PLANS):
            return HandlerResult(
                f"Please select a valid plan number (1-{len(HEALTH_PLANS)}), or type a number + 'D' "
                "to view details (e.g., 1D).",
                ctx.state,
            )

        plan = HEALTH_PLANS[number - 1]
        if wants_details:
            return HandlerResult(plan_details_message(plan), State.HEALTH_PLAN_DETAILS)

        first = REGISTRATION_STEPS[State.HEALTH_REG_SURNAME]
        return HandlerResult(
            f"✅ You've selected: *{plan['title']}*\n\n"
            "📋 *Let's get your details for enrollment.*\n\n"
            f"{first.prompt}",
            first.state,
            {
                "insuranceType": "health",
                "product": "health",
                "planId": plan["id"],
                "planName": plan["title"],
                "planPremium": plan["cost"],
            },
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _answer_step(self, ctx: HandlerContext, step: FieldStep) -> HandlerResult:
        value = step.read(ctx)
        if value is None:
            return HandlerResult(messages.retry(step.error, step.prompt), ctx.state)

        answer = {step.key: value}
        editing = bool(ctx.data.get("editing"))
        if editing and step.state not in EDIT_CONTINUES:
            return self._back_to_review(ctx, answer)

        if step.state == State.HEALTH_REG_BLOODGROUP:
            return ctx.defer(
                messages.loading("Finding healthcare providers near you"),
                load_providers_task(ctx, answer),
            )
        if step.state == State.HEALTH_REG_LGA and editing:
            # a new LGA invalidates the chosen provider
            return ctx.defer(
                messages.loading("Finding healthcare providers near you"),
                load_providers_task(ctx, answer),
            )
        return self._ask(_next_in_order(step.state), answer, ctx.data)

    def _select_provider(self, ctx: HandlerContext) -> HandlerResult:
        providers = ctx.data.get("providers") or []
        number = int(ctx.input) if ctx.input.isdigit() else 0
        if not 1 <= number <= len(providers):
            return HandlerResult(
                f"Please select a provider number between 1 and {len(providers)}.",
                State.HEALTH_PROVIDER_SELECT,
            )
        provider = providers[number - 1]
        answer = {"providerId": provider["id"], "providerName": provider["name"]}
        return self._ask(State.HEALTH_REG_HOSPITAL, answer, ctx.data)

    def _declaration(self, ctx: HandlerContext) -> HandlerResult:
        agreed = parse_yes_no(ctx.input)
        if agreed is None:
            return HandlerResult(
                messages.retry("Please reply 1 to agree or 2 to disagree.", DECLARATIONS[ctx.state]),
                ctx.state,
            )
        if not agreed:
            log_session_event("declaration_declined", ctx.user_id, {"state": ctx.state.value})
            return HandlerResult(
                "❌ We can't continue your registration without this declaration.\n\n"
                "Your registration has been cancelled. Type MENU to start again.",
                State.MAIN_MENU,
                reset=True,
            )
        declaration = {f"declaration{list(DECLARATIONS).index(ctx.state) + 1}": True}
        return self._ask(_next_in_order(ctx.state), declaration, ctx.data)

    def _ask(self, state: State, answer: Dict[str, Any], data: Dict[str, Any]) -> HandlerResult:
        return HandlerResult(self.prompt(state, {**data, **answer}), state, answer)

    def _back_to_review(self, ctx: HandlerContext, answer: Dict[str, Any]) -> HandlerResult:
        merged = {**ctx.data, **answer}
        return HandlerResult(
            f"✅ Updated!\n\n{review_message(merged)}",
            State.HEALTH_REVIEW,
            {**answer, "editing": False},
        )

    # ------------------------------------------------------------------
    # Review and editing
    # ------------------------------------------------------------------

    def _review(self, ctx: HandlerContext) -> HandlerResult:
        choice = match_option(ctx.input, [("confirm", ["confirm", "pay"]), ("edit", ["edit"]), ("cancel", ["cancel"])])
        if choice == "confirm":
            return HandlerResult(payment_summary_message(ctx.data), State.HEALTH_PAYMENT)
        if choice == "edit":
            return HandlerResult(REVIEW_EDIT_MENU, State.HEALTH_REVIEW_EDIT, {"editing": True})
        if choice == "cancel":
            return HandlerResult(
                f"Registration cancelled.\n\n{messages.MAIN_MENU}",
                State.MAIN_MENU,
                reset=True,
            )
        return HandlerResult(messages.retry("Please select 1, 2 or 3.", review_message(ctx.data)), State.HEALTH_REVIEW)

    def _review_edit(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.input == "1":
            return HandlerResult(PERSONAL_EDIT_MENU, State.HEALTH_PERSONAL_EDIT, {"editing": True})
        if ctx.input in REVIEW_EDIT_TARGETS:
            return self._ask(REVIEW_EDIT_TARGETS[ctx.input], {"editing": True}, ctx.data)
        if ctx.input == "5":
            return ctx.defer(
                messages.loading("Finding healthcare providers near you"),
                load_providers_task(ctx, {"editing": True}),
            )
        if ctx.input == "6":
            return HandlerResult(review_message(ctx.data), State.HEALTH_REVIEW, {"editing": False})
        return HandlerResult(messages.retry("Please select a number between 1 and 6.", REVIEW_EDIT_MENU),
                             State.HEALTH_REVIEW_EDIT)

    def _personal_edit(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.input in PERSONAL_EDIT_TARGETS:
            return self._ask(PERSONAL_EDIT_TARGETS[ctx.input], {"editing": True}, ctx.data)
        if ctx.input == "6":
            return HandlerResult(REVIEW_EDIT_MENU, State.HEALTH_REVIEW_EDIT)
        return HandlerResult(messages.retry("Please select a number between 1 and 6.", PERSONAL_EDIT_MENU),
                             State.HEALTH_PERSONAL_EDIT)

    # ------------------------------------------------------------------
    # Payment and enrollment
    # ------------------------------------------------------------------

    def _payment(self, ctx: HandlerContext) -> HandlerResult:
        if ctx.input == "1" or "pay" in ctx.input:
            reference = payment_reference("HEALTH", ctx.user_id, ctx.now_ms)
            total = with_service_charge(ctx.data.get("planPremium") or 0)
            return ctx.defer(
                messages.loading("Generating your payment link"),
                initiate_payment_task(ctx, reference, total, State.HEALTH_PAYMENT_VERIFY),
            )
        if ctx.input == "2" or "cancel" in ctx.input:
            return cancelled_payment()
        return HandlerResult(messages.retry("Please select 1 or 2.", payment_summary_message(ctx.data)),
                             State.HEALTH_PAYMENT)

    def _verify(self, ctx: HandlerContext) -> HandlerResult:
        if "cancel" in ctx.input:
            return cancelled_payment()
        if not wants_to_confirm(ctx.input):
            return HandlerResult(CONFIRM_PROMPT, State.HEALTH_PAYMENT_VERIFY)
        stop = check_before_verify(ctx)
        if stop is not None:
            return stop
        return ctx.defer(
            messages.loading("Verifying your payment"),
            verify_payment_task(ctx, enroll(ctx.api, ctx.user_id), State.HEALTH_PAYMENT_VERIFY),
        )

    def _retry_enrollment(self, ctx: HandlerContext) -> HandlerResult:
        if "retry" not in ctx.input and ctx.input != "1":
            return HandlerResult(ENROLLMENT_RETRY_PROMPT, State.HEALTH_INITIATE_ENROLLMENT)
        on_paid = enroll(ctx.api, ctx.user_id)
        data = dict(ctx.data)

        async def task() -> HandlerResult:
            return await on_paid(data)

        return ctx.defer(messages.loading("Completing your enrollment"), task)

    def prompt(self, state: State, data: Dict[str, Any]) -> str:
        if state in REGISTRATION_STEPS:
            return REGISTRATION_STEPS[state].prompt
        if state in DECLARATIONS:
            return DECLARATIONS[state]
        if state == State.HEALTH_PLANS_LIST:
            return plans_list_message()
        if state == State.HEALTH_PROVIDER_SELECT and data.get("providers"):
            return provider_list_message(data["providers"])
        if state == State.HEALTH_REVIEW:
            return review_message(data)
        if state == State.HEALTH_REVIEW_EDIT:
            return REVIEW_EDIT_MENU
        if state == State.HEALTH_PERSONAL_EDIT:
            return PERSONAL_EDIT_MENU
        if state == State.HEALTH_PAYMENT:
            return payment_summary_message(data)
        if state in (State.HEALTH_PAYMENT_VERIFY, State.HEALTH_INITIATE_ENROLLMENT):
            return CONFIRM_PROMPT if state == State.HEALTH_PAYMENT_VERIFY else ENROLLMENT_RETRY_PROMPT
        return messages.DEFAULT_PROMPT
