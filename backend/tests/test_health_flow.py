"""
Tests for the health insurance registration, payment and enrollment flow.
"""
import json

import pytest

from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.health import (
    ENROLLMENT_RETRY_PROMPT,
    HEALTH_PLANS,
    REVIEW_EDIT_MENU,
    build_enrollment,
)
from chuksbot.orchestration.states import State

USER_ID = "2348012345678"

REGISTERED = {
    "insuranceType": "health",
    "product": "health",
    "planId": 2,
    "planName": "Silver Plan",
    "planPremium": 45_000,
    "surname": "Okafor",
    "middlename": "",
    "firstname": "Chuka",
    "dob": "1990-04-15",
    "gender": "Male",
    "email": "chuka@example.com",
    "phone": "08012345678",
    "maritalStatus": "Married",
    "state": "Lagos",
    "lga": "Ikeja",
    "address": "12 Allen Avenue, Ikeja",
    "bloodGroup": "O+",
    "providerId": 12,
    "providerName": "Lagoon Hospital",
    "hospital": "",
}

PERSONAL_ANSWERS = [
    "Okafor", "skip", "Chuka", "15/04/1990", "1", "chuka@example.com",
    "0801 234 5678", "2", "Lagos", "Ikeja", "12 Allen Avenue, Ikeja",
]


class TestPlanSelection:
    """Choosing a health plan."""

    def test_plans_listed(self, send):
        send("1")
        result = send("1")

        assert result.state == State.HEALTH_PLANS_LIST
        for plan in HEALTH_PLANS:
            assert plan["title"] in result.message

    def test_plan_details_then_back(self, send):
        send("1")
        send("health")

        details = send("1D")
        assert details.state == State.HEALTH_PLAN_DETAILS
        assert "Outpatient care" in details.message

        back = send("back")
        assert back.state == State.HEALTH_PLANS_LIST

    def test_select_from_details(self, send, store):
        send("1")
        send("1")
        send("3d")

        result = send("3")

        assert result.state == State.HEALTH_REG_SURNAME
        assert store.get(USER_ID).data["planName"] == "Gold Plan"

    def test_invalid_plan_number(self, send):
        send("1")
        send("1")
        assert send("9").state == State.HEALTH_PLANS_LIST


class TestRegistrationSteps:
    """Question-by-question validation."""

    @pytest.fixture
    def registering(self, send):
        send("1")
        send("1")
        send("2")

    def test_personal_details_are_collected(self, send, store, registering):
        for text in PERSONAL_ANSWERS:
            result = send(text)

        assert result.state == State.HEALTH_REG_BLOODGROUP
        data = store.get(USER_ID).data
        assert data["middlename"] == ""
        assert data["dob"] == "1990-04-15"
        assert data["gender"] == "Male"
        assert data["phone"] == "08012345678"
        assert data["maritalStatus"] == "Married"

    def test_female_is_not_read_as_male(self, send, store, registering):
        for text in ["Okafor", "skip", "Ada", "01/01/1995", "female"]:
            send(text)
        assert store.get(USER_ID).data["gender"] == "Female"

    def test_invalid_email(self, send, registering):
        for text in ["Okafor", "skip", "Chuka", "15/04/1990", "1"]:
            send(text)

        result = send("not-an-email")

        assert result.state == State.HEALTH_REG_EMAIL
        assert "valid email" in result.message

    def test_future_birth_date(self, send, registering):
        for text in ["Okafor", "skip", "Chuka"]:
            send(text)

        result = send("01/01/2999")

        assert result.state == State.HEALTH_REG_DOB

    def test_invalid_phone(self, send, registering):
        for text in ["Okafor", "skip", "Chuka", "15/04/1990", "1", "chuka@example.com"]:
            send(text)
        assert send("12345").state == State.HEALTH_REG_PHONE

    def test_blood_group_starts_provider_lookup(self, send, chat_service, registering):
        for text in PERSONAL_ANSWERS:
            send(text)

        result = send("AB+")

        assert result.state == State.PROCESSING
        assert chat_service.deferred.has_pending(USER_ID)


class TestProviders:
    """Deferred provider catalog load."""

    def test_providers_loaded_for_lga(self, store, notifier, insurance_backend, say, run_with_workers, chat_service):
        store.save(USER_ID, State.HEALTH_REG_BLOODGROUP, {k: v for k, v in REGISTERED.items()
                                                          if k not in ("bloodGroup", "providerId", "providerName")})

        async def scenario():
            await say("7")
            await chat_service.deferred.drain()

        run_with_workers(scenario)

        session = store.get(USER_ID)
        assert session.state == "health_provider_select"
        assert session.data["bloodGroup"] == "O+"
        assert [p["name"] for p in session.data["providers"]] == ["Reddington Hospital", "Lagoon Hospital"]
        assert "Reddington Hospital" in notifier.sent[0][1]
        assert insurance_backend.requests[0].url.params["lga"] == "Ikeja"

    def test_no_providers_asks_for_another_lga(self, store, notifier, insurance_backend, say,
                                               run_with_workers, chat_service):
        insurance_backend.providers = []
        store.save(USER_ID, State.HEALTH_REG_BLOODGROUP, {"lga": "Nowhere"})

        async def scenario():
            await say("1")
            await chat_service.deferred.drain()

        run_with_workers(scenario)

        assert store.get(USER_ID).state == "health_reg_lga"
        assert "Nowhere" in notifier.sent[0][1]

    def test_catalog_outage_resets_session(self, store, notifier, insurance_backend, say,
                                           run_with_workers, chat_service):
        insurance_backend.fail_all = True
        store.save(USER_ID, State.HEALTH_REG_BLOODGROUP, {"lga": "Ikeja"})

        async def scenario():
            await say("1")
            await chat_service.deferred.drain()

        run_with_workers(scenario)

        assert notifier.sent == [(USER_ID, messages.DEFERRED_FAILURE)]
        assert store.get(USER_ID).is_new is True

    def test_select_provider(self, send, store):
        store.save(USER_ID, State.HEALTH_PROVIDER_SELECT, {"providers": [
            {"id": 11, "name": "Reddington Hospital", "address": "Ikeja"},
            {"id": 12, "name": "Lagoon Hospital", "address": "Ikoyi"},
        ]})

        assert send("3").state == State.HEALTH_PROVIDER_SELECT
        result = send("2")

        assert result.state == State.HEALTH_REG_HOSPITAL
        assert store.get(USER_ID).data["providerName"] == "Lagoon Hospital"


class TestDeclarationsAndReview:
    """Declarations, review and edit-from-review."""

    def test_declarations_lead_to_review(self, send, store):
        store.save(USER_ID, State.HEALTH_REG_HOSPITAL, REGISTERED)

        send("skip")
        send("1")
        send("yes")
        result = send("I agree")

        assert result.state == State.HEALTH_REVIEW
        assert "Silver Plan" in result.message
        assert "Lagoon Hospital" in result.message
        data = store.get(USER_ID).data
        assert data["declaration1"] and data["declaration2"] and data["declaration3"]

    def test_declining_a_declaration_cancels(self, send, store):
        store.save(USER_ID, State.HEALTH_DECLARATION_2, REGISTERED)

        result = send("2")

        assert result.state == State.MAIN_MENU
        assert store.get(USER_ID).data == {}

    def test_unclear_declaration_answer(self, send, store):
        store.save(USER_ID, State.HEALTH_DECLARATION_1, REGISTERED)
        assert send("maybe").state == State.HEALTH_DECLARATION_1

    def test_edit_address_returns_to_review(self, send, store):
        store.save(USER_ID, State.HEALTH_REVIEW, REGISTERED)

        assert send("2").message == REVIEW_EDIT_MENU
        assert send("4").state == State.HEALTH_REG_ADDRESS
        result = send("7 Marina Road, Lagos Island")

        assert result.state == State.HEALTH_REVIEW
        assert "7 Marina Road" in result.message
        assert store.get(USER_ID).data["editing"] is False

    def test_edit_personal_field(self, send, store):
        store.save(USER_ID, State.HEALTH_REVIEW, REGISTERED)

        send("2")
        assert send("1").state == State.HEALTH_PERSONAL_EDIT
        assert send("4").state == State.HEALTH_REG_EMAIL
        result = send("chuka.okafor@example.com")

        assert result.state == State.HEALTH_REVIEW
        assert store.get(USER_ID).data["email"] == "chuka.okafor@example.com"

    def test_edit_state_continues_to_lga(self, send, store):
        """A new state needs a new LGA and provider before returning to review."""
        store.save(USER_ID, State.HEALTH_REVIEW, REGISTERED)

        send("2")
        send("3")
        assert send("Abuja").state == State.HEALTH_REG_LGA
        assert send("Garki").state == State.PROCESSING

    def test_cancel_from_review(self, send, store):
        store.save(USER_ID, State.HEALTH_REVIEW, REGISTERED)

        result = send("3")

        assert result.state == State.MAIN_MENU
        assert store.get(USER_ID).data == {}

    def test_confirm_shows_payment_summary(self, send, store):
        store.save(USER_ID, State.HEALTH_REVIEW, REGISTERED)

        result = send("1")

        assert result.state == State.HEALTH_PAYMENT
        assert "Total: ₦46,350" in result.message


class TestHealthPayment:
    """Payment, verification and enrollment."""

    def test_payment_to_policy(self, store, notifier, insurance_backend, say, run_with_workers, chat_service):
        store.save(USER_ID, State.HEALTH_PAYMENT, REGISTERED)

        async def scenario():
            await say("1")
            await chat_service.deferred.drain()
            link_state = store.get(USER_ID)
            await say("paid")
            await chat_service.deferred.drain()
            return link_state

        link_state = run_with_workers(scenario)

        assert link_state.state == "health_payment_verify"
        assert link_state.data["totalAmount"] == 46_350
        assert link_state.data["paymentReference"].startswith(f"HEALTH_{USER_ID}_")

        session = store.get(USER_ID)
        assert session.state == "health_policy_activated"
        assert session.data["policyNumber"] == "HLT-0001"
        assert "HLT-0001" in notifier.sent[-1][1]

        enrollment = json.loads(next(
            r.content for r in insurance_backend.requests if r.url.path.endswith("/enrollments")
        ))
        assert enrollment["provider_id"] == 12
        assert enrollment["plan_id"] == 2

    def test_activated_policy_returns_home(self, send, store):
        store.save(USER_ID, State.HEALTH_POLICY_ACTIVATED, {**REGISTERED, "policyNumber": "HLT-0001"})

        result = send("thanks")

        assert result.state == State.MAIN_MENU
        assert store.get(USER_ID).data == {}

    def test_enrollment_failure_then_retry(self, store, notifier, insurance_backend, say,
                                           run_with_workers, chat_service):
        insurance_backend.enrollment_fails = True
        store.save(USER_ID, State.HEALTH_PAYMENT_VERIFY, {
            **REGISTERED,
            "paymentReference": "HEALTH_ref",
            "totalAmount": 46_350,
            "paymentAttempts": 0,
        })

        async def scenario():
            await say("paid")
            await chat_service.deferred.drain()
            failed_state = store.get(USER_ID).state
            insurance_backend.enrollment_fails = False
            await say("retry")
            await chat_service.deferred.drain()
            return failed_state

        failed_state = run_with_workers(scenario)

        assert failed_state == "health_initiate_enrollment"
        assert notifier.sent[0][1] == ENROLLMENT_RETRY_PROMPT
        assert store.get(USER_ID).state == "health_policy_activated"

    def test_non_json_enrollment_reply_keeps_payment(self, store, notifier, insurance_backend, say,
                                                      run_with_workers, chat_service):
        insurance_backend.enrollment_html = True
        store.save(USER_ID, State.HEALTH_PAYMENT_VERIFY, {
            **REGISTERED,
            "paymentReference": "HEALTH_ref",
            "totalAmount": 46_350,
            "paymentAttempts": 0,
        })

        async def scenario():
            await say("paid")
            await chat_service.deferred.drain()

        run_with_workers(scenario)

        session = store.get(USER_ID)
        assert session.state == "health_initiate_enrollment"
        assert session.data["paymentReference"] == "HEALTH_ref"
        assert notifier.sent[-1][1] == ENROLLMENT_RETRY_PROMPT

    def test_cancel_payment(self, send, store):
        store.save(USER_ID, State.HEALTH_PAYMENT, REGISTERED)

        result = send("2")

        assert result.state == State.MAIN_MENU
        assert store.get(USER_ID).data == {}


class TestBuildEnrollment:
    def test_maps_session_fields(self):
        enrollment = build_enrollment({**REGISTERED, "paymentReference": "HEALTH_ref"})

        assert enrollment["surname"] == "Okafor"
        assert enrollment["marital_status"] == "Married"
        assert enrollment["blood_group"] == "O+"
        assert enrollment["payment_reference"] == "HEALTH_ref"
