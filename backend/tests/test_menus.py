"""
Tests for information menus and the shared input helpers.
"""
import pytest

from chuksbot.orchestration import messages
from chuksbot.orchestration.handlers.base import (
    exact_choice_answer,
    format_amount,
    match_option,
    normalize_input,
    normalize_phone,
    parse_amount,
    parse_date,
    parse_yes_no,
)
from chuksbot.orchestration.states import State

USER_ID = "2348012345678"


class TestLearnProducts:
    """Product information pages."""

    def test_product_detail(self, send, store):
        assert send("2").state == State.LEARN_PRODUCTS

        result = send("1")

        assert result.state == State.PRODUCT_DETAIL
        assert "Health Insurance" in result.message
        assert store.get(USER_ID).data["selectedProduct"] == "health"

    def test_get_quote_from_detail(self, send):
        send("2")
        send("auto")

        result = send("1")

        assert result.state == State.QUOTE_CATEGORY
        assert result.message == messages.QUOTE_CATEGORIES

    def test_waitlist_for_coming_soon(self, send, store):
        send("2")
        send("6")

        result = send("1")

        assert result.state == State.MAIN_MENU
        assert "salary insurance waitlist" in result.message
        assert store.get(USER_ID).data == {}

    def test_back_to_products(self, send):
        send("2")
        send("3")
        assert send("2").state == State.LEARN_PRODUCTS

    def test_unknown_product(self, send):
        send("2")
        assert send("pets").state == State.LEARN_PRODUCTS


class TestFaq:
    def test_faq_category(self, send):
        send("5")

        result = send("5")

        assert result.state == State.FAQ_CATEGORY
        assert "Payment & Billing FAQs" in result.message

    def test_faq_out_of_range(self, send):
        send("5")
        assert "between 1-7" in send("9").message


class TestAgent:
    def test_agent_request_is_recorded(self, send, store):
        send("4")
        assert send("3").state == State.AGENT_CONNECT

        result = send("My claim has been pending for two weeks")

        assert result.state == State.MAIN_MENU
        assert store.get(USER_ID).data["agentRequest"] == "My claim has been pending for two weeks"


class TestInputHelpers:
    """Parsing helpers shared by the handlers."""

    def test_normalize_input(self):
        assert normalize_input("  Hello   THERE ") == "hello there"
        assert normalize_input(None) == ""

    @pytest.mark.parametrize("text,expected", [
        ("1", True), ("yes", True), ("Y", True), ("i agree", True),
        ("2", False), ("no", False), ("nope", False),
        ("maybe", None), ("", None),
    ])
    def test_parse_yes_no(self, text, expected):
        assert parse_yes_no(text) is expected

    def test_match_option_number_before_keyword(self):
        options = [("auto", ["auto"]), ("device", ["phone"])]
        assert match_option("2", options) == "device"
        assert match_option("my phone", options) == "device"
        assert match_option("boat", options) is None

    def test_exact_choice(self):
        parse = exact_choice_answer(["A+", "B+", "AB+"])
        assert parse("ab+", "AB+") == "AB+"
        assert parse("2", "2") == "B+"
        assert parse("b", "b") is None

    @pytest.mark.parametrize("text,expected", [
        ("08012345678", "08012345678"),
        ("+2348012345678", "08012345678"),
        ("2349012345678", "09012345678"),
        ("0801-234-5678", "08012345678"),
        ("0601234567", None),
        ("12345", None),
    ])
    def test_normalize_phone(self, text, expected):
        assert normalize_phone(text) == expected

    def test_parse_amount(self):
        assert parse_amount("₦5,000,000") == 5_000_000
        assert parse_amount("five") is None

    def test_parse_date(self):
        assert parse_date("15/04/1990") == "1990-04-15"
        assert parse_date("15-04-1990") == "1990-04-15"
        assert parse_date("1990/04/15") is None

    def test_format_amount(self):
        assert format_amount(1234567) == "1,234,567"
        assert format_amount(None) == "N/A"
