"""
Tests for the insurance backend client's error contract.
"""
import asyncio

import httpx
import pytest

from chuksbot.services.insurance_api import InsuranceApiClient, InsuranceApiError


def client_replying(response: httpx.Response) -> InsuranceApiClient:
    return InsuranceApiClient(
        "http://insurance.test/api",
        transport=httpx.MockTransport(lambda request: response),
    )


class TestEnvelope:
    def test_data_envelope_is_unwrapped(self, api):
        providers = asyncio.run(api.list_providers())

        assert [p["id"] for p in providers] == [11, 12]

    def test_lookup_missing_returns_none(self, api):
        assert asyncio.run(api.lookup_policy("SKY404")) is None

    def test_lookup_with_null_data_returns_none(self):
        api = client_replying(httpx.Response(200, json={"data": None}))

        assert asyncio.run(api.claim_status("CLM1")) is None


class TestMalformedReplies:
    """A 2xx reply the client cannot read is an InsuranceApiError."""

    def test_html_body(self):
        api = client_replying(httpx.Response(200, text="<html>Gateway</html>"))

        with pytest.raises(InsuranceApiError):
            asyncio.run(api.submit_enrollment({"plan_id": 1}))

    def test_empty_body(self):
        api = client_replying(httpx.Response(200, content=b""))

        with pytest.raises(InsuranceApiError):
            asyncio.run(api.verify_payment("HEALTH_ref"))

    def test_list_where_object_expected(self):
        api = client_replying(httpx.Response(200, json=[{"policyNumber": "SKY1"}]))

        with pytest.raises(InsuranceApiError):
            asyncio.run(api.lookup_policy("SKY1"))

    def test_object_where_list_expected(self):
        api = client_replying(httpx.Response(200, json={"data": {"id": 1}}))

        with pytest.raises(InsuranceApiError):
            asyncio.run(api.list_providers())

    def test_http_error_status(self):
        api = client_replying(httpx.Response(503, json={"error": "unavailable"}))

        with pytest.raises(InsuranceApiError):
            asyncio.run(api.submit_claim({"policyNumber": "SKY1"}))
