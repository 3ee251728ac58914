"""
Test configuration and fixtures for ChuksBot backend tests.
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Generator, List

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from chuksbot.api.deps import get_chat_service
from chuksbot.services.chat import ChatService
from chuksbot.services.insurance_api import InsuranceApiClient
from chuksbot.services.notifier import LoggingNotifier
from chuksbot.services.session_store import InMemorySessionBackend, SessionStore


USER_ID = "2348012345678"


class FakeClock:
    """Controllable replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InsuranceBackend:
    """In-process insurance backend served through ``httpx.MockTransport``."""

    def __init__(self):
        self.providers: List[Dict[str, Any]] = [
            {"id": 11, "name": "Reddington Hospital", "address": "Ikeja"},
            {"id": 12, "name": "Lagoon Hospital", "address": "Ikoyi"},
            {"name": "Missing id clinic"},
        ]
        self.payment_status = "success"
        self.enrollment_fails = False
        self.enrollment_html = False
        self.policies: Dict[str, Dict[str, Any]] = {}
        self.claims: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.fail_all = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if self.fail_all:
            return httpx.Response(503, json={"error": "unavailable"})

        if path.endswith("/providers"):
            return httpx.Response(200, json={"data": self.providers})
        if path.endswith("/payments") and request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(200, json={"data": {
                "checkoutUrl": f"https://pay.test/{body['reference']}",
                "reference": body["reference"],
            }})
        if "/payments/" in path:
            return httpx.Response(200, json={"data": {"status": self.payment_status}})
        if path.endswith("/enrollments"):
            if self.enrollment_html:
                return httpx.Response(200, text="<html>Gateway</html>", headers={"content-type": "text/html"})
            if self.enrollment_fails:
                return httpx.Response(500, json={"error": "enrollment failed"})
            return httpx.Response(200, json={"data": {"policyNumber": "HLT-0001"}})
        if path.endswith("/policies/lookup"):
            policy = self.policies.get(request.url.params.get("q"))
            if policy is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json={"data": policy})
        if path.endswith("/claims") and request.method == "POST":
            return httpx.Response(200, json={"data": {"claimId": "CLM10001"}})
        if "/claims/" in path:
            claim = self.claims.get(path.rsplit("/", 1)[-1])
            if claim is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json={"data": claim})
        return httpx.Response(404, json={"error": "unknown route"})

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend() -> InMemorySessionBackend:
    return InMemorySessionBackend()


@pytest.fixture
def store(memory_backend: InMemorySessionBackend, clock: FakeClock) -> SessionStore:
    return SessionStore(memory_backend, ttl_seconds=600, clock=clock, fallback=memory_backend)


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def insurance_backend() -> InsuranceBackend:
    return InsuranceBackend()


@pytest.fixture
def api(insurance_backend: InsuranceBackend) -> InsuranceApiClient:
    return InsuranceApiClient(
        "http://insurance.test/api",
        transport=httpx.MockTransport(insurance_backend.handler),
    )


@pytest.fixture
def chat_service(store: SessionStore, notifier: LoggingNotifier, api: InsuranceApiClient) -> ChatService:
    return ChatService(
        store=store,
        notifier=notifier,
        api=api,
        deferred_delay_seconds=0,
        run_scheduler=False,
    )


@pytest.fixture
def send(chat_service: ChatService) -> Callable[..., Any]:
    """Dispatch messages without deferred workers running."""
    def _send(text: str, user_id: str = USER_ID):
        return asyncio.run(chat_service.router.dispatch(user_id, text))
    return _send


@pytest.fixture
def say(chat_service: ChatService) -> Callable[..., Awaitable[Any]]:
    """Dispatch messages from inside a running scenario."""
    async def _say(text: str, user_id: str = USER_ID):
        return await chat_service.router.dispatch(user_id, text)
    return _say


@pytest.fixture
def run_with_workers(chat_service: ChatService) -> Callable[[Callable[[], Awaitable[Any]]], Any]:
    """Run a scenario in one event loop with the deferred workers started."""
    def _run(scenario: Callable[[], Awaitable[Any]]) -> Any:
        async def main():
            await chat_service.deferred.start()
            try:
                return await scenario()
            finally:
                await chat_service.deferred.stop()
        return asyncio.run(main())
    return _run


@pytest.fixture
def client(chat_service: ChatService) -> Generator[TestClient, None, None]:
    """Test client wired to the fixture chat service."""
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    yield TestClient(app)
    app.dependency_overrides.clear()
