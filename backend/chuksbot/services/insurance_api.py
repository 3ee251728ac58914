"""
Insurance backend API client.

Thin async wrapper over the provider catalog, enrollment, payment and
claims endpoints. Every call is slow enough that handlers run it through the
deferred task runner.
"""
from typing import Any, Dict, List, Optional

import httpx

from chuksbot.core.config import settings
from chuksbot.core.logging import get_logger

logger = get_logger(__name__)


class InsuranceApiError(Exception):
    """Transport or HTTP failure talking to the insurance backend."""


def _unwrap(response: httpx.Response, label: str) -> Any:
    """Decode a JSON reply and strip the optional ``data`` envelope."""
    try:
        body = response.json()
    except ValueError as exc:
        logger.error(f"Insurance API {label} returned a non-JSON body")
        raise InsuranceApiError(f"{label} returned a non-JSON body") from exc
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _expect(kind: type, body: Any, label: str) -> Any:
    if not isinstance(body, kind):
        logger.error(f"Insurance API {label} returned {type(body).__name__}, expected {kind.__name__}")
        raise InsuranceApiError(f"{label} returned an unexpected body")
    return body


class InsuranceApiClient:
    """Async client for the insurance backend."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Insurance API {method} {path} failed: {exc}")
            raise InsuranceApiError(f"{method} {path} failed") from exc
        return _unwrap(response, f"{method} {path}")

    async def _get_optional(self, path: str, **kwargs) -> Optional[Dict[str, Any]]:
        """GET returning None on 404 instead of raising."""
        try:
            response = await self._client.get(path, **kwargs)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Insurance API GET {path} failed: {exc}")
            raise InsuranceApiError(f"GET {path} failed") from exc
        body = _unwrap(response, f"GET {path}")
        return None if body is None else _expect(dict, body, f"GET {path}")

    async def list_providers(self, lga: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"lga": lga} if lga else None
        providers = await self._request("GET", "/providers", params=params)
        providers = _expect(list, providers or [], "GET /providers")
        return [p for p in providers if isinstance(p, dict) and p.get("id") and p.get("name")]

    async def submit_enrollment(self, enrollment: Dict[str, Any]) -> Dict[str, Any]:
        body = await self._request("POST", "/enrollments", json=enrollment)
        return _expect(dict, body, "POST /enrollments")

    async def initiate_payment(self, payment: Dict[str, Any]) -> Dict[str, Any]:
        body = await self._request("POST", "/payments", json=payment)
        return _expect(dict, body, "POST /payments")

    async def verify_payment(self, reference: str) -> Dict[str, Any]:
        body = await self._request("GET", f"/payments/{reference}")
        return _expect(dict, body, "GET /payments")

    async def lookup_policy(self, identifier: str) -> Optional[Dict[str, Any]]:
        return await self._get_optional("/policies/lookup", params={"q": identifier})

    async def submit_claim(self, claim: Dict[str, Any]) -> Dict[str, Any]:
        body = await self._request("POST", "/claims", json=claim)
        return _expect(dict, body, "POST /claims")

    async def claim_status(self, claim_id: str) -> Optional[Dict[str, Any]]:
        return await self._get_optional(f"/claims/{claim_id}")

    async def aclose(self) -> None:
        await self._client.aclose()


def build_insurance_api() -> InsuranceApiClient:
    return InsuranceApiClient(
        settings.INSURANCE_API_URL,
        token=settings.INSURANCE_API_TOKEN,
        timeout=settings.INSURANCE_API_TIMEOUT,
    )
