"""
Payment gateway API client (hosted payment requests).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.exceptions import GatewayError

logger = logging.getLogger("order_ledger")

GATEWAY = "payment"


class PaymentClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.payment_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.payment_api_key
        self.auth_token = auth_token if auth_token is not None else settings.payment_auth_token
        self.timeout = httpx.Timeout(timeout or settings.payment_timeout_seconds)
        self.transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {"X-Api-Key": self.api_key, "X-Auth-Token": self.auth_token}

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, url, headers=self.headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise GatewayError(GATEWAY, "request timed out", retryable=True) from exc
        except httpx.TransportError as exc:
            raise GatewayError(GATEWAY, f"transport failure ({exc.__class__.__name__})", retryable=True) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if response.status_code >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise GatewayError(
                GATEWAY,
                str(message or f"HTTP {response.status_code}"),
                retryable=response.status_code >= 500,
                vendor_response=payload,
                upstream_status=response.status_code,
            )
        if not isinstance(payload, dict):
            raise GatewayError(GATEWAY, "unexpected response body", vendor_response=payload)
        return payload

    async def create_payment_request(
        self,
        amount,
        purpose: str,
        buyer_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a hosted payment request; returns the gateway's `payment_request` object."""
        data = {
            "purpose": purpose,
            "amount": str(amount),
            "redirect_url": settings.payment_redirect_url,
            "allow_repeated_payments": "False",
        }
        if buyer_name:
            data["buyer_name"] = buyer_name
        if email:
            data["email"] = email
        if phone:
            data["phone"] = phone

        payload = await self._request("POST", "/payment-requests/", data=data)
        payment_request = payload.get("payment_request")
        if not payment_request or not payment_request.get("longurl"):
            raise GatewayError(GATEWAY, "no payment URL in response", vendor_response=payload)
        return payment_request

    async def get_payment_request(self, payment_request_id: str) -> Dict[str, Any]:
        payload = await self._request("GET", f"/payment-requests/{payment_request_id}/")
        payment_request = payload.get("payment_request")
        if not payment_request:
            raise GatewayError(GATEWAY, "payment request not found", vendor_response=payload)
        return payment_request


def get_payment_client() -> PaymentClient:
    """FastAPI dependency."""
    return PaymentClient()
