"""
Carrier aggregator API client.

Thin async wrapper over the carrier's REST API (auth, orders, shipments,
AWB, manifest, pickup, label). Every call has a bounded timeout and runs
through the shared circuit breaker.

Failure classes:
- timeout, transport error, 5xx, open circuit: retryable GatewayError (503)
- 4xx: terminal GatewayError (502) carrying the vendor message
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import redis.asyncio as redis

from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings
from backend.app.core.exceptions import GatewayError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError, carrier_circuit_breaker

logger = logging.getLogger("order_ledger")

GATEWAY = "carrier"
TOKEN_CACHE_KEY = "carrier:auth_token"

# Carrier shipment status codes
STATUS_READY_TO_SHIP = 1
STATUS_PICKUP_QUEUED = 2

MANIFEST_ALREADY_GENERATED = "Manifest already generated"
ALREADY_IN_PICKUP_QUEUE = "Already in Pickup Queue."


def vendor_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        return payload.get("message") or payload.get("error")
    if isinstance(payload, str) and payload:
        return payload
    return None


class CarrierClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = (base_url or settings.carrier_base_url).rstrip("/")
        self.email = email if email is not None else settings.carrier_email
        self.password = password if password is not None else settings.carrier_password
        self.timeout = httpx.Timeout(timeout or settings.carrier_timeout_seconds)
        self.transport = transport
        self.breaker = breaker or carrier_circuit_breaker

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """One HTTP exchange. Raises only for retryable failures so 4xx never trips the breaker."""
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise GatewayError(GATEWAY, f"request timed out ({url})", retryable=True) from exc
        except httpx.TransportError as exc:
            raise GatewayError(GATEWAY, f"transport failure ({exc.__class__.__name__})", retryable=True) from exc

        if response.status_code >= 500:
            raise GatewayError(
                GATEWAY,
                vendor_message(_json_or_text(response)) or f"HTTP {response.status_code}",
                retryable=True,
                vendor_response=_json_or_text(response),
                upstream_status=response.status_code,
            )
        return response

    async def _call(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.breaker.call(self._send, method, url, **kwargs)
        except CircuitOpenError as exc:
            raise GatewayError(GATEWAY, "circuit open, carrier temporarily unavailable", retryable=True) from exc

        if response.status_code >= 400:
            payload = _json_or_text(response)
            raise GatewayError(
                GATEWAY,
                vendor_message(payload) or f"HTTP {response.status_code}",
                retryable=False,
                vendor_response=payload,
                upstream_status=response.status_code,
            )
        return response

    # Auth

    async def login(self) -> str:
        response = await self._call("POST", "/auth/login", json={"email": self.email, "password": self.password})
        token = response.json().get("token")
        if not token:
            raise GatewayError(GATEWAY, "login returned no token")
        return token

    async def _token(self) -> str:
        cache = redis_module.redis_client
        try:
            cached = await cache.get(TOKEN_CACHE_KEY)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Carrier token cache unavailable: %s", exc)
            cached = None
        if cached:
            return cached

        token = await self.login()
        try:
            await cache.set(TOKEN_CACHE_KEY, token, ex=settings.carrier_token_ttl_seconds)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Could not cache carrier token: %s", exc)
        return token

    async def _forget_token(self) -> None:
        try:
            await redis_module.redis_client.delete(TOKEN_CACHE_KEY)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Could not clear carrier token: %s", exc)

    async def _authed(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Authenticated call; a 401 drops the cached token and retries once."""
        token = await self._token()
        try:
            response = await self._call(method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs)
        except GatewayError as exc:
            if exc.upstream_status != 401:
                raise
            await self._forget_token()
            token = await self._token()
            response = await self._call(method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs)
        return response.json()

    # Orders

    async def fetch_orders(self, created_after: datetime, page: int = 1, per_page: Optional[int] = None) -> List[dict]:
        """Carrier orders created after `created_after`, newest first."""
        data = await self._authed(
            "GET",
            "/orders",
            params={
                "per_page": per_page or settings.order_sync_page_size,
                "page": page,
                "from": created_after.strftime("%Y-%m-%d"),
            },
        )
        return data.get("data") or []

    # Shipments

    async def get_shipment(self, shipment_id: str) -> dict:
        data = await self._authed("GET", f"/shipments/{shipment_id}")
        return data.get("data") or {}

    async def assign_awb(self, shipment_id: str) -> dict:
        """
        Request a tracking number.

        Returns:
            {"awb_code": ..., "courier_name": ...}
        """
        data = await self._authed("POST", "/courier/assign/awb", json={"shipment_id": shipment_id})
        awb = ((data.get("response") or {}).get("data") or {})
        if not awb.get("awb_code"):
            raise GatewayError(GATEWAY, vendor_message(data) or "no AWB assigned", vendor_response=data)
        return {"awb_code": awb["awb_code"], "courier_name": awb.get("courier_name")}

    async def generate_manifest(self, shipment_id: str) -> bool:
        """True if generated now, False if the carrier already had one."""
        try:
            await self._authed("POST", "/manifests/generate", json={"shipment_id": [shipment_id]})
        except GatewayError as exc:
            if not exc.retryable and _vendor_says(exc, MANIFEST_ALREADY_GENERATED):
                logger.info("Manifest already generated for shipment %s", shipment_id)
                return False
            raise
        return True

    async def generate_pickup(self, shipment_id: str) -> bool:
        """True if queued now, False if the shipment was already in the pickup queue."""
        try:
            await self._authed("POST", "/courier/generate/pickup", json={"shipment_id": shipment_id})
        except GatewayError as exc:
            if not exc.retryable and _vendor_says(exc, ALREADY_IN_PICKUP_QUEUE):
                logger.info("Shipment %s already in pickup queue", shipment_id)
                return False
            raise
        return True

    async def generate_label(self, shipment_id: str) -> str:
        data = await self._authed("POST", "/courier/generate/label", json={"shipment_id": [shipment_id]})
        label_url = data.get("label_url")
        if not label_url:
            raise GatewayError(GATEWAY, "no label_url in response", vendor_response=data)
        return label_url

    async def download(self, url: str) -> bytes:
        response = await self._call("GET", url)
        return response.content


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _vendor_says(exc: GatewayError, message: str) -> bool:
    return vendor_message(exc.details.get("vendor_response")) == message


def get_carrier_client() -> CarrierClient:
    """FastAPI dependency."""
    return CarrierClient()
