"""Outbound client for the Cashfree payment gateway REST API.

Each call opens one `httpx.AsyncClient` with the configured timeout and
returns an explicit result value instead of raising; nothing is retried.
"""

from time import perf_counter
from typing import Any, Literal
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from upirelay.common.config import RelaySettings
from upirelay.common.logging import logger
from upirelay.common.metrics import gateway_latency_seconds, gateway_requests_total


MISSING_SESSION_MESSAGE = "Failed to create order - no payment session ID"


class OrderCreated(BaseModel):
    payment_session_id: str
    order_token: str | None = None
    cf_order_id: str | None = None
    raw: dict[str, Any] = {}


class OrderFetched(BaseModel):
    order_id: str | None = None
    order_status: str = ""
    order_amount: float | None = None
    cf_order_id: str | None = None
    settlement_time: str | None = None
    raw: dict[str, Any] = {}


class UpstreamRejected(BaseModel):
    """Gateway answered, but not with something usable."""

    status_code: int
    message: str | None = None


class TransportFailure(BaseModel):
    """No usable HTTP response: timeout, DNS failure, refused connection."""

    kind: Literal["timeout", "connect"]
    reason: str


CreateOrderResult = OrderCreated | UpstreamRejected | TransportFailure
FetchOrderResult = OrderFetched | UpstreamRejected | TransportFailure


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _rejection(response: httpx.Response) -> UpstreamRejected:
    payload = _json_or_empty(response)
    message = payload.get("message")
    if not isinstance(message, str) or not message:
        message = None
    return UpstreamRejected(status_code=response.status_code, message=message)


def _stringify(value: Any) -> str | None:
    return None if value is None else str(value)


class CashfreeClient:
    """Thin async wrapper around the gateway's order endpoints."""

    def __init__(self, settings: RelaySettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-version": self.settings.cashfree_api_version,
            "x-client-id": self.settings.cashfree_app_id or "",
            "x-client-secret": self.settings.secret_value,
        }

    async def _send(self, operation: str, method: str, path: str, json: dict | None = None):
        """Perform one outbound call; return the response or a TransportFailure."""

        start = perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.gateway_base_url,
                timeout=self.settings.gateway_timeout_seconds,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                return await client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            logger.error("gateway %s timed out: %s", operation, exc)
            return TransportFailure(kind="timeout", reason=str(exc) or "timeout")
        except httpx.TransportError as exc:
            logger.error("gateway %s unreachable: %s", operation, exc)
            return TransportFailure(kind="connect", reason=str(exc) or exc.__class__.__name__)
        finally:
            gateway_latency_seconds.labels(operation=operation).observe(max(0.0, perf_counter() - start))

    async def create_order(self, payload: dict[str, Any]) -> CreateOrderResult:
        """POST `/orders` and classify the outcome."""

        logger.info(
            "creating gateway order url=%s/orders amount=%s mode=%s",
            self.settings.gateway_base_url,
            payload.get("order_amount"),
            self.settings.mode_label,
        )
        response = await self._send("create_order", "POST", "/orders", json=payload)
        if isinstance(response, TransportFailure):
            gateway_requests_total.labels(operation="create_order", outcome=response.kind).inc()
            return response

        if response.status_code >= 400:
            rejected = _rejection(response)
            logger.error(
                "gateway rejected order status=%s message=%s", rejected.status_code, rejected.message
            )
            gateway_requests_total.labels(operation="create_order", outcome="rejected").inc()
            return rejected

        body = _json_or_empty(response)
        session_id = body.get("payment_session_id")
        if not session_id:
            logger.error("gateway order response missing payment_session_id")
            gateway_requests_total.labels(operation="create_order", outcome="rejected").inc()
            return UpstreamRejected(status_code=response.status_code, message=MISSING_SESSION_MESSAGE)

        gateway_requests_total.labels(operation="create_order", outcome="ok").inc()
        return OrderCreated(
            payment_session_id=str(session_id),
            order_token=_stringify(body.get("order_token")),
            cf_order_id=_stringify(body.get("cf_order_id")),
            raw=body,
        )

    async def get_order(self, order_id: str) -> FetchOrderResult:
        """GET `/orders/{order_id}` and classify the outcome."""

        response = await self._send("get_order", "GET", f"/orders/{quote(order_id, safe='')}")
        if isinstance(response, TransportFailure):
            gateway_requests_total.labels(operation="get_order", outcome=response.kind).inc()
            return response

        if response.status_code >= 400:
            rejected = _rejection(response)
            logger.error(
                "gateway order lookup failed status=%s message=%s", rejected.status_code, rejected.message
            )
            gateway_requests_total.labels(operation="get_order", outcome="rejected").inc()
            return rejected

        body = _json_or_empty(response)
        status = body.get("order_status")
        amount = body.get("order_amount")
        gateway_requests_total.labels(operation="get_order", outcome="ok").inc()
        return OrderFetched(
            order_id=_stringify(body.get("order_id")),
            order_status=status if isinstance(status, str) else "",
            order_amount=amount if isinstance(amount, (int, float)) and not isinstance(amount, bool) else None,
            cf_order_id=_stringify(body.get("cf_order_id")),
            settlement_time=_stringify(body.get("settlement_time")),
            raw=body,
        )
