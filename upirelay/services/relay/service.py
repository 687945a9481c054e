"""Order creation, status verification and notification handling.

The service shapes requests for the gateway and turns gateway outcomes into
`RelayError`s carrying the HTTP status and user-facing message.
"""

import ipaddress
import time
from urllib.parse import quote
from uuid import uuid4

from upirelay.common.config import RelaySettings
from upirelay.common.logging import logger, order_id_ctx
from upirelay.common.metrics import orders_created_total, payment_verifications_total
from upirelay.services.relay.gateway import (
    CashfreeClient,
    OrderCreated,
    TransportFailure,
    UpstreamRejected,
)
from upirelay.services.relay.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    VerifyPaymentResponse,
    WebhookEvent,
)


SETTLED_STATUS = "PAID"

DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_CUSTOMER_EMAIL = "customer@example.com"
DEFAULT_CUSTOMER_PHONE = "9999999999"

CREDENTIALS_MESSAGE = (
    "Authentication failed. Please check your Cashfree credentials (App ID and Secret Key)"
)
FORBIDDEN_MESSAGE = (
    "Access forbidden. Make sure you are using the correct production/sandbox credentials"
)
DOMAIN_MESSAGE = (
    "Domain not whitelisted. Add this site's domain to the allowed domains in the "
    "Cashfree dashboard (Developers > Whitelisting) and try again"
)
TIMEOUT_MESSAGE = "Payment gateway timed out. Please try again"
CONNECT_MESSAGE = "Cannot reach payment gateway. Check network connectivity and try again"
UNCONFIGURED_MESSAGE = "Payment gateway credentials are not configured on the server"


class RelayError(Exception):
    """Failure surfaced synchronously to the HTTP caller."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def generate_order_id() -> str:
    """Time-prefixed id with a uuid4 suffix; unique without a registry."""

    return f"ORDER_{int(time.time() * 1000)}_{uuid4().hex[:12]}"


def generate_customer_id() -> str:
    return f"CUST_{int(time.time() * 1000)}_{uuid4().hex[:6]}"


def _strip_port(host: str) -> str:
    host = host.strip().lower()
    if host.startswith("["):
        return host[1:].split("]", 1)[0]
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def is_local_host(host: str) -> bool:
    """True for hosts that look like a local development address."""

    name = _strip_port(host)
    if name in ("localhost", "0.0.0.0") or name.endswith((".localhost", ".local")):
        return True
    try:
        address = ipaddress.ip_address(name)
    except ValueError:
        return False
    return address.is_loopback or address.is_private or address.is_unspecified


def build_callback_urls(host: str, order_id: str) -> tuple[str, str]:
    """Return (return_url, notify_url) for the host the request arrived on."""

    scheme = "http" if is_local_host(host) else "https"
    base = f"{scheme}://{host}"
    return_url = f"{base}/payment-response?order_id={quote(order_id, safe='')}"
    notify_url = f"{base}/api/webhook"
    return return_url, notify_url


def _mentions_domain(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return "domain" in lowered or "whitelist" in lowered


def upstream_error(result: UpstreamRejected | TransportFailure, fallback: str) -> RelayError:
    """Map a failed gateway call to the error returned to the caller."""

    if isinstance(result, TransportFailure):
        message = TIMEOUT_MESSAGE if result.kind == "timeout" else CONNECT_MESSAGE
        return RelayError(500, message)
    if result.status_code == 401:
        return RelayError(500, CREDENTIALS_MESSAGE)
    if result.status_code == 403:
        return RelayError(500, FORBIDDEN_MESSAGE)
    if result.status_code == 400 and _mentions_domain(result.message):
        return RelayError(500, DOMAIN_MESSAGE)
    return RelayError(500, result.message or fallback)


class RelayService:
    """Request shaping between the browser client and the gateway."""

    def __init__(self, settings: RelaySettings, gateway: CashfreeClient) -> None:
        self.settings = settings
        self.gateway = gateway

    def _ensure_configured(self) -> None:
        if not self.settings.has_credentials:
            raise RelayError(503, UNCONFIGURED_MESSAGE)

    def build_order_payload(self, req: CreateOrderRequest, order_id: str, host: str) -> dict:
        """Gateway order body for one creation call."""

        return_url, notify_url = build_callback_urls(host, order_id)
        note = f"Payment to {req.upi_id}" if req.upi_id else "UPI payment"
        return {
            "order_id": order_id,
            "order_amount": float(req.amount),
            "order_currency": self.settings.order_currency,
            "customer_details": {
                "customer_id": generate_customer_id(),
                "customer_name": req.customer_name or DEFAULT_CUSTOMER_NAME,
                "customer_email": req.customer_email or DEFAULT_CUSTOMER_EMAIL,
                "customer_phone": req.customer_phone or DEFAULT_CUSTOMER_PHONE,
            },
            "order_meta": {
                "return_url": return_url,
                "notify_url": notify_url,
                "payment_methods": "upi",
            },
            "order_note": note,
        }

    async def create_order(self, req: CreateOrderRequest, host: str) -> CreateOrderResponse:
        """Create a gateway order and return its payment session."""

        self._ensure_configured()
        order_id = generate_order_id()
        order_id_ctx.set(order_id)
        payload = self.build_order_payload(req, order_id, host)

        result = await self.gateway.create_order(payload)
        if not isinstance(result, OrderCreated):
            raise upstream_error(result, "Failed to create order")

        orders_created_total.labels(service=self.settings.service_name).inc()
        logger.info("order created order_id=%s", order_id)
        return CreateOrderResponse(
            order_id=order_id,
            payment_session_id=result.payment_session_id,
            order_token=result.order_token,
            amount=float(req.amount),
            environment=self.settings.environment,
        )

    async def verify_payment(self, order_id: str) -> VerifyPaymentResponse:
        """Look up an order; success only when the gateway reports it settled."""

        self._ensure_configured()
        order_id_ctx.set(order_id)
        logger.info("verifying payment order_id=%s", order_id)

        result = await self.gateway.get_order(order_id)
        if isinstance(result, (UpstreamRejected, TransportFailure)):
            raise upstream_error(result, "Failed to verify payment")

        settled = result.order_status == SETTLED_STATUS
        payment_verifications_total.labels(
            service=self.settings.service_name,
            result="settled" if settled else "not_completed",
        ).inc()
        logger.info("order status order_id=%s status=%s", order_id, result.order_status or "<empty>")
        return VerifyPaymentResponse(
            success=settled,
            message="Payment verified successfully" if settled else "Payment not completed",
            order_id=order_id,
            order_status=result.order_status,
            order_amount=result.order_amount,
            payment_id=result.cf_order_id,
            settlement_time=result.settlement_time,
        )

    def handle_notification(self, event: WebhookEvent) -> None:
        """Accept an authenticated notification; downstream processing hooks in here."""

        order_id = event.data.order.order_id
        if order_id:
            order_id_ctx.set(order_id)
        logger.info(
            "webhook verified type=%s order_id=%s payment_status=%s",
            event.type,
            order_id,
            event.data.payment.payment_status,
        )
