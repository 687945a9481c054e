"""HTTP surface of the UPI payment relay.

Routes: order creation, payment verification, gateway webhooks, the
post-payment redirect, the front-end asset, and diagnostics.
"""

import json
from pathlib import Path
from time import perf_counter
from urllib.parse import urlencode
from uuid import uuid4

import httpx
from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from upirelay.common.config import ConfigurationError, RelaySettings, load_settings
from upirelay.common.logging import configure_logging, logger, trace_id_ctx
from upirelay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    webhook_verifications_total,
)
from upirelay.common.startup import log_startup_config, mask_suffix
from upirelay.common.tracing import instrument_app, setup_tracing
from upirelay.services.relay.gateway import CashfreeClient
from upirelay.services.relay.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookEvent,
)
from upirelay.services.relay.service import UNCONFIGURED_MESSAGE, RelayError, RelayService
from upirelay.services.relay.webhook import WebhookAuthenticator, WebhookOutcome


_FIELD_MESSAGES = {
    "amount": "Invalid amount",
    "order_id": "Order ID required",
}

_WEBHOOK_REJECTIONS = {
    WebhookOutcome.MALFORMED: "Missing webhook signature headers",
    WebhookOutcome.SIGNATURE_MISMATCH: "Invalid signature",
    WebhookOutcome.STALE: "Stale webhook timestamp",
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: RequestValidationError) -> str:
    """Pick a caller-facing message for the first invalid field."""

    errors = exc.errors()
    for err in errors:
        for part in err.get("loc", ()):
            if part in _FIELD_MESSAGES:
                return _FIELD_MESSAGES[part]
    if errors:
        return str(errors[0].get("msg", "Invalid request"))
    return "Invalid request"


def create_app(
    settings: RelaySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the relay application around one settings instance.

    `transport` replaces the outbound HTTP transport (tests pass a mock).
    """

    settings = settings or load_settings()
    configure_logging(settings)
    setup_tracing(settings.service_name, settings.otel_exporter_otlp_endpoint)
    log_startup_config(settings)
    if settings.require_credentials and not settings.has_credentials:
        raise ConfigurationError("CASHFREE_APP_ID and CASHFREE_SECRET_KEY must be set")

    service = RelayService(settings, CashfreeClient(settings, transport=transport))
    authenticator = WebhookAuthenticator(settings.secret_value, settings.webhook_tolerance_seconds)
    static_dir = Path(settings.static_dir)

    app = FastAPI(title="UPI Payment Relay")
    app.state.settings = settings
    app.state.service = service
    instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Bind a trace id and record request count and latency."""

        trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers["x-correlation-id"] = trace_id_ctx.get()
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.exception_handler(RelayError)
    async def relay_error_handler(_: Request, exc: RelayError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s: %s", request.url.path, exc)
        return _error(500, "Internal server error")

    @app.post("/api/create-order", response_model=CreateOrderResponse)
    async def create_order(req: CreateOrderRequest, request: Request):
        """Create a gateway order for the browser checkout."""

        host = request.headers.get("host") or request.url.netloc
        return await service.create_order(req, host)

    @app.post("/api/verify-payment", response_model=VerifyPaymentResponse, response_model_exclude_none=True)
    async def verify_payment(req: VerifyPaymentRequest):
        """Report whether the gateway considers the order settled."""

        return await service.verify_payment(req.order_id)

    @app.post("/api/webhook")
    async def webhook(
        request: Request,
        x_webhook_signature: str | None = Header(default=None),
        x_webhook_timestamp: str | None = Header(default=None),
    ):
        """Authenticate a gateway notification before looking at its body."""

        if not settings.has_credentials:
            return _error(503, UNCONFIGURED_MESSAGE)

        raw_body = await request.body()
        outcome = authenticator.verify(x_webhook_timestamp, x_webhook_signature, raw_body)
        webhook_verifications_total.labels(service=settings.service_name, outcome=outcome.value).inc()
        if not outcome.accepted:
            return _error(400, _WEBHOOK_REJECTIONS[outcome])

        try:
            event = WebhookEvent.model_validate(json.loads(raw_body))
        except (ValueError, ValidationError) as exc:
            logger.warning("authenticated webhook with unreadable body: %s", exc)
            return _error(400, "Invalid webhook payload")

        service.handle_notification(event)
        return {"success": True}

    @app.get("/payment-response")
    def payment_response(order_id: str | None = None, order_status: str | None = None):
        """Send the browser back to the front-end; it re-verifies the status itself."""

        logger.info("payment response received order_id=%s", order_id)
        query = urlencode({"order_id": order_id or "", "status": order_status or "pending"})
        return RedirectResponse(url=f"/?{query}", status_code=302)

    @app.get("/", include_in_schema=False)
    def index():
        """Serve the front-end asset."""

        page = static_dir / "index.html"
        if not page.is_file():
            raise HTTPException(status_code=404, detail="Front-end asset not found")
        return FileResponse(page)

    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    def health_payload() -> dict:
        return {
            "status": "ok",
            "mode": settings.mode_label,
            "environment": settings.environment,
            "hasCredentials": settings.has_credentials,
            "appIdSuffix": mask_suffix(settings.cashfree_app_id),
            "secretSuffix": mask_suffix(settings.secret_value),
            "baseUrl": settings.gateway_base_url,
            "apiVersion": settings.cashfree_api_version,
        }

    @app.get("/api/health")
    def api_health():
        """Diagnostic snapshot; credentials appear only as a suffix."""

        return health_payload()

    @app.get("/api/test")
    def api_test():
        return health_payload()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return health_payload()

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app
