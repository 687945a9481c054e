"""Shared fixtures: explicit test settings and a recording mock gateway."""

import json
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from upirelay.common.config import RelaySettings
from upirelay.services.relay.app import create_app


TEST_SECRET = "s3cr3t"
TEST_APP_ID = "TEST_APP_abcd1234"
PUBLIC_DIR = Path(__file__).resolve().parents[1] / "public"


def make_settings(**overrides) -> RelaySettings:
    values = {
        "cashfree_app_id": TEST_APP_ID,
        "cashfree_secret_key": TEST_SECRET,
        "cashfree_mode": "sandbox",
        "static_dir": str(PUBLIC_DIR),
        "otel_exporter_otlp_endpoint": None,
        "webhook_tolerance_seconds": None,
    }
    values.update(overrides)
    return RelaySettings(_env_file=None, **values)


class FakeGateway:
    """Records outbound requests and answers with a configurable handler."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(500, json={"message": "no handler"})

    def respond_json(self, status_code: int, payload: dict) -> None:
        self.handler = lambda request: httpx.Response(status_code, json=payload)

    def raise_error(self, exc_type: type[Exception], message: str = "boom") -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc_type(message, request=request)

        self.handler = handler

    def transport(self) -> httpx.MockTransport:
        def handle(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.handler(request)

        return httpx.MockTransport(handle)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> RelaySettings:
    return make_settings()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def client(settings, gateway) -> TestClient:
    app = create_app(settings, transport=gateway.transport())
    return TestClient(app)
