"""Webhook authentication for gateway settlement notifications.

The gateway signs every notification as

    base64(HMAC-SHA256(secret, timestamp + raw_body))

where `timestamp` is the `x-webhook-timestamp` header and `raw_body` is the
exact byte payload, joined with no separator. Verification must run on the
bytes as received: re-serializing a parsed body can reorder keys or change
whitespace and the signature would no longer match.
"""

import base64
import hashlib
import hmac
import time
from enum import Enum

from upirelay.common.logging import logger


class WebhookOutcome(str, Enum):
    """Result of authenticating one inbound notification."""

    AUTHENTIC = "AUTHENTIC"
    MALFORMED = "MALFORMED"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    STALE = "STALE"

    @property
    def accepted(self) -> bool:
        return self is WebhookOutcome.AUTHENTIC


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """Return the base64 HMAC-SHA256 of `timestamp` bytes followed by `raw_body`."""

    message = timestamp.encode("utf-8") + raw_body
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def _timestamp_seconds(timestamp: str) -> float | None:
    # Gateway sends epoch milliseconds; accept plain seconds too.
    try:
        value = float(timestamp.strip())
    except ValueError:
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value / 1000.0 if value >= 1e11 else value


class WebhookAuthenticator:
    """Decides whether a notification was produced by the gateway.

    Holds the shared secret; the optional tolerance bounds how far the signed
    timestamp may drift from the local clock.
    """

    def __init__(self, secret: str, tolerance_seconds: int | None = None, clock=time.time) -> None:
        self._secret = secret
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def verify(self, timestamp: str | None, signature: str | None, raw_body: bytes) -> WebhookOutcome:
        """Authenticate one notification from its headers and raw body."""

        if not timestamp or not signature:
            logger.warning("webhook_rejected reason=missing_headers")
            return WebhookOutcome.MALFORMED
        # Header values arrive latin-1 decoded; only ASCII round-trips to the signed bytes.
        if not timestamp.isascii():
            logger.warning("webhook_rejected reason=non_ascii_timestamp")
            return WebhookOutcome.MALFORMED

        expected = compute_signature(self._secret, timestamp, raw_body)
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            logger.warning("webhook_rejected reason=signature_mismatch timestamp=%s", timestamp)
            return WebhookOutcome.SIGNATURE_MISMATCH

        if self.tolerance_seconds is not None and not self._is_fresh(timestamp):
            logger.warning("webhook_rejected reason=stale_timestamp timestamp=%s", timestamp)
            return WebhookOutcome.STALE

        return WebhookOutcome.AUTHENTIC

    def _is_fresh(self, timestamp: str) -> bool:
        sent_at = _timestamp_seconds(timestamp)
        if sent_at is None:
            return False
        return abs(self._clock() - sent_at) <= self.tolerance_seconds
