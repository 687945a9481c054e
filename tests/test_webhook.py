"""Unit tests for webhook signature verification."""

import base64
import hashlib
import hmac

import pytest

from upirelay.services.relay import webhook
from upirelay.services.relay.webhook import WebhookAuthenticator, WebhookOutcome, compute_signature


SECRET = "s3cr3t"
TIMESTAMP = "1700000000"
BODY = b'{"order_id":"ORDER_1"}'
PINNED_SIGNATURE = "gLdYvGb9LX5HTgsvIGSgAwfktF82vuyoNr1THPcj2Gw="


def test_pinned_vector():
    """Timestamp bytes then body bytes, no separator, base64 digest."""

    assert compute_signature(SECRET, TIMESTAMP, BODY) == PINNED_SIGNATURE


def test_signature_matches_reference_hmac():
    """Signature equals a plain HMAC-SHA256 over timestamp plus body."""

    body = b'{"data": {"order": {"order_id": "ORDER_9"}}, "type": "PAYMENT_SUCCESS_WEBHOOK"}'
    digest = hmac.new(b"another-secret", b"1700000123" + body, hashlib.sha256).digest()

    assert compute_signature("another-secret", "1700000123", body) == base64.b64encode(digest).decode()


@pytest.mark.parametrize(
    "secret,timestamp,body",
    [
        ("s3cr3u", TIMESTAMP, BODY),
        (SECRET, "1700000001", BODY),
        (SECRET, TIMESTAMP, b'{"order_id":"ORDER_2"}'),
        (SECRET, TIMESTAMP, b'{"order_id": "ORDER_1"}'),
    ],
)
def test_any_changed_byte_changes_signature(secret, timestamp, body):
    """Changing the secret, timestamp or any body byte changes the signature."""

    assert compute_signature(secret, timestamp, body) != PINNED_SIGNATURE


def test_authentic_notification_accepted():
    """A correctly signed notification is authentic."""

    auth = WebhookAuthenticator(SECRET)

    assert auth.verify(TIMESTAMP, PINNED_SIGNATURE, BODY) is WebhookOutcome.AUTHENTIC


def test_tampered_body_rejected():
    """One extra body byte breaks the signature."""

    auth = WebhookAuthenticator(SECRET)

    outcome = auth.verify(TIMESTAMP, PINNED_SIGNATURE, BODY + b" ")

    assert outcome is WebhookOutcome.SIGNATURE_MISMATCH
    assert not outcome.accepted


def test_wrong_secret_rejected():
    """A signature made with another secret is rejected."""

    auth = WebhookAuthenticator("not-the-secret")

    assert auth.verify(TIMESTAMP, PINNED_SIGNATURE, BODY) is WebhookOutcome.SIGNATURE_MISMATCH


def test_non_ascii_signature_is_a_mismatch_not_an_error():
    """Non-ASCII signature headers are rejected, never raised on."""

    auth = WebhookAuthenticator(SECRET)

    assert auth.verify(TIMESTAMP, "sïgnature", BODY) is WebhookOutcome.SIGNATURE_MISMATCH


@pytest.mark.parametrize(
    "timestamp,signature",
    [(None, PINNED_SIGNATURE), (TIMESTAMP, None), ("", PINNED_SIGNATURE), (TIMESTAMP, ""), (None, None)],
)
def test_missing_headers_rejected_without_hmac(monkeypatch, timestamp, signature):
    """Malformed notifications must never reach the HMAC computation."""

    def fail(*args, **kwargs):
        raise AssertionError("signature computed for malformed notification")

    monkeypatch.setattr(webhook, "compute_signature", fail)
    auth = WebhookAuthenticator(SECRET)

    assert auth.verify(timestamp, signature, BODY) is WebhookOutcome.MALFORMED


def test_tolerance_accepts_fresh_millisecond_timestamp():
    """Millisecond timestamps inside the window pass."""

    now = 1_700_000_000.0
    timestamp = str(int(now * 1000) - 30_000)
    signature = compute_signature(SECRET, timestamp, BODY)
    auth = WebhookAuthenticator(SECRET, tolerance_seconds=300, clock=lambda: now)

    assert auth.verify(timestamp, signature, BODY) is WebhookOutcome.AUTHENTIC


def test_tolerance_rejects_old_timestamp():
    """Timestamps older than the window are stale."""

    now = 1_700_000_000.0
    timestamp = str(int(now) - 301)
    signature = compute_signature(SECRET, timestamp, BODY)
    auth = WebhookAuthenticator(SECRET, tolerance_seconds=300, clock=lambda: now)

    assert auth.verify(timestamp, signature, BODY) is WebhookOutcome.STALE


def test_tolerance_rejects_unparseable_timestamp():
    """A signed but non-numeric timestamp is stale when a window is set."""

    timestamp = "yesterday"
    signature = compute_signature(SECRET, timestamp, BODY)
    auth = WebhookAuthenticator(SECRET, tolerance_seconds=300, clock=lambda: 1_700_000_000.0)

    assert auth.verify(timestamp, signature, BODY) is WebhookOutcome.STALE


def test_signature_checked_before_freshness():
    """Unsigned input is rejected on signature before freshness is considered."""

    auth = WebhookAuthenticator(SECRET, tolerance_seconds=300, clock=lambda: 1_700_000_000.0)

    assert auth.verify("yesterday", PINNED_SIGNATURE, BODY) is WebhookOutcome.SIGNATURE_MISMATCH


def test_without_tolerance_old_timestamps_pass():
    """Without a window, old timestamps are accepted."""

    auth = WebhookAuthenticator(SECRET, clock=lambda: 2_000_000_000.0)

    assert auth.verify(TIMESTAMP, PINNED_SIGNATURE, BODY) is WebhookOutcome.AUTHENTIC


def test_non_ascii_timestamp_rejected_without_hmac(monkeypatch):
    """Header bytes outside ASCII cannot be re-encoded to what the gateway signed."""

    def fail(*args, **kwargs):
        raise AssertionError("signature computed for non-ASCII timestamp")

    monkeypatch.setattr(webhook, "compute_signature", fail)
    auth = WebhookAuthenticator(SECRET)

    assert auth.verify("170000000\xe9", PINNED_SIGNATURE, BODY) is WebhookOutcome.MALFORMED
