"""Sign a JSON body like the gateway does and POST it to a running relay.

Useful for manual end-to-end checks of webhook authentication.
"""

import argparse
import json
import time
from pathlib import Path

import httpx

from upirelay.services.relay.webhook import compute_signature


def send(base_url: str, secret: str, raw_body: bytes, timestamp: str, tamper: bool) -> httpx.Response:
    """Sign `raw_body` and deliver it to `/api/webhook`."""

    signature = compute_signature(secret, timestamp, raw_body)
    if tamper:
        raw_body = raw_body + b" "
    return httpx.post(
        f"{base_url}/api/webhook",
        content=raw_body,
        headers={
            "Content-Type": "application/json",
            "x-webhook-timestamp": timestamp,
            "x-webhook-signature": signature,
        },
        timeout=10.0,
    )


def main() -> None:
    """Parse CLI args and send one signed notification."""

    parser = argparse.ArgumentParser(description="Send a signed test webhook to the relay.")
    parser.add_argument("--base-url", default="http://localhost:3000")
    parser.add_argument("--secret", required=True)
    parser.add_argument("--order-id", default="ORDER_TEST")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON body")
    parser.add_argument("--timestamp", default=None, help="Defaults to now in epoch milliseconds")
    parser.add_argument("--tamper", action="store_true", help="Alter the body after signing")
    args = parser.parse_args()

    if args.json_file:
        raw_body = Path(args.json_file).read_bytes()
    else:
        raw_body = json.dumps(
            {
                "type": "PAYMENT_SUCCESS_WEBHOOK",
                "event_time": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                "data": {
                    "order": {"order_id": args.order_id, "order_amount": 1.0},
                    "payment": {"payment_status": "SUCCESS"},
                },
            }
        ).encode("utf-8")
    timestamp = args.timestamp or str(int(time.time() * 1000))

    resp = send(args.base_url, args.secret, raw_body, timestamp, args.tamper)
    print(f"status={resp.status_code}")
    print(resp.text)


if __name__ == "__main__":
    main()
