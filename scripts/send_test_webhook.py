"""
Send a signed test event to the webhook endpoint.

Usage:
    STRIPE_WEBHOOK_SECRET=whsec_... python scripts/send_test_webhook.py [url] [event_type]

Defaults: http://localhost:3000/webhook, checkout.session.completed
"""
import asyncio
import hashlib
import hmac
import json
import os
import sys
import time

import httpx
from dotenv import load_dotenv


def sign(payload: str, secret: str, timestamp: int) -> str:
    """Stripe-Signature header value for a payload."""
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


async def send_test_webhook(url: str, event_type: str) -> int:
    secret = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    if not secret:
        print("❌ STRIPE_WEBHOOK_SECRET is not set")
        return 1

    event = {
        "id": f"evt_test_{int(time.time())}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_local",
                "object": "checkout.session",
                "amount_total": 2000,
                "payment_status": "paid",
            }
        },
    }
    payload = json.dumps(event, separators=(",", ":"))
    headers = {
        "Content-Type": "application/json",
        "Stripe-Signature": sign(payload, secret, int(time.time())),
    }

    print(f"🧪 Sending {event_type} to {url}\n")
    async with httpx.AsyncClient(timeout=10.0) as client:
        try:
            response = await client.post(url, content=payload, headers=headers)
        except httpx.TimeoutException:
            print("❌ Request timeout - is the server running?")
            return 1
        except httpx.ConnectError:
            print("❌ Connection error - check the URL")
            return 1

    print(f"Status Code: {response.status_code}")
    print(f"Response: {response.text}")
    if response.status_code == 200:
        print("\n✅ Event accepted")
        return 0
    print(f"\n❌ Webhook returned status {response.status_code}")
    return 1


if __name__ == "__main__":
    load_dotenv()
    target = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000/webhook"
    kind = sys.argv[2] if len(sys.argv) > 2 else "checkout.session.completed"
    sys.exit(asyncio.run(send_test_webhook(target, kind)))
