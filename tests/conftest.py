import hashlib
import hmac
import json
import threading
import time

import pytest

from django_mercadopago.exceptions import UnknownEventError
from django_mercadopago.models import Order
from django_mercadopago.services import PaymentStatusResolver, ResolvedPayment

WEBHOOK_SECRET = "test-webhook-secret"
SIGNATURE_TS = "1700000000"


def sign(body: bytes, ts: str = SIGNATURE_TS, secret: str = WEBHOOK_SECRET) -> str:
    """Build an ``X-Signature`` header for ``body`` with the payload scheme."""
    digest = hmac.new(
        secret.encode(), ts.encode() + b"." + body, hashlib.sha256
    ).hexdigest()
    return f"ts={ts},v1={digest}"


def make_payload(payment_id="1234567890", event_type="payment", **extra) -> dict:
    payload = {
        "action": "payment.updated",
        "type": event_type,
        "data": {"id": payment_id},
    }
    payload.update(extra)
    return payload


def encode(payload) -> bytes:
    return json.dumps(payload).encode()


class FakeResolver:
    """Stand-in for PaymentStatusResolver that counts provider lookups."""

    def __init__(self, payments=None, error=None, delay=0, on_resolve=None):
        self.payments = payments or {}
        self.error = error
        self.delay = delay
        self.on_resolve = on_resolve
        self.calls = []
        self._lock = threading.Lock()

    def resolve(self, payment_id):
        with self._lock:
            self.calls.append(payment_id)
        if self.delay:
            time.sleep(self.delay)
        if self.on_resolve is not None:
            self.on_resolve(payment_id)
        if self.error is not None:
            raise self.error
        try:
            return self.payments[payment_id]
        except KeyError:
            raise UnknownEventError(f"No payment {payment_id}") from None


@pytest.fixture
def order(db):
    return Order.objects.create()


@pytest.fixture
def resolved_approved(order):
    return ResolvedPayment(payment_id="1234567890", status="approved", order_id=order.pk)


@pytest.fixture
def fake_resolver(resolved_approved):
    return FakeResolver({resolved_approved.payment_id: resolved_approved})


@pytest.fixture
def provider_payments(mocker):
    """
    Payment resources Mercado Pago answers with, keyed by payment id.

    Patches the HTTP lookup so the whole resolver path runs.
    """
    payments = {}

    def fetch(payment_id):
        try:
            return payments[payment_id]
        except KeyError:
            raise UnknownEventError(f"Mercado Pago has no payment {payment_id}") from None

    mocker.patch.object(
        PaymentStatusResolver, "fetch_payment", side_effect=fetch
    )
    return payments
