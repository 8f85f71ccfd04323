import hashlib
import hmac
import json
from dataclasses import dataclass

from django_mercadopago.conf import settings as app_settings
from django_mercadopago.constants import (
    IDEMPOTENCY_KEY_MAX_LENGTH,
    SIGNATURE_SCHEME_MANIFEST,
)
from django_mercadopago.exceptions import AuthenticationFailure, ConfigurationError


@dataclass(frozen=True)
class Signature:
    ts: str
    v1: str


def parse_signature_header(header: str) -> dict[str, str]:
    """
    Parse ``"ts=1700000000,v1=abcdef"`` into ``{"ts": ..., "v1": ...}``.

    Pairs without a key or a value are dropped.
    """
    parts = {}
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        key, value = key.strip(), value.strip()
        if sep and key and value:
            parts[key] = value
    return parts


def build_manifest(body: bytes, request_id: str, ts: str) -> str:
    """Mercado Pago's signed manifest: ``id:<data.id>;request-id:<id>;ts:<ts>;``."""
    try:
        data = json.loads(body or b"{}")
    except ValueError as e:
        raise AuthenticationFailure("Body is not valid JSON") from e

    data_id = ""
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data_id = str(data["data"].get("id") or "")
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


class SignatureVerifier:
    """
    Authenticates webhook requests with an HMAC-SHA256 shared secret.

    Pure validation: nothing is persisted and the secret is never logged.
    """

    def __init__(self, secret: str | None = None, scheme: str | None = None):
        self._secret = secret
        self._scheme = scheme

    @property
    def secret(self) -> str | None:
        return self._secret if self._secret is not None else app_settings.WEBHOOK_SECRET

    @property
    def scheme(self) -> str:
        return self._scheme or app_settings.SIGNATURE_SCHEME

    def compute_digest(self, ts: str, body: bytes, request_id: str = "") -> str:
        secret = self.secret
        if not secret:
            raise ConfigurationError("DJANGO_MERCADOPAGO_WEBHOOK_SECRET is not set")

        if self.scheme == SIGNATURE_SCHEME_MANIFEST:
            message = build_manifest(body, request_id, ts).encode()
        else:
            message = ts.encode() + b"." + body

        return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()

    def verify(
        self,
        signature_header: str | None,
        idempotency_key: str | None,
        body: bytes,
        request_id: str = "",
    ) -> Signature:
        """
        Validate the signature headers of a webhook request.

        Args:
            signature_header: Raw ``X-Signature`` header
            idempotency_key: Raw ``X-Idempotency-Key`` header
            body: Raw request body
            request_id: ``X-Request-Id`` header (manifest scheme only)

        Returns:
            The parsed signature

        Raises:
            AuthenticationFailure: Missing, malformed or wrong signature
            ConfigurationError: The shared secret is not configured
        """
        if not signature_header or not idempotency_key or not idempotency_key.strip():
            raise AuthenticationFailure("Missing signature or idempotency key header")

        if len(idempotency_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
            raise AuthenticationFailure("Idempotency key is too long")

        if not self.secret:
            raise ConfigurationError("DJANGO_MERCADOPAGO_WEBHOOK_SECRET is not set")

        parts = parse_signature_header(signature_header)
        ts, v1 = parts.get("ts"), parts.get("v1")
        if not ts or not v1:
            raise AuthenticationFailure("Malformed signature header")

        expected = self.compute_digest(ts, body, request_id).encode()
        provided = v1.encode()

        if len(expected) != len(provided) or not hmac.compare_digest(
            expected, provided
        ):
            raise AuthenticationFailure(
                f"Invalid signature for idempotency key {idempotency_key}"
            )

        return Signature(ts=ts, v1=v1)
