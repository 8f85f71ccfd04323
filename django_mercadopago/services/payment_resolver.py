import logging
from dataclasses import dataclass

import httpx

from django_mercadopago.conf import settings as app_settings
from django_mercadopago.constants import ORDER_ID_METADATA_KEYS, PAYMENT_URL
from django_mercadopago.exceptions import (
    ConfigurationError,
    TransientProviderError,
    UnknownEventError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPayment:
    """Canonical state of a payment as reported by Mercado Pago."""

    payment_id: str
    status: str | None
    order_id: int


def extract_order_id(metadata) -> int:
    """
    Read our order id from a payment's metadata.

    Raises:
        UnknownEventError: If no order id is present or it is not an integer
    """
    if not isinstance(metadata, dict):
        raise UnknownEventError("Payment has no metadata")

    for key in ORDER_ID_METADATA_KEYS:
        value = metadata.get(key)
        if value in (None, ""):
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isascii() and value.isdigit():
            return int(value)
        raise UnknownEventError(f"Invalid order id in metadata: {value!r}")

    raise UnknownEventError("Payment metadata carries no order id")


class PaymentStatusResolver:
    """
    Fetches the authoritative status of a payment from the Mercado Pago API.

    The status embedded in a notification body is sender-supplied and never
    used; only the freshly fetched one is.
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self._access_token = access_token
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    @property
    def access_token(self) -> str | None:
        return self._access_token or app_settings.ACCESS_TOKEN

    @property
    def base_url(self) -> str:
        return (self._base_url or app_settings.API_BASE_URL).rstrip("/")

    @property
    def timeout(self) -> float:
        return self._timeout if self._timeout is not None else app_settings.PROVIDER_TIMEOUT

    def fetch_payment(self, payment_id: str) -> dict:
        """
        GET the payment resource from Mercado Pago.

        Raises:
            ConfigurationError: No access token configured
            UnknownEventError: Mercado Pago does not know the payment id
            TransientProviderError: Network failure or provider error response
        """
        if not self.access_token:
            raise ConfigurationError("DJANGO_MERCADOPAGO_ACCESS_TOKEN is not set")

        url = self.base_url + PAYMENT_URL.format(payment_id=payment_id)
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            if self._client is not None:
                response = self._client.get(url, headers=headers, timeout=self.timeout)
            else:
                response = httpx.get(url, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise TransientProviderError(
                f"Failed to reach Mercado Pago for payment {payment_id}: {e}"
            ) from e

        if response.status_code == httpx.codes.NOT_FOUND:
            raise UnknownEventError(f"Mercado Pago has no payment {payment_id}")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransientProviderError(
                f"Mercado Pago answered {response.status_code} for payment {payment_id}"
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransientProviderError(
                f"Mercado Pago returned a non-JSON body for payment {payment_id}"
            ) from e

        if not isinstance(data, dict):
            raise TransientProviderError(
                f"Unexpected Mercado Pago response for payment {payment_id}"
            )
        return data

    def resolve(self, payment_id: str) -> ResolvedPayment:
        data = self.fetch_payment(payment_id)
        order_id = extract_order_id(data.get("metadata"))
        status = data.get("status")

        logger.debug(
            "[django-mercadopago] Resolved payment %s -> %s (order %s)",
            payment_id,
            status,
            order_id,
        )
        return ResolvedPayment(
            payment_id=str(payment_id),
            status=status if isinstance(status, str) else None,
            order_id=order_id,
        )
