import json
import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from django.db import DEFAULT_DB_ALIAS, transaction

from django_mercadopago.conf import settings as app_settings
from django_mercadopago.exceptions import OrderNotFound, UnknownEventError
from django_mercadopago.models import Order, WebhookEvent
from django_mercadopago.services.ledger import IdempotencyLedger
from django_mercadopago.services.payment_resolver import PaymentStatusResolver
from django_mercadopago.services.reconciler import OrderStore, StatusReconciler
from django_mercadopago.services.signature import SignatureVerifier

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    """What a single webhook delivery amounted to."""

    PROCESSED = "processed"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    IN_FLIGHT = "in_flight"
    SUPERSEDED = "superseded"


@dataclass
class WebhookResult:
    outcome: WebhookOutcome
    event: WebhookEvent | None = None
    order_status: Order.Status | None = None
    changed: bool = False


def extract_payment_id(event_type: str, payload, relevant_type: str) -> str:
    """
    Return the provider payment id a notification refers to.

    Raises:
        UnknownEventError: Not a payment notification, or no ``data.id``
    """
    if event_type != relevant_type:
        raise UnknownEventError(f"Unhandled event type {event_type!r}")

    data = payload.get("data") if isinstance(payload, dict) else None
    payment_id = data.get("id") if isinstance(data, dict) else None
    if payment_id in (None, ""):
        raise UnknownEventError("Notification carries no payment id")
    return str(payment_id)


class WebhookProcessor:
    """
    Processes Mercado Pago payment notifications idempotently.

    A delivery goes through two short transactions. Admission locks or creates
    the ledger row and takes a processing lease on it. The provider is then
    queried with no lock held. Settlement re-locks the row, checks the lease
    is still ours, locks the order and applies the conditional update.
    """

    def __init__(
        self,
        verifier: SignatureVerifier | None = None,
        ledger: IdempotencyLedger | None = None,
        resolver: PaymentStatusResolver | None = None,
        reconciler: StatusReconciler | None = None,
        using: str = DEFAULT_DB_ALIAS,
    ):
        self.using = using
        self.verifier = verifier or SignatureVerifier()
        self.ledger = ledger or IdempotencyLedger(using=using)
        self.resolver = resolver or PaymentStatusResolver()
        self.reconciler = reconciler or StatusReconciler(OrderStore(using=using))

    def handle(
        self,
        *,
        signature: str | None,
        idempotency_key: str | None,
        body: bytes,
        request_id: str = "",
        remote_ip: str | None = None,
    ) -> WebhookResult:
        """
        Authenticate and process one webhook delivery.

        Raises:
            AuthenticationFailure: Bad or missing signature headers
            ConfigurationError: Secret or access token not configured
            TransientProviderError: Mercado Pago could not be queried; the
                event stays received for the next delivery
        """
        self.verifier.verify(signature, idempotency_key, body, request_id)

        try:
            payload = json.loads(body)
        except ValueError:
            logger.warning(
                "[django-mercadopago] Malformed webhook payload for key %s",
                idempotency_key,
            )
            return WebhookResult(WebhookOutcome.IGNORED)

        event_type = payload.get("type") if isinstance(payload, dict) else None
        return self._run(
            idempotency_key=idempotency_key,
            signature=signature,
            event_type=str(event_type or "")[:64],
            payload=payload,
            remote_ip=remote_ip,
        )

    def resume(self, event: WebhookEvent) -> WebhookResult:
        """Re-run a stored, unfinished event from its recorded payload."""
        return self._run(
            idempotency_key=event.idempotency_key,
            signature=event.signature,
            event_type=event.event_type,
            payload=event.payload,
            remote_ip=event.remote_ip,
        )

    def _run(self, *, idempotency_key, signature, event_type, payload, remote_ip):
        admitted = self._admit(idempotency_key, signature, event_type, payload, remote_ip)
        if isinstance(admitted, WebhookResult):
            return admitted

        event, claim_token, payment_id = admitted
        try:
            return self._settle(event, claim_token, payment_id)
        except Exception:
            self._release(event, claim_token)
            raise

    def _admit(self, idempotency_key, signature, event_type, payload, remote_ip):
        with transaction.atomic(using=self.using):
            lookup = self.ledger.lock_or_create(
                idempotency_key,
                signature=signature,
                event_type=event_type,
                payload=payload,
                remote_ip=remote_ip,
            )
            event = lookup.event

            if lookup.duplicate:
                return WebhookResult(WebhookOutcome.DUPLICATE, event=event)

            if not lookup.is_new and event.is_claimed():
                logger.info(
                    "[django-mercadopago] Event %s is being processed elsewhere",
                    idempotency_key,
                )
                return WebhookResult(WebhookOutcome.IN_FLIGHT, event=event)

            try:
                payment_id = extract_payment_id(
                    event_type, payload, app_settings.PAYMENT_EVENT_TYPE
                )
            except UnknownEventError as e:
                logger.info(
                    "[django-mercadopago] Ignoring webhook %s: %s", idempotency_key, e
                )
                self.ledger.mark_ignored(event)
                return WebhookResult(WebhookOutcome.IGNORED, event=event)

            claim_token = self.ledger.claim(event)

        return event, claim_token, payment_id

    def _settle(self, event, claim_token, payment_id) -> WebhookResult:
        try:
            resolved = self.resolver.resolve(payment_id)
        except UnknownEventError as e:
            logger.info(
                "[django-mercadopago] Ignoring webhook %s: %s", event.idempotency_key, e
            )
            return self._finish_ignored(event, claim_token)

        with transaction.atomic(using=self.using):
            locked = self.ledger.lock_claimed(event.pk, claim_token)
            if locked is None:
                logger.warning(
                    "[django-mercadopago] Lost lease on event %s, skipping update",
                    event.idempotency_key,
                )
                return WebhookResult(WebhookOutcome.SUPERSEDED, event=event)

            try:
                result = self.reconciler.reconcile(resolved)
            except OrderNotFound as e:
                logger.warning(
                    "[django-mercadopago] Ignoring webhook %s: %s",
                    event.idempotency_key,
                    e,
                )
                self.ledger.mark_ignored(locked)
                return WebhookResult(WebhookOutcome.IGNORED, event=locked)

            self.ledger.mark_processed(locked, result.status)

        logger.info(
            "[django-mercadopago] Processed webhook %s: order %s is %s",
            event.idempotency_key,
            result.order.pk,
            result.status,
        )
        return WebhookResult(
            WebhookOutcome.PROCESSED,
            event=locked,
            order_status=result.status,
            changed=result.changed,
        )

    def _finish_ignored(self, event, claim_token) -> WebhookResult:
        with transaction.atomic(using=self.using):
            locked = self.ledger.lock_claimed(event.pk, claim_token)
            if locked is None:
                return WebhookResult(WebhookOutcome.SUPERSEDED, event=event)
            self.ledger.mark_ignored(locked)
        return WebhookResult(WebhookOutcome.IGNORED, event=locked)

    def _release(self, event, claim_token: uuid.UUID) -> None:
        try:
            with transaction.atomic(using=self.using):
                self.ledger.release(event.pk, claim_token)
        except Exception:
            logger.exception(
                "[django-mercadopago] Failed to release lease on event %s",
                event.idempotency_key,
            )
