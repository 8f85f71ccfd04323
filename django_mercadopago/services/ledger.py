import logging
import uuid
from datetime import timedelta
from typing import NamedTuple

from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from django_mercadopago.conf import settings as app_settings
from django_mercadopago.models import WebhookEvent

logger = logging.getLogger(__name__)


class LedgerLookup(NamedTuple):
    event: WebhookEvent
    is_new: bool
    duplicate: bool


class IdempotencyLedger:
    """
    Durable record of webhook deliveries, keyed by idempotency key.

    Every method that reads or writes an event row expects to run inside a
    ``transaction.atomic(using=...)`` block on the same database alias.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS, claim_timeout: int | None = None):
        self.using = using
        self._claim_timeout = claim_timeout

    @property
    def claim_timeout(self) -> timedelta:
        seconds = self._claim_timeout
        if seconds is None:
            seconds = app_settings.CLAIM_TIMEOUT
        return timedelta(seconds=seconds)

    def _events(self) -> QuerySet[WebhookEvent]:
        return WebhookEvent.objects.using(self.using)

    def _select_locked(self, idempotency_key: str) -> WebhookEvent | None:
        return (
            self._events()
            .select_for_update()
            .filter(idempotency_key=idempotency_key)
            .first()
        )

    def lock_or_create(
        self,
        idempotency_key: str,
        signature: str,
        event_type: str,
        payload,
        remote_ip: str | None = None,
    ) -> LedgerLookup:
        """
        Lock the ledger row for ``idempotency_key``, creating it on first sight.

        Concurrent deliveries of the same key block on the row lock until the
        holder commits or rolls back.

        Returns:
            LedgerLookup(event, is_new, duplicate). ``duplicate`` is True when
            the event already reached a terminal lifecycle; callers must not
            process it again.
        """
        event = self._select_locked(idempotency_key)

        if event is None:
            try:
                with transaction.atomic(using=self.using):
                    event = self._events().create(
                        idempotency_key=idempotency_key,
                        signature=signature,
                        event_type=event_type,
                        payload=payload,
                        remote_ip=remote_ip,
                    )
                logger.debug("[django-mercadopago] Stored webhook event %s", event.id)
                return LedgerLookup(event, is_new=True, duplicate=False)
            except IntegrityError:
                # Lost the insert race; the winner has committed by now
                event = self._select_locked(idempotency_key)
                if event is None:
                    raise
                logger.debug(
                    "[django-mercadopago] Concurrent insert for key %s", idempotency_key
                )

        if event.is_terminal:
            logger.debug(
                "[django-mercadopago] Duplicate webhook %s (%s)",
                idempotency_key,
                event.lifecycle,
            )
            return LedgerLookup(event, is_new=False, duplicate=True)

        event.signature = signature
        event.event_type = event_type
        event.payload = payload
        event.save(update_fields=["signature", "event_type", "payload", "updated_at"])
        return LedgerLookup(event, is_new=False, duplicate=False)

    def claim(self, event: WebhookEvent) -> uuid.UUID:
        """Take the processing lease on a locked, non-terminal event."""
        event.claim_token = uuid.uuid4()
        event.claimed_until = timezone.now() + self.claim_timeout
        event.attempts += 1
        event.save(
            update_fields=["claim_token", "claimed_until", "attempts", "updated_at"]
        )
        return event.claim_token

    def lock_claimed(self, pk, claim_token: uuid.UUID) -> WebhookEvent | None:
        """
        Re-lock an event, but only if it is still received and still ours.

        Returns None when the lease was lost, e.g. it expired and another
        worker took over, or that worker already finalized the event.
        """
        return (
            self._events()
            .select_for_update()
            .filter(
                pk=pk,
                claim_token=claim_token,
                lifecycle=WebhookEvent.Lifecycle.RECEIVED,
            )
            .first()
        )

    def release(self, pk, claim_token: uuid.UUID) -> bool:
        """Drop our lease so the next delivery can resume immediately."""
        released = (
            self._events()
            .filter(pk=pk, claim_token=claim_token)
            .update(claim_token=None, claimed_until=None, updated_at=timezone.now())
        )
        return bool(released)

    def mark_ignored(self, event: WebhookEvent) -> None:
        self._finalize(event, WebhookEvent.Lifecycle.IGNORED)

    def mark_processed(self, event: WebhookEvent, outcome: str) -> None:
        self._finalize(event, WebhookEvent.Lifecycle.PROCESSED, outcome)

    def _finalize(self, event, lifecycle, outcome=None):
        event.finalize(lifecycle, outcome)
        event.save(
            update_fields=[
                "lifecycle",
                "resolved_outcome",
                "processed_at",
                "claim_token",
                "claimed_until",
                "updated_at",
            ],
        )

    def stalled(self, older_than: timedelta | None = None) -> QuerySet[WebhookEvent]:
        """Received events nobody is working on anymore."""
        now = timezone.now()
        cutoff = now - (older_than if older_than is not None else self.claim_timeout)
        return (
            self._events()
            .filter(lifecycle=WebhookEvent.Lifecycle.RECEIVED, created_at__lte=cutoff)
            .filter(Q(claimed_until__isnull=True) | Q(claimed_until__lte=now))
            .order_by("created_at")
        )
