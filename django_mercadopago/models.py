import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from django_mercadopago.constants import IDEMPOTENCY_KEY_MAX_LENGTH


class Order(models.Model):
    """
    Payment-facing view of a shop order.

    Orders are created by the checkout flow. Webhook processing only ever
    rewrites ``status`` and ``payment_reference`` through a conditional update.
    """

    class Status(models.TextChoices):
        PENDING = "Pending", _("Pending")
        PAID = "Paid", _("Paid")
        FAILED = "Failed", _("Failed")

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    payment_reference = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        help_text=_("Mercado Pago payment id that last settled this order"),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")
        ordering = ["-created_at"]

    def __str__(self):
        return f"Order #{self.pk} ({self.status})"


class WebhookEvent(models.Model):
    """
    Ledger of webhook deliveries received from Mercado Pago.

    One row per idempotency key. ``lifecycle`` says how far the delivery got;
    ``resolved_outcome`` says which order status it produced and is only set
    once the event is processed.
    """

    class Lifecycle(models.TextChoices):
        RECEIVED = "received", _("Received")
        IGNORED = "ignored", _("Ignored")
        PROCESSED = "processed", _("Processed")

    TERMINAL_LIFECYCLES = (Lifecycle.IGNORED, Lifecycle.PROCESSED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4)

    idempotency_key = models.CharField(
        max_length=IDEMPOTENCY_KEY_MAX_LENGTH,
        unique=True,
        help_text=_("Sender-assigned delivery identifier"),
    )

    # Request as received, for audit and replay
    signature = models.CharField(max_length=512, blank=True)
    event_type = models.CharField(max_length=64, blank=True, db_index=True)
    payload = models.JSONField(default=dict)
    remote_ip = models.GenericIPAddressField(
        blank=True, null=True, help_text=_("IP address of the webhook request")
    )

    # Processing state
    lifecycle = models.CharField(
        max_length=16,
        choices=Lifecycle.choices,
        default=Lifecycle.RECEIVED,
    )
    resolved_outcome = models.CharField(
        max_length=16,
        choices=Order.Status.choices,
        blank=True,
        null=True,
        help_text=_("Order status this event produced"),
    )

    # Processing lease held by the worker currently resolving the event
    claim_token = models.UUIDField(blank=True, null=True)
    claimed_until = models.DateTimeField(blank=True, null=True)
    attempts = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    processed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "webhook_events"
        verbose_name = _("Mercado Pago Webhook Event")
        verbose_name_plural = _("Mercado Pago Webhook Events")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="mp_webhook_created_idx"),
            models.Index(
                fields=["lifecycle", "created_at"], name="mp_webhook_lifecycle_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(lifecycle="processed", resolved_outcome__isnull=False)
                    | (~Q(lifecycle="processed") & Q(resolved_outcome__isnull=True))
                ),
                name="mp_webhook_outcome_only_when_processed",
            ),
        ]

    def __str__(self):
        if self.resolved_outcome:
            return f"{self.idempotency_key} ({self.lifecycle}: {self.resolved_outcome})"
        return f"{self.idempotency_key} ({self.lifecycle})"

    @property
    def is_terminal(self) -> bool:
        return self.lifecycle in self.TERMINAL_LIFECYCLES

    def is_claimed(self, now=None) -> bool:
        """Whether another worker holds a live processing lease."""
        if self.claim_token is None or self.claimed_until is None:
            return False
        return self.claimed_until > (now or timezone.now())

    def finalize(self, lifecycle: str, outcome: str | None = None) -> None:
        """
        Move the event to a terminal lifecycle. Does not save.

        Raises:
            ValueError: if the event is already terminal, or if the outcome
                does not match the lifecycle.
        """
        if self.is_terminal:
            raise ValueError(
                f"Webhook event {self.idempotency_key} is already {self.lifecycle}"
            )
        if lifecycle == self.Lifecycle.PROCESSED and not outcome:
            raise ValueError("A processed event needs a resolved outcome")
        if lifecycle == self.Lifecycle.IGNORED and outcome:
            raise ValueError("An ignored event cannot carry an outcome")
        if lifecycle not in self.TERMINAL_LIFECYCLES:
            raise ValueError(f"{lifecycle!r} is not a terminal lifecycle")

        self.lifecycle = lifecycle
        self.resolved_outcome = outcome
        self.processed_at = timezone.now()
        self.claim_token = None
        self.claimed_until = None
