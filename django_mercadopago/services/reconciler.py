import logging
from typing import NamedTuple

from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Q
from django.utils import timezone

from django_mercadopago.exceptions import OrderNotFound
from django_mercadopago.models import Order
from django_mercadopago.services.payment_resolver import ResolvedPayment
from django_mercadopago.signals import payment_status_changed

logger = logging.getLogger(__name__)

# Mercado Pago payment status -> local order status.
# Anything not listed (including "pending", "in_process") stays pending.
PROVIDER_STATUS_MAP = {
    "approved": Order.Status.PAID,
    "rejected": Order.Status.FAILED,
    "cancelled": Order.Status.FAILED,
    "pending": Order.Status.PENDING,
    "in_process": Order.Status.PENDING,
}


def map_provider_status(status) -> Order.Status:
    if not isinstance(status, str):
        return Order.Status.PENDING
    return PROVIDER_STATUS_MAP.get(status, Order.Status.PENDING)


class ReconcileResult(NamedTuple):
    order: Order
    status: Order.Status
    changed: bool


class OrderStore:
    """Access to the orders table owned by the checkout subsystem."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def lock(self, order_id) -> Order:
        """
        Lock the order row for the rest of the transaction.

        Raises:
            OrderNotFound: If the order does not exist
        """
        try:
            return Order.objects.using(self.using).select_for_update().get(pk=order_id)
        except Order.DoesNotExist:
            raise OrderNotFound(order_id) from None

    def apply_status(self, order_id, status: str, payment_reference: str) -> int:
        """
        Conditionally set status and payment reference.

        Returns:
            Number of rows changed; 0 when the order already matches.
        """
        return (
            Order.objects.using(self.using)
            .filter(pk=order_id)
            .filter(~Q(status=status) | ~Q(payment_reference=payment_reference))
            .update(
                status=status,
                payment_reference=payment_reference,
                updated_at=timezone.now(),
            )
        )


class StatusReconciler:
    """Applies a resolved payment status to its order, idempotently."""

    def __init__(self, orders: OrderStore | None = None):
        self.orders = orders or OrderStore()

    def reconcile(self, resolved: ResolvedPayment) -> ReconcileResult:
        """
        Must run inside a transaction on ``self.orders.using``.

        Raises:
            OrderNotFound: If the payment points at an unknown order
        """
        status = map_provider_status(resolved.status)
        order = self.orders.lock(resolved.order_id)

        changed = bool(
            self.orders.apply_status(order.pk, status, resolved.payment_id)
        )

        if changed:
            previous = order.status
            order.status = status
            order.payment_reference = resolved.payment_id
            logger.info(
                "[django-mercadopago] Order %s payment status %s -> %s (payment %s)",
                order.pk,
                previous,
                status,
                resolved.payment_id,
            )
            transaction.on_commit(
                lambda: payment_status_changed.send(
                    sender=Order,
                    order=order,
                    status=status,
                    payment_reference=resolved.payment_id,
                ),
                using=self.orders.using,
            )
        else:
            logger.debug(
                "[django-mercadopago] Order %s already %s, nothing to update",
                order.pk,
                status,
            )

        return ReconcileResult(order=order, status=status, changed=changed)
