from .ledger import IdempotencyLedger
from .payment_resolver import PaymentStatusResolver, ResolvedPayment
from .reconciler import OrderStore, StatusReconciler
from .signature import SignatureVerifier
from .webhook_processor import WebhookOutcome, WebhookProcessor, WebhookResult

__all__ = [
    "IdempotencyLedger",
    "OrderStore",
    "PaymentStatusResolver",
    "ResolvedPayment",
    "SignatureVerifier",
    "StatusReconciler",
    "WebhookOutcome",
    "WebhookProcessor",
    "WebhookResult",
]
