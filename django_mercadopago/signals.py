from django.dispatch import Signal

# Sent after commit when a webhook changed an order's payment status
payment_status_changed = Signal()  # sender=Order, order=instance, status=str, payment_reference=str
