class MercadoPagoError(Exception):
    """Common base class for django-mercadopago exceptions"""

    pass


class AuthenticationFailure(MercadoPagoError):
    """Missing, malformed or invalid signature / idempotency-key headers."""

    pass


class ConfigurationError(MercadoPagoError):
    """A required setting (shared secret, access token) is not configured."""

    pass


class TransientProviderError(MercadoPagoError):
    """The payment provider could not be reached or answered with an error."""

    pass


class UnknownEventError(MercadoPagoError):
    """The notification does not describe a payment we can resolve."""

    pass


class OrderNotFound(MercadoPagoError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} does not exist")
