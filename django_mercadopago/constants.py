API_BASE_URL = "https://api.mercadopago.com"

PAYMENT_URL = "/v1/payments/{payment_id}"

# Request headers sent by the provider with every notification
SIGNATURE_HEADER = "X-Signature"
IDEMPOTENCY_KEY_HEADER = "X-Idempotency-Key"
REQUEST_ID_HEADER = "X-Request-Id"

IDEMPOTENCY_KEY_MAX_LENGTH = 128

SIGNATURE_SCHEME_PAYLOAD = "payload"
SIGNATURE_SCHEME_MANIFEST = "manifest"
SIGNATURE_SCHEMES = (SIGNATURE_SCHEME_PAYLOAD, SIGNATURE_SCHEME_MANIFEST)

# Metadata keys that may carry our order id. Mercado Pago snake-cases
# metadata keys, so "orderId" normally arrives as "order_id".
ORDER_ID_METADATA_KEYS = ("order_id", "orderId")
