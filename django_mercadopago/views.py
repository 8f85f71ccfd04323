import ipaddress
import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from django_mercadopago.conf import settings as app_settings
from django_mercadopago.constants import (
    IDEMPOTENCY_KEY_HEADER,
    REQUEST_ID_HEADER,
    SIGNATURE_HEADER,
)
from django_mercadopago.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    TransientProviderError,
)
from django_mercadopago.services import WebhookOutcome, WebhookProcessor

logger = logging.getLogger(__name__)


def get_webhook_processor() -> WebhookProcessor:
    return WebhookProcessor()


def _get_client_ip(request) -> str | None:
    """Extract client IP from request; None if it is not a valid address."""
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        candidate = x_forwarded_for.split(",")[0].strip()
    else:
        candidate = request.META.get("REMOTE_ADDR", "")

    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def _error_response() -> JsonResponse:
    """
    Response for failures on our side.

    With MASK_ERRORS the sender sees a plain success and stops redelivering;
    otherwise it gets a 500 and retries.
    """
    status = 200 if app_settings.MASK_ERRORS else 500
    return JsonResponse({"ok": status == 200}, status=status)


def process_webhook_request(request: HttpRequest) -> JsonResponse:
    """Process a Mercado Pago webhook request with idempotency."""
    idempotency_key = request.headers.get(IDEMPOTENCY_KEY_HEADER)

    try:
        result = get_webhook_processor().handle(
            signature=request.headers.get(SIGNATURE_HEADER),
            idempotency_key=idempotency_key,
            body=request.body,
            request_id=request.headers.get(REQUEST_ID_HEADER, ""),
            remote_ip=_get_client_ip(request),
        )
    except AuthenticationFailure as e:
        logger.warning("[django-mercadopago] Rejected webhook: %s", e)
        return JsonResponse({"ok": False}, status=401)
    except ConfigurationError as e:
        logger.critical("[django-mercadopago] Webhook misconfigured: %s", e)
        return _error_response()
    except TransientProviderError as e:
        logger.warning(
            "[django-mercadopago] Webhook %s left for redelivery: %s",
            idempotency_key,
            e,
        )
        return _error_response()
    except Exception:
        logger.exception(
            "[django-mercadopago] Webhook processing failed: %s", idempotency_key
        )
        return _error_response()

    if result.outcome == WebhookOutcome.DUPLICATE:
        return JsonResponse({"ok": True, "idempotent": True})

    return JsonResponse({"ok": True})


@csrf_exempt
@require_http_methods(["POST"])
def webhook(request):
    return process_webhook_request(request)
