import json
import logging
from datetime import timedelta

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from django_mercadopago.models import WebhookEvent
from django_mercadopago.services import IdempotencyLedger, WebhookOutcome, WebhookProcessor

logger = logging.getLogger(__name__)


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = (
        "idempotency_key",
        "event_type",
        "lifecycle",
        "resolved_outcome",
        "attempts",
        "remote_ip",
        "created_at",
        "processed_at",
    )
    list_display_links = ("idempotency_key",)
    list_filter = ("lifecycle", "resolved_outcome", "event_type", "created_at")
    search_fields = ("id", "idempotency_key", "remote_ip")
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            _("Event Information"),
            {
                "fields": (
                    "id",
                    "idempotency_key",
                    "event_type",
                    "lifecycle",
                    "resolved_outcome",
                    "created_at",
                    "updated_at",
                    "processed_at",
                )
            },
        ),
        (
            _("Processing Lease"),
            {"fields": ("claim_token", "claimed_until", "attempts")},
        ),
        (
            _("Request Details"),
            {"fields": ("remote_ip", "signature")},
        ),
        (
            _("Payload"),
            {"fields": ("payload_display",)},
        ),
    )

    readonly_fields = (
        "id",
        "idempotency_key",
        "event_type",
        "lifecycle",
        "resolved_outcome",
        "claim_token",
        "claimed_until",
        "attempts",
        "remote_ip",
        "signature",
        "payload_display",
        "created_at",
        "updated_at",
        "processed_at",
    )

    actions = ["resume_stalled_events"]

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(
        self, request: HttpRequest, obj: WebhookEvent | None = None
    ) -> bool:
        return False

    def has_delete_permission(
        self, request: HttpRequest, obj: WebhookEvent | None = None
    ) -> bool:
        return False

    @admin.display(description=_("Payload (JSON)"))
    def payload_display(self, obj: WebhookEvent) -> str:
        formatted_json = json.dumps(obj.payload, indent=2, ensure_ascii=False)
        return format_html("<pre>{}</pre>", formatted_json)

    @admin.action(description=_("Resume selected stalled events"))
    def resume_stalled_events(
        self, request: HttpRequest, queryset: QuerySet[WebhookEvent]
    ) -> None:
        stalled = IdempotencyLedger().stalled(older_than=timedelta(0)).filter(
            pk__in=queryset.values("pk")
        )

        if not stalled.exists():
            self.message_user(request, _("No stalled events selected."), messages.INFO)
            return None

        processor = WebhookProcessor()
        finished_count = 0
        error_count = 0

        for event in stalled:
            try:
                result = processor.resume(event)
            except Exception as e:
                logger.exception(
                    "[django-mercadopago] Resume failed for event %s: %s", event.pk, e
                )
                error_count += 1
                continue

            if result.outcome in (WebhookOutcome.PROCESSED, WebhookOutcome.IGNORED):
                finished_count += 1
            logger.info(
                "[django-mercadopago] Admin resumed webhook event %s -> %s",
                event.pk,
                result.outcome.value,
            )

        if error_count == 0:
            self.message_user(
                request,
                _("Successfully resumed %(count)d events.") % {"count": finished_count},
                messages.SUCCESS,
            )
        elif finished_count == 0:
            self.message_user(
                request,
                _("Failed to resume: %(count)d errors.") % {"count": error_count},
                messages.ERROR,
            )
        else:
            self.message_user(
                request,
                _("Resumed %(done)d events with %(errors)d errors.")
                % {"done": finished_count, "errors": error_count},
                messages.WARNING,
            )

        return None