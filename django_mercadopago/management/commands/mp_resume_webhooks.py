import logging
from enum import Enum

from django.core.management.base import BaseCommand, CommandError

from django_mercadopago.services import IdempotencyLedger, WebhookOutcome, WebhookProcessor

__all__ = ["Command", "ResumeResult"]

logger = logging.getLogger(__name__)


class ResumeResult(str, Enum):
    """Result of resuming a single stalled event."""

    PROCESSED = "processed"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    ERROR = "errors"


OUTCOME_RESULTS = {
    WebhookOutcome.PROCESSED: ResumeResult.PROCESSED,
    WebhookOutcome.IGNORED: ResumeResult.IGNORED,
}


class Command(BaseCommand):
    help = "Resume webhook events left in 'received' by an interrupted delivery"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of events to resume (default: 100)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List stalled events without processing them",
        )

    def handle(self, *args, **options):
        limit = options["limit"]
        dry_run = options["dry_run"]

        if limit < 1:
            raise CommandError("--limit must be a positive integer")

        mode = "(DRY RUN)" if dry_run else ""
        self.stdout.write(f"Mercado Pago webhook resume {mode}")
        self.stdout.write("=" * 40)

        stalled = list(IdempotencyLedger().stalled()[:limit])
        self.stdout.write(f"Found {len(stalled)} stalled events")

        if dry_run:
            for event in stalled:
                self.stdout.write(
                    f"  - {event.idempotency_key} ({event.event_type or 'no type'}, "
                    f"attempts={event.attempts})"
                )
            return

        processor = WebhookProcessor()
        stats = dict.fromkeys(ResumeResult, 0)
        error_details = []

        for event in stalled:
            try:
                result = processor.resume(event)
            except Exception as e:
                stats[ResumeResult.ERROR] += 1
                error_details.append(f"{event.idempotency_key}: {e}")
                logger.exception(
                    "[django-mercadopago] Error resuming %s", event.idempotency_key
                )
                continue

            stats[OUTCOME_RESULTS.get(result.outcome, ResumeResult.SKIPPED)] += 1

        self.stdout.write("")
        self.stdout.write(f"Processed: {stats[ResumeResult.PROCESSED]}")
        self.stdout.write(f"Ignored: {stats[ResumeResult.IGNORED]}")
        self.stdout.write(f"Skipped: {stats[ResumeResult.SKIPPED]}")
        self.stdout.write(f"Errors: {stats[ResumeResult.ERROR]}")

        if error_details:
            self.stdout.write("")
            self.stdout.write("Error details:")
            for detail in error_details[:10]:
                self.stderr.write(f"  - {detail}")
            if len(error_details) > 10:
                self.stderr.write(f"  ... and {len(error_details) - 10} more")

        self.stdout.write("")
        if stats[ResumeResult.ERROR] > 0:
            self.stdout.write(self.style.WARNING("Resume completed with errors."))
        else:
            self.stdout.write(self.style.SUCCESS("Resume completed successfully."))
