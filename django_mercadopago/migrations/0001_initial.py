# Generated manually for 0.1.0

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Pending", "Pending"),
                            ("Paid", "Paid"),
                            ("Failed", "Failed"),
                        ],
                        db_index=True,
                        default="Pending",
                        max_length=16,
                    ),
                ),
                (
                    "payment_reference",
                    models.CharField(
                        blank=True,
                        help_text="Mercado Pago payment id that last settled this order",
                        max_length=64,
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "db_table": "orders",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, primary_key=True, serialize=False
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Sender-assigned delivery identifier",
                        max_length=128,
                        unique=True,
                    ),
                ),
                ("signature", models.CharField(blank=True, max_length=512)),
                (
                    "event_type",
                    models.CharField(blank=True, db_index=True, max_length=64),
                ),
                ("payload", models.JSONField(default=dict)),
                (
                    "remote_ip",
                    models.GenericIPAddressField(
                        blank=True,
                        help_text="IP address of the webhook request",
                        null=True,
                    ),
                ),
                (
                    "lifecycle",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("ignored", "Ignored"),
                            ("processed", "Processed"),
                        ],
                        default="received",
                        max_length=16,
                    ),
                ),
                (
                    "resolved_outcome",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("Pending", "Pending"),
                            ("Paid", "Paid"),
                            ("Failed", "Failed"),
                        ],
                        help_text="Order status this event produced",
                        max_length=16,
                        null=True,
                    ),
                ),
                ("claim_token", models.UUIDField(blank=True, null=True)),
                ("claimed_until", models.DateTimeField(blank=True, null=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Mercado Pago Webhook Event",
                "verbose_name_plural": "Mercado Pago Webhook Events",
                "db_table": "webhook_events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["-created_at"], name="mp_webhook_created_idx"
                    ),
                    models.Index(
                        fields=["lifecycle", "created_at"],
                        name="mp_webhook_lifecycle_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("lifecycle", "processed"),
                                ("resolved_outcome__isnull", False),
                            ),
                            models.Q(
                                models.Q(("lifecycle", "processed"), _negated=True),
                                ("resolved_outcome__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="mp_webhook_outcome_only_when_processed",
                    ),
                ],
            },
        ),
    ]
