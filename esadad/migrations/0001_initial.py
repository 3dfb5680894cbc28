from decimal import Decimal

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("merchant_code", models.CharField(db_index=True, max_length=64)),
                ("token_key", models.CharField(blank=True, default="", max_length=255)),
                ("customer_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("invoice_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("bank_trx_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("gateway_trx_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="886", max_length=10)),
                ("process_date", models.DateTimeField(blank=True, null=True)),
                ("stmt_date", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("requested", "Requested"),
                            ("confirmed", "Confirmed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="initiated",
                        max_length=16,
                    ),
                ),
                ("payment_status", models.CharField(blank=True, default="", max_length=16)),
                ("error_code", models.CharField(blank=True, default="", max_length=32)),
                ("error_description", models.TextField(blank=True, default="")),
                ("request_data", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("response_data", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": getattr(settings, "ESADAD_TRANSACTIONS_TABLE", "esadad_transactions"),
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["bank_trx_id", "gateway_trx_id"], name="esadad_trx_pair_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "level",
                    models.CharField(
                        choices=[("info", "Info"), ("error", "Error")],
                        db_index=True,
                        default="info",
                        max_length=16,
                    ),
                ),
                ("message", models.TextField()),
                ("context", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("service", models.CharField(blank=True, db_index=True, default="", max_length=32)),
                ("request_data", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("response_data", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "transaction",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="logs",
                        to="esadad.transaction",
                    ),
                ),
            ],
            options={
                "db_table": getattr(settings, "ESADAD_LOGS_TABLE", "esadad_logs"),
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
