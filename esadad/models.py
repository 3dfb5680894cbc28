from __future__ import annotations

from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from .conf import DEFAULT_CURRENCY, logs_table, transactions_table
from .enums import EXCEPTION_CODE, SUCCESS_CODE, LogLevel, TxnStatus
from .utils import q2


class TransactionQuerySet(models.QuerySet):
    def successful(self):
        return self.filter(error_code=SUCCESS_CODE)

    def failed(self):
        return self.exclude(error_code="").exclude(error_code=SUCCESS_CODE)

    def with_status(self, status: str):
        return self.filter(status=status)


class Transaction(models.Model):
    """One row per protocol attempt; authentication counts as its own attempt."""

    merchant_code = models.CharField(max_length=64, db_index=True)
    token_key = models.CharField(max_length=255, blank=True, default="")
    customer_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    invoice_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    bank_trx_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    gateway_trx_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=10, default=DEFAULT_CURRENCY)
    process_date = models.DateTimeField(null=True, blank=True)
    stmt_date = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=16, choices=TxnStatus.choices, default=TxnStatus.INITIATED, db_index=True
    )
    payment_status = models.CharField(max_length=16, blank=True, default="")
    error_code = models.CharField(max_length=32, blank=True, default="")
    error_description = models.TextField(blank=True, default="")

    request_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    response_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TransactionQuerySet.as_manager()

    class Meta:
        db_table = transactions_table()
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["bank_trx_id", "gateway_trx_id"], name="esadad_trx_pair_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.pk}:{self.status}:{self.invoice_id or self.merchant_code}"

    @property
    def successful(self) -> bool:
        return self.error_code == SUCCESS_CODE

    @property
    def status_label(self) -> str:
        return TxnStatus(self.status).label if self.status in TxnStatus.values else self.status

    def save(self, *args, **kwargs):
        self.amount = q2(self.amount or 0)
        return super().save(*args, **kwargs)

    def apply(self, **fields) -> "Transaction":
        """Set the given fields and persist only those (plus updated_at)."""
        for name, value in fields.items():
            setattr(self, name, value)
        if "amount" in fields:
            self.amount = q2(self.amount or 0)
        self.save(update_fields=[*fields.keys(), "updated_at"])
        return self

    def mark_exception(self, message: str) -> "Transaction":
        return self.apply(
            status=TxnStatus.FAILED,
            error_code=EXCEPTION_CODE,
            error_description=message,
        )


class GatewayLogQuerySet(models.QuerySet):
    def with_level(self, level: str):
        return self.filter(level=level)

    def for_service(self, service: str):
        return self.filter(service=service)


class GatewayLog(models.Model):
    transaction = models.ForeignKey(
        Transaction, null=True, blank=True, on_delete=models.CASCADE, related_name="logs"
    )
    level = models.CharField(
        max_length=16, choices=LogLevel.choices, default=LogLevel.INFO, db_index=True
    )
    message = models.TextField()
    context = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    service = models.CharField(max_length=32, blank=True, default="", db_index=True)
    request_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    response_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = GatewayLogQuerySet.as_manager()

    class Meta:
        db_table = logs_table()
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"[{self.level}] {self.service}: {self.message[:60]}"
