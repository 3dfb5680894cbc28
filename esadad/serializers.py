from decimal import Decimal

from rest_framework import serializers

from .enums import TxnStatus
from .models import Transaction


class PaymentStartSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=64)
    customer_password = serializers.CharField(max_length=128, trim_whitespace=False)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("1"))
    invoice_id = serializers.CharField(max_length=64)


class OtpSerializer(serializers.Serializer):
    otp = serializers.CharField(max_length=16)


SORTABLE_FIELDS = ("created_at", "amount", "status", "invoice_id", "customer_id", "process_date")


class TransactionFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TxnStatus.choices, required=False)
    customer_id = serializers.CharField(required=False)
    invoice_id = serializers.CharField(required=False)
    bank_trx_id = serializers.CharField(required=False)
    gateway_trx_id = serializers.CharField(required=False)
    from_date = serializers.DateTimeField(required=False)
    to_date = serializers.DateTimeField(required=False)
    sort_field = serializers.ChoiceField(choices=SORTABLE_FIELDS, required=False)
    sort_direction = serializers.ChoiceField(choices=("asc", "desc"), required=False)


class TransactionSerializer(serializers.ModelSerializer):
    status_label = serializers.CharField(read_only=True)
    successful = serializers.BooleanField(read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "merchant_code",
            "customer_id",
            "invoice_id",
            "bank_trx_id",
            "gateway_trx_id",
            "amount",
            "currency",
            "process_date",
            "stmt_date",
            "status",
            "status_label",
            "payment_status",
            "error_code",
            "error_description",
            "successful",
            "created_at",
        ]
        read_only_fields = fields
