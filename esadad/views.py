"""Session-backed checkout wizard over the gateway core.

Step 1 (``payment``) initiates the payment so the customer receives an OTP.
Step 2 (``otp``) requests the payment with that OTP and confirms it. The
intermediate state lives in the Django session; the core never sees it.
"""
from __future__ import annotations

import logging

from django.http import Http404
from django.urls import reverse
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import GatewayError
from .gateway import TransactionDetails, get_gateway
from .serializers import (
    OtpSerializer,
    PaymentStartSerializer,
    TransactionFilterSerializer,
    TransactionSerializer,
)

logger = logging.getLogger(__name__)

SESSION_PAYMENT = "esadad_payment"
SESSION_TRANSACTION = "esadad_transaction"

GENERIC_FAILURE = "Payment failed. Please try again later."
SESSION_EXPIRED = "Payment session expired. Please start again."


def _business_error(response):
    return Response(
        {"ok": False, "error_code": response.error_code, "error": response.error_description},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _gateway_failure(step: str, exc: Exception):
    logger.error("e-SADAD %s failed: %s", step, exc, exc_info=True)
    return Response({"ok": False, "error": GENERIC_FAILURE}, status=status.HTTP_502_BAD_GATEWAY)


class PaymentStartView(APIView):
    permission_classes = [permissions.AllowAny]
    serializer_class = PaymentStartSerializer

    @extend_schema(request=PaymentStartSerializer, summary="Start payment (sends OTP)", tags=["e-SADAD"])
    def post(self, request):
        ser = self.serializer_class(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            result = get_gateway().initiate_payment(data["customer_id"], data["customer_password"])
        except GatewayError as e:
            return _gateway_failure("payment initiation", e)
        if not result.ok:
            return _business_error(result)

        request.session[SESSION_PAYMENT] = {
            "customer_id": data["customer_id"],
            "amount": str(data["amount"]),
            "invoice_id": data["invoice_id"],
        }
        return Response(
            {"ok": True, "message": "OTP sent to the customer's phone.", "next": reverse("esadad:otp")},
            status=status.HTTP_200_OK,
        )


class OtpVerifyView(APIView):
    permission_classes = [permissions.AllowAny]
    serializer_class = OtpSerializer

    @extend_schema(request=OtpSerializer, summary="Verify OTP and complete payment", tags=["e-SADAD"])
    def post(self, request):
        payment = request.session.get(SESSION_PAYMENT)
        if not payment:
            return Response({"ok": False, "error": SESSION_EXPIRED}, status=status.HTTP_409_CONFLICT)

        ser = self.serializer_class(data=request.data)
        ser.is_valid(raise_exception=True)
        gateway = get_gateway()

        try:
            result = gateway.request_payment(
                payment["customer_id"],
                ser.validated_data["otp"],
                payment["invoice_id"],
                payment["amount"],
            )
            if not result.ok:
                return _business_error(result)

            details = TransactionDetails.from_response(result, invoice_id=payment["invoice_id"])
            confirmation = gateway.confirm_payment(payment["customer_id"], details, payment["amount"])
        except GatewayError as e:
            return _gateway_failure("payment verification", e)
        if not confirmation.ok:
            return _business_error(confirmation)

        stored = {k: (str(v) if v is not None else None) for k, v in details.to_dict().items()}
        request.session[SESSION_TRANSACTION] = stored
        request.session.pop(SESSION_PAYMENT, None)
        return Response(
            {"ok": True, "transaction": stored, "next": reverse("esadad:success")},
            status=status.HTTP_200_OK,
        )


class PaymentSuccessView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        details = request.session.get(SESSION_TRANSACTION)
        if not details:
            return Response(
                {"ok": False, "error": "No completed payment in this session."},
                status=status.HTTP_409_CONFLICT,
            )
        txn = get_gateway().find_transaction_by_invoice_id(details["invoice_id"])
        return Response(
            {
                "ok": True,
                "transaction_details": details,
                "transaction": TransactionSerializer(txn).data if txn else None,
            }
        )


class TransactionListView(APIView):
    permission_classes = [permissions.IsAdminUser]

    @extend_schema(parameters=[TransactionFilterSerializer], responses=TransactionSerializer(many=True))
    def get(self, request):
        ser = TransactionFilterSerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        filters = ser.validated_data
        qs = get_gateway().transactions(filters)
        return Response(
            {
                "filters": TransactionFilterSerializer(filters).data,
                "results": TransactionSerializer(qs, many=True).data,
            }
        )


class TransactionDetailView(APIView):
    permission_classes = [permissions.IsAdminUser]

    @extend_schema(responses=TransactionSerializer)
    def get(self, request, pk: int):
        txn = get_gateway().find_transaction(pk)
        if txn is None:
            raise Http404("Transaction not found")
        return Response(TransactionSerializer(txn).data)
