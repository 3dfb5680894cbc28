"""Public entry point of the e-SADAD client core.

``ESadadGateway`` wires the token cache, the remote client, the ledger and
the audit sink into the four protocol operations:

    authenticate -> initiate_payment (OTP sent) -> request_payment (with OTP)
    -> confirm_payment

Every operation records a ledger row before it calls the gateway and
updates that row with the outcome. Business failures (``error_code`` other
than ``"000"``) are returned; transport and encryption failures are
recorded as ``EXCEPTION`` and re-raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Any, Mapping

from django.core.cache import caches
from django.core.signals import setting_changed
from django.db import DatabaseError
from django.dispatch import receiver
from django.utils import timezone

from . import selectors
from .audit import AuditSink
from .client import GatewayClient, GatewayResponse
from .conf import GatewayConfig
from .encryption import CredentialEncryptor
from .enums import REDACTED, PaymentStatus, Service, TxnStatus
from .exceptions import TransportFault
from .models import Transaction
from .tokens import RESOLVE_FROM_CACHE, ExplicitToken, TokenCache, TokenSource
from .transport import BaseTransport
from .utils import gateway_now, q2, to_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionDetails:
    """Identifiers the gateway assigned to a payment request."""

    bank_trx_id: str
    gateway_trx_id: str
    invoice_id: str
    stmt_date: Any = None

    @classmethod
    def from_response(cls, response: GatewayResponse, invoice_id: str = "") -> "TransactionDetails":
        return cls(
            bank_trx_id=response.get("bank_trx_id") or "",
            gateway_trx_id=response.get("gateway_trx_id") or "",
            invoice_id=response.get("invoice_id") or invoice_id,
            stmt_date=response.get("stmt_date"),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TransactionDetails":
        return cls(
            bank_trx_id=data["bank_trx_id"],
            gateway_trx_id=data.get("gateway_trx_id") or data["sep_trx_id"],
            invoice_id=data.get("invoice_id", ""),
            stmt_date=data.get("stmt_date"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "bank_trx_id": self.bank_trx_id,
            "gateway_trx_id": self.gateway_trx_id,
            "invoice_id": self.invoice_id,
            "stmt_date": self.stmt_date,
        }


def _exception_context(exc: BaseException) -> dict:
    return {"exception": {"type": type(exc).__name__, "message": str(exc)}}


class ESadadGateway:
    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: BaseTransport | None = None,
        client: GatewayClient | None = None,
        encryptor: CredentialEncryptor | None = None,
        sink: AuditSink | None = None,
        cache=None,
    ) -> None:
        self.config = config
        self.sink = sink or AuditSink(config.log_channel)
        self.client = client or GatewayClient(config, transport=transport, sink=self.sink)
        self.encryptor = encryptor or CredentialEncryptor.from_path(config.public_key_path)
        self.tokens = TokenCache(
            cache if cache is not None else caches[config.cache_alias],
            config.token_cache_key,
            self.authenticate,
            self.sink,
        )

    @classmethod
    def from_settings(cls) -> "ESadadGateway":
        return cls(GatewayConfig.from_settings())

    # ------------------------------------------------------------------
    # Protocol operations
    # ------------------------------------------------------------------
    def authenticate(self) -> GatewayResponse:
        """Obtain a fresh token key. Always calls the gateway."""
        service = Service.AUTHENTICATION
        txn = Transaction.objects.create(
            merchant_code=self.config.merchant_code,
            currency=self.config.currency_code,
            status=TxnStatus.INITIATED,
        )
        request_log = {"merchantCode": self.config.merchant_code, "password": REDACTED}
        try:
            self.sink.info(service, "Authentication request", {"request": request_log}, txn)
            self._update(txn, request_data=request_log)

            response = self.client.authenticate(
                self.config.merchant_code, self.config.merchant_password
            )
            if response.ok and not response.get("token_key"):
                raise TransportFault(
                    "Malformed gateway response: authentication succeeded without tokenKey",
                    service=service.value,
                )

            self._update(
                txn,
                token_key=response.get("token_key") or "",
                status=TxnStatus.CONFIRMED if response.ok else TxnStatus.FAILED,
                **self._outcome(response),
            )
            self.sink.info(service, "Authentication response", {"response": response.to_dict()}, txn)
            return response
        except Exception as e:
            self._record_exception(service, "Authentication error", txn, e)
            raise

    def get_token(self, force_new: bool = False) -> GatewayResponse:
        return self.tokens.get(force_new=force_new)

    def initiate_payment(
        self,
        customer_id: str,
        customer_password: str,
        token: TokenSource = RESOLVE_FROM_CACHE,
    ) -> GatewayResponse:
        """Trigger the OTP to the customer's phone."""
        token_key, failure = self._resolve_token(token)
        if failure is not None:
            return failure

        service = Service.PAYMENT_INITIATION
        txn = Transaction.objects.create(
            merchant_code=self.config.merchant_code,
            token_key=token_key,
            customer_id=customer_id,
            currency=self.config.currency_code,
            status=TxnStatus.INITIATED,
            process_date=timezone.now(),
        )
        try:
            trans_rec = {
                "sepOnlineNo": customer_id,
                "password": self.encryptor.encrypt(customer_password),
            }
            request_log = self._request_log(token_key, {**trans_rec, "password": REDACTED})
            self.sink.info(service, "Payment initiation request", {"request": request_log}, txn)
            self._update(txn, request_data=request_log)

            response = self.client.initiate(self.config.merchant_code, token_key, trans_rec)

            self._update(
                txn,
                status=TxnStatus.REQUESTED if response.ok else TxnStatus.FAILED,
                **self._outcome(response),
            )
            self.sink.info(
                service, "Payment initiation response", {"response": response.to_dict()}, txn
            )
            return response
        except Exception as e:
            self._record_exception(service, "Payment initiation error", txn, e)
            raise

    def request_payment(
        self,
        customer_id: str,
        otp: str,
        invoice_id: str,
        amount,
        currency: str | None = None,
        token: TokenSource = RESOLVE_FROM_CACHE,
    ) -> GatewayResponse:
        """Submit the payment with the OTP the customer received."""
        token_key, failure = self._resolve_token(token)
        if failure is not None:
            return failure

        service = Service.PAYMENT_REQUEST
        currency = currency or self.config.currency_code
        amount = q2(amount)
        txn = Transaction.objects.create(
            merchant_code=self.config.merchant_code,
            token_key=token_key,
            customer_id=customer_id,
            invoice_id=invoice_id,
            amount=amount,
            currency=currency,
            status=TxnStatus.INITIATED,
            process_date=timezone.now(),
        )
        try:
            trans_rec = {
                "sepOnlineNo": customer_id,
                "otp": self.encryptor.encrypt(otp),
                "invoiceId": invoice_id,
                "processDate": gateway_now(),
                "trxAmount": amount,
                "currency": currency,
            }
            request_log = self._request_log(token_key, {**trans_rec, "otp": REDACTED})
            self.sink.info(service, "Payment request", {"request": request_log}, txn)
            self._update(txn, request_data=request_log)

            response = self.client.request(self.config.merchant_code, token_key, trans_rec)

            self._update(
                txn,
                bank_trx_id=response.get("bank_trx_id"),
                gateway_trx_id=response.get("gateway_trx_id"),
                stmt_date=to_datetime(response.get("stmt_date")),
                status=TxnStatus.REQUESTED if response.ok else TxnStatus.FAILED,
                **self._outcome(response),
            )
            self.sink.info(service, "Payment request response", {"response": response.to_dict()}, txn)
            return response
        except Exception as e:
            self._record_exception(service, "Payment request error", txn, e)
            raise

    def confirm_payment(
        self,
        customer_id: str,
        transaction_details: TransactionDetails | Mapping[str, Any],
        amount,
        currency: str | None = None,
        payment_status: str = PaymentStatus.NEW,
        token: TokenSource = RESOLVE_FROM_CACHE,
    ) -> GatewayResponse:
        """Finalize (``PmtNew``) or cancel (``PmtCanc``) a requested payment."""
        token_key, failure = self._resolve_token(token)
        if failure is not None:
            return failure

        if not isinstance(transaction_details, TransactionDetails):
            transaction_details = TransactionDetails.from_mapping(transaction_details)
        details = transaction_details
        service = Service.PAYMENT_CONFIRM
        currency = currency or self.config.currency_code
        amount = q2(amount)

        txn = selectors.find_by_trx_ids(details.bank_trx_id, details.gateway_trx_id)
        if txn is None:
            # Confirmation may come from another process than the request.
            txn = Transaction.objects.create(
                merchant_code=self.config.merchant_code,
                token_key=token_key,
                customer_id=customer_id,
                invoice_id=details.invoice_id,
                bank_trx_id=details.bank_trx_id,
                gateway_trx_id=details.gateway_trx_id,
                amount=amount,
                currency=currency,
                status=TxnStatus.REQUESTED,
                process_date=timezone.now(),
                stmt_date=to_datetime(details.stmt_date),
            )

        try:
            trans_rec = {
                "sepOnlineNo": customer_id,
                "bankTrxId": details.bank_trx_id,
                "sepTrxId": details.gateway_trx_id,
                "invoiceId": details.invoice_id,
                "pmtStatus": str(payment_status),
                "stmtDate": details.stmt_date,
                "processDate": gateway_now(),
                "trxAmount": amount,
                "currency": currency,
            }
            request_log = self._request_log(token_key, trans_rec)
            self.sink.info(service, "Payment confirmation request", {"request": request_log}, txn)
            self._update(txn, request_data=request_log, payment_status=str(payment_status))

            response = self.client.confirm(self.config.merchant_code, token_key, trans_rec)

            self._update(
                txn,
                status=TxnStatus.CONFIRMED if response.ok else TxnStatus.FAILED,
                **self._outcome(response),
            )
            self.sink.info(
                service, "Payment confirmation response", {"response": response.to_dict()}, txn
            )
            return response
        except Exception as e:
            self._record_exception(service, "Payment confirmation error", txn, e)
            raise

    # ------------------------------------------------------------------
    # Ledger queries
    # ------------------------------------------------------------------
    def transactions(self, filters: Mapping[str, Any] | None = None):
        return selectors.transactions(filters)

    def find_transaction(self, pk) -> Transaction | None:
        return selectors.find_transaction(pk)

    def find_transaction_by_invoice_id(self, invoice_id: str) -> Transaction | None:
        return selectors.find_by_invoice_id(invoice_id)

    def find_transactions_by_customer_id(self, customer_id: str):
        return selectors.find_by_customer_id(customer_id)

    def successful_transactions(self):
        return Transaction.objects.successful()

    def failed_transactions(self):
        return Transaction.objects.failed()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _resolve_token(self, token: TokenSource) -> tuple[str, GatewayResponse | None]:
        if isinstance(token, ExplicitToken):
            return token.key, None
        response = self.tokens.get(force_new=False)
        if not response.ok:
            return "", response
        return str(response.get("token_key") or ""), None

    def _request_log(self, token_key: str, trans_rec: dict) -> dict:
        return {
            "merchantCode": self.config.merchant_code,
            "tokenKey": token_key,
            "transRec": {k: (str(v) if isinstance(v, Decimal) else v) for k, v in trans_rec.items()},
        }

    @staticmethod
    def _outcome(response: GatewayResponse) -> dict:
        return {
            "error_code": response.error_code,
            "error_description": response.error_description,
            "response_data": response.to_dict(),
        }

    def _update(self, txn: Transaction, **fields) -> None:
        """Persist an outcome on the ledger row; a failure here never masks the result."""
        try:
            txn.apply(**fields)
        except DatabaseError as e:
            logger.warning("Ledger update failed for transaction %s: %s", txn.pk, e)
            self.sink.error(
                "ledger",
                f"Ledger update failed: {e}",
                {"fields": sorted(fields)},
                txn,
            )

    def _record_exception(self, service: Service, label: str, txn: Transaction, exc: Exception) -> None:
        try:
            txn.mark_exception(str(exc))
        except DatabaseError as e:
            logger.warning("Could not mark transaction %s as failed: %s", txn.pk, e)
        self.sink.error(service, f"{label}: {exc}", _exception_context(exc), txn)


@lru_cache(maxsize=1)
def get_gateway() -> ESadadGateway:
    """Process-wide gateway built from settings; connections live as long as it does."""
    return ESadadGateway.from_settings()


@receiver(setting_changed)
def _reset_gateway(sender, setting, **kwargs):
    if setting.startswith("ESADAD_") or setting == "CACHES":
        get_gateway.cache_clear()
