import json
from decimal import Decimal
from unittest import mock

import pytest
from django.db import DatabaseError

from esadad import metrics
from esadad.enums import EXCEPTION_CODE, REDACTED, PaymentStatus, Service, TxnStatus
from esadad.exceptions import EncryptionError, TransportFault
from esadad.gateway import TransactionDetails
from esadad.models import GatewayLog, Transaction
from esadad.tests.stubs import expiry_in, fault
from esadad.tokens import ExplicitToken

pytestmark = pytest.mark.django_db


def mk_requested(**kwargs):
    data = {
        "merchant_code": "M1",
        "customer_id": "C1",
        "invoice_id": "INV1",
        "bank_trx_id": "B1",
        "gateway_trx_id": "S1",
        "amount": Decimal("100.00"),
        "status": TxnStatus.REQUESTED,
    }
    data.update(kwargs)
    return Transaction.objects.create(**data)


DETAILS = TransactionDetails(bank_trx_id="B1", gateway_trx_id="S1", invoice_id="INV1")


# ---------------------------------------------------------------------
# authenticate
# ---------------------------------------------------------------------
def test_authenticate_confirms_ledger_row(gateway, stub):
    stub.script(
        Service.AUTHENTICATION,
        {"errorCode": "000", "tokenKey": "T1", "expiryDate": expiry_in(30)},
    )

    response = gateway.authenticate()

    assert response.ok
    assert stub.last_args(Service.AUTHENTICATION) == ("M1", "p")
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.CONFIRMED
    assert txn.token_key == "T1"
    assert txn.error_code == "000"
    assert txn.request_data == {"merchantCode": "M1", "password": REDACTED}
    assert metrics.calls("authentication", "ok") == 1


def test_authenticate_through_cache_stores_token(gateway, stub):
    stub.script(
        Service.AUTHENTICATION,
        {"errorCode": "000", "tokenKey": "T1", "expiryDate": "20250101120000"},
    )

    gateway.get_token()

    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.CONFIRMED
    cached = GatewayLog.objects.get(message="Token cached")
    # expiry already in the past, so the one-minute floor applies
    assert cached.context["cache_seconds"] == 60
    assert gateway.tokens.cache.get("esadad_token_M1")["token_key"] == "T1"


def test_authenticate_transport_fault_is_recorded_and_raised(gateway, stub):
    stub.script(Service.AUTHENTICATION, fault("auth endpoint down"))

    with pytest.raises(TransportFault):
        gateway.authenticate()

    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.FAILED
    assert txn.error_code == EXCEPTION_CODE
    assert "auth endpoint down" in txn.error_description
    assert metrics.calls("authentication", "fault") == 1


def test_malformed_response_is_a_transport_fault(gateway, stub):
    stub.script(Service.AUTHENTICATION, {"tokenKey": "T1"})

    with pytest.raises(TransportFault):
        gateway.authenticate()

    assert Transaction.objects.get().error_code == EXCEPTION_CODE


def test_success_without_token_key_is_a_fault(gateway, stub):
    stub.script(Service.AUTHENTICATION, {"errorCode": "000", "expiryDate": expiry_in(30)})

    with pytest.raises(TransportFault) as exc:
        gateway.initiate_payment("C1", "secret")

    assert exc.value.service == "authentication"
    assert stub.count(Service.PAYMENT_INITIATION) == 0
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.FAILED
    assert txn.error_code == EXCEPTION_CODE
    assert "tokenKey" in txn.error_description
    assert gateway.tokens.cache.get("esadad_token_M1") is None


def test_connection_failure_is_logged(gateway, stub):
    stub.connect_error = TransportFault("Failed to create SOAP client: no route")

    with pytest.raises(TransportFault):
        gateway.authenticate()

    assert GatewayLog.objects.filter(
        service=Service.AUTHENTICATION, message__startswith="Failed to create SOAP client"
    ).exists()
    assert Transaction.objects.get().error_code == EXCEPTION_CODE


def test_connections_are_opened_once_per_service(gateway, stub):
    gateway.authenticate()
    gateway.authenticate()
    gateway.initiate_payment("C1", "secret")

    assert stub.connects == [
        "https://esadad.test/auth?wsdl",
        "https://esadad.test/init?wsdl",
    ]


# ---------------------------------------------------------------------
# token short-circuit
# ---------------------------------------------------------------------
@pytest.mark.parametrize(
    "call",
    [
        lambda g: g.initiate_payment("C1", "secret"),
        lambda g: g.request_payment("C1", "1234", "INV1", "100.00"),
        lambda g: g.confirm_payment("C1", DETAILS, "100.00"),
    ],
)
def test_token_failure_is_returned_verbatim(gateway, stub, call):
    stub.script(Service.AUTHENTICATION, {"errorCode": "014", "errorDescription": "Merchant blocked"})

    response = call(gateway)

    assert not response.ok
    assert response.error_code == "014"
    assert response.error_description == "Merchant blocked"
    # only the authentication attempt itself is in the ledger
    assert Transaction.objects.count() == 1
    assert not Transaction.objects.exclude(customer_id="").exists()
    assert len(stub.calls) == 1


# ---------------------------------------------------------------------
# initiate_payment
# ---------------------------------------------------------------------
def test_initiate_payment_marks_requested(gateway, stub):
    response = gateway.initiate_payment("C1", "secret", token=ExplicitToken("T1"))

    assert response.ok
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.REQUESTED
    assert txn.customer_id == "C1"
    assert txn.token_key == "T1"
    _merchant, _token, trans_rec = stub.last_args(Service.PAYMENT_INITIATION)
    assert trans_rec == {"sepOnlineNo": "C1", "password": "encrypted_secret"}


def test_initiate_payment_business_error(gateway, stub):
    stub.script(Service.PAYMENT_INITIATION, {"errorCode": "051", "errorDescription": "Unknown customer"})

    response = gateway.initiate_payment("C1", "secret", token=ExplicitToken("T1"))

    assert response.error_code == "051"
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.FAILED
    assert txn.error_description == "Unknown customer"
    assert metrics.calls("payment_initiation", "business_error") == 1


def test_secrets_never_reach_the_logs(gateway, stub):
    gateway.initiate_payment("C1", "secret")
    gateway.request_payment("C1", "otp-7Q", "INV1", "100.00")

    for txn in Transaction.objects.exclude(customer_id=""):
        rec = txn.request_data["transRec"]
        assert REDACTED in rec.values()
    dumped = json.dumps(
        list(GatewayLog.objects.values("message", "context", "request_data"))
        + list(Transaction.objects.values("request_data")),
        default=str,
    )
    assert "secret" not in dumped
    assert "otp-7Q" not in dumped
    assert "encrypted_" not in dumped


def test_encryption_error_aborts_before_remote_call(gateway, stub):
    with mock.patch.object(gateway.encryptor, "encrypt", side_effect=EncryptionError("bad key")):
        with pytest.raises(EncryptionError):
            gateway.initiate_payment("C1", "secret", token=ExplicitToken("T1"))

    assert stub.count(Service.PAYMENT_INITIATION) == 0
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.FAILED
    assert txn.error_code == EXCEPTION_CODE
    assert "bad key" in txn.error_description


def test_initial_ledger_failure_aborts_operation(gateway, stub):
    with mock.patch.object(Transaction.objects, "create", side_effect=DatabaseError("disk full")):
        with pytest.raises(DatabaseError):
            gateway.initiate_payment("C1", "secret", token=ExplicitToken("T1"))

    assert stub.count(Service.PAYMENT_INITIATION) == 0


def test_ledger_update_failure_does_not_mask_result(gateway, stub):
    with mock.patch.object(Transaction, "apply", side_effect=DatabaseError("locked")):
        response = gateway.initiate_payment("C1", "secret", token=ExplicitToken("T1"))

    assert response.ok
    assert GatewayLog.objects.filter(service="ledger", message__startswith="Ledger update failed").exists()


# ---------------------------------------------------------------------
# request_payment
# ---------------------------------------------------------------------
def test_request_payment_stores_gateway_ids(gateway, stub):
    response = gateway.request_payment("C1", "1234", "INV1", 100, token=ExplicitToken("T1"))

    assert response.ok
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.REQUESTED
    assert txn.bank_trx_id == "B1"
    assert txn.gateway_trx_id == "S1"
    assert txn.amount == Decimal("100.00")
    assert txn.stmt_date is not None
    _merchant, _token, trans_rec = stub.last_args(Service.PAYMENT_REQUEST)
    assert trans_rec["otp"] == "encrypted_1234"
    assert trans_rec["trxAmount"] == Decimal("100.00")
    assert trans_rec["currency"] == "886"
    assert len(trans_rec["processDate"]) == 14


def test_request_payment_business_error_leaves_no_bank_id(gateway, stub):
    stub.script(Service.PAYMENT_REQUEST, {"errorCode": "057", "errorDescription": "Wrong OTP"})

    response = gateway.request_payment("C1", "1234", "INV1", Decimal("100.00"), token=ExplicitToken("T1"))

    assert response.error_code == "057"
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.FAILED
    assert txn.error_code == "057"
    assert txn.bank_trx_id is None


def test_request_payment_custom_currency(gateway, stub):
    gateway.request_payment("C1", "1234", "INV1", "5", currency="840", token=ExplicitToken("T1"))

    assert Transaction.objects.get().currency == "840"


# ---------------------------------------------------------------------
# confirm_payment
# ---------------------------------------------------------------------
def test_confirm_reuses_matching_entry(gateway, stub):
    existing = mk_requested()

    response = gateway.confirm_payment("C1", DETAILS, "100.00", token=ExplicitToken("T1"))

    assert response.ok
    assert Transaction.objects.count() == 1
    existing.refresh_from_db()
    assert existing.status == TxnStatus.CONFIRMED
    assert existing.payment_status == PaymentStatus.NEW


def test_confirm_creates_one_entry_for_unknown_pair(gateway, stub):
    mk_requested(bank_trx_id="B9", gateway_trx_id="S9")
    stub.script(Service.PAYMENT_CONFIRM, {"errorCode": "062", "errorDescription": "Expired"})

    gateway.confirm_payment("C1", DETAILS, "100.00", token=ExplicitToken("T1"))

    created = Transaction.objects.get(bank_trx_id="B1", gateway_trx_id="S1")
    assert Transaction.objects.count() == 2
    assert created.status == TxnStatus.FAILED
    assert created.error_code == "062"
    assert created.logs.filter(message="Payment confirmation request").exists()


def test_confirm_new_entry_starts_as_requested(gateway, stub):
    statuses = []

    def spy(conn, operation, *args):
        statuses.append(Transaction.objects.get().status)
        return {"errorCode": "000"}

    with mock.patch.object(stub, "call", side_effect=spy):
        gateway.confirm_payment("C1", DETAILS, "100.00", token=ExplicitToken("T1"))

    assert statuses == [TxnStatus.REQUESTED]


def test_confirm_accepts_mapping_and_cancel_status(gateway, stub):
    mk_requested()

    gateway.confirm_payment(
        "C1",
        {"bank_trx_id": "B1", "sep_trx_id": "S1", "invoice_id": "INV1"},
        "100.00",
        payment_status=PaymentStatus.CANCEL,
        token=ExplicitToken("T1"),
    )

    _merchant, _token, trans_rec = stub.last_args(Service.PAYMENT_CONFIRM)
    assert trans_rec["pmtStatus"] == "PmtCanc"
    assert trans_rec["sepTrxId"] == "S1"
    assert Transaction.objects.get().payment_status == "PmtCanc"


@pytest.mark.parametrize("existing", [True, False])
def test_confirm_transport_fault_marks_entry(gateway, stub, existing):
    if existing:
        mk_requested()
    stub.script(Service.PAYMENT_CONFIRM, fault("socket timeout"))

    with pytest.raises(TransportFault) as exc:
        gateway.confirm_payment("C1", DETAILS, "100.00", token=ExplicitToken("T1"))

    assert exc.value.service == "payment_confirm"
    txn = Transaction.objects.get()
    assert txn.status == TxnStatus.FAILED
    assert txn.error_code == EXCEPTION_CODE
    assert "socket timeout" in txn.error_description
    assert txn.logs.filter(level="error", message__startswith="Payment confirmation error").exists()


# ---------------------------------------------------------------------
# queries
# ---------------------------------------------------------------------
def test_successful_and_failed_transactions(gateway):
    ok = mk_requested(error_code="000")
    bad = mk_requested(error_code="057", bank_trx_id="B2")
    mk_requested(error_code="", bank_trx_id="B3")

    assert list(gateway.successful_transactions()) == [ok]
    assert list(gateway.failed_transactions()) == [bad]
    assert gateway.find_transaction(ok.pk) == ok
    assert gateway.find_transaction(0) is None
    assert gateway.find_transactions_by_customer_id("C1").count() == 3
