"""In-memory transport used by the test settings (``ESADAD_TRANSPORT_CLASS``)."""
from __future__ import annotations

from datetime import timedelta

from django.utils import timezone

from esadad.client import OPERATIONS
from esadad.enums import Service
from esadad.exceptions import TransportFault
from esadad.transport import BaseTransport
from esadad.utils import GATEWAY_TS_FORMAT


def expiry_in(minutes: int) -> str:
    return (timezone.localtime() + timedelta(minutes=minutes)).strftime(GATEWAY_TS_FORMAT)


def default_payload(service: Service) -> dict:
    if service == Service.AUTHENTICATION:
        return {
            "errorCode": "000",
            "errorDescription": "Success",
            "tokenKey": "T1",
            "expiryDate": expiry_in(60),
        }
    if service == Service.PAYMENT_REQUEST:
        return {
            "errorCode": "000",
            "errorDescription": "Success",
            "bankTrxId": "B1",
            "sepTrxId": "S1",
            "invoiceId": "INV1",
            "stmtDate": timezone.localtime().strftime(GATEWAY_TS_FORMAT),
        }
    return {"errorCode": "000", "errorDescription": "Success"}


class StubTransport(BaseTransport):
    """Records every connect/call and answers from a per-service script.

    A scripted entry is either a payload mapping or an exception instance to
    raise. The last entry of a script is sticky; with no script the service
    answers with its default success payload.
    """

    def __init__(self, config) -> None:
        super().__init__(config)
        self.scripts: dict[str, list] = {}
        self.connects: list[str] = []
        self.calls: list[tuple[str, tuple]] = []
        self.connect_error: Exception | None = None

    def script(self, service, *results) -> "StubTransport":
        self.scripts[OPERATIONS[Service(service)]] = list(results)
        return self

    def connect(self, endpoint: str):
        if self.connect_error is not None:
            raise self.connect_error
        self.connects.append(endpoint)
        return endpoint

    def call(self, connection, operation: str, *args):
        self.calls.append((operation, args))
        queue = self.scripts.get(operation)
        if queue:
            result = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            service = next(s for s, op in OPERATIONS.items() if op == operation)
            result = default_payload(service)
        if isinstance(result, Exception):
            raise result
        return result

    def count(self, service) -> int:
        operation = OPERATIONS[Service(service)]
        return sum(1 for op, _ in self.calls if op == operation)

    def last_args(self, service) -> tuple:
        operation = OPERATIONS[Service(service)]
        return [args for op, args in self.calls if op == operation][-1]


def fault(message: str = "connection reset by peer") -> TransportFault:
    return TransportFault(message)
