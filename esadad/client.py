from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from . import metrics
from .audit import AuditSink
from .conf import GatewayConfig
from .enums import SUCCESS_CODE, Service
from .exceptions import TransportFault
from .transport import BaseTransport, get_transport
from .utils import snake_case

OPERATIONS = {
    Service.AUTHENTICATION: "merc_online_authentication",
    Service.PAYMENT_INITIATION: "merc_online_payment_initiation",
    Service.PAYMENT_REQUEST: "merc_online_payment_request",
    Service.PAYMENT_CONFIRM: "merc_online_payment_confirm",
}

# Gateway field names that do not snake-case to what the ledger calls them
FIELD_ALIASES = {
    "sepTrxId": "gateway_trx_id",
    "sep_trx_id": "gateway_trx_id",
}


@dataclass
class GatewayResponse:
    """Normalized result of a remote operation (or of a token lookup)."""

    error_code: str
    error_description: str = ""
    fields: dict[str, Any] = field(default_factory=dict)
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error_code == SUCCESS_CODE

    def get(self, key: str, default=None):
        return self.fields.get(key, default)

    def __getitem__(self, key: str):
        if key == "error_code":
            return self.error_code
        if key == "error_description":
            return self.error_description
        return self.fields[key]

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "error_description": self.error_description,
            **self.fields,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, from_cache: bool = False) -> "GatewayResponse":
        """Build from a raw gateway mapping (camelCase or snake_case keys).

        Raises TransportFault when the payload is not a mapping or carries no
        error code at all.
        """
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise TransportFault(f"Malformed gateway response: {type(payload).__name__}")
        normalized: dict[str, Any] = {}
        for key, value in payload.items():
            normalized[FIELD_ALIASES.get(key) or snake_case(key)] = value
        code = normalized.pop("error_code", None)
        if code is None or code == "":
            raise TransportFault("Malformed gateway response: missing errorCode")
        description = normalized.pop("error_description", "") or ""
        return cls(
            error_code=str(code),
            error_description=str(description),
            fields=normalized,
            from_cache=from_cache,
        )


class GatewayClient:
    """Dispatches the four remote operations.

    One connection per service, opened on first use and kept for the life
    of this client.
    """

    def __init__(
        self,
        config: GatewayConfig,
        transport: BaseTransport | None = None,
        sink: AuditSink | None = None,
    ) -> None:
        self.config = config
        self.transport = transport or get_transport(config)
        self.sink = sink or AuditSink(config.log_channel)
        self._connections: dict[Service, Any] = {}

    def connection(self, service: Service):
        service = Service(service)
        if service not in self._connections:
            endpoint = self.config.endpoints.for_service(service)
            try:
                self._connections[service] = self.transport.connect(endpoint)
            except TransportFault as e:
                e.service = service.value
                self.sink.error(
                    service.value,
                    f"Failed to create SOAP client: {e}",
                    {"endpoint": endpoint},
                )
                raise
        return self._connections[service]

    def invoke(self, service: Service, *args) -> GatewayResponse:
        service = Service(service)
        conn = self.connection(service)
        with metrics.timed(service.value) as state:
            try:
                payload = self.transport.call(conn, OPERATIONS[service], *args)
                response = GatewayResponse.from_payload(payload)
            except TransportFault as e:
                e.service = service.value
                raise
            state["outcome"] = "ok" if response.ok else "business_error"
        return response

    def authenticate(self, merchant_code: str, password: str) -> GatewayResponse:
        return self.invoke(Service.AUTHENTICATION, merchant_code, password)

    def initiate(self, merchant_code: str, token_key: str, trans_rec: dict) -> GatewayResponse:
        return self.invoke(Service.PAYMENT_INITIATION, merchant_code, token_key, trans_rec)

    def request(self, merchant_code: str, token_key: str, trans_rec: dict) -> GatewayResponse:
        return self.invoke(Service.PAYMENT_REQUEST, merchant_code, token_key, trans_rec)

    def confirm(self, merchant_code: str, token_key: str, trans_rec: dict) -> GatewayResponse:
        return self.invoke(Service.PAYMENT_CONFIRM, merchant_code, token_key, trans_rec)
