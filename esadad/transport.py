"""Wire-level transports for the e-SADAD SOAP endpoints.

The client core only needs two things from a transport: open a connection
to an endpoint, and call a named operation on that connection returning a
mapping. ``ZeepTransport`` is the production implementation; tests plug in
an in-memory one through ``ESADAD_TRANSPORT_CLASS`` or by passing an
instance to ``GatewayClient``.
"""
from __future__ import annotations

from typing import Any, Mapping

import requests
from django.utils.module_loading import import_string

from .conf import GatewayConfig
from .exceptions import TransportFault


class BaseTransport:
    def __init__(self, config: GatewayConfig) -> None:
        self.config = config

    def connect(self, endpoint: str) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError

    def call(self, connection: Any, operation: str, *args) -> Mapping[str, Any]:  # pragma: no cover
        raise NotImplementedError


class ZeepTransport(BaseTransport):
    """SOAP over HTTPS with zeep and a shared requests session."""

    def __init__(self, config: GatewayConfig) -> None:
        super().__init__(config)
        self.session = requests.Session()
        self.session.verify = config.verify_tls

    def connect(self, endpoint: str):
        from zeep import Client, Settings
        from zeep.exceptions import Error as ZeepError
        from zeep.transports import Transport

        transport = Transport(
            session=self.session,
            timeout=self.config.timeout,
            operation_timeout=self.config.timeout,
        )
        strict = bool(self.config.transport_options.get("strict", True))
        try:
            return Client(endpoint, transport=transport, settings=Settings(strict=strict))
        except (ZeepError, requests.RequestException, OSError) as e:
            raise TransportFault(f"Failed to create SOAP client: {e}") from e

    def call(self, connection, operation: str, *args) -> Mapping[str, Any]:
        from zeep.exceptions import Error as ZeepError
        from zeep.helpers import serialize_object

        try:
            result = connection.service[operation](*args)
        except (ZeepError, requests.RequestException, OSError) as e:
            raise TransportFault(f"{operation} failed: {e}") from e
        return serialize_object(result, dict) if result is not None else {}


def get_transport(config: GatewayConfig) -> BaseTransport:
    cls = import_string(config.transport_class)
    return cls(config)
