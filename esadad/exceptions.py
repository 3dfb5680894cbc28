class GatewayError(Exception):
    """Base class for failures raised by the e-SADAD client core."""


class TransportFault(GatewayError):
    """Connection, endpoint or protocol-layer failure talking to the gateway.

    Distinct from a business error: those come back as a populated
    ``error_code`` and are never raised.
    """

    def __init__(self, message: str, *, service: str | None = None) -> None:
        super().__init__(message)
        self.service = service


class EncryptionError(GatewayError):
    """Local cryptographic failure while preparing a request."""
