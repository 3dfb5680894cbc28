from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .enums import Service

DEFAULT_CURRENCY = "886"  # Yemeni Riyal
DEFAULT_TRANSPORT = "esadad.transport.ZeepTransport"


def transactions_table() -> str:
    return getattr(settings, "ESADAD_TRANSACTIONS_TABLE", "esadad_transactions")


def logs_table() -> str:
    return getattr(settings, "ESADAD_LOGS_TABLE", "esadad_logs")


@dataclass(frozen=True)
class Endpoints:
    """One endpoint locator (WSDL URL) per remote operation."""

    authentication: str
    payment_initiation: str
    payment_request: str
    payment_confirm: str

    @classmethod
    def from_mapping(cls, urls: Mapping[str, str]) -> "Endpoints":
        known = set(Service.values)
        unknown = sorted(set(urls) - known)
        if unknown:
            raise ImproperlyConfigured(
                f"ESADAD_WSDL_URLS has unknown services: {', '.join(unknown)}"
            )
        missing = sorted(name for name in known if not urls.get(name))
        if missing:
            raise ImproperlyConfigured(
                f"ESADAD_WSDL_URLS is missing endpoints for: {', '.join(missing)}"
            )
        return cls(**{name: urls[name] for name in known})

    def for_service(self, service: Service | str) -> str:
        return getattr(self, Service(service).value)


@dataclass(frozen=True)
class GatewayConfig:
    merchant_code: str
    merchant_password: str
    endpoints: Endpoints
    public_key_path: str = ""
    currency_code: str = DEFAULT_CURRENCY
    log_channel: str = "esadad"
    cache_alias: str = "default"
    transport_class: str = DEFAULT_TRANSPORT
    verify_tls: bool = True
    timeout: float = 30.0
    transport_options: dict[str, Any] = field(default_factory=dict)

    @property
    def token_cache_key(self) -> str:
        return f"esadad_token_{self.merchant_code}"

    @classmethod
    def from_settings(cls) -> "GatewayConfig":
        merchant_code = getattr(settings, "ESADAD_MERCHANT_CODE", "") or ""
        if not merchant_code:
            raise ImproperlyConfigured("ESADAD_MERCHANT_CODE is not set.")
        return cls(
            merchant_code=merchant_code,
            merchant_password=getattr(settings, "ESADAD_MERCHANT_PASSWORD", "") or "",
            endpoints=Endpoints.from_mapping(getattr(settings, "ESADAD_WSDL_URLS", {}) or {}),
            public_key_path=getattr(settings, "ESADAD_PUBLIC_KEY_PATH", "") or "",
            currency_code=getattr(settings, "ESADAD_CURRENCY_CODE", DEFAULT_CURRENCY),
            log_channel=getattr(settings, "ESADAD_LOG_CHANNEL", "esadad"),
            cache_alias=getattr(settings, "ESADAD_CACHE_ALIAS", "default"),
            transport_class=getattr(settings, "ESADAD_TRANSPORT_CLASS", DEFAULT_TRANSPORT),
            verify_tls=bool(getattr(settings, "ESADAD_VERIFY_TLS", True)),
            timeout=float(getattr(settings, "ESADAD_TIMEOUT", 30)),
            transport_options=dict(getattr(settings, "ESADAD_TRANSPORT_OPTIONS", {}) or {}),
        )
