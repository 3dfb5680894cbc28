from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Union

from django.core.cache import BaseCache
from django.utils import timezone

from .audit import AuditSink
from .client import GatewayResponse
from .enums import TOKEN_CACHE
from .utils import parse_gateway_timestamp

MIN_TTL_SECONDS = 60
EXPIRY_BUFFER_MINUTES = 5


@dataclass(frozen=True)
class ExplicitToken:
    """Use this token key as-is; the token cache is never consulted."""

    key: str

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("ExplicitToken requires a non-empty key")


class ResolveFromCache:
    """Use the cached token, authenticating first when there is none."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "RESOLVE_FROM_CACHE"


RESOLVE_FROM_CACHE = ResolveFromCache()
TokenSource = Union[ExplicitToken, ResolveFromCache]


def token_source(key: str | None) -> TokenSource:
    """Map an optional raw token key (e.g. from a form) to a TokenSource."""
    return ExplicitToken(key) if key else RESOLVE_FROM_CACHE


@dataclass(frozen=True)
class CachedToken:
    token_key: str
    expiry_date: str
    ttl: int


def compute_ttl(expiry_date: str, now: datetime | None = None) -> int:
    """Seconds to keep a token: five minutes short of expiry, never under a minute.

    ``expiry_date`` is the gateway's 14-digit local timestamp. Raises
    ValueError if it cannot be parsed.
    """
    expires_at = parse_gateway_timestamp(expiry_date)
    now = now or timezone.now()
    minutes_until_expiry = int((expires_at - now).total_seconds() // 60)
    return max(MIN_TTL_SECONDS, (minutes_until_expiry - EXPIRY_BUFFER_MINUTES) * 60)


class TokenCache:
    """Expiry-aware cache of the current authentication token for one merchant."""

    def __init__(
        self,
        cache: BaseCache,
        key: str,
        authenticate: Callable[[], GatewayResponse],
        sink: AuditSink,
    ) -> None:
        self.cache = cache
        self.key = key
        self.authenticate = authenticate
        self.sink = sink

    def get(self, force_new: bool = False) -> GatewayResponse:
        if not force_new:
            cached = self.cache.get(self.key)
            if cached:
                self.sink.info(
                    TOKEN_CACHE,
                    "Using cached token",
                    {"token_key": cached.get("token_key"), "expiry_date": cached.get("expiry_date")},
                )
                return GatewayResponse.from_payload(cached, from_cache=True)
        else:
            self.forget()

        response = self.authenticate()
        if response.ok:
            self.store(response)
        return response

    def store(self, response: GatewayResponse) -> CachedToken | None:
        token_key = response.get("token_key")
        expiry_date = response.get("expiry_date")
        try:
            if not token_key or not expiry_date:
                raise ValueError("authentication response has no token_key/expiry_date")
            ttl = compute_ttl(str(expiry_date))
        except ValueError as e:
            self.sink.error(
                TOKEN_CACHE,
                f"Failed to cache token: {e}",
                {"token_key": token_key, "expiry_date": expiry_date},
            )
            return None

        self.cache.set(self.key, response.to_dict(), ttl)
        self.sink.info(
            TOKEN_CACHE,
            "Token cached",
            {"token_key": token_key, "expiry_date": expiry_date, "cache_seconds": ttl},
        )
        return CachedToken(token_key=str(token_key), expiry_date=str(expiry_date), ttl=ttl)

    def forget(self) -> None:
        self.cache.delete(self.key)
