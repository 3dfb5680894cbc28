from __future__ import annotations

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

TWODP = Decimal("0.01")
GATEWAY_TS_FORMAT = "%Y%m%d%H%M%S"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def q2(x) -> Decimal:
    """Quantize to 2 dp, half-up. Accepts Decimal/int/str/float."""
    d = x if isinstance(x, Decimal) else Decimal(str(x))
    return d.quantize(TWODP, rounding=ROUND_HALF_UP)


def gateway_now() -> str:
    """Current local time in the gateway's 14-digit timestamp format."""
    return timezone.localtime().strftime(GATEWAY_TS_FORMAT)


def parse_gateway_timestamp(value: str) -> datetime:
    """Parse ``YYYYMMDDHHMMSS`` into an aware datetime in the current timezone.

    Raises ValueError for anything else.
    """
    raw = (value or "").strip()
    if len(raw) != 14 or not raw.isdigit():
        raise ValueError(f"Not a gateway timestamp: {value!r}")
    return timezone.make_aware(datetime.strptime(raw, GATEWAY_TS_FORMAT))


def to_datetime(value) -> datetime | None:
    """Best-effort conversion of a gateway date value to an aware datetime.

    The gateway normally sends the 14-digit format but ISO strings and
    datetime objects (as zeep deserializes xsd:dateTime) are accepted too.
    Returns None when nothing sensible can be made of it.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        try:
            return parse_gateway_timestamp(raw)
        except ValueError:
            pass
        try:
            dt = parse_datetime(raw)
        except ValueError:
            dt = None
        if dt is None:
            try:
                d = parse_date(raw)
            except ValueError:
                d = None
            if d is None:
                return None
            dt = datetime(d.year, d.month, d.day)
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()
