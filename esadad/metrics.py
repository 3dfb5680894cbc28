from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger("esadad.metrics")

_CALLS: dict[tuple[str, str], int] = {}
# recent samples only, per service
LATENCY_WINDOW = 1000
_LATENCY: dict[str, deque] = {}


def record_call(service: str, outcome: str, seconds: float | None = None) -> None:
    """Count one remote call by (service, outcome) and keep its latency."""
    key = (service, outcome)
    _CALLS[key] = _CALLS.get(key, 0) + 1
    if seconds is not None:
        _LATENCY.setdefault(service, deque(maxlen=LATENCY_WINDOW)).append(float(seconds))
    logger.info(
        "esadad.call",
        extra={"service": service, "outcome": outcome, "seconds": seconds, "count": _CALLS[key]},
    )


@contextmanager
def timed(service: str):
    """Time a remote call; outcome is "ok", "business_error" or "fault".

    The block sets ``state["outcome"]`` when the call returned normally.
    """
    state = {"outcome": "fault"}
    t0 = time.perf_counter()
    try:
        yield state
    finally:
        record_call(service, state["outcome"], time.perf_counter() - t0)


def calls(service: str, outcome: str | None = None) -> int:
    if outcome is not None:
        return _CALLS.get((service, outcome), 0)
    return sum(n for (svc, _), n in _CALLS.items() if svc == service)


def latencies(service: str) -> list[float]:
    return list(_LATENCY.get(service, []))


def reset() -> None:
    _CALLS.clear()
    _LATENCY.clear()
