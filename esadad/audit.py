from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError, transaction

from .enums import LogLevel
from .models import GatewayLog, Transaction

fallback_logger = logging.getLogger(__name__)


class AuditSink:
    """Best-effort event log: Python logger first, then the GatewayLog table.

    Never raises. A failed database write is reported on this module's
    logger and otherwise ignored.
    """

    def __init__(self, channel: str = "esadad") -> None:
        self.logger = logging.getLogger(channel)

    def info(self, service: str, message: str, context: dict | None = None, txn=None) -> None:
        self.write(LogLevel.INFO, service, message, context, txn)

    def error(self, service: str, message: str, context: dict | None = None, txn=None) -> None:
        self.write(LogLevel.ERROR, service, message, context, txn)

    def write(
        self,
        level: str,
        service: str,
        message: str,
        context: dict | None = None,
        txn: Transaction | None = None,
    ) -> GatewayLog | None:
        context = dict(context or {})
        if txn is not None:
            context.setdefault("transaction_id", txn.pk)
        try:
            self.logger.log(
                logging.ERROR if level == LogLevel.ERROR else logging.INFO,
                message,
                extra={"service": service, "context": context},
            )
        except Exception:  # noqa: BLE001
            fallback_logger.exception("esadad log handler failed")

        try:
            with transaction.atomic():
                return GatewayLog.objects.create(
                    transaction=txn if txn is not None and txn.pk else None,
                    level=level,
                    message=message[:2000],
                    context=_jsonable(context),
                    service=service,
                    request_data=_jsonable(context.get("request")),
                    response_data=_jsonable(context.get("response")),
                )
        except (DatabaseError, TypeError, ValueError) as e:
            fallback_logger.error(
                "Failed to log to database: %s",
                e,
                extra={"original_message": message, "service": service},
            )
            return None


def _jsonable(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value
