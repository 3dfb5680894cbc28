from __future__ import annotations

from typing import Any, Mapping

from django.core.exceptions import FieldDoesNotExist

from .models import Transaction

EXACT_FILTERS = ("status", "customer_id", "invoice_id", "bank_trx_id", "gateway_trx_id")


def find_transaction(pk) -> Transaction | None:
    return Transaction.objects.filter(pk=pk).first()


def find_by_invoice_id(invoice_id: str) -> Transaction | None:
    return Transaction.objects.filter(invoice_id=invoice_id).order_by("-created_at", "-id").first()


def find_by_customer_id(customer_id: str):
    return Transaction.objects.filter(customer_id=customer_id)


def find_by_trx_ids(bank_trx_id: str, gateway_trx_id: str) -> Transaction | None:
    if not bank_trx_id or not gateway_trx_id:
        return None
    return (
        Transaction.objects.filter(bank_trx_id=bank_trx_id, gateway_trx_id=gateway_trx_id)
        .order_by("created_at", "id")
        .first()
    )


def transactions(filters: Mapping[str, Any] | None = None):
    """Ledger listing with the filters the transactions screen offers.

    ``from_date``/``to_date`` bound ``created_at`` (inclusive). Sorting
    defaults to newest first; ``sort_field`` must name a Transaction field.
    """
    filters = dict(filters or {})
    qs = Transaction.objects.all()

    for name in EXACT_FILTERS:
        value = filters.get(name)
        if value not in (None, ""):
            qs = qs.filter(**{name: value})
    if filters.get("from_date"):
        qs = qs.filter(created_at__gte=filters["from_date"])
    if filters.get("to_date"):
        qs = qs.filter(created_at__lte=filters["to_date"])

    sort_field = filters.get("sort_field") or "created_at"
    try:
        Transaction._meta.get_field(sort_field)
    except FieldDoesNotExist:
        raise ValueError(f"Cannot sort transactions by {sort_field!r}")
    direction = (filters.get("sort_direction") or "desc").lower()
    prefix = "" if direction == "asc" else "-"
    return qs.order_by(f"{prefix}{sort_field}", f"{prefix}id")
