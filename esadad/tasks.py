from celery import shared_task

from .gateway import get_gateway


@shared_task
def refresh_token(force: bool = True) -> dict:
    """Re-authenticate ahead of expiry so checkout requests hit a warm cache."""
    response = get_gateway().get_token(force_new=force)
    return {
        "ok": response.ok,
        "error_code": response.error_code,
        "from_cache": response.from_cache,
        "expiry_date": response.get("expiry_date"),
    }
