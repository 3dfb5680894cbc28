import pytest
from django.core.cache import caches

from esadad import metrics
from esadad.gateway import get_gateway


@pytest.fixture(autouse=True)
def _fresh_state():
    get_gateway.cache_clear()
    caches["default"].clear()
    metrics.reset()
    yield
    get_gateway.cache_clear()


@pytest.fixture
def gateway(db):
    return get_gateway()


@pytest.fixture
def stub(gateway):
    return gateway.client.transport
