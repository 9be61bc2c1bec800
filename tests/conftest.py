import pytest
import pytest_asyncio

from blockrush.identity import create_identities
from fakes import KEYS, FakeClock, FakeNetwork


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def network():
    return FakeNetwork()


@pytest_asyncio.fixture
async def identities(network):
    return await create_identities(network, KEYS[:2])


@pytest.fixture(autouse=True)
def _no_rpc_override(monkeypatch):
    monkeypatch.delenv("RPC_URL", raising=False)
