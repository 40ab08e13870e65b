import sys
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.append(str(PACKAGE_ROOT))

from aggregate_store import AggregateManager, InMemoryStoreGateway  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def gateway(clock):
    return InMemoryStoreGateway("aggregates", clock=clock)


@pytest.fixture()
def manager(gateway):
    with AggregateManager(gateway) as mgr:
        yield mgr
