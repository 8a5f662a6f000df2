"""Shared fixtures for the PersistQ test suite."""

import pytest

from persistq_core import FilterQueueFactory, QueueFactory, RegistryConfig


class FakeClock:
    """Manually advanced time source (POSIX seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry_config(tmp_path):
    return RegistryConfig(storage_dir=str(tmp_path))


@pytest.fixture
def queue_factory(registry_config, clock):
    factory = QueueFactory(registry_config, clock=clock)
    yield factory
    factory.dispose_all()


@pytest.fixture
def filter_factory(registry_config, clock):
    factory = FilterQueueFactory(registry_config, clock=clock)
    yield factory
    factory.dispose_all()


@pytest.fixture(params=["queue", "filter"])
def factory(request, registry_config, clock):
    """Run a test against both plain and filter queues."""
    factory_type = QueueFactory if request.param == "queue" else FilterQueueFactory
    factory = factory_type(registry_config, clock=clock)
    yield factory
    factory.dispose_all()
