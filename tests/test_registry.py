"""
Tests for PersistQ registries and the process-wide factories.
"""

import threading

import pytest

from persistq_core import (
    AlreadyExistsError,
    FilterQueue,
    FilterQueueFactory,
    NotFoundError,
    Queue,
    QueueFactory,
    RegistryConfig,
    StorageError,
    get_factory,
    reset_factories,
)
from persistq_core.registry import DEFAULT_QUEUE_NAME, memory_backend


# ============================================================================
# Create
# ============================================================================

class TestCreate:
    """Factory semantics of create and create_new."""

    def test_create_returns_live_instance(self, factory):
        first = factory.create("orders")
        assert factory.create("orders") is first
        assert factory.get("orders") is first

    def test_create_new_refuses_live_name(self, factory):
        factory.create("orders")
        with pytest.raises(AlreadyExistsError) as info:
            factory.create_new("orders")
        assert info.value.queue_name == "orders"

    def test_create_new_without_name_resets_default(self, factory):
        queue = factory.create_new()
        assert queue.name == DEFAULT_QUEUE_NAME
        queue.enqueue("stale")
        queue.dispose()

        with factory.create_new() as fresh:
            assert fresh.peek() is None

    def test_create_new_with_name_keeps_storage(self, factory):
        queue = factory.create_new("kept")
        queue.enqueue("value")
        queue.dispose()

        with factory.create_new("kept") as reopened:
            assert reopened.decode(reopened.dequeue()) == "value"

    def test_create_new_rejects_empty_name(self, factory):
        with pytest.raises(ValueError):
            factory.create_new("")
        assert len(factory) == 0

    def test_filter_reset_keeps_plain_default(self, queue_factory, filter_factory):
        plain = queue_factory.default()
        plain.enqueue("keep")

        with filter_factory.create_new() as filtered:
            assert filtered.name == plain.name
            assert filtered.peek() is None

        plain.dispose()
        with queue_factory.default() as reopened:
            assert reopened.decode(reopened.dequeue()) == "keep"

    def test_default_uses_default_name(self, factory):
        queue = factory.default()
        assert queue.name == DEFAULT_QUEUE_NAME
        assert factory.default() is queue

    def test_custom_default_name(self, tmp_path, clock):
        factory = QueueFactory(RegistryConfig(storage_dir=str(tmp_path), default_name="main"), clock=clock)
        with factory.create_new() as queue:
            assert queue.name == "main"

    def test_factory_kinds(self, queue_factory, filter_factory):
        assert isinstance(queue_factory.create("a"), Queue)
        assert isinstance(filter_factory.create("a"), FilterQueue)

    def test_invalid_name_rejected(self, factory):
        with pytest.raises(ValueError):
            factory.create("../escape")
        assert len(factory) == 0


# ============================================================================
# Lookup and Release
# ============================================================================

class TestLookup:
    """get, names and release on dispose."""

    def test_get_unknown_name(self, factory):
        with pytest.raises(NotFoundError):
            factory.get("missing")

    def test_get_does_not_create(self, factory):
        with pytest.raises(NotFoundError):
            factory.get("lazy")
        assert "lazy" not in factory

    def test_names_and_contains(self, factory):
        factory.create("b")
        factory.create("a")
        assert factory.names() == ["a", "b"]
        assert "a" in factory
        assert len(factory) == 2

    def test_dispose_releases_name(self, factory):
        queue = factory.create("temp")
        queue.dispose()
        assert "temp" not in factory
        with pytest.raises(NotFoundError):
            factory.get("temp")
        assert factory.create("temp") is not queue

    def test_dispose_all(self, factory):
        queues = [factory.create(name) for name in ("a", "b", "c")]
        assert factory.dispose_all() == 3
        assert all(queue.disposed for queue in queues)
        assert factory.names() == []

    def test_plain_and_filter_registries_are_separate(self, queue_factory, filter_factory):
        plain = queue_factory.create("shared")
        filtered = filter_factory.create("shared")
        plain.enqueue("plain")
        assert filtered.peek() is None


# ============================================================================
# Concurrency
# ============================================================================

class TestConcurrentCreate:
    """Racing creators end up with one instance."""

    @pytest.mark.parametrize("factory_type", [QueueFactory, FilterQueueFactory])
    def test_racing_create_returns_one_instance(self, factory_type, clock):
        factory = factory_type(backend_factory=memory_backend, clock=clock)
        barrier = threading.Barrier(8)
        results = []
        results_lock = threading.Lock()

        def create():
            barrier.wait()
            queue = factory.create("contended")
            with results_lock:
                results.append(queue)

        threads = [threading.Thread(target=create) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert all(queue is results[0] for queue in results)
        assert not results[0].disposed
        assert factory.names() == ["contended"]
        factory.dispose_all()

    def test_racing_create_new_has_one_winner(self, clock):
        factory = QueueFactory(backend_factory=memory_backend, clock=clock)
        barrier = threading.Barrier(6)
        outcomes = []
        outcomes_lock = threading.Lock()

        def create_new():
            barrier.wait()
            try:
                factory.create_new("only")
                outcome = "created"
            except AlreadyExistsError:
                outcome = "exists"
            with outcomes_lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=create_new) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("created") == 1
        assert outcomes.count("exists") == 5
        factory.dispose_all()

    def test_create_waits_for_pending_create_new(self, clock):
        opening = threading.Event()
        release = threading.Event()

        def slow_reset_backend(config, item_type):
            if config.reset:
                opening.set()
                release.wait(5)
            return memory_backend(config, item_type)

        factory = QueueFactory(backend_factory=slow_reset_backend, clock=clock)
        created, fetched = [], []
        creator = threading.Thread(target=lambda: created.append(factory.create_new()))
        creator.start()
        assert opening.wait(5)

        fetcher = threading.Thread(target=lambda: fetched.append(factory.default()))
        fetcher.start()
        fetcher.join(0.2)
        assert fetcher.is_alive()
        with pytest.raises(AlreadyExistsError):
            factory.create_new(DEFAULT_QUEUE_NAME)

        release.set()
        creator.join()
        fetcher.join()

        assert fetched[0] is created[0]
        assert factory.names() == [DEFAULT_QUEUE_NAME]
        factory.dispose_all()

    def test_failed_create_new_releases_name(self, clock):
        attempts = []

        def flaky_backend(config, item_type):
            attempts.append(config.name)
            if len(attempts) == 1:
                raise StorageError("disk full", queue_name=config.name)
            return memory_backend(config, item_type)

        factory = QueueFactory(backend_factory=flaky_backend, clock=clock)
        with pytest.raises(StorageError):
            factory.create_new("broken")
        assert "broken" not in factory

        with factory.create_new("broken") as queue:
            assert factory.get("broken") is queue


# ============================================================================
# Process-wide Factories
# ============================================================================

class TestProcessFactories:
    """get_factory and reset_factories."""

    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path):
        reset_factories(RegistryConfig(storage_dir=str(tmp_path)))
        yield
        reset_factories()

    def test_same_factory_each_call(self):
        assert get_factory() is get_factory("queue")
        assert get_factory("filter") is get_factory("filter")
        assert isinstance(get_factory("filter"), FilterQueueFactory)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            get_factory("priority")

    def test_config_applies(self, tmp_path):
        queue = get_factory().create("app")
        assert queue.config.storage_dir == str(tmp_path)
        assert (tmp_path / "app.db").exists()

    def test_reset_disposes_queues(self, tmp_path):
        queue = get_factory().create("app")
        old = get_factory()
        reset_factories(RegistryConfig(storage_dir=str(tmp_path)))
        assert queue.disposed
        assert get_factory() is not old
