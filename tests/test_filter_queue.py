"""
Tests for PersistQ filter queues: tombstones, listings and purge.
"""

from datetime import datetime

import pytest


def values(queue, items):
    return [queue.decode(item) for item in items]


def assert_partition(queue):
    all_items = queue.all_items()
    assert len(queue.active_items()) + len(queue.deleted_items()) == len(all_items)


# ============================================================================
# Soft Delete
# ============================================================================

class TestSoftDelete:
    """Tombstoned items are skipped but still listed."""

    def test_delete_time_should_be_respected(self, filter_factory):
        with filter_factory.create_new() as queue:
            entities = ["One", "Two", "Skipped", "Three"]
            for entity in entities:
                queue.enqueue(entity)

            active = queue.active_items()
            assert len(active) == 4

            queue.delete(active[2])

            assert len(queue.active_items()) == 3
            assert len(queue.deleted_items()) == 1

            dequeued = [queue.decode(queue.dequeue(), str) for _ in range(3)]
            assert dequeued == ["One", "Two", "Three"]

            # dequeue tombstones, so everything is still listed
            assert len(queue.deleted_items()) == 4

            assert queue.purge_deleted_items() == 4
            assert queue.deleted_items() == []

    def test_hard_deletes_should_be_respected(self, filter_factory):
        with filter_factory.create_new() as queue:
            for entity in ["One", "Two", "Three"]:
                queue.enqueue(entity)

            active = queue.active_items()
            queue.delete(active[1], remove_from_store=True)

            active = queue.active_items()
            assert values(queue, active) == ["One", "Three"]
            assert queue.deleted_items() == []

    def test_tombstone_sets_deleted_at(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            item = queue.peek()
            clock.advance(5)
            assert queue.delete(item) is True
            assert item.deleted_at == clock()
            assert queue.deleted_items()[0].deleted_at == clock()

    def test_second_soft_delete_keeps_first_timestamp(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            item = queue.peek()
            queue.delete(item)
            first = item.deleted_at
            clock.advance(5)
            queue.delete(item)
            assert queue.deleted_items()[0].deleted_at == first

    def test_invalidate_keeps_tombstone(self, filter_factory):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            held = queue.dequeue(remove=False)
            queue.delete(queue.all_items()[0])

            assert queue.invalidate(held) is True
            assert len(queue.deleted_items()) == 1
            assert queue.active_items() == []

    def test_stale_copy_keeps_first_timestamp(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            first_copy = queue.peek()
            second_copy = queue.active_items()[0]
            queue.delete(first_copy)
            clock.advance(5)

            assert queue.delete(second_copy) is True
            assert second_copy.deleted_at == first_copy.deleted_at
            assert queue.deleted_items()[0].deleted_at == first_copy.deleted_at

    def test_soft_then_hard_delete(self, filter_factory):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            item = queue.peek()
            queue.delete(item)
            assert queue.delete(item, remove_from_store=True) is True
            assert queue.delete(item, remove_from_store=True) is False
            assert queue.all_items() == []
            assert queue.active_items() == []
            assert queue.deleted_items() == []

    def test_soft_delete_of_removed_item(self, filter_factory):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            item = queue.peek()
            queue.delete(item, remove_from_store=True)
            assert queue.delete(item) is False
            assert item.deleted_at is None

    def test_tombstoned_invisible_item_stays_hidden(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            item = queue.dequeue(remove=False, invisible_timeout=1000)
            queue.delete(item)
            clock.advance(10)
            assert queue.peek() is None
            assert queue.dequeue() is None

    def test_non_removing_dequeue_keeps_item_active(self, filter_factory):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            queue.dequeue(remove=False)
            assert len(queue.active_items()) == 1
            assert queue.deleted_items() == []


# ============================================================================
# Listings
# ============================================================================

class TestListings:
    """Active, deleted and all-item views."""

    def test_partition_invariant(self, filter_factory):
        with filter_factory.create_new() as queue:
            for value in range(10):
                queue.enqueue(value)
                assert_partition(queue)
            for item in queue.active_items()[::3]:
                queue.delete(item)
                assert_partition(queue)
            queue.dequeue()
            assert_partition(queue)

            queue.purge_deleted_items()
            assert queue.deleted_items() == []
            assert queue.all_items() == queue.active_items()

    def test_listings_are_in_insertion_order(self, filter_factory):
        with filter_factory.create_new() as queue:
            for value in "abcde":
                queue.enqueue(value)
            queue.delete(queue.active_items()[1])
            queue.delete(queue.active_items()[2])
            assert values(queue, queue.all_items()) == list("abcde")
            assert values(queue, queue.active_items()) == ["a", "c", "e"]
            assert values(queue, queue.deleted_items()) == ["b", "d"]

    def test_since_filter(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("old")
            clock.advance(60)
            cutoff = clock()
            queue.enqueue("new")
            queue.delete(queue.active_items()[1])

            assert values(queue, queue.all_items(since=cutoff)) == ["new"]
            assert values(queue, queue.deleted_items(since=cutoff)) == ["new"]
            assert queue.active_items(since=cutoff) == []
            assert values(queue, queue.active_items()) == ["old"]

    def test_since_accepts_datetime(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("old")
            clock.advance(60)
            cutoff = datetime.fromtimestamp(clock())
            queue.enqueue("new")
            assert values(queue, queue.all_items(since=cutoff)) == ["new"]

    def test_created_at_from_clock(self, filter_factory, clock):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            assert queue.peek().created_at == clock()


# ============================================================================
# Purge
# ============================================================================

class TestPurge:
    """Permanent removal of tombstones."""

    def test_purge_only_removes_tombstones(self, filter_factory):
        with filter_factory.create_new() as queue:
            for value in range(4):
                queue.enqueue(value)
            queue.delete(queue.active_items()[0])
            assert queue.purge_deleted_items() == 1
            assert values(queue, queue.all_items()) == [1, 2, 3]

    def test_purge_empty(self, filter_factory):
        with filter_factory.create_new() as queue:
            queue.enqueue("x")
            assert queue.purge_deleted_items() == 0
            assert len(queue.all_items()) == 1

    def test_new_tombstones_after_purge(self, filter_factory):
        with filter_factory.create_new() as queue:
            queue.enqueue("a")
            queue.enqueue("b")
            queue.dequeue()
            queue.purge_deleted_items()
            queue.dequeue()
            assert values(queue, queue.deleted_items()) == ["b"]

    def test_tombstones_survive_reopen(self, filter_factory):
        queue = filter_factory.create("durable")
        queue.enqueue("a")
        queue.enqueue("b")
        queue.dequeue()
        queue.dispose()

        with filter_factory.create("durable") as reopened:
            assert values(reopened, reopened.deleted_items()) == ["a"]
            assert reopened.decode(reopened.dequeue()) == "b"

    def test_purge_after_dispose_fails(self, filter_factory):
        from persistq_core import QueueDisposedError

        queue = filter_factory.create_new()
        queue.dispose()
        with pytest.raises(QueueDisposedError):
            queue.purge_deleted_items()
