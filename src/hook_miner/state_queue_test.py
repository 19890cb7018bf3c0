import threading

import pytest

from hook_miner.state_queue import SingleSlotQueue


class TestSingleSlotQueue:
    """Test the latest-wins progress channel"""

    def test_latest_wins(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.publish(1)
        queue.publish(2)
        queue.publish(3)
        assert queue.get(timeout=1) == 3

    def test_callable_as_observer(self):
        queue: SingleSlotQueue[str] = SingleSlotQueue()
        queue("progress")
        assert queue.get(timeout=1) == "progress"

    def test_get_times_out(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        with pytest.raises(TimeoutError):
            queue.get(timeout=0.01)

    def test_close_returns_none(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.close()
        assert queue.closed
        assert queue.get(timeout=1) is None

    def test_pending_value_survives_close(self):
        """The last snapshot is still delivered after the producer closes"""
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.publish(7)
        queue.close()
        assert queue.get(timeout=1) == 7
        assert queue.get(timeout=1) is None

    def test_consumer_wakes_on_publish(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        received = []

        def consume():
            while (item := queue.get(timeout=5)) is not None:
                received.append(item)

        consumer = threading.Thread(target=consume)
        consumer.start()
        queue.publish(1)
        queue.close()
        consumer.join(timeout=5)
        assert not consumer.is_alive()
        assert received == [1]

    def test_counts_coalesced_items(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.publish(1)
        queue.publish(2)
        assert queue.get(timeout=1) == 2
        queue.publish(3)
        assert queue.coalesced == 1
        assert queue.last == 3

    def test_last_survives_reads(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        assert queue.last is None
        queue.publish(5)
        queue.get(timeout=1)
        assert queue.last == 5

    def test_publish_after_close(self):
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.close()
        with pytest.raises(RuntimeError):
            queue.publish(1)
