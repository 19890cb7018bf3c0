from typing import Generic, TypeVar, Optional
import threading


T = TypeVar("T")


class SingleSlotQueue(Generic[T]):
    """Latest-wins hand-off between the mining thread and the UI.

    The miner publishes far more often than the UI redraws, so an unread
    snapshot is replaced rather than queued. Calling the queue publishes,
    which makes it usable as a miner observer.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._pending = False
        self._slot: Optional[T] = None
        self._last: Optional[T] = None
        self._closed = False
        self._coalesced = 0

    def __call__(self, item: T) -> None:
        self.publish(item)

    @property
    def closed(self) -> bool:
        with self._condition:
            return self._closed

    @property
    def last(self) -> Optional[T]:
        """Most recently published item, read or not."""
        with self._condition:
            return self._last

    @property
    def coalesced(self) -> int:
        """Number of items overwritten before a consumer saw them."""
        with self._condition:
            return self._coalesced

    def publish(self, item: T) -> None:
        with self._condition:
            if self._closed:
                raise RuntimeError("publish() on a closed queue")
            if self._pending:
                self._coalesced += 1
            self._slot = item
            self._last = item
            self._pending = True
            self._condition.notify()

    def close(self) -> None:
        """Stop the producer side. A pending item can still be read once."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Wait for the next item. Returns None once closed and drained.

        Raises TimeoutError when nothing arrives within `timeout` seconds.
        """
        with self._condition:
            if not self._condition.wait_for(lambda: self._pending or self._closed, timeout):
                raise TimeoutError("queue get() timed out")
            if not self._pending:
                return None
            item, self._slot = self._slot, None
            self._pending = False
            return item
