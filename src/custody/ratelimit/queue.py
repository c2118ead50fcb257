"""Rate-limit queue — bounded FIFO of disbursement history per recipient.

Each queue is addressed by monotonic first/last indices over an
index → entry map:

    initialize()  → first = 1, last = 0           (empty)
    enqueue(e)    → last += 1; entries[last] = e
    dequeue()     → e = entries.pop(first); first += 1

The queue is empty iff last < first. Whether a queue has ever been used is
a separate initialized flag; an empty initialized queue and a never-touched
queue are different states.

Queues for every (tenant, token, recipient) triple live in a QueueBook,
a single mapping keyed by the composite tuple.
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterator, List, Optional

from custody.errors import (
    AlreadyInitialized,
    EmptyQueue,
    IndexOutOfRange,
    NotInitialized,
)
from custody.models.treasury import QueueEntry, QueueKey


class RateLimitQueue:
    """FIFO of QueueEntry records with O(1) enqueue, dequeue and peek.

    Usage:
        queue = RateLimitQueue()
        queue.initialize()
        queue.enqueue(0, 50)
        queue.enqueue(1000, 50)
        queue.peek_front()       # QueueEntry(timestamp=0, quantity=50)
        queue.dequeue()
        len(queue)               # 1
    """

    def __init__(self) -> None:
        self._first = 1
        self._last = 0
        self._entries: Dict[int, QueueEntry] = {}
        self._initialized = False

    def initialize(self) -> None:
        if self._initialized:
            raise AlreadyInitialized("Queue already initialized")
        self._first = 1
        self._last = 0
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def first(self) -> int:
        return self._first

    @property
    def last(self) -> int:
        return self._last

    def length(self) -> int:
        if self._last >= self._first:
            return self._last - self._first + 1
        return 0

    def __len__(self) -> int:
        return self.length()

    def is_empty(self) -> bool:
        return self.length() == 0

    def enqueue(self, timestamp: int, quantity: int) -> QueueEntry:
        """Append an entry after the current back of the queue."""
        if not self._initialized:
            raise NotInitialized("Cannot enqueue on an uninitialized queue")
        entry = QueueEntry(timestamp=timestamp, quantity=quantity)
        self._last += 1
        self._entries[self._last] = entry
        return entry

    def dequeue(self) -> QueueEntry:
        """Remove and return the front entry."""
        if not self._initialized:
            raise NotInitialized("Cannot dequeue from an uninitialized queue")
        if self.is_empty():
            raise EmptyQueue("Cannot dequeue from an empty queue")
        entry = self._entries.pop(self._first)
        self._first += 1
        return entry

    def peek_front(self) -> QueueEntry:
        if self.is_empty():
            raise EmptyQueue("Queue is empty")
        return self._entries[self._first]

    def peek_back(self) -> QueueEntry:
        if self.is_empty():
            raise EmptyQueue("Queue is empty")
        return self._entries[self._last]

    def at(self, offset: int) -> QueueEntry:
        """Entry at 0-based offset from the front.

        Raises:
            IndexOutOfRange: If offset is negative or >= length().
        """
        size = self.length()
        if offset < 0 or offset >= size:
            raise IndexOutOfRange(
                f"Offset {offset} out of range for queue of length {size}",
                offset=offset,
                length=size,
            )
        return self._entries[self._first + offset]

    def __iter__(self) -> Iterator[QueueEntry]:
        """Oldest to newest."""
        for index in range(self._first, self._last + 1):
            yield self._entries[index]

    def entries(self) -> List[QueueEntry]:
        return list(self)


class QueueBook:
    """Composite-key mapping (tenant, token, recipient) → RateLimitQueue.

    Queues are created lazily and never removed; only their stale entries
    are evicted by the disbursement guard.
    """

    def __init__(self) -> None:
        self._queues: Dict[QueueKey, RateLimitQueue] = {}

    @staticmethod
    def key(tenant: int, token: Hashable, recipient: str) -> QueueKey:
        return (tenant, token, recipient)

    def get(self, key: QueueKey) -> Optional[RateLimitQueue]:
        return self._queues.get(key)

    def get_or_create(self, key: QueueKey) -> RateLimitQueue:
        queue = self._queues.get(key)
        if queue is None:
            queue = RateLimitQueue()
            queue.initialize()
            self._queues[key] = queue
        return queue

    def __contains__(self, key: object) -> bool:
        return key in self._queues

    def __len__(self) -> int:
        return len(self._queues)

    def keys(self) -> List[QueueKey]:
        return list(self._queues)

    def total_entries(self) -> int:
        return sum(len(q) for q in self._queues.values())
