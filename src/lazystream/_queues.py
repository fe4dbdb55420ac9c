from collections import deque


class GrowingRingBuffer:
    """
    A FIFO buffer without capacity limit.

    Single owner; no locking.
    """

    def __init__(self):
        self._queue = deque()

    def push(self, item):
        self._queue.append(item)

    def shift(self):
        """
        Remove and return the oldest element.

        Raises ``IndexError`` if the buffer is empty.
        """
        return self._queue.popleft()

    def __len__(self):
        return len(self._queue)

    def __getitem__(self, idx: int):
        return self._queue[idx]

    def empty(self) -> bool:
        return len(self._queue) == 0

    def full(self) -> bool:
        return False

    def __repr__(self):
        return f"{self.__class__.__name__}(size={len(self)})"


class RingBuffer(GrowingRingBuffer):
    """
    A FIFO buffer holding at most ``capacity`` elements.

    Besides FIFO access, elements can be read, replaced, or removed
    by position, which is what the shuffle stage needs.
    """

    def __init__(self, capacity: int):
        """
        Parameters
        ----------
        capacity
            Max number of elements in the buffer. Must be positive.
        """
        assert capacity > 0
        super().__init__()
        self.capacity = capacity

    def push(self, item):
        if self.full():
            raise OverflowError(f"{self!r} is full")
        self._queue.append(item)

    def full(self) -> bool:
        return len(self._queue) >= self.capacity

    def replace(self, idx: int, item):
        """
        Put ``item`` in slot ``idx`` and return what was there.

        The number of elements does not change.
        """
        z = self._queue[idx]
        self._queue[idx] = item
        return z

    def excise(self, idx: int):
        """
        Remove and return the element in slot ``idx``.

        The last element is moved into the vacated slot, so this is O(1)
        but does not preserve the order of the remaining elements.
        """
        q = self._queue
        if idx < 0:
            idx += len(q)
        z = q[idx]
        last = q.pop()
        if idx < len(q):
            q[idx] = last
        return z

    def __repr__(self):
        return f"{self.__class__.__name__}(size={len(self)}, capacity={self.capacity})"
