import math
from collections import deque
from collections.abc import Iterator
from typing import Optional, Union

Number = Union[int, float]


class SampleWindow:
    """
    A FIFO of numeric samples with an optional capacity, keeping track of
    the minimum, maximum and average of the samples it currently holds.

    Pushing a sample into a full window evicts the oldest one::

        window = SampleWindow(2)
        window.push(1)  # [1]
        window.push(2)  # [1, 2]
        window.push(3)  # [2, 3]

    The minimum and maximum are maintained with monotonic queues in amortized
    constant time. The average is the correctly rounded mean of the samples
    held, recomputed with :func:`math.fsum` on the first read after a change,
    so it always lies between the minimum and the maximum. An empty window
    reports 0 for all three values.
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        self._capacity = capacity
        self._samples: deque[Number] = deque()
        self._ascending: deque[Number] = deque()
        self._descending: deque[Number] = deque()
        self._average: Optional[float] = None

    def __iter__(self) -> Iterator[Number]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return f"SampleWindow({list(self._samples)!r}, capacity={self._capacity!r})"

    @property
    def capacity(self) -> Optional[int]:
        """
        Maximum number of samples, or `None` if the window is unbounded.
        """
        return self._capacity

    @capacity.setter
    def capacity(self, value: Optional[int]) -> None:
        self._capacity = value
        if value is not None:
            while len(self._samples) > value:
                self.pop()

    @property
    def size(self) -> int:
        return len(self._samples)

    @property
    def front(self) -> Optional[Number]:
        return self._samples[0] if self._samples else None

    @property
    def back(self) -> Optional[Number]:
        return self._samples[-1] if self._samples else None

    @property
    def minimum(self) -> Number:
        return self._ascending[0] if self._ascending else 0

    @property
    def maximum(self) -> Number:
        return self._descending[0] if self._descending else 0

    @property
    def average(self) -> float:
        if self._average is None:
            if self._samples:
                average = math.fsum(self._samples) / len(self._samples)
                self._average = max(self.minimum, min(average, self.maximum))
            else:
                self._average = 0
        return self._average

    def push(self, value: Number) -> "SampleWindow":
        self._samples.append(value)
        self._average = None

        # drop candidates which can never be the extremum again
        while self._ascending and self._ascending[-1] > value:
            self._ascending.pop()
        self._ascending.append(value)
        while self._descending and self._descending[-1] < value:
            self._descending.pop()
        self._descending.append(value)

        if self._capacity is not None and len(self._samples) > self._capacity:
            self.pop()
        return self

    def pop(self) -> Optional[Number]:
        if not self._samples:
            return None

        value = self._samples.popleft()
        if self._ascending[0] == value:
            self._ascending.popleft()
        if self._descending[0] == value:
            self._descending.popleft()

        self._average = None
        return value

    def clear(self) -> "SampleWindow":
        self._samples.clear()
        self._ascending.clear()
        self._descending.clear()
        self._average = None
        return self
