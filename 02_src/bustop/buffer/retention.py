"""RetentionBuffer implementation."""


class RetentionBuffer:
    """Bounded series of float samples backing one plotted signal.

    The backing list may grow up to twice the capacity; it is then cut back
    to the most recent ``capacity`` samples in one pass.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._samples: list[float] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, sample: float) -> None:
        """Append a sample, compacting once twice the capacity is exceeded."""
        self._samples.append(float(sample))
        if len(self._samples) > 2 * self._capacity:
            del self._samples[: len(self._samples) - self._capacity]

    def snapshot(self, limit: int) -> list[float]:
        """Copy of up to the last ``limit`` samples, oldest first."""
        if limit <= 0:
            return []
        return self._samples[-limit:]

    def clear(self) -> None:
        """Drop all samples."""
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)
