"""
Transposition History
=====================

Bounded FIFO of frame-to-frame displacement samples.

Invariants:
    - len(history) <= capacity at all times
    - Recording at capacity evicts the oldest sample
    - Cleared whenever the pipeline has no valid previous frame
"""

import logging
from collections import deque
from typing import Deque, Iterator, Tuple

from stillgate.models.displacement import DisplacementSample


logger = logging.getLogger(__name__)


class TranspositionHistory:
    """
    Fixed-capacity window of the most recent displacement samples.

    Attributes:
        capacity: Maximum number of samples held (N)

    Example:
        history = TranspositionHistory(capacity=15)
        history.record(DisplacementSample(dx=0.4, dy=-0.1))
        sum_x, sum_y = history.aggregate()
    """

    def __init__(self, capacity: int = 15) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._samples: Deque[DisplacementSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        """Maximum number of samples held."""
        return self._capacity

    def record(self, sample: DisplacementSample) -> None:
        """Append a sample, evicting the oldest when at capacity."""
        self._samples.append(sample)

    def reset(self) -> None:
        """Empty the history."""
        self._samples.clear()

    def is_full(self) -> bool:
        """True when the window holds exactly `capacity` samples."""
        return len(self._samples) == self._capacity

    def aggregate(self) -> Tuple[float, float]:
        """
        Sum of all displacement components currently held.

        This is the raw sum, not the mean; see StabilityEvaluator.

        Returns:
            (sum_x, sum_y)
        """
        sum_x = 0.0
        sum_y = 0.0
        for sample in self._samples:
            sum_x += sample.dx
            sum_y += sample.dy
        return sum_x, sum_y

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[DisplacementSample]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"TranspositionHistory({len(self._samples)}/{self._capacity})"
