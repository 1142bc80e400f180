"""
Stability Evaluator
===================

Turns the transposition history into a boolean stability signal.

Rule:
    stable  <=>  history is full  AND  |sum_x| + |sum_y| < threshold

A full window of near-zero displacements is taken as evidence that the
camera is motionless. The aggregate is the raw sum of the window, so
with the default N = 15 and threshold = 20.0 the camera is still when
the mean per-frame drift stays below 20/15 ≈ 1.33 px (Manhattan).
"""

import logging

from stillgate.stability.history import TranspositionHistory


logger = logging.getLogger(__name__)


class StabilityEvaluator:
    """
    Manhattan-distance stability predicate over a full history window.

    Attributes:
        threshold: Exclusive upper bound on the aggregate distance
    """

    def __init__(self, threshold: float = 20.0) -> None:
        if threshold <= 0:
            raise ValueError(f"threshold must be > 0, got {threshold}")
        self.threshold = threshold

    @staticmethod
    def distance(history: TranspositionHistory) -> float:
        """Manhattan distance of the summed window."""
        sum_x, sum_y = history.aggregate()
        return abs(sum_x) + abs(sum_y)

    def is_stable(self, history: TranspositionHistory) -> bool:
        """
        Evaluate the stability predicate.

        Returns False until the window is full (insufficient evidence).
        """
        if not history.is_full():
            return False
        return self.distance(history) < self.threshold
