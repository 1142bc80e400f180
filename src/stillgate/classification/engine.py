"""
Classification Engine
=====================

Classification abstraction consumed by the pipeline controller.

This module provides the ClassificationEngine protocol, the error
taxonomy of the classification path, and MockClassificationEngine.

Design Rules:
    - classify() is async and never blocks the frame-delivery loop
    - Any per-call failure surfaces as ClassificationError
    - Backend unavailability at startup surfaces as ClassificationSetupError
"""

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from stillgate.stream.frame import Frame
from stillgate.models.classification import Classification
from stillgate.models.orientation import ExifOrientation


logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when a single classification call fails."""
    pass


class ClassificationSetupError(Exception):
    """Raised when a classification backend cannot be initialized."""
    pass


class ClassificationEngine(Protocol):
    """
    Protocol for classification backends.

    All implementations must provide an async `classify` method that
    takes a Frame plus its orientation hint and returns labels ordered
    by confidence, highest first.

    Implemented by:
        - MockClassificationEngine (deterministic, for testing/dev)
        - VisionClassificationEngine (Google Cloud Vision)
    """

    async def classify(
        self,
        frame: Frame,
        orientation: ExifOrientation,
    ) -> List[Classification]:
        """
        Classify a frame.

        Raises:
            ClassificationError: If the backend call fails
        """
        ...


class MockClassificationEngine:
    """
    Deterministic mock classification engine.

    Generates stable, predictable labels using the frame_id as a seed:
        - Top label cycles through the configured labels
        - Top confidence is spread over [0.80, 0.99]
        - Runner-up labels get strictly lower confidences

    Attributes:
        labels: Label vocabulary
        delay_seconds: Simulated backend latency
        fail_every: Make every N-th call fail (0 = never)
    """

    def __init__(
        self,
        labels: Optional[Sequence[str]] = None,
        delay_seconds: float = 0.0,
        fail_every: int = 0,
    ) -> None:
        """
        Initialize mock classification engine.

        Args:
            labels: Label vocabulary (at least one)
            delay_seconds: Simulated latency per call
            fail_every: Inject a ClassificationError every N calls
        """
        self.labels = list(labels) if labels else ["object"]
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        if fail_every < 0:
            raise ValueError(f"fail_every must be >= 0, got {fail_every}")
        self.delay_seconds = delay_seconds
        self.fail_every = fail_every
        self.call_count: int = 0

        logger.info(
            f"MockClassificationEngine initialized: labels={len(self.labels)}, "
            f"delay={delay_seconds}s"
        )

    async def classify(
        self,
        frame: Frame,
        orientation: ExifOrientation,
    ) -> List[Classification]:
        """Produce deterministic labels for `frame`."""
        self.call_count += 1

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self.fail_every and self.call_count % self.fail_every == 0:
            raise ClassificationError(f"Injected failure on call {self.call_count}")

        spread = (frame.frame_id * 7919) % 100 / 99.0
        top_confidence = 0.80 + 0.19 * spread

        results = []
        count = len(self.labels)
        for rank in range(min(count, 3)):
            label = self.labels[(frame.frame_id + rank) % count]
            results.append(Classification(
                label=label,
                confidence=round(top_confidence / (rank + 1), 4),
            ))
        return results

    def get_metrics(self) -> dict:
        """Get mock engine metrics for observability."""
        return {
            "call_count": self.call_count,
            "delay_seconds": self.delay_seconds,
            "fail_every": self.fail_every,
        }
