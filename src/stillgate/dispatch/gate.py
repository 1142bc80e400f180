"""
Inference Dispatch Gate
=======================

Single-slot concurrency guard around classification.

The gate is either Empty or Occupied(frame). It is the only state shared
between the frame-delivery context (which acquires) and the
classification-completion context (which releases), so both operations
are serialized by a lock.

Contract:
    - try_acquire(frame) succeeds only when Empty; otherwise no side effect
    - release() returns to Empty; exactly once per successful acquire
"""

import logging
import threading
from typing import Optional

from stillgate.stream.frame import Frame


logger = logging.getLogger(__name__)


class DispatchGate:
    """
    At-most-one-in-flight marker for classification.

    Attributes:
        occupied: Whether a classification currently holds the gate
        current_frame: Frame held by the in-flight classification
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[Frame] = None

        self._acquired_count: int = 0
        self._rejected_count: int = 0
        self._released_count: int = 0
        self._spurious_release_count: int = 0

    @property
    def occupied(self) -> bool:
        """Whether the gate is held."""
        with self._lock:
            return self._frame is not None

    @property
    def current_frame(self) -> Optional[Frame]:
        """Frame held by the in-flight classification, if any."""
        with self._lock:
            return self._frame

    def try_acquire(self, frame: Frame) -> bool:
        """
        Occupy the gate with `frame` if it is Empty.

        Returns:
            True if the gate was acquired, False if already occupied
        """
        with self._lock:
            if self._frame is not None:
                self._rejected_count += 1
                return False
            self._frame = frame
            self._acquired_count += 1
        logger.debug(f"Gate acquired by frame {frame.frame_id}")
        return True

    def release(self) -> None:
        """
        Return the gate to Empty.

        Releasing an Empty gate is a caller bug; it is logged and
        counted but never raised, so a completion path cannot crash.
        """
        with self._lock:
            frame, self._frame = self._frame, None
            if frame is None:
                self._spurious_release_count += 1
            else:
                self._released_count += 1

        if frame is None:
            logger.warning("Gate released while empty")
        else:
            logger.debug(f"Gate released by frame {frame.frame_id}")

    def metrics(self) -> dict:
        """Get gate metrics for observability."""
        with self._lock:
            return {
                "occupied": self._frame is not None,
                "in_flight_frame_id": self._frame.frame_id if self._frame else None,
                "acquired": self._acquired_count,
                "rejected": self._rejected_count,
                "released": self._released_count,
                "spurious_releases": self._spurious_release_count,
            }
