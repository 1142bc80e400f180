"""
Result Reviewer
===============

Presentation-side handling of completed classifications.

Receives every ClassificationResult from the controller, decides whether
it is good enough to show (top confidence above the acceptance
threshold), and while an accepted result is on screen keeps the
controller's reviewing flag set so camera motion made by the user while
looking at the result does not feed the stability tracker.

The flag is cleared by dismiss(): explicitly (HTTP endpoint) or after
hold_seconds when auto-dismiss is enabled.
"""

import asyncio
import logging
from typing import Optional

from stillgate.models.classification import ClassificationResult
from stillgate.pipeline.controller import FramePipelineController
from stillgate.presentation.broadcaster import EventBroadcaster


logger = logging.getLogger(__name__)


class ResultReviewer:
    """
    Accepts or ignores classification results and manages review time.

    Attributes:
        acceptance_confidence: Top confidence a result must exceed
        hold_seconds: Auto-dismiss delay (0 = manual dismiss only)
        latest: Most recent result, with `accepted` filled in
        accepted_count: Results shown to the user
    """

    def __init__(
        self,
        controller: FramePipelineController,
        broadcaster: Optional[EventBroadcaster] = None,
        acceptance_confidence: float = 0.9,
        hold_seconds: float = 3.0,
    ) -> None:
        if not 0.0 <= acceptance_confidence <= 1.0:
            raise ValueError(
                f"acceptance_confidence must be in [0, 1], got {acceptance_confidence}"
            )
        if hold_seconds < 0:
            raise ValueError(f"hold_seconds must be >= 0, got {hold_seconds}")

        self._controller = controller
        self._broadcaster = broadcaster
        self.acceptance_confidence = acceptance_confidence
        self.hold_seconds = hold_seconds

        self._dismiss_handle: Optional[asyncio.TimerHandle] = None
        self.latest: Optional[ClassificationResult] = None
        self.accepted_count: int = 0

        controller.set_result_listener(self.on_result)

    @property
    def reviewing(self) -> bool:
        return self._controller.reviewing_results

    def is_acceptable(self, result: ClassificationResult) -> bool:
        """Whether the top label is confident enough to show."""
        top = result.top
        return top is not None and top.confidence > self.acceptance_confidence

    def on_result(self, result: ClassificationResult) -> None:
        """Controller result listener."""
        accepted = result.succeeded and self.is_acceptable(result)
        result = result.model_copy(update={"accepted": accepted})
        self.latest = result

        if self._broadcaster is not None:
            self._broadcaster.publish_result(result)

        if not accepted:
            return

        self.accepted_count += 1
        logger.info(
            f"Showing result for frame {result.frame_id}: "
            f"{result.top.label} ({result.top.confidence:.2f})"
        )
        self._controller.set_reviewing_results(True)

        if self.hold_seconds > 0:
            self._cancel_timer()
            loop = asyncio.get_running_loop()
            self._dismiss_handle = loop.call_later(self.hold_seconds, self.dismiss)

    def dismiss(self) -> bool:
        """
        Take the result off screen and resume stability tracking.

        Returns:
            True if a review was in progress
        """
        self._cancel_timer()
        was_reviewing = self._controller.reviewing_results
        self._controller.set_reviewing_results(False)
        if was_reviewing:
            logger.info("Result dismissed, stability tracking resumed")
        return was_reviewing

    def _cancel_timer(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
