"""
Presentation Tests
==================

Tests for the event broadcaster and the result reviewer.
"""

import asyncio
import threading

import pytest

from stillgate.models.classification import Classification, ClassificationResult
from stillgate.overlay import OverlayStateMachine
from stillgate.pipeline import FramePipelineController
from stillgate.presentation import EventBroadcaster, ResultReviewer

from conftest import ControlledClassifier, ScriptedRegistrar


def _drain_queue(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def _result(confidence: float, error=None) -> ClassificationResult:
    labels = [] if error else [Classification(label="mug", confidence=confidence)]
    return ClassificationResult(
        frame_id=15, timestamp=1700000000.0, classifications=labels, error=error
    )


class TestEventBroadcaster:
    """Fan-out to subscriber queues."""

    def test_unbound_delivers_directly(self):
        async def scenario():
            broadcaster = EventBroadcaster()
            queue = broadcaster.subscribe()
            broadcaster.set_overlay_visible(True)
            return _drain_queue(queue), broadcaster.overlay_visible

        events, visible = asyncio.run(scenario())
        assert events == [{"type": "overlay", "visible": True}]
        assert visible

    def test_publish_from_other_thread(self):
        async def scenario():
            broadcaster = EventBroadcaster()
            broadcaster.bind(asyncio.get_running_loop())
            queue = broadcaster.subscribe()

            thread = threading.Thread(target=broadcaster.set_overlay_visible, args=(True,))
            thread.start()
            thread.join()

            return await asyncio.wait_for(queue.get(), timeout=1.0)

        assert asyncio.run(scenario()) == {"type": "overlay", "visible": True}

    def test_slow_subscriber_loses_oldest(self):
        async def scenario():
            broadcaster = EventBroadcaster(max_queue_size=2)
            queue = broadcaster.subscribe()
            for visible in [True, False, True]:
                broadcaster.set_overlay_visible(visible)
            return _drain_queue(queue)

        events = asyncio.run(scenario())
        assert [e["visible"] for e in events] == [False, True]

    def test_result_event(self):
        async def scenario():
            broadcaster = EventBroadcaster()
            queue = broadcaster.subscribe()
            broadcaster.publish_result(_result(0.95))
            broadcaster.unsubscribe(queue)
            broadcaster.publish_result(_result(0.95))
            return _drain_queue(queue)

        events = asyncio.run(scenario())
        assert len(events) == 1
        assert events[0]["type"] == "result"
        assert events[0]["classifications"][0]["label"] == "mug"


class TestResultReviewer:
    """Acceptance and review time."""

    def _setup(self, hold_seconds=0.0, confidence=0.95):
        classifier = ControlledClassifier(confidence=confidence)
        broadcaster = EventBroadcaster()
        controller = FramePipelineController(
            registrar=ScriptedRegistrar(),
            classifier=classifier,
            overlay=OverlayStateMachine(broadcaster),
        )
        reviewer = ResultReviewer(controller, broadcaster, hold_seconds=hold_seconds)
        return controller, classifier, broadcaster, reviewer

    async def _classify_once(self, controller, classifier, make_frame):
        for i in range(16):
            controller.process_frame(make_frame(i))
        await asyncio.sleep(0)
        classifier.complete()
        await controller.drain(timeout=1.0)

    def test_confident_result_starts_review(self, make_frame):
        async def scenario():
            controller, classifier, broadcaster, reviewer = self._setup()
            queue = broadcaster.subscribe()
            await self._classify_once(controller, classifier, make_frame)

            assert reviewer.latest.accepted
            assert reviewer.reviewing
            assert controller.reviewing_results
            assert reviewer.accepted_count == 1

            events = _drain_queue(queue)
            assert [e["type"] for e in events] == ["overlay", "result"]
            assert events[1]["accepted"] is True

        asyncio.run(scenario())

    def test_threshold_is_strict(self, make_frame):
        async def scenario():
            controller, classifier, _, reviewer = self._setup(confidence=0.9)
            await self._classify_once(controller, classifier, make_frame)

            assert not reviewer.latest.accepted
            assert not controller.reviewing_results

        asyncio.run(scenario())

    def test_failed_result_not_accepted(self):
        async def scenario():
            _, _, _, reviewer = self._setup()
            reviewer.on_result(_result(0.0, error="backend down"))
            return reviewer

        reviewer = asyncio.run(scenario())
        assert not reviewer.latest.accepted
        assert not reviewer.reviewing

    def test_auto_dismiss(self, make_frame):
        async def scenario():
            controller, classifier, _, reviewer = self._setup(hold_seconds=0.05)
            await self._classify_once(controller, classifier, make_frame)
            assert controller.reviewing_results

            await asyncio.sleep(0.15)
            assert not controller.reviewing_results

        asyncio.run(scenario())

    def test_manual_dismiss(self, make_frame):
        async def scenario():
            controller, classifier, _, reviewer = self._setup()
            await self._classify_once(controller, classifier, make_frame)

            assert reviewer.dismiss() is True
            assert reviewer.dismiss() is False
            assert controller.state.previous_frame is None

        asyncio.run(scenario())

    def test_invalid_parameters(self):
        controller = FramePipelineController(registrar=ScriptedRegistrar(), classifier=None)
        with pytest.raises(ValueError):
            ResultReviewer(controller, acceptance_confidence=1.5)
        with pytest.raises(ValueError):
            ResultReviewer(controller, hold_seconds=-1.0)
