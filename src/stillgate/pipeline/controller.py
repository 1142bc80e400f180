"""
Frame Pipeline Controller
=========================

Orchestrates registration, stability tracking, overlay state and
single-flight classification for each incoming frame.

Per-frame procedure:
    1. Reviewing a result      → skip the frame entirely
    2. No previous frame       → keep frame as reference, reset history
    3. Register previous→frame → record sample on success; the previous
                                 reference advances either way
    4. Evaluate stability      → drive the overlay state machine
    5. Stable and gate free    → dispatch classification asynchronously;
                                 the gate is released on completion

Concurrency:
    process_frame() runs on the event loop, strictly in arrival order.
    Classifications run as separate asyncio tasks. The DispatchGate is
    the only state touched from both sides; everything in PipelineState
    belongs to the frame-delivery side.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from stillgate.classification.engine import ClassificationEngine, ClassificationError
from stillgate.dispatch.gate import DispatchGate
from stillgate.models.classification import ClassificationResult
from stillgate.models.orientation import ExifOrientation
from stillgate.models.state import FrameOutcome, FrameStatus
from stillgate.overlay.state_machine import OverlayStateMachine
from stillgate.registration.registrar import RegistrationAdapter, RegistrationError
from stillgate.stability.evaluator import StabilityEvaluator
from stillgate.stability.history import TranspositionHistory
from stillgate.stream.frame import Frame


logger = logging.getLogger(__name__)


ResultListener = Callable[[ClassificationResult], None]


@dataclass
class PipelineState:
    """
    Mutable state owned by the controller.

    Attributes:
        history: Displacement window
        previous_frame: Reference frame for the next registration
        reviewing_results: Presentation layer is showing a result
    """

    history: TranspositionHistory
    previous_frame: Optional[Frame] = None
    reviewing_results: bool = False


@dataclass
class PipelineMetrics:
    """Counters for controller observability."""

    frames_seen: int = 0
    frames_skipped: int = 0
    frames_primed: int = 0
    frames_processed: int = 0
    registration_failures: int = 0
    stable_frames: int = 0
    dispatches: int = 0
    dispatch_suppressed: int = 0
    classifications_completed: int = 0
    classification_failures: int = 0
    last_frame_id: int = -1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_seen": self.frames_seen,
            "frames_skipped": self.frames_skipped,
            "frames_primed": self.frames_primed,
            "frames_processed": self.frames_processed,
            "registration_failures": self.registration_failures,
            "stable_frames": self.stable_frames,
            "dispatches": self.dispatches,
            "dispatch_suppressed": self.dispatch_suppressed,
            "classifications_completed": self.classifications_completed,
            "classification_failures": self.classification_failures,
            "last_frame_id": self.last_frame_id,
        }


class FramePipelineController:
    """
    Motion-stability gate and single-flight classification dispatcher.

    Composition, not inheritance: the controller holds a registration
    adapter, a classification engine, a dispatch gate and an overlay
    state machine, and owns the PipelineState.

    When constructed without a classification engine (setup failure),
    stability and overlay tracking still run but dispatch is disabled
    and reported as such; it never silently no-ops.

    Example:
        controller = FramePipelineController(
            registrar=PhaseCorrelationRegistrar(),
            classifier=MockClassificationEngine(),
            overlay=OverlayStateMachine(presenter),
        )

        # Inside the frame-delivery task:
        outcome = controller.process_frame(frame, ExifOrientation.UP)
    """

    def __init__(
        self,
        registrar: RegistrationAdapter,
        classifier: Optional[ClassificationEngine],
        overlay: Optional[OverlayStateMachine] = None,
        gate: Optional[DispatchGate] = None,
        history_capacity: int = 15,
        distance_threshold: float = 20.0,
        result_listener: Optional[ResultListener] = None,
        dispatch_disabled_reason: Optional[str] = None,
        log_every_n_frames: int = 30,
    ) -> None:
        """
        Initialize the controller.

        Args:
            registrar: Frame-to-frame registration adapter
            classifier: Classification engine, or None if setup failed
            overlay: Overlay state machine (a presenter-less one by default)
            gate: Dispatch gate (a fresh one by default)
            history_capacity: Stability window length N
            distance_threshold: Manhattan distance threshold
            result_listener: Called with every ClassificationResult
            dispatch_disabled_reason: Why classifier is None
            log_every_n_frames: Periodic state logging interval
        """
        self._registrar = registrar
        self._classifier = classifier
        self._overlay = overlay or OverlayStateMachine()
        self._gate = gate or DispatchGate()
        self._evaluator = StabilityEvaluator(threshold=distance_threshold)
        self._result_listener = result_listener
        self.log_every_n_frames = log_every_n_frames

        if classifier is None:
            self._dispatch_disabled_reason = dispatch_disabled_reason or "no classification engine"
            logger.error(
                f"Classification dispatch DISABLED: {self._dispatch_disabled_reason}"
            )
        else:
            self._dispatch_disabled_reason = None

        self.state = PipelineState(history=TranspositionHistory(capacity=history_capacity))
        self.metrics = PipelineMetrics()

        self._in_flight: Optional[asyncio.Task] = None
        self._last_stable: bool = False
        self.last_result: Optional[ClassificationResult] = None

        logger.info(
            f"FramePipelineController initialized: N={history_capacity}, "
            f"threshold={distance_threshold}, dispatch={'on' if self.dispatch_enabled else 'off'}"
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def dispatch_enabled(self) -> bool:
        """Whether stable frames can be classified at all."""
        return self._classifier is not None

    @property
    def dispatch_disabled_reason(self) -> Optional[str]:
        """Setup error that disabled dispatch, if any."""
        return self._dispatch_disabled_reason

    @property
    def registrar(self) -> RegistrationAdapter:
        return self._registrar

    @property
    def classifier(self) -> Optional[ClassificationEngine]:
        return self._classifier

    @property
    def gate(self) -> DispatchGate:
        return self._gate

    @property
    def overlay(self) -> OverlayStateMachine:
        return self._overlay

    @property
    def history(self) -> TranspositionHistory:
        return self.state.history

    @property
    def reviewing_results(self) -> bool:
        return self.state.reviewing_results

    @property
    def is_stable(self) -> bool:
        """Stability signal computed for the last processed frame."""
        return self._last_stable

    @property
    def classification_in_flight(self) -> bool:
        return self._gate.occupied

    def set_result_listener(self, listener: Optional[ResultListener]) -> None:
        """Register the callback receiving classification results."""
        self._result_listener = listener

    # -------------------------------------------------------------------------
    # Frame delivery
    # -------------------------------------------------------------------------

    def process_frame(
        self,
        frame: Frame,
        orientation: ExifOrientation = ExifOrientation.UP,
    ) -> FrameOutcome:
        """
        Run one pipeline pass for `frame`.

        Must be called in strict arrival order, never concurrently with
        itself, from inside the running event loop (dispatch schedules
        an asyncio task).

        Args:
            frame: Incoming frame
            orientation: EXIF hint forwarded to the classifier

        Returns:
            FrameOutcome describing what happened
        """
        state = self.state
        self.metrics.frames_seen += 1
        self.metrics.last_frame_id = frame.frame_id

        if state.reviewing_results:
            self.metrics.frames_skipped += 1
            return FrameOutcome(frame_id=frame.frame_id, status=FrameStatus.SKIPPED_REVIEWING)

        if state.previous_frame is None:
            state.previous_frame = frame
            state.history.reset()
            self._last_stable = False
            self.metrics.frames_primed += 1
            logger.debug(f"Primed with frame {frame.frame_id}, history reset")
            return FrameOutcome(frame_id=frame.frame_id, status=FrameStatus.PRIMED)

        sample = None
        registration_failed = False
        try:
            sample = self._registrar.align(state.previous_frame, frame)
        except RegistrationError as e:
            registration_failed = True
            self.metrics.registration_failures += 1
            logger.warning(f"Registration failed (frame={frame.frame_id}): {e}")
        except Exception as e:
            registration_failed = True
            self.metrics.registration_failures += 1
            logger.error(f"Registration adapter error (frame={frame.frame_id}): {e}")
        else:
            state.history.record(sample)

        # Sequential chaining: advance even when registration failed
        state.previous_frame = frame

        stable = self._evaluator.is_stable(state.history)
        self._last_stable = stable
        self._overlay.update(stable)

        dispatched = False
        if stable:
            self.metrics.stable_frames += 1
            dispatched = self._try_dispatch(frame, orientation)

        self.metrics.frames_processed += 1

        if self.metrics.frames_processed % self.log_every_n_frames == 0:
            logger.info(
                f"Pipeline [frame {frame.frame_id}]: "
                f"history={len(state.history)}/{state.history.capacity}, "
                f"distance={self._evaluator.distance(state.history):.2f}, "
                f"stable={stable}, overlay={self._overlay.state.value}, "
                f"in_flight={self._gate.occupied}"
            )

        return FrameOutcome(
            frame_id=frame.frame_id,
            status=FrameStatus.PROCESSED,
            sample=sample,
            registration_failed=registration_failed,
            stable=stable,
            dispatched=dispatched,
        )

    def set_reviewing_results(self, reviewing: bool) -> None:
        """
        Pause or resume stability tracking while a result is on screen.

        Resuming drops the previous-frame reference, so the next frame
        re-primes the pipeline and the history starts empty.
        """
        if reviewing == self.state.reviewing_results:
            return
        self.state.reviewing_results = reviewing
        if not reviewing:
            self.state.previous_frame = None
        logger.info(f"Reviewing results: {reviewing}")

    def reset(self) -> None:
        """
        External pipeline reset.

        Clears the previous frame and history and hides the overlay.
        An in-flight classification is left to complete.
        """
        self.state.previous_frame = None
        self.state.history.reset()
        self._last_stable = False
        self._overlay.reset()
        logger.info("Pipeline reset")

    # -------------------------------------------------------------------------
    # Classification dispatch
    # -------------------------------------------------------------------------

    def _try_dispatch(self, frame: Frame, orientation: ExifOrientation) -> bool:
        if self._classifier is None:
            self.metrics.dispatch_suppressed += 1
            return False

        loop = asyncio.get_running_loop()
        if not self._gate.try_acquire(frame):
            return False

        self.metrics.dispatches += 1
        logger.info(f"Stable: dispatching classification for frame {frame.frame_id}")
        self._in_flight = loop.create_task(
            self._classify(frame, orientation),
            name=f"classify-{frame.frame_id}",
        )
        return True

    async def _classify(self, frame: Frame, orientation: ExifOrientation) -> None:
        """Classification worker: run, release the gate, report."""
        started = time.monotonic()
        labels = []
        error: Optional[str] = None

        try:
            labels = await self._classifier.classify(frame, orientation)
        except ClassificationError as e:
            error = str(e)
            logger.warning(f"Classification failed (frame={frame.frame_id}): {e}")
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.error(f"Classification engine error (frame={frame.frame_id}): {e}")
        finally:
            self._gate.release()
            self._in_flight = None

        if error is None:
            self.metrics.classifications_completed += 1
        else:
            self.metrics.classification_failures += 1

        result = ClassificationResult(
            frame_id=frame.frame_id,
            timestamp=time.time(),
            classifications=sorted(labels, key=lambda c: c.confidence, reverse=True),
            latency_seconds=time.monotonic() - started,
            error=error,
        )
        self.last_result = result

        if result.top is not None:
            logger.info(
                f"Classification (frame={frame.frame_id}): "
                f"{result.top.label} : {result.top.confidence:.3f}"
            )

        if self._result_listener is not None:
            try:
                self._result_listener(result)
            except Exception as e:
                logger.error(f"Result listener failed: {e}")

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the in-flight classification, if any, without cancelling it.

        Returns:
            True if nothing is in flight anymore
        """
        task = self._in_flight
        if task is None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("In-flight classification still running after drain timeout")
            return False
        return True

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_metrics(self) -> dict:
        """Get controller metrics for observability."""
        return {
            **self.metrics.to_dict(),
            "history_length": len(self.state.history),
            "history_capacity": self.state.history.capacity,
            "aggregate_distance": round(self._evaluator.distance(self.state.history), 4),
            "stable": self._last_stable,
            "overlay_state": self._overlay.state.value,
            "overlay_transitions": self._overlay.transition_count,
            "reviewing_results": self.state.reviewing_results,
            "dispatch_enabled": self.dispatch_enabled,
            "dispatch_disabled_reason": self._dispatch_disabled_reason,
            "gate": self._gate.metrics(),
        }
