"""
StillGate Main Application
==========================

FastAPI entry point for the motion-stability gate.

Wiring:
    frame source -> FrameBuffer -> process_frames() -> FramePipelineController
    controller -> OverlayStateMachine -> EventBroadcaster -> /ws/events
    controller -> ClassificationEngine -> ResultReviewer -> /ws/events

Endpoints:
    GET  /                - Service information
    GET  /health          - Liveness probe (is process alive?)
    GET  /ready           - Readiness probe (pipeline running + dispatch enabled?)
    GET  /metrics         - Component metrics
    GET  /result          - Latest classification result
    POST /review/dismiss  - Dismiss the shown result, resume tracking
    POST /pipeline/reset  - Clear history and hide the overlay
    WS   /ws/events       - Overlay and result events
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from stillgate.config import ClassificationConfig, Settings, settings
from stillgate.classification import (
    ClassificationEngine,
    ClassificationSetupError,
    MockClassificationEngine,
    VisionClassificationEngine,
)
from stillgate.models.orientation import exif_orientation_from_device
from stillgate.overlay import OverlayStateMachine
from stillgate.pipeline import FramePipelineController
from stillgate.presentation import EventBroadcaster, ResultReviewer
from stillgate.registration import create_registrar
from stillgate.stream import FrameBuffer, FrameConsumer, VideoFrameSource, VideoSourceError


logger = logging.getLogger(__name__)

FrameSource = Union[FrameConsumer, VideoFrameSource]


# =============================================================================
# Global State
# =============================================================================

# Shutdown flag
_shutdown_flag: bool = False

# Frame ingestion
_frame_buffer: Optional[FrameBuffer] = None
_frame_source: Optional[FrameSource] = None
_source_task: Optional[asyncio.Task] = None

# Pipeline
_controller: Optional[FramePipelineController] = None
_broadcaster: Optional[EventBroadcaster] = None
_reviewer: Optional[ResultReviewer] = None

# Processing task
_processing_task: Optional[asyncio.Task] = None

_startup_time: float = 0.0
_is_ready: bool = False

# Error counters
_frame_error_count: int = 0


# =============================================================================
# Getters
# =============================================================================

def get_frame_buffer() -> Optional[FrameBuffer]:
    return _frame_buffer

def get_frame_source() -> Optional[FrameSource]:
    return _frame_source

def get_controller() -> Optional[FramePipelineController]:
    return _controller

def get_broadcaster() -> Optional[EventBroadcaster]:
    return _broadcaster

def get_reviewer() -> Optional[ResultReviewer]:
    return _reviewer

def is_ready() -> bool:
    return _is_ready


# =============================================================================
# Factories
# =============================================================================

def create_classification_engine(config: ClassificationConfig) -> ClassificationEngine:
    """
    Create classification engine based on config.

    Raises:
        ClassificationSetupError: Unknown backend, or the backend
            cannot be initialized
    """
    backend = config.backend

    if backend == "mock":
        logger.info("Using MockClassificationEngine")
        return MockClassificationEngine(
            labels=config.mock.labels,
            delay_seconds=config.mock.delay_seconds,
        )

    elif backend == "vision":
        logger.info(f"Using VisionClassificationEngine: max_results={config.vision.max_results}")
        return VisionClassificationEngine(
            max_results=config.vision.max_results,
            credentials_path=config.vision.credentials_path,
        )

    else:
        raise ClassificationSetupError(f"Unknown classification backend: {backend}")


def create_frame_source(config: Settings, buffer: FrameBuffer) -> FrameSource:
    """Create the frame source selected by stream.source."""
    source = config.stream.source

    if source == "websocket":
        logger.info(f"Stream URL: {config.stream.url}")
        return FrameConsumer(
            url=config.stream.url,
            buffer=buffer,
            reconnect_backoff_ms=config.stream.reconnect_backoff_ms,
            max_reconnect_attempts=config.stream.max_reconnect_attempts,
        )

    elif source == "video":
        logger.info(f"Video source: {config.stream.video_path}")
        return VideoFrameSource(
            source=config.stream.video_path,
            buffer=buffer,
            fps=config.stream.video_fps,
        )

    else:
        raise ValueError(f"Unknown stream source: {source}")


def create_controller(
    config: Settings,
    broadcaster: Optional[EventBroadcaster] = None,
) -> FramePipelineController:
    """
    Build the pipeline controller.

    A classification setup failure does not stop the service: the
    controller is built without an engine and reports dispatch as
    disabled (see /ready and /metrics).
    """
    classifier: Optional[ClassificationEngine] = None
    disabled_reason: Optional[str] = None
    try:
        classifier = create_classification_engine(config.classification)
    except ClassificationSetupError as e:
        disabled_reason = str(e)
        logger.error(f"Classification setup failed: {e}")

    return FramePipelineController(
        registrar=create_registrar(
            config.registration.method,
            min_response=config.registration.min_response,
        ),
        classifier=classifier,
        overlay=OverlayStateMachine(presenter=broadcaster),
        history_capacity=config.stability.history_capacity,
        distance_threshold=config.stability.distance_threshold,
        dispatch_disabled_reason=disabled_reason,
        log_every_n_frames=config.logging.log_every_n_frames,
    )


# =============================================================================
# Processing Pipeline
# =============================================================================

async def run_frame_source(source: FrameSource) -> None:
    """Run the frame source; an unusable source is logged, not raised."""
    try:
        await source.run()
    except VideoSourceError as e:
        logger.error(f"Frame source failed: {e}")


async def process_frames() -> None:
    """Frame-delivery loop: buffer -> controller, one frame at a time."""
    global _is_ready, _frame_error_count

    if _frame_buffer is None or _controller is None:
        logger.error("Processing pipeline not initialized")
        return

    logger.info("Frame processing pipeline started")
    _is_ready = True

    while not _shutdown_flag:
        try:
            frame = await _frame_buffer.get(timeout=1.0)

            if frame is None:
                continue

            orientation = exif_orientation_from_device(frame.device_orientation)
            _controller.process_frame(frame, orientation)

        except asyncio.CancelledError:
            logger.info("Frame processing pipeline cancelled")
            break
        except Exception as e:
            _frame_error_count += 1
            logger.error(f"Pipeline error: {e}")
            await asyncio.sleep(0.1)

    _is_ready = False
    logger.info("Frame processing pipeline stopped")


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _frame_buffer, _frame_source, _source_task
    global _controller, _broadcaster, _reviewer
    global _processing_task, _startup_time, _shutdown_flag

    # Startup
    _shutdown_flag = False
    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    _broadcaster = EventBroadcaster()
    _broadcaster.bind(asyncio.get_running_loop())

    _controller = create_controller(settings, broadcaster=_broadcaster)
    _reviewer = ResultReviewer(
        controller=_controller,
        broadcaster=_broadcaster,
        acceptance_confidence=settings.classification.acceptance_confidence,
        hold_seconds=settings.review.hold_seconds,
    )

    _frame_buffer = FrameBuffer(maxsize=settings.stream.max_queue_size)
    _frame_source = create_frame_source(settings, _frame_buffer)
    _source_task = asyncio.create_task(run_frame_source(_frame_source), name="frame_source")

    _processing_task = asyncio.create_task(process_frames(), name="frame_processing")

    logger.info("All components started")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    _shutdown_flag = True

    if _frame_source:
        await _frame_source.stop()

    if _source_task:
        try:
            await asyncio.wait_for(_source_task, timeout=5.0)
        except asyncio.TimeoutError:
            _source_task.cancel()
            try:
                await _source_task
            except asyncio.CancelledError:
                pass

    if _processing_task:
        _processing_task.cancel()
        try:
            await _processing_task
        except asyncio.CancelledError:
            pass

    if _controller and not await _controller.drain(timeout=5.0):
        logger.warning("In-flight classification did not finish before shutdown")

    if _reviewer:
        _reviewer.dismiss()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="StillGate",
    description="Motion-stability gate with single-flight classification dispatch",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "StillGate",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "stream_source": settings.stream.source,
        "registration_method": settings.registration.method,
        "classification_backend": settings.classification.backend,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - can the service gate and classify frames?

    Returns 503 while the processing loop is not running or when
    classification dispatch is disabled by a setup failure.
    """
    controller = get_controller()
    source = get_frame_source()

    stream_connected = source.connected if source else False
    dispatch_enabled = controller.dispatch_enabled if controller else False

    body = {
        "stream_connected": stream_connected,
        "pipeline_running": _is_ready,
        "dispatch_enabled": dispatch_enabled,
    }
    if controller and not dispatch_enabled:
        body["dispatch_disabled_reason"] = controller.dispatch_disabled_reason

    if _is_ready and dispatch_enabled:
        return JSONResponse({"status": "ready", **body})

    return JSONResponse({"status": "not_ready", **body}, status_code=503)


def _component_metrics(component: object) -> dict:
    """Metrics of an adapter or engine that exposes get_metrics()."""
    get_metrics = getattr(component, "get_metrics", None)
    return get_metrics() if callable(get_metrics) else {}


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    source = get_frame_source()
    buffer = get_frame_buffer()
    controller = get_controller()
    reviewer = get_reviewer()
    broadcaster = get_broadcaster()

    stream_metrics = {}
    if source is not None:
        stream_metrics["stream_connected"] = source.connected
        if isinstance(source, FrameConsumer):
            stream_metrics.update(source.metrics.to_dict())
        else:
            stream_metrics["frames_read"] = source.frames_read
            stream_metrics["encode_errors"] = source.encode_errors
    if buffer is not None:
        buffer_metrics = buffer.metrics()
        stream_metrics["buffer_size"] = buffer_metrics["size"]
        stream_metrics["buffer_dropped"] = buffer_metrics["dropped_count"]

    review_metrics = {}
    if reviewer is not None:
        review_metrics = {
            "reviewing": reviewer.reviewing,
            "accepted_results": reviewer.accepted_count,
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "classification_backend": settings.classification.backend,
        "frame_errors": _frame_error_count,
        "event_subscribers": broadcaster.subscriber_count if broadcaster else 0,
        "stream": stream_metrics,
        "pipeline": controller.get_metrics() if controller else {},
        "registration": _component_metrics(controller.registrar) if controller else {},
        "classification": _component_metrics(controller.classifier) if controller else {},
        "review": review_metrics,
    })


@app.get("/result")
async def result() -> JSONResponse:
    """Latest classification result, with acceptance decided."""
    reviewer = get_reviewer()
    latest = reviewer.latest if reviewer else None

    if latest is None:
        return JSONResponse(
            {"error": "No classification result available yet"},
            status_code=503,
        )

    return JSONResponse(latest.model_dump(mode="json"))


@app.post("/review/dismiss")
async def dismiss_review() -> JSONResponse:
    """Dismiss the shown result and resume stability tracking."""
    reviewer = get_reviewer()
    if reviewer is None:
        return JSONResponse({"error": "Service not started"}, status_code=503)

    was_reviewing = reviewer.dismiss()
    return JSONResponse({"dismissed": was_reviewing})


@app.post("/pipeline/reset")
async def reset_pipeline() -> JSONResponse:
    """Clear displacement history and hide the overlay."""
    controller = get_controller()
    if controller is None:
        return JSONResponse({"error": "Service not started"}, status_code=503)

    controller.reset()
    return JSONResponse({"reset": True, "history_length": len(controller.history)})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

async def _forward_events(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Relay broadcaster events to one client until cancelled."""
    while True:
        event = await queue.get()
        await websocket.send_json(event)


@app.websocket("/ws/events")
async def event_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for overlay and result events."""
    broadcaster = get_broadcaster()
    await websocket.accept()

    if broadcaster is None:
        await websocket.close(code=1013)
        return

    queue = broadcaster.subscribe()
    logger.info("Client connected to /ws/events")
    sender: Optional[asyncio.Task] = None

    try:
        # Current overlay state first, so late joiners are in sync
        await websocket.send_json({"type": "overlay", "visible": broadcaster.overlay_visible})
        sender = asyncio.create_task(_forward_events(websocket, queue))

        # Clients only listen; reading detects the disconnect
        while not _shutdown_flag:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        if sender is not None:
            sender.cancel()
        broadcaster.unsubscribe(queue)
        logger.info("Client disconnected from /ws/events")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "stillgate.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
