"""
StillGate
=========

Motion-stability gate and single-flight classification dispatcher for live
video.

This package watches a frame stream, measures frame-to-frame camera motion
with translational image registration, and only when the camera has been
still for a full window of frames hands a frame to a classification backend,
never more than one at a time.

Components:
    - stream: Frame model, bounded buffer, WebSocket and video sources
    - registration: Frame-to-frame displacement (phase correlation, dense flow)
    - stability: Displacement history and stability evaluation
    - overlay: Hidden/Visible overlay state machine
    - dispatch: Single-slot dispatch gate
    - classification: Mock and Google Cloud Vision backends
    - pipeline: Per-frame controller
    - presentation: Event broadcaster and result reviewer

Example:
    from stillgate.config import settings
    from stillgate.pipeline import FramePipelineController

    # The service is started via the FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
