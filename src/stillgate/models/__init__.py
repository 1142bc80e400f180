"""
Data Models
===========

Data models for StillGate.

This module re-exports all data models for convenient access.

Models:
    Input:
        - FrameMessage: Schema for messages from the frame stream

    Orientation:
        - DeviceOrientation: Physical device orientation
        - ExifOrientation: Orientation hint passed to classification

    Displacement:
        - DisplacementSample: Frame-to-frame translation (dx, dy)

    State:
        - OverlayState: HIDDEN / VISIBLE
        - FrameStatus, FrameOutcome: What process_frame did with a frame

    Classification:
        - Classification: One label + confidence
        - ClassificationResult: Outcome of one dispatched classification
"""

from stillgate.models.input import FrameMessage
from stillgate.models.orientation import (
    DeviceOrientation,
    ExifOrientation,
    exif_orientation_from_device,
)
from stillgate.models.displacement import DisplacementSample
from stillgate.models.state import FrameOutcome, FrameStatus, OverlayState
from stillgate.models.classification import Classification, ClassificationResult

__all__ = [
    # Input
    "FrameMessage",
    # Orientation
    "DeviceOrientation",
    "ExifOrientation",
    "exif_orientation_from_device",
    # Displacement
    "DisplacementSample",
    # State
    "OverlayState",
    "FrameStatus",
    "FrameOutcome",
    # Classification
    "Classification",
    "ClassificationResult",
]
