"""
Pipeline State Models
=====================

This module defines the discrete states and per-frame reports of the
stability pipeline.

Core Concepts:
    - OverlayState: Two-state visibility model (HIDDEN, VISIBLE)
    - FrameStatus: What the controller did with a frame
    - FrameOutcome: Per-frame report returned by the controller

Transitions:
    HIDDEN  → VISIBLE: stability signal becomes true
    VISIBLE → HIDDEN:  stability signal becomes false
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from stillgate.models.displacement import DisplacementSample


class OverlayState(str, Enum):
    """
    Visibility of the "camera is still" overlay.

    Attributes:
        HIDDEN: Camera moving or not enough evidence yet (initial)
        VISIBLE: Camera held still for a full window
    """

    HIDDEN = "HIDDEN"
    VISIBLE = "VISIBLE"


class FrameStatus(str, Enum):
    """
    Controller verdict for one frame.

    Attributes:
        SKIPPED_REVIEWING: A result is on screen; frame ignored entirely
        PRIMED: No previous frame; stored as reference, history reset
        PROCESSED: Registered, evaluated, possibly dispatched
    """

    SKIPPED_REVIEWING = "SKIPPED_REVIEWING"
    PRIMED = "PRIMED"
    PROCESSED = "PROCESSED"


@dataclass(frozen=True, slots=True)
class FrameOutcome:
    """
    Per-frame report from the pipeline controller.

    Attributes:
        frame_id: Frame the report refers to
        status: What the controller did with the frame
        sample: Recorded displacement, None if none was recorded
        registration_failed: Registration raised for this frame
        stable: Stability signal after this frame
        dispatched: A classification was started for this frame
    """

    frame_id: int
    status: FrameStatus
    sample: Optional[DisplacementSample] = None
    registration_failed: bool = False
    stable: bool = False
    dispatched: bool = False

    def __repr__(self) -> str:
        return (
            f"FrameOutcome({self.frame_id}, {self.status.value}, "
            f"stable={self.stable}, dispatched={self.dispatched})"
        )
