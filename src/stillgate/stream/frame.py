"""
Frame Data Model
=================

Internal frame representation for the ingestion pipeline.

This module defines the typed Frame class that is used as the interface
between the frame sources and the pipeline controller.

Design Rules:
    - This is the ONLY frame format passed to downstream stages
    - Does NOT decode or manipulate image data
    - frame_id is the arrival-order position; there is no wall-clock logic
      downstream of this record
"""

from dataclasses import dataclass

from stillgate.models.orientation import DeviceOrientation


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Validated frame from a frame source.

    This is the canonical internal representation of a frame.
    It is immutable (frozen) to prevent accidental modification.

    Attributes:
        frame_id: Monotonically increasing frame counter from source
        timestamp: UNIX timestamp when the frame was emitted
        image_b64: Base64-encoded JPEG frame data (NOT decoded)
        device_orientation: Physical orientation of the capturing device
    """

    frame_id: int
    timestamp: float
    image_b64: str
    device_orientation: DeviceOrientation = DeviceOrientation.PORTRAIT

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"orientation={self.device_orientation.value})"
        )
