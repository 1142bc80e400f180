"""
Displacement Models
===================

Data model for frame-to-frame registration output.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DisplacementSample:
    """
    Translational offset between two consecutive frames.

    Produced by a registration adapter, consumed by the
    TranspositionHistory. Values are in pixels.

    Attributes:
        dx: Horizontal offset of the current frame (positive = rightward)
        dy: Vertical offset of the current frame (positive = downward)
    """

    dx: float
    dy: float

    @property
    def manhattan(self) -> float:
        """|dx| + |dy|."""
        return abs(self.dx) + abs(self.dy)

    def __repr__(self) -> str:
        return f"DisplacementSample(dx={self.dx:+.3f}, dy={self.dy:+.3f})"
