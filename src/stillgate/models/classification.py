"""
Classification Models
=====================

This module defines the output contract of a classification round.

Output Contract:
    {
        "frame_id": 412,
        "timestamp": 1770500938.284,
        "classifications": [
            {"label": "mug", "confidence": 0.94},
            {"label": "cup", "confidence": 0.71}
        ],
        "accepted": true,
        "latency_seconds": 0.183,
        "error": null
    }

Design Rules:
    - classifications are ordered by confidence, highest first
    - `accepted` is set by the result reviewer (top > acceptance threshold)
    - a failed round carries an error string and no classifications
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Classification(BaseModel):
    """
    One label produced by a classification backend.

    Attributes:
        label: Human-readable label
        confidence: Backend confidence in [0, 1]
    """

    label: str = Field(..., min_length=1, description="Predicted label")

    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Confidence in this label (0.0 to 1.0)",
    )


class ClassificationResult(BaseModel):
    """
    Outcome of one dispatched classification.

    Attributes:
        frame_id: Frame that was classified
        timestamp: Completion time (UNIX seconds)
        classifications: Labels, highest confidence first
        accepted: Whether the top label clears the acceptance threshold
        latency_seconds: Dispatch-to-completion time
        error: Failure description, None on success
    """

    frame_id: int = Field(..., ge=0, description="Classified frame")

    timestamp: float = Field(..., description="Completion time (UNIX seconds)")

    classifications: List[Classification] = Field(
        default_factory=list,
        description="Labels ordered by confidence, highest first",
    )

    accepted: bool = Field(
        default=False,
        description="Top confidence reached the acceptance threshold",
    )

    latency_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds from dispatch to completion",
    )

    error: Optional[str] = Field(
        default=None,
        description="Failure description if the round failed",
    )

    @property
    def top(self) -> Optional[Classification]:
        """Highest-confidence label, if any."""
        return self.classifications[0] if self.classifications else None

    @property
    def succeeded(self) -> bool:
        """Whether the backend returned without error."""
        return self.error is None
