"""
Classification Module
=====================

Pluggable classification backends for stable frames.

Classification is treated as a black box: the pipeline only cares that
a call eventually completes, successfully or not, so the dispatch gate
can be released.

Components:
    - ClassificationEngine: Protocol for classification backends
    - MockClassificationEngine: Deterministic mock for testing
    - VisionClassificationEngine: Google Cloud Vision label detection
"""

from stillgate.classification.engine import (
    ClassificationEngine,
    ClassificationError,
    ClassificationSetupError,
    MockClassificationEngine,
)
from stillgate.classification.vision_engine import VisionClassificationEngine

__all__ = [
    "ClassificationEngine",
    "ClassificationError",
    "ClassificationSetupError",
    "MockClassificationEngine",
    "VisionClassificationEngine",
]
