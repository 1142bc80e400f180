"""
Stability Module
================

Camera stillness detection from registration output.

Components:
    - TranspositionHistory: Bounded FIFO of displacement samples
    - StabilityEvaluator: Manhattan-distance predicate over the window
"""

from stillgate.stability.history import TranspositionHistory
from stillgate.stability.evaluator import StabilityEvaluator

__all__ = [
    "TranspositionHistory",
    "StabilityEvaluator",
]
