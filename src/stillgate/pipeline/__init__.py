"""
Pipeline Module
===============

Per-frame orchestration of the stability gate.
"""

from stillgate.pipeline.controller import (
    FramePipelineController,
    PipelineMetrics,
    PipelineState,
    ResultListener,
)

__all__ = [
    "FramePipelineController",
    "PipelineMetrics",
    "PipelineState",
    "ResultListener",
]
