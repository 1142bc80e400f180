"""
Stream Module
=============

Frame ingestion components.

This module provides the ingestion layer for StillGate:
    - Frame: Typed frame data model (internal representation)
    - FrameBuffer: Async-safe bounded queue (drops oldest on overflow)
    - FrameConsumer: WebSocket client with validation and reconnection
    - VideoFrameSource: Local video file / camera source

Example:
    from stillgate.stream import Frame, FrameBuffer, FrameConsumer

    buffer = FrameBuffer(maxsize=5)
    consumer = FrameConsumer(
        url="ws://localhost:8000/ws/stream",
        buffer=buffer,
        reconnect_backoff_ms=500,
    )

    task = asyncio.create_task(consumer.run())

    while True:
        frame = await buffer.get()
        controller.process_frame(frame, orientation)
"""

from stillgate.stream.frame import Frame
from stillgate.stream.buffer import FrameBuffer
from stillgate.stream.consumer import FrameConsumer, FrameConsumerMetrics
from stillgate.stream.video_source import VideoFrameSource, VideoSourceError


__all__ = [
    "Frame",
    "FrameBuffer",
    "FrameConsumer",
    "FrameConsumerMetrics",
    "VideoFrameSource",
    "VideoSourceError",
]
