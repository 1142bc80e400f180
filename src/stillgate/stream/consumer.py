"""
Frame Consumer
===============

WebSocket client for consuming frames from the camera stream.

This module provides the FrameConsumer class which:
    - Connects to the stream's WebSocket endpoint
    - Receives and validates frame messages
    - Logs ordering gaps (frames dropped upstream)
    - Handles reconnection with backoff
    - Pushes validated frames into a FrameBuffer

Design Rules:
    - Does NOT decode image data
    - Does NOT modify payloads
    - Logs validation warnings but continues processing
    - Reconnects automatically on disconnect
    - Exposes metrics for health monitoring
"""

import asyncio
import logging
from typing import Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    ConnectionClosedError,
)

from stillgate.models.input import FrameMessage
from stillgate.stream.frame import Frame
from stillgate.stream.buffer import FrameBuffer


logger = logging.getLogger(__name__)


class FrameConsumerMetrics:
    """Metrics for FrameConsumer observability."""

    __slots__ = (
        "frames_received",
        "reconnect_count",
        "last_frame_id",
        "last_timestamp",
        "validation_warnings",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.reconnect_count: int = 0
        self.last_frame_id: int = -1
        self.last_timestamp: float = 0.0
        self.validation_warnings: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_received": self.frames_received,
            "reconnect_count": self.reconnect_count,
            "last_frame_id": self.last_frame_id,
            "last_timestamp": self.last_timestamp,
            "validation_warnings": self.validation_warnings,
            "parse_errors": self.parse_errors,
        }


class FrameConsumer:
    """
    WebSocket consumer for camera stream frames.

    Connects to the stream, validates frames, and pushes them into a
    FrameBuffer for the pipeline processing loop.

    Attributes:
        url: WebSocket URL to connect to
        buffer: FrameBuffer to push frames into
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        buffer = FrameBuffer(maxsize=5)
        consumer = FrameConsumer(
            url="ws://localhost:8000/ws/stream",
            buffer=buffer,
            reconnect_backoff_ms=500,
        )

        task = asyncio.create_task(consumer.run())
        ...
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        buffer: FrameBuffer,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Initialize frame consumer.

        Args:
            url: WebSocket URL of the frame stream
            buffer: FrameBuffer to push validated frames into
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
        """
        self.url = url
        self.buffer = buffer
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        self._websocket = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.metrics = FrameConsumerMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the stream."""
        return self._connected

    async def run(self) -> None:
        """
        Start consuming frames.

        Runs indefinitely, reconnecting on disconnect.
        Call stop() to terminate gracefully.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"FrameConsumer starting, connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except Exception as e:
                if not self._running:
                    break

                logger.error(f"Connection error: {e}")
                self._connected = False

                if (
                    self.max_reconnect_attempts > 0
                    and self.metrics.reconnect_count >= self.max_reconnect_attempts
                ):
                    logger.error(
                        f"Max reconnect attempts ({self.max_reconnect_attempts}) exceeded"
                    )
                    break

                self.metrics.reconnect_count += 1
                backoff_sec = self.reconnect_backoff_ms / 1000.0
                logger.info(
                    f"Reconnecting in {backoff_sec:.1f}s "
                    f"(attempt {self.metrics.reconnect_count})"
                )

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_sec)
                    break
                except asyncio.TimeoutError:
                    pass

        logger.info("FrameConsumer stopped")

    async def stop(self) -> None:
        """Signal the run loop to exit and close the connection."""
        logger.info("FrameConsumer stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except ConnectionClosed:
                pass

        self._connected = False

    async def _connect_and_consume(self) -> None:
        """Connect to WebSocket and consume messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=None,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"Connected to frame stream: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break

                    frame = self.parse_message(message)
                    if frame:
                        await self.buffer.put(frame)

            except ConnectionClosedOK:
                logger.info("Connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Connection closed with error: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    def parse_message(self, raw) -> Optional[Frame]:
        """
        Parse and validate a raw WebSocket message.

        Performs ordering and timing validation. Logs warnings for
        violations but does not reject frames; a gap simply means the
        publisher dropped frames.

        Args:
            raw: Raw JSON text (or bytes) from the WebSocket

        Returns:
            Validated Frame, or None on parse error
        """
        try:
            message = FrameMessage.model_validate_json(raw)
        except ValidationError as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid frame message: {e.error_count()} error(s): {e.errors()[0]['msg']}")
            return None

        if self.metrics.last_frame_id >= 0:
            expected_id = self.metrics.last_frame_id + 1
            if message.frame_id < expected_id:
                self.metrics.validation_warnings += 1
                logger.warning(
                    f"Frame ID went backwards: got {message.frame_id}, "
                    f"expected {expected_id}"
                )
            elif message.frame_id > expected_id:
                self.metrics.validation_warnings += 1
                logger.debug(
                    f"Frame ID gap: got {message.frame_id}, expected {expected_id} "
                    f"(gap of {message.frame_id - expected_id} frames)"
                )

        if self.metrics.last_timestamp > 0 and message.timestamp < self.metrics.last_timestamp:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Timestamp went backwards: got {message.timestamp:.3f}, "
                f"previous was {self.metrics.last_timestamp:.3f}"
            )

        self.metrics.frames_received += 1
        self.metrics.last_frame_id = message.frame_id
        self.metrics.last_timestamp = message.timestamp

        return Frame(
            frame_id=message.frame_id,
            timestamp=message.timestamp,
            image_b64=message.image,
            device_orientation=message.orientation,
        )
