"""
Video Frame Source
==================

Local frame source backed by OpenCV's VideoCapture.

Reads a video file or a camera device, encodes each frame as a base64
JPEG Frame and pushes it into a FrameBuffer. Useful for running the
pipeline without a frame stream, and for replaying recorded footage.

Design Rules:
    - Blocking capture calls run in a worker thread (asyncio.to_thread)
    - Files are paced at the configured FPS; cameras run at device rate
    - Same run()/stop()/connected surface as FrameConsumer
"""

import asyncio
import logging
import time
from typing import Optional, Union

import cv2

from stillgate.models.orientation import DeviceOrientation
from stillgate.stream.buffer import FrameBuffer
from stillgate.stream.frame import Frame
from stillgate.stream.image_decoder import encode_image_b64, ImageDecodeError


logger = logging.getLogger(__name__)


class VideoSourceError(Exception):
    """Raised when the video source cannot be opened."""
    pass


class VideoFrameSource:
    """
    Frame source reading from a video file or camera index.

    Attributes:
        source: File path, or camera index as an int or digit string
        buffer: FrameBuffer to push frames into
        fps: Pacing rate for files
        loop: Restart files from the beginning when they end
        orientation: Device orientation attached to every frame
    """

    def __init__(
        self,
        source: Union[str, int],
        buffer: FrameBuffer,
        fps: int = 30,
        loop: bool = False,
        orientation: DeviceOrientation = DeviceOrientation.PORTRAIT,
        jpeg_quality: int = 85,
    ) -> None:
        if isinstance(source, str) and source.isdigit():
            source = int(source)
        self.source = source
        self.buffer = buffer
        self.fps = fps
        self.loop = loop
        self.orientation = orientation
        self.jpeg_quality = jpeg_quality

        self._capture: Optional[cv2.VideoCapture] = None
        self._stop_event = asyncio.Event()
        self._frame_id: int = 0
        self.frames_read: int = 0
        self.encode_errors: int = 0

    @property
    def is_camera(self) -> bool:
        """Whether the source is a live camera device."""
        return isinstance(self.source, int)

    @property
    def connected(self) -> bool:
        """Whether the capture device is open."""
        return self._capture is not None and self._capture.isOpened()

    def _open(self) -> cv2.VideoCapture:
        capture = cv2.VideoCapture(self.source)
        if not capture.isOpened():
            raise VideoSourceError(f"Cannot open video source: {self.source}")
        logger.info(
            f"Video source opened: {self.source} "
            f"({int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))})"
        )
        return capture

    def _read(self):
        ok, image = self._capture.read()
        if not ok and self.loop and not self.is_camera:
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, image = self._capture.read()
        return image if ok else None

    async def run(self) -> None:
        """
        Read frames until the source ends or stop() is called.

        Raises:
            VideoSourceError: If the source cannot be opened
        """
        self._stop_event.clear()
        capture = await asyncio.to_thread(self._open)
        if self._stop_event.is_set():
            capture.release()
            logger.info("Video source stopped before the first read")
            return

        self._capture = capture
        interval = 0.0 if self.is_camera else 1.0 / self.fps

        try:
            while not self._stop_event.is_set():
                started = time.monotonic()
                image = await asyncio.to_thread(self._read)
                if image is None:
                    logger.info(f"Video source exhausted after {self.frames_read} frames")
                    break

                self.frames_read += 1
                try:
                    image_b64 = encode_image_b64(image, self.jpeg_quality)
                except ImageDecodeError as e:
                    self.encode_errors += 1
                    logger.warning(f"Skipping unencodable frame: {e}")
                    continue

                await self.buffer.put(Frame(
                    frame_id=self._frame_id,
                    timestamp=time.time(),
                    image_b64=image_b64,
                    device_orientation=self.orientation,
                ))
                self._frame_id += 1

                remaining = interval - (time.monotonic() - started)
                if remaining > 0:
                    try:
                        await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
                    except asyncio.TimeoutError:
                        pass
        finally:
            capture, self._capture = self._capture, None
            if capture is not None:
                capture.release()
            logger.info("Video source stopped")

    async def stop(self) -> None:
        """Signal the read loop to exit, including while the source is opening."""
        self._stop_event.set()
