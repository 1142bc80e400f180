"""
Stream Tests
============

Tests for the frame buffer, stream message parsing, the video frame
source and image decoding.
"""

import asyncio
import json
import time

import numpy as np
import pytest

from stillgate.models.orientation import DeviceOrientation, ExifOrientation
from conftest import FakeCapture
from stillgate.stream import Frame, FrameBuffer, FrameConsumer, VideoFrameSource
from stillgate.stream.image_decoder import (
    ImageDecodeError,
    decode_frame_bgr,
    decode_frame_grayscale,
    orient_image,
)


class TestFrameBuffer:
    """Bounded drop-oldest queue."""

    def test_drops_oldest_when_full(self, make_frame):
        async def scenario():
            buffer = FrameBuffer(maxsize=3)
            results = [await buffer.put(make_frame(i)) for i in range(5)]

            assert results == [True, True, True, False, False]
            assert buffer.dropped_count == 2
            assert (await buffer.get()).frame_id == 2

        asyncio.run(scenario())

    def test_get_timeout_returns_none(self):
        async def scenario():
            return await FrameBuffer().get(timeout=0.01)

        assert asyncio.run(scenario()) is None

    def test_clear(self, make_frame):
        async def scenario():
            buffer = FrameBuffer(maxsize=5)
            for i in range(3):
                await buffer.put(make_frame(i))
            return buffer.clear(), buffer.size

        assert asyncio.run(scenario()) == (3, 0)

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            FrameBuffer(maxsize=0)


class TestParseMessage:
    """WebSocket message validation."""

    def _consumer(self):
        return FrameConsumer(url="ws://localhost:1/ws", buffer=FrameBuffer())

    def test_valid_message(self, sample_frame_message):
        consumer = self._consumer()
        frame = consumer.parse_message(json.dumps(sample_frame_message))

        assert frame.frame_id == 100
        assert frame.image_b64 == "aGVsbG8="
        assert frame.device_orientation == DeviceOrientation.LANDSCAPE_RIGHT
        assert consumer.metrics.frames_received == 1

    def test_orientation_defaults_to_portrait(self, sample_frame_message):
        del sample_frame_message["orientation"]
        frame = self._consumer().parse_message(json.dumps(sample_frame_message))
        assert frame.device_orientation == DeviceOrientation.PORTRAIT

    def test_unknown_orientation_is_tolerated(self, sample_frame_message):
        sample_frame_message["orientation"] = "sideways"
        frame = self._consumer().parse_message(json.dumps(sample_frame_message))
        assert frame.device_orientation == DeviceOrientation.UNKNOWN

    def test_invalid_message_counted(self):
        consumer = self._consumer()

        assert consumer.parse_message('{"frame_id": -1}') is None
        assert consumer.parse_message("not json") is None
        assert consumer.metrics.parse_errors == 2
        assert consumer.metrics.frames_received == 0

    def test_ordering_warnings(self, sample_frame_message):
        consumer = self._consumer()
        for frame_id in [100, 101, 105, 103]:
            sample_frame_message["frame_id"] = frame_id
            assert consumer.parse_message(json.dumps(sample_frame_message)) is not None

        # One gap (101 -> 105) and one backwards step (105 -> 103)
        assert consumer.metrics.validation_warnings == 2
        assert consumer.metrics.last_frame_id == 103


class TestImageDecoder:
    """Base64 JPEG decoding and orientation correction."""

    def test_decode_shapes(self, make_frame, textured_image):
        frame = make_frame(0, textured_image)

        assert decode_frame_bgr(frame).shape == (240, 320, 3)
        assert decode_frame_grayscale(frame).shape == (240, 320)

    def test_decode_rejects_non_image(self):
        bad = Frame(frame_id=1, timestamp=1700000000.0, image_b64="aGVsbG8=")

        with pytest.raises(ImageDecodeError):
            decode_frame_bgr(bad)

    @pytest.mark.parametrize(
        "orientation,expected_shape",
        [
            (ExifOrientation.UP, (2, 3)),
            (ExifOrientation.UP_MIRRORED, (2, 3)),
            (ExifOrientation.DOWN, (2, 3)),
            (ExifOrientation.LEFT, (3, 2)),
            (ExifOrientation.RIGHT, (3, 2)),
        ],
    )
    def test_orient_shapes(self, orientation, expected_shape):
        image = np.arange(6, dtype=np.uint8).reshape(2, 3)
        assert orient_image(image, orientation).shape == expected_shape

    def test_orient_pixels(self):
        image = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8)

        assert orient_image(image, ExifOrientation.UP_MIRRORED).tolist() == [[3, 2, 1], [6, 5, 4]]
        assert orient_image(image, ExifOrientation.DOWN).tolist() == [[6, 5, 4], [3, 2, 1]]
        assert orient_image(image, ExifOrientation.LEFT).tolist() == [[3, 6], [2, 5], [1, 4]]


class TestVideoFrameSource:
    """Tests for VideoFrameSource with a fake capture device."""

    def test_reads_until_exhausted(self, textured_image):
        async def scenario():
            buffer = FrameBuffer(maxsize=10)
            source = VideoFrameSource("clip.mp4", buffer, fps=1000)
            capture = FakeCapture([textured_image] * 3)
            source._open = lambda: capture

            await asyncio.wait_for(source.run(), timeout=2.0)

            frames = [buffer.get_nowait() for _ in range(buffer.size)]
            return source, capture, frames

        source, capture, frames = asyncio.run(scenario())

        assert source.frames_read == 3
        assert [frame.frame_id for frame in frames] == [0, 1, 2]
        assert capture.released
        assert not source.connected

    def test_stop_while_opening(self, textured_image):
        async def scenario():
            buffer = FrameBuffer(maxsize=10)
            source = VideoFrameSource("clip.mp4", buffer, fps=1000)
            capture = FakeCapture([textured_image] * 100)

            def slow_open():
                time.sleep(0.2)
                return capture

            source._open = slow_open
            task = asyncio.create_task(source.run())
            await asyncio.sleep(0.05)
            await source.stop()
            await asyncio.wait_for(task, timeout=1.0)
            return source, capture, buffer

        source, capture, buffer = asyncio.run(scenario())

        assert source.frames_read == 0
        assert buffer.size == 0
        assert capture.released

    def test_stop_while_reading(self, textured_image):
        async def scenario():
            buffer = FrameBuffer(maxsize=5)
            source = VideoFrameSource("clip.mp4", buffer, fps=10)
            capture = FakeCapture([textured_image] * 100)
            source._open = lambda: capture

            task = asyncio.create_task(source.run())
            await asyncio.sleep(0.15)
            await source.stop()
            await asyncio.wait_for(task, timeout=1.0)
            return source, capture

        source, capture = asyncio.run(scenario())

        assert 0 < source.frames_read < 100
        assert capture.released
