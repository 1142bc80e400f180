"""
Test Configuration
==================

Pytest fixtures and test doubles for StillGate.
"""

import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional

import numpy as np
import pytest

from stillgate.classification import ClassificationError
from stillgate.models.classification import Classification
from stillgate.models.displacement import DisplacementSample
from stillgate.models.orientation import DeviceOrientation, ExifOrientation
from stillgate.stream.frame import Frame
from stillgate.stream.image_decoder import encode_image_b64


# =============================================================================
# Test doubles
# =============================================================================

class ScriptedRegistrar:
    """
    Registration adapter returning pre-scripted displacements.

    Script entries are DisplacementSample instances or exceptions; an
    exception entry is raised instead of returned. When the script runs
    out, (0, 0) is returned.
    """

    def __init__(self, script=None) -> None:
        self.script = list(script or [])
        self.calls: List[tuple] = []

    def align(self, previous: Frame, current: Frame) -> DisplacementSample:
        self.calls.append((previous.frame_id, current.frame_id))
        entry = self.script.pop(0) if self.script else DisplacementSample(0.0, 0.0)
        if isinstance(entry, Exception):
            raise entry
        return entry


class ControlledClassifier:
    """
    Classification engine whose calls complete only when the test says so.

    Each call waits on its own asyncio.Event; complete() / fail() resolve
    the oldest pending call.
    """

    def __init__(self, confidence: float = 0.95, label: str = "mug") -> None:
        self.confidence = confidence
        self.label = label
        self.calls: List[tuple] = []
        self._events: List[asyncio.Event] = []
        self._errors: Dict[int, Exception] = {}

    async def classify(self, frame: Frame, orientation: ExifOrientation) -> List[Classification]:
        index = len(self.calls)
        self.calls.append((frame.frame_id, orientation))
        event = asyncio.Event()
        self._events.append(event)
        await event.wait()
        if index in self._errors:
            raise self._errors[index]
        return [
            Classification(label="other", confidence=self.confidence / 2),
            Classification(label=self.label, confidence=self.confidence),
        ]

    def _pending(self) -> asyncio.Event:
        for event in self._events:
            if not event.is_set():
                return event
        raise AssertionError("no pending classification")

    def complete(self) -> None:
        self._pending().set()

    def fail(self, error: Optional[Exception] = None) -> None:
        event = self._pending()
        self._errors[self._events.index(event)] = error or ClassificationError("backend down")
        event.set()


class FakeCapture:
    """
    Stand-in for cv2.VideoCapture serving a fixed list of images.

    read() returns (False, None) once the images run out.
    """

    def __init__(self, images=None) -> None:
        self.images = list(images or [])
        self.released = False

    def isOpened(self) -> bool:
        return not self.released

    def read(self):
        if not self.images:
            return False, None
        return True, self.images.pop(0)

    def set(self, prop, value) -> bool:
        return True

    def release(self) -> None:
        self.released = True


class FakeVisionClient:
    """
    Stand-in for vision.ImageAnnotatorClient.

    label_detection() records the request and answers with canned
    (description, score) annotations, an error message, or raises.
    """

    def __init__(self, annotations=None, error_message: str = "", raises: Optional[Exception] = None) -> None:
        self.annotations = list(annotations or [])
        self.error_message = error_message
        self.raises = raises
        self.requests: List[tuple] = []

    def label_detection(self, image, max_results: int):
        self.requests.append((image.content, max_results))
        if self.raises is not None:
            raise self.raises
        return SimpleNamespace(
            error=SimpleNamespace(message=self.error_message),
            label_annotations=[
                SimpleNamespace(description=description, score=score)
                for description, score in self.annotations
            ],
        )


class RecordingPresenter:
    """Overlay presenter that records every visibility call."""

    def __init__(self) -> None:
        self.calls: List[bool] = []

    def set_overlay_visible(self, visible: bool) -> None:
        self.calls.append(visible)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def textured_image():
    """Deterministic random texture suitable for registration."""
    rng = np.random.default_rng(1234)
    base = rng.integers(0, 256, size=(60, 80), dtype=np.uint8)
    # Upscale so the texture survives JPEG compression
    image = np.kron(base, np.ones((4, 4), dtype=np.uint8))
    return np.dstack([image, image, image])


@pytest.fixture
def make_frame():
    """Factory for frames; without an image a tiny placeholder is used."""
    placeholder = encode_image_b64(np.zeros((16, 16, 3), dtype=np.uint8))

    def _make(
        frame_id: int,
        image: Optional[np.ndarray] = None,
        orientation: DeviceOrientation = DeviceOrientation.PORTRAIT,
    ) -> Frame:
        image_b64 = encode_image_b64(image, quality=95) if image is not None else placeholder
        return Frame(
            frame_id=frame_id,
            timestamp=1700000000.0 + frame_id / 30.0,
            image_b64=image_b64,
            device_orientation=orientation,
        )

    return _make


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def sample_frame_message():
    """Provide a sample stream message for testing."""
    return {
        "source": "camera-bridge",
        "version": "v1.0",
        "frame_id": 100,
        "timestamp": 1707321234.567,
        "fps": 30,
        "image": "aGVsbG8=",
        "orientation": "landscape_right",
    }
