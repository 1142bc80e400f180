"""
Classification Tests
====================

Tests for the mock and Vision backends, the backend factory and the
result model.
"""

import asyncio
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from conftest import FakeVisionClient
from stillgate.classification import (
    ClassificationError,
    ClassificationSetupError,
    MockClassificationEngine,
    VisionClassificationEngine,
)
from stillgate.config import ClassificationConfig
from stillgate.main import create_classification_engine
from stillgate.models.classification import Classification, ClassificationResult
from stillgate.models.orientation import ExifOrientation
from stillgate.stream.frame import Frame


class TestMockClassificationEngine:
    """Deterministic mock backend."""

    def test_deterministic_per_frame(self, make_frame):
        engine = MockClassificationEngine(labels=["mug", "book", "plant"])
        frame = make_frame(42)

        first = asyncio.run(engine.classify(frame, ExifOrientation.UP))
        second = asyncio.run(engine.classify(frame, ExifOrientation.UP))

        assert first == second
        assert engine.call_count == 2

    def test_confidences_descend(self, make_frame):
        engine = MockClassificationEngine(labels=["mug", "book", "plant", "lamp"])
        labels = asyncio.run(engine.classify(make_frame(7), ExifOrientation.UP))

        assert len(labels) == 3
        confidences = [c.confidence for c in labels]
        assert confidences == sorted(confidences, reverse=True)
        assert 0.80 <= confidences[0] <= 0.99

    def test_injected_failures(self, make_frame):
        engine = MockClassificationEngine(fail_every=2)
        frame = make_frame(1)

        asyncio.run(engine.classify(frame, ExifOrientation.UP))
        with pytest.raises(ClassificationError):
            asyncio.run(engine.classify(frame, ExifOrientation.UP))

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            MockClassificationEngine(delay_seconds=-1.0)

    def test_metrics_count_calls(self, make_frame):
        engine = MockClassificationEngine(delay_seconds=0.0, fail_every=3)
        asyncio.run(engine.classify(make_frame(1), ExifOrientation.UP))

        assert engine.get_metrics() == {
            "call_count": 1,
            "delay_seconds": 0.0,
            "fail_every": 3,
        }


class InjectedVisionEngine(VisionClassificationEngine):
    """VisionClassificationEngine wired to a fake client instead of the SDK."""

    def __init__(self, client: FakeVisionClient, **kwargs) -> None:
        self._fake_client = client
        super().__init__(**kwargs)

    def _init_client(self, credentials_path) -> None:
        self._client = self._fake_client
        self._vision = SimpleNamespace(Image=lambda content: SimpleNamespace(content=content))


class TestVisionClassificationEngine:
    """Vision label detection mapped onto Classification."""

    def test_labels_sorted_and_clamped(self, make_frame, textured_image):
        client = FakeVisionClient([("cup", 0.7), ("mug", 1.3), ("desk", -0.2)])
        engine = InjectedVisionEngine(client, max_results=3)

        labels = asyncio.run(engine.classify(make_frame(5, textured_image), ExifOrientation.UP))

        assert [c.label for c in labels] == ["mug", "cup", "desk"]
        assert [c.confidence for c in labels] == [1.0, 0.7, 0.0]
        assert client.requests[0][1] == 3
        assert engine.get_metrics() == {
            "api_call_count": 1,
            "api_error_count": 0,
            "max_results": 3,
        }

    def test_upright_image_is_sent(self, make_frame, textured_image):
        client = FakeVisionClient([("mug", 0.95)])
        engine = InjectedVisionEngine(client)

        asyncio.run(engine.classify(make_frame(5, textured_image), ExifOrientation.LEFT))

        content = client.requests[0][0]
        sent = cv2.imdecode(np.frombuffer(content, dtype=np.uint8), cv2.IMREAD_COLOR)
        assert textured_image.shape == (240, 320, 3)
        assert sent.shape == (320, 240, 3)

    def test_response_error_raises(self, make_frame, textured_image):
        client = FakeVisionClient(error_message="quota exceeded")
        engine = InjectedVisionEngine(client)

        with pytest.raises(ClassificationError, match="quota exceeded"):
            asyncio.run(engine.classify(make_frame(5, textured_image), ExifOrientation.UP))
        assert engine.get_metrics()["api_error_count"] == 1

    def test_transport_failure_raises(self, make_frame, textured_image):
        client = FakeVisionClient(raises=ConnectionError("socket closed"))
        engine = InjectedVisionEngine(client)

        with pytest.raises(ClassificationError, match="socket closed"):
            asyncio.run(engine.classify(make_frame(5, textured_image), ExifOrientation.UP))
        assert engine.get_metrics()["api_error_count"] == 1

    def test_undecodable_frame_never_reaches_api(self):
        client = FakeVisionClient([("mug", 0.95)])
        engine = InjectedVisionEngine(client)
        broken = Frame(frame_id=9, timestamp=1700000000.0, image_b64="aGVsbG8=")

        with pytest.raises(ClassificationError):
            asyncio.run(engine.classify(broken, ExifOrientation.UP))
        assert client.requests == []
        assert engine.get_metrics()["api_call_count"] == 0


class TestEngineFactory:
    """create_classification_engine()."""

    def test_mock_backend(self):
        config = ClassificationConfig(backend="mock")
        assert isinstance(create_classification_engine(config), MockClassificationEngine)

    def test_unknown_backend(self):
        with pytest.raises(ClassificationSetupError):
            create_classification_engine(ClassificationConfig(backend="oracle"))

    def test_vision_setup_failure_is_setup_error(self, tmp_path):
        # Either the library is missing or the credentials file is
        config = ClassificationConfig(
            backend="vision",
            vision={"credentials_path": str(tmp_path / "missing.json")},
        )
        with pytest.raises(ClassificationSetupError):
            create_classification_engine(config)


class TestClassificationResult:
    """Result model helpers."""

    def test_top_and_succeeded(self):
        result = ClassificationResult(
            frame_id=3,
            timestamp=1700000000.0,
            classifications=[Classification(label="mug", confidence=0.93)],
        )
        assert result.top.label == "mug"
        assert result.succeeded
        assert not result.accepted

    def test_failed_result(self):
        result = ClassificationResult(frame_id=3, timestamp=1700000000.0, error="timeout")
        assert result.top is None
        assert not result.succeeded

    def test_confidence_bounds(self):
        with pytest.raises(ValueError):
            Classification(label="mug", confidence=1.2)
