"""
Vision Classification Engine
============================

Production classification engine using Google Cloud Vision API.

This engine:
    - Decodes the frame and rotates it upright per the EXIF hint
    - Calls Vision API label detection in a worker thread
    - Maps label annotations to Classification objects

Design Rules:
    - Fail fast on misconfiguration (ClassificationSetupError)
    - Every per-call failure becomes ClassificationError
    - Log all API calls
"""

import asyncio
import logging
from typing import List, Optional

from stillgate.stream.frame import Frame
from stillgate.stream.image_decoder import (
    decode_frame_bgr,
    encode_jpeg,
    orient_image,
    ImageDecodeError,
)
from stillgate.models.classification import Classification
from stillgate.models.orientation import ExifOrientation
from stillgate.classification.engine import ClassificationError, ClassificationSetupError


logger = logging.getLogger(__name__)


class VisionClassificationEngine:
    """
    Classification engine backed by Google Cloud Vision label detection.

    Attributes:
        max_results: Maximum labels requested per frame
        credentials_path: Path to service account JSON
    """

    def __init__(
        self,
        max_results: int = 5,
        credentials_path: Optional[str] = None,
    ) -> None:
        """
        Initialize Vision classification engine.

        Args:
            max_results: Maximum labels per request
            credentials_path: Path to service account JSON (optional)

        Raises:
            ClassificationSetupError: If google-cloud-vision is missing
                or the client cannot be created
        """
        self.max_results = max(1, max_results)
        self.credentials_path = credentials_path

        self._api_call_count: int = 0
        self._api_error_count: int = 0

        self._client = None
        self._vision = None
        self._init_client(credentials_path)

        logger.info(f"VisionClassificationEngine initialized: max_results={self.max_results}")

    def _init_client(self, credentials_path: Optional[str]) -> None:
        """Initialize Google Cloud Vision client."""
        try:
            from google.cloud import vision
        except ImportError:
            raise ClassificationSetupError(
                "google-cloud-vision is required for VisionClassificationEngine. "
                "Install with: pip install 'stillgate[vision]'"
            )
        self._vision = vision

        try:
            if credentials_path:
                self._client = vision.ImageAnnotatorClient.from_service_account_json(
                    credentials_path
                )
                logger.info(f"Vision client initialized from: {credentials_path}")
            else:
                self._client = vision.ImageAnnotatorClient()
                logger.info("Vision client initialized with default credentials")
        except Exception as e:
            raise ClassificationSetupError(f"Failed to initialize Vision client: {e}")

    async def classify(
        self,
        frame: Frame,
        orientation: ExifOrientation,
    ) -> List[Classification]:
        """
        Classify a frame with Vision API label detection.

        Raises:
            ClassificationError: On decode failure or API error
        """
        try:
            upright = orient_image(decode_frame_bgr(frame), orientation)
            content = encode_jpeg(upright)
        except ImageDecodeError as e:
            raise ClassificationError(f"Cannot prepare frame {frame.frame_id}: {e}") from e

        self._api_call_count += 1
        try:
            response = await asyncio.to_thread(
                self._client.label_detection,
                image=self._vision.Image(content=content),
                max_results=self.max_results,
            )
        except Exception as e:
            self._api_error_count += 1
            raise ClassificationError(f"Vision API call failed: {e}") from e

        if response.error.message:
            self._api_error_count += 1
            raise ClassificationError(f"Vision API: {response.error.message}")

        labels = [
            Classification(
                label=annotation.description,
                confidence=min(1.0, max(0.0, float(annotation.score))),
            )
            for annotation in response.label_annotations
        ]
        labels.sort(key=lambda c: c.confidence, reverse=True)

        logger.debug(
            f"Vision API: frame={frame.frame_id}, labels={len(labels)}, "
            f"top={labels[0].label if labels else None}"
        )
        return labels

    def get_metrics(self) -> dict:
        """Get engine metrics for observability."""
        return {
            "api_call_count": self._api_call_count,
            "api_error_count": self._api_error_count,
            "max_results": self.max_results,
        }
