"""
Frame Registration
==================

Translational registration between consecutive frames.

This module provides the registration adapters consumed by the pipeline
controller. Each adapter answers one question: by how many pixels did
the current frame move relative to the previous one?

Backends:
    - PhaseCorrelationRegistrar: FFT phase correlation (global shift)
    - FlowRegistrar: mean of a Farnebäck dense optical flow field

Key Design Decisions:
    - Adapters are synchronous and must be called in arrival order
    - The decoded previous frame is reused across calls
    - Every failure surfaces as RegistrationError; nothing else escapes
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Protocol, Tuple

import cv2
import numpy as np

from stillgate.models.displacement import DisplacementSample
from stillgate.stream.frame import Frame
from stillgate.stream.image_decoder import decode_frame_grayscale, ImageDecodeError


logger = logging.getLogger(__name__)


class RegistrationError(Exception):
    """Raised when a displacement cannot be computed for a frame pair."""
    pass


class RegistrationAdapter(Protocol):
    """
    Protocol for registration backends.

    Implementations hold cumulative alignment state and are NOT safe to
    call concurrently for overlapping frame pairs.
    """

    def align(self, previous: Frame, current: Frame) -> DisplacementSample:
        """
        Compute the displacement of `current` relative to `previous`.

        Raises:
            RegistrationError: If no displacement can be computed
        """
        ...


class _DecodingRegistrar(ABC):
    """Shared decode-and-cache logic for image based registrars."""

    def __init__(self) -> None:
        self._cached_frame: Optional[Frame] = None
        self._cached_gray: Optional[np.ndarray] = None
        self.align_count: int = 0
        self.failure_count: int = 0

    def _gray(self, frame: Frame) -> np.ndarray:
        if frame is self._cached_frame and self._cached_gray is not None:
            return self._cached_gray
        try:
            return decode_frame_grayscale(frame)
        except ImageDecodeError as e:
            raise RegistrationError(str(e)) from e

    def _decode_pair(self, previous: Frame, current: Frame) -> Tuple[np.ndarray, np.ndarray]:
        prev_gray = self._gray(previous)
        curr_gray = self._gray(current)

        # The current frame is the next call's previous frame
        self._cached_frame = current
        self._cached_gray = curr_gray

        if prev_gray.shape != curr_gray.shape:
            raise RegistrationError(
                f"Frame shapes must match. Got: "
                f"{prev_gray.shape} (frame {previous.frame_id}) vs "
                f"{curr_gray.shape} (frame {current.frame_id})"
            )
        return prev_gray, curr_gray

    def align(self, previous: Frame, current: Frame) -> DisplacementSample:
        self.align_count += 1
        try:
            prev_gray, curr_gray = self._decode_pair(previous, current)
            return self._register(prev_gray, curr_gray)
        except RegistrationError:
            self.failure_count += 1
            raise
        except cv2.error as e:
            self.failure_count += 1
            raise RegistrationError(
                f"OpenCV registration failed for frames "
                f"{previous.frame_id}->{current.frame_id}: {e}"
            ) from e

    @abstractmethod
    def _register(self, prev_gray: np.ndarray, curr_gray: np.ndarray) -> DisplacementSample:
        """Displacement of curr_gray relative to prev_gray."""

    def get_metrics(self) -> dict:
        """Get registrar metrics for observability."""
        return {
            "align_count": self.align_count,
            "failure_count": self.failure_count,
        }


class PhaseCorrelationRegistrar(_DecodingRegistrar):
    """
    Phase correlation registrar.

    Uses OpenCV's phaseCorrelate on Hanning-windowed grayscale frames to
    estimate the global translation with sub-pixel accuracy. The peak
    response (0..1) is a confidence measure; pairs below `min_response`
    are rejected.

    Reference:
        Kuglin, C. D. & Hines, D. C. (1975). The Phase Correlation Image
        Alignment Method. Proc. IEEE Int. Conf. Cybernetics and Society.
    """

    def __init__(self, min_response: float = 0.0) -> None:
        """
        Initialize phase correlation registrar.

        Args:
            min_response: Minimum accepted peak response in [0, 1]
        """
        super().__init__()
        if not 0.0 <= min_response <= 1.0:
            raise ValueError(f"min_response must be in [0, 1], got {min_response}")
        self.min_response = min_response
        self._windows: Dict[Tuple[int, int], np.ndarray] = {}
        self.last_response: Optional[float] = None

        logger.info(f"PhaseCorrelationRegistrar initialized: min_response={min_response}")

    def _window(self, shape: Tuple[int, int]) -> np.ndarray:
        window = self._windows.get(shape)
        if window is None:
            height, width = shape
            window = cv2.createHanningWindow((width, height), cv2.CV_32F)
            self._windows[shape] = window
        return window

    def _register(self, prev_gray: np.ndarray, curr_gray: np.ndarray) -> DisplacementSample:
        prev_f = prev_gray.astype(np.float32)
        curr_f = curr_gray.astype(np.float32)

        (dx, dy), response = cv2.phaseCorrelate(prev_f, curr_f, self._window(prev_gray.shape))
        self.last_response = float(response)

        if not (np.isfinite(dx) and np.isfinite(dy)):
            raise RegistrationError(f"Non-finite phase correlation shift: ({dx}, {dy})")
        if response < self.min_response:
            raise RegistrationError(
                f"Phase correlation response {response:.3f} below minimum {self.min_response:.3f}"
            )

        return DisplacementSample(dx=float(dx), dy=float(dy))


class FlowRegistrar(_DecodingRegistrar):
    """
    Farnebäck dense optical flow registrar.

    The displacement is the mean flow vector over the whole frame. Slower
    than phase correlation but tolerant of scenes without strong texture.

    Algorithm Parameters (from OpenCV docs):
        - pyr_scale: Pyramid scaling (0.5 = classical pyramid)
        - levels: Number of pyramid levels
        - winsize: Averaging window size
        - iterations: Number of iterations at each level
        - poly_n: Neighborhood size for polynomial expansion
        - poly_sigma: Standard deviation for polynomial expansion

    Reference:
        Farnebäck, G. (2003). Two-Frame Motion Estimation Based on
        Polynomial Expansion. Image Analysis, 363-370.
    """

    def __init__(
        self,
        pyr_scale: float = 0.5,
        levels: int = 3,
        winsize: int = 15,
        iterations: int = 3,
        poly_n: int = 5,
        poly_sigma: float = 1.2,
    ) -> None:
        super().__init__()
        self.pyr_scale = pyr_scale
        self.levels = levels
        self.winsize = winsize
        self.iterations = iterations
        self.poly_n = poly_n
        self.poly_sigma = poly_sigma

        logger.info(
            f"FlowRegistrar initialized: "
            f"winsize={winsize}, levels={levels}, iterations={iterations}"
        )

    def _register(self, prev_gray: np.ndarray, curr_gray: np.ndarray) -> DisplacementSample:
        flow = cv2.calcOpticalFlowFarneback(
            prev_gray,
            curr_gray,
            None,
            self.pyr_scale,
            self.levels,
            self.winsize,
            self.iterations,
            self.poly_n,
            self.poly_sigma,
            0,
        )
        dx = float(np.mean(flow[..., 0]))
        dy = float(np.mean(flow[..., 1]))
        return DisplacementSample(dx=dx, dy=dy)


def create_registrar(method: str, min_response: float = 0.0) -> RegistrationAdapter:
    """
    Create a registration adapter by name.

    Args:
        method: 'phase_correlation' or 'farneback'
        min_response: Phase correlation confidence floor

    Raises:
        ValueError: For an unknown method
    """
    if method == "phase_correlation":
        return PhaseCorrelationRegistrar(min_response=min_response)
    if method == "farneback":
        return FlowRegistrar()
    raise ValueError(f"Unknown registration method: {method}")
