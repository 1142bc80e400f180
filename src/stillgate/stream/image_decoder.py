"""
Image Decoder
=============

Dedicated module for converting between base64 JPEG frames and
OpenCV matrices.

Design Rules:
    - This is the ONLY place in the codebase that decodes or encodes images
    - Validates shape and dtype
    - Fails fast on corrupt frames
    - Returns grayscale for registration, BGR for classification
"""

import base64
import binascii
import logging

import cv2
import numpy as np

from stillgate.stream.frame import Frame
from stillgate.models.orientation import ExifOrientation


logger = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """Raised when image decoding or encoding fails."""
    pass


def _decode_bgr(frame: Frame) -> np.ndarray:
    try:
        image_bytes = base64.b64decode(frame.image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(
            f"Base64 decode failed for frame {frame.frame_id}: {e}"
        )

    nparr = np.frombuffer(image_bytes, np.uint8)
    if nparr.size == 0:
        raise ImageDecodeError(f"Empty image payload for frame {frame.frame_id}")

    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ImageDecodeError(
            f"Failed to decode frame {frame.frame_id}: cv2.imdecode returned None"
        )

    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(
            f"Invalid image shape for frame {frame.frame_id}: {bgr.shape}"
        )

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(
            f"Invalid dtype for frame {frame.frame_id}: {bgr.dtype}"
        )

    return bgr


def decode_frame_grayscale(frame: Frame) -> np.ndarray:
    """
    Decode base64 JPEG frame to grayscale numpy array.

    This is the primary decoder for frame registration.

    Args:
        frame: Frame with base64-encoded JPEG image

    Returns:
        Grayscale image as np.ndarray (H, W), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    return cv2.cvtColor(_decode_bgr(frame), cv2.COLOR_BGR2GRAY)


def decode_frame_bgr(frame: Frame) -> np.ndarray:
    """
    Decode base64 JPEG frame to BGR numpy array.

    Args:
        frame: Frame with base64-encoded JPEG image

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    return _decode_bgr(frame)


def orient_image(image: np.ndarray, orientation: ExifOrientation) -> np.ndarray:
    """
    Transform stored pixels so the image appears upright.

    Args:
        image: Image as decoded from the frame
        orientation: EXIF orientation hint

    Returns:
        Upright image (may share memory with the input for UP)
    """
    if orientation == ExifOrientation.UP:
        return image
    if orientation == ExifOrientation.UP_MIRRORED:
        return cv2.flip(image, 1)
    if orientation == ExifOrientation.DOWN:
        return cv2.rotate(image, cv2.ROTATE_180)
    if orientation == ExifOrientation.DOWN_MIRRORED:
        return cv2.flip(image, 0)
    if orientation == ExifOrientation.LEFT_MIRRORED:
        return cv2.transpose(image)
    if orientation == ExifOrientation.RIGHT:
        return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
    if orientation == ExifOrientation.RIGHT_MIRRORED:
        return cv2.flip(cv2.transpose(image), -1)
    return cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)


def encode_jpeg(image: np.ndarray, quality: int = 90) -> bytes:
    """
    Encode an image as JPEG bytes.

    Raises:
        ImageDecodeError: If OpenCV refuses the image
    """
    ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ImageDecodeError(f"JPEG encoding failed for image of shape {image.shape}")
    return buf.tobytes()


def encode_image_b64(image: np.ndarray, quality: int = 90) -> str:
    """Encode an image as the base64 JPEG string carried by Frame."""
    return base64.b64encode(encode_jpeg(image, quality)).decode("ascii")
