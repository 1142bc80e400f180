"""
Orientation Models
==================

Device orientation as reported by the capture side, and the EXIF
orientation hint handed to the classification backend.

Mapping (device → EXIF):
    portrait              → UP
    portrait_upside_down  → LEFT
    landscape_left        → UP_MIRRORED
    landscape_right       → DOWN
    anything else         → UP
"""

from enum import Enum


class DeviceOrientation(str, Enum):
    """Physical orientation of the capturing device."""

    PORTRAIT = "portrait"
    PORTRAIT_UPSIDE_DOWN = "portrait_upside_down"
    LANDSCAPE_LEFT = "landscape_left"
    LANDSCAPE_RIGHT = "landscape_right"
    FACE_UP = "face_up"
    FACE_DOWN = "face_down"
    UNKNOWN = "unknown"


class ExifOrientation(int, Enum):
    """
    EXIF orientation tag values (TIFF/EXIF 0x0112).

    The value describes how the stored pixels must be transformed
    for the image to appear upright.
    """

    UP = 1
    UP_MIRRORED = 2
    DOWN = 3
    DOWN_MIRRORED = 4
    LEFT_MIRRORED = 5
    RIGHT = 6
    RIGHT_MIRRORED = 7
    LEFT = 8


_DEVICE_TO_EXIF = {
    DeviceOrientation.PORTRAIT: ExifOrientation.UP,
    DeviceOrientation.PORTRAIT_UPSIDE_DOWN: ExifOrientation.LEFT,
    DeviceOrientation.LANDSCAPE_LEFT: ExifOrientation.UP_MIRRORED,
    DeviceOrientation.LANDSCAPE_RIGHT: ExifOrientation.DOWN,
}


def exif_orientation_from_device(orientation: DeviceOrientation) -> ExifOrientation:
    """Map a device orientation to the EXIF hint used for classification."""
    return _DEVICE_TO_EXIF.get(orientation, ExifOrientation.UP)


def parse_device_orientation(value: str) -> DeviceOrientation:
    """Parse a device orientation string, falling back to UNKNOWN."""
    try:
        return DeviceOrientation(value.lower())
    except ValueError:
        return DeviceOrientation.UNKNOWN
