"""
Input Message Schema
====================

This module defines the Pydantic model for frame messages received over
the WebSocket frame stream.

Input Contract:
    {
        "source": "camera-bridge",
        "version": "v1.0",
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "fps": 30,
        "image": "<base64 JPEG>",
        "orientation": "portrait"
    }

Guarantees (from the stream):
    - frame_id is monotonically increasing
    - image is unmodified from the camera
    - orientation is optional and defaults to "portrait"

Example:
    from stillgate.models.input import FrameMessage

    raw = await websocket.recv()
    message = FrameMessage.model_validate_json(raw)
"""

from pydantic import BaseModel, Field, field_validator

from stillgate.models.orientation import DeviceOrientation, parse_device_orientation


class FrameMessage(BaseModel):
    """
    Schema for frame messages received from the frame stream.

    Any message that does not conform to this schema is rejected by
    the consumer and counted as a parse error.

    Attributes:
        source: Identifier of the upstream publisher
        version: Protocol version for compatibility checking
        frame_id: Monotonically increasing frame counter
        timestamp: UNIX timestamp when frame was emitted
        fps: Declared stream FPS
        image: Base64-encoded JPEG frame data
        orientation: Device orientation at capture time
    """

    source: str = Field(
        default="unknown",
        description="Source identifier",
    )

    version: str = Field(
        default="v1.0",
        description="Protocol version for compatibility checking",
    )

    frame_id: int = Field(
        ...,
        ge=0,
        description="Monotonically increasing frame counter from source",
    )

    timestamp: float = Field(
        ...,
        gt=0,
        description="UNIX timestamp in seconds when frame was emitted",
    )

    fps: int = Field(
        default=30,
        ge=1,
        le=120,
        description="Declared stream FPS",
    )

    image: str = Field(
        ...,
        min_length=1,
        description="Base64-encoded JPEG frame data",
    )

    orientation: DeviceOrientation = Field(
        default=DeviceOrientation.PORTRAIT,
        description="Device orientation at capture time",
    )

    @field_validator("orientation", mode="before")
    @classmethod
    def _lenient_orientation(cls, value):
        if isinstance(value, str):
            return parse_device_orientation(value)
        return value

    model_config = {
        "json_schema_extra": {
            "example": {
                "source": "camera-bridge",
                "version": "v1.0",
                "frame_id": 1234,
                "timestamp": 1707321234.567,
                "fps": 30,
                "image": "/9j/4AAQSkZJRg...",
                "orientation": "portrait",
            }
        }
    }
