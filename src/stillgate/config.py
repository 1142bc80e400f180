"""
StillGate Configuration
=======================

This module handles configuration loading for the stability gate service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    STILLGATE_STREAM_URL            -> stream.url
    STILLGATE_SOURCE                -> stream.source
    STILLGATE_VIDEO_PATH            -> stream.video_path
    STILLGATE_REGISTRATION_METHOD   -> registration.method
    STILLGATE_HISTORY_CAPACITY      -> stability.history_capacity
    STILLGATE_DISTANCE_THRESHOLD    -> stability.distance_threshold
    STILLGATE_CLASSIFIER_BACKEND    -> classification.backend
    STILLGATE_ACCEPT_CONFIDENCE     -> classification.acceptance_confidence
    STILLGATE_REVIEW_HOLD_SECONDS   -> review.hold_seconds
    STILLGATE_PORT                  -> server.port
    STILLGATE_LOG_LEVEL             -> logging.level
    PORT                            -> server.port (Cloud Run)

Example:
    from stillgate.config import settings

    print(settings.stability.history_capacity)
    print(settings.stability.distance_threshold)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="stillgate", description="Service name")
    version: str = Field(default="v0.1.0", description="Protocol version")


class StreamConfig(BaseModel):
    """Frame source configuration."""

    source: str = Field(
        default="websocket",
        description="Frame source: 'websocket' or 'video'",
    )
    url: str = Field(
        default="ws://localhost:8000/ws/stream",
        description="WebSocket URL of the frame stream",
    )
    video_path: str = Field(
        default="0",
        description="Video file path or camera index for the 'video' source",
    )
    video_fps: int = Field(
        default=30,
        ge=1,
        le=120,
        description="Playback rate for video files (frames per second)",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )
    max_queue_size: int = Field(
        default=5,
        ge=1,
        description="Maximum size of internal frame buffer",
    )


class RegistrationConfig(BaseModel):
    """Frame-to-frame registration configuration."""

    method: str = Field(
        default="phase_correlation",
        description="Registration method: 'phase_correlation' or 'farneback'",
    )
    min_response: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Minimum phase correlation peak response (0 = accept all)",
    )


class StabilityConfig(BaseModel):
    """Stability detection configuration."""

    history_capacity: int = Field(
        default=15,
        ge=1,
        description="Number of displacement samples in the stability window",
    )
    distance_threshold: float = Field(
        default=20.0,
        gt=0,
        description="Manhattan distance of the summed window below which the camera is still",
    )


class MockClassifierConfig(BaseModel):
    """Mock classification backend configuration."""

    labels: List[str] = Field(
        default_factory=lambda: ["mug", "keyboard", "plant", "book"],
        min_length=1,
        description="Labels cycled by the mock classifier",
    )
    delay_seconds: float = Field(
        default=0.2,
        ge=0,
        description="Simulated classification latency",
    )


class VisionClassifierConfig(BaseModel):
    """Google Cloud Vision classification backend configuration."""

    credentials_path: Optional[str] = Field(
        default=None,
        description="Service account JSON (None = application default credentials)",
    )
    max_results: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum labels requested per frame",
    )


class ClassificationConfig(BaseModel):
    """Classification backend configuration."""

    backend: str = Field(
        default="mock",
        description="Classification backend: 'mock' or 'vision'",
    )
    acceptance_confidence: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Top confidence at which a result is shown to the user",
    )
    mock: MockClassifierConfig = Field(default_factory=MockClassifierConfig)
    vision: VisionClassifierConfig = Field(default_factory=VisionClassifierConfig)


class ReviewConfig(BaseModel):
    """Result review configuration."""

    hold_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Seconds an accepted result stays on screen (0 = until dismissed)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")
    log_every_n_frames: int = Field(
        default=30,
        ge=1,
        description="Pipeline state logging interval",
    )


class Settings(BaseModel):
    """
    Main settings class for StillGate.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    stability: StabilityConfig = Field(default_factory=StabilityConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Stream settings
    if env_url := os.environ.get("STILLGATE_STREAM_URL"):
        config_data.setdefault("stream", {})["url"] = env_url
    if env_source := os.environ.get("STILLGATE_SOURCE"):
        config_data.setdefault("stream", {})["source"] = env_source
    if env_video := os.environ.get("STILLGATE_VIDEO_PATH"):
        config_data.setdefault("stream", {})["video_path"] = env_video
    if env_queue := os.environ.get("STILLGATE_MAX_QUEUE_SIZE"):
        config_data.setdefault("stream", {})["max_queue_size"] = int(env_queue)

    # Registration
    if env_method := os.environ.get("STILLGATE_REGISTRATION_METHOD"):
        config_data.setdefault("registration", {})["method"] = env_method

    # Stability window
    if env_capacity := os.environ.get("STILLGATE_HISTORY_CAPACITY"):
        config_data.setdefault("stability", {})["history_capacity"] = int(env_capacity)
    if env_threshold := os.environ.get("STILLGATE_DISTANCE_THRESHOLD"):
        config_data.setdefault("stability", {})["distance_threshold"] = float(env_threshold)

    # Classification
    if env_backend := os.environ.get("STILLGATE_CLASSIFIER_BACKEND"):
        config_data.setdefault("classification", {})["backend"] = env_backend
    if env_accept := os.environ.get("STILLGATE_ACCEPT_CONFIDENCE"):
        config_data.setdefault("classification", {})["acceptance_confidence"] = float(env_accept)
    if env_creds := os.environ.get("STILLGATE_VISION_CREDENTIALS"):
        config_data.setdefault("classification", {}).setdefault("vision", {})["credentials_path"] = env_creds

    # Review
    if env_hold := os.environ.get("STILLGATE_REVIEW_HOLD_SECONDS"):
        config_data.setdefault("review", {})["hold_seconds"] = float(env_hold)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("STILLGATE_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("STILLGATE_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
