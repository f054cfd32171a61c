"""
Picture Resizer Configuration
=============================

This module handles configuration loading for the image transform service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    RESIZER_OUTPUT_FORMAT        -> transform.output_format
    RESIZER_JPEG_QUALITY         -> transform.jpeg_quality
    RESIZER_FRAME_CACHE_CAPACITY -> frame_cache.capacity
    RESIZER_DEDUPE_INFLIGHT      -> frame_cache.dedupe_inflight
    RESIZER_MAX_WORKERS          -> pipeline.max_workers
    RESIZER_FETCH_TIMEOUT        -> fetch.timeout_seconds
    RESIZER_PORT                 -> server.port
    RESIZER_LOG_LEVEL            -> logging.level
    PORT                         -> server.port (Cloud Run)

Example:
    from picture_resizer.config import settings

    print(settings.transform.output_format)
    print(settings.frame_cache.capacity)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from picture_resizer.models.metadata import OutputFormat


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="picture-resizer", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=2920, ge=1, le=65535, description="Bind port")


class TransformConfig(BaseModel):
    """Encoder settings shared by all transforms."""

    output_format: OutputFormat = Field(
        default=OutputFormat.JPEG,
        description="Encode format for canvas extension: 'jpeg' or 'png'",
    )
    jpeg_quality: int = Field(
        default=80,
        ge=1,
        le=100,
        description="JPEG encoder quality",
    )
    png_compression: int = Field(
        default=6,
        ge=0,
        le=9,
        description="PNG zlib compression level",
    )


class FrameCacheConfig(BaseModel):
    """Frame asset cache configuration."""

    capacity: int = Field(
        default=5,
        ge=1,
        description="Maximum number of decoded frames kept in memory",
    )
    dedupe_inflight: bool = Field(
        default=True,
        description="Share one fetch between concurrent misses on the same URL",
    )


class PipelineConfig(BaseModel):
    """Streaming pipeline configuration."""

    chunk_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Size of chunks written to the output sink",
    )
    queue_size: int = Field(
        default=16,
        ge=1,
        description="Maximum number of chunks buffered between stages",
    )
    max_probe_bytes: int = Field(
        default=4 * 1024 * 1024,
        ge=1024,
        description="Maximum prefix buffered while probing image dimensions",
    )
    max_pixels: int = Field(
        default=0x3FFF * 0x3FFF,
        ge=1,
        description="Largest accepted source width * height",
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Threads available for decode/resize/encode work",
    )


class FetchConfig(BaseModel):
    """Outbound HTTP configuration for sources and frame assets."""

    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Connect/read timeout for remote fetches",
    )
    user_agent: str = Field(
        default="picture-resizer/0.1",
        description="User-Agent header sent upstream",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the picture resizer.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    transform: TransformConfig = Field(default_factory=TransformConfig)
    frame_cache: FrameCacheConfig = Field(default_factory=FrameCacheConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
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

    # Transform settings
    if env_format := os.environ.get("RESIZER_OUTPUT_FORMAT"):
        config_data.setdefault("transform", {})["output_format"] = env_format.lower()
    if env_quality := os.environ.get("RESIZER_JPEG_QUALITY"):
        config_data.setdefault("transform", {})["jpeg_quality"] = int(env_quality)

    # Frame cache settings
    if env_capacity := os.environ.get("RESIZER_FRAME_CACHE_CAPACITY"):
        config_data.setdefault("frame_cache", {})["capacity"] = int(env_capacity)
    if env_dedupe := os.environ.get("RESIZER_DEDUPE_INFLIGHT"):
        config_data.setdefault("frame_cache", {})["dedupe_inflight"] = (
            env_dedupe.strip().lower() in ("1", "true", "yes", "on")
        )

    # Pipeline settings
    if env_workers := os.environ.get("RESIZER_MAX_WORKERS"):
        config_data.setdefault("pipeline", {})["max_workers"] = int(env_workers)

    # Fetch settings
    if env_timeout := os.environ.get("RESIZER_FETCH_TIMEOUT"):
        config_data.setdefault("fetch", {})["timeout_seconds"] = float(env_timeout)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("RESIZER_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("RESIZER_LOG_LEVEL"):
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
