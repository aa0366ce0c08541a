"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    api_base_url: str
    api_token: str | None = None
    request_timeout_seconds: float = 30.0
    upload_chunk_size: int = 1024 * 1024
    max_content_size: int = 10 * 1024 * 1024
    min_resolution: int = 300
    allowed_mime_types: str = "image/jpeg,image/png,image/tiff"
    allowed_color_spaces: str = "RGB,CMYK"
    max_photos_per_gazette: int = 28
    max_text_length: int = 500
    min_image_quality: int = 85
    poll_interval_ms: int = 5000
    poll_timeout_seconds: float = 600.0
    max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_jitter_seconds: float = 0.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        env_prefix="GAZETTE_",
        extra="ignore",
    )


def parse_csv_set(raw: str | None, *, upper: bool = False) -> frozenset[str]:
    """Parse a comma separated setting into a set of trimmed values."""
    if raw is None:
        return frozenset()
    values: set[str] = set()
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        values.add(value.upper() if upper else value.lower())
    return frozenset(values)
