from __future__ import annotations

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MiB
DEFAULT_MAX_DIMENSION = 20000


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # HTTP server
    server_host: str = Field("0.0.0.0", description="Interface the HTTP server binds to.")
    server_port: int = Field(8080, description="Port the HTTP server listens on.")
    cors_allowed_origins: list[str] = Field(default_factory=list, description="Origins allowed by CORS; empty disables CORS.")
    idle_timeout: float = Field(60.0, description="Keep-alive idle timeout in seconds.")
    graceful_timeout: float = Field(60.0, description="Drain window for in-flight requests on shutdown.")

    # Outbound fetch
    user_agent: str = Field("image-gem/1.0 (+https://github.com/arkami8/image-gem)")
    fetch_timeout: float = Field(10.0, description="Timeout for the upstream image fetch, in seconds.")
    follow_redirects: bool = True
    max_image_bytes: int = Field(DEFAULT_MAX_IMAGE_BYTES, gt=0, description="Upstream body ceiling in bytes.")

    # Image processing
    image_backend: str = Field("pillow", description="Image operations backend.")
    max_dimension: int = Field(DEFAULT_MAX_DIMENSION, gt=0, description="Upper bound for width/height parameters (pixels).")
    max_source_pixels: int = Field(178956970, gt=0, description="Largest decoded source image, in pixels.")

    log_level: str = Field("INFO")

    @field_validator("server_port", mode="before")
    @classmethod
    def _strip_port_colon(cls, value):
        # ":8080" style ports are accepted
        if isinstance(value, str):
            return value.strip().lstrip(":")
        return value


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
