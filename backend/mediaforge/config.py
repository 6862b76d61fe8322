from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings

_PLACEHOLDER_KEYS = {"your_kie_api_key_here", "your_fal_api_key_here"}


class Settings(BaseSettings):
    """MediaForge application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "MediaForge"
    DEBUG: bool = False

    # --- Database (async SQLAlchemy URL) ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./mediaforge.db"

    # --- Redis (progress pub/sub) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Asset storage ---
    ASSETS_DIR: str = "assets"

    # --- KIE.AI (Veo video, Suno music) ---
    KIE_API_KEY: str = ""
    KIE_BASE_URL: str = "https://api.kie.ai"
    KIE_VIDEO_POLL_INTERVAL: float = 5.0
    KIE_VIDEO_POLL_TIMEOUT: float = 180.0
    KIE_MUSIC_POLL_INTERVAL: float = 5.0
    KIE_MUSIC_POLL_TIMEOUT: float = 180.0

    # --- FAL.AI (Kling / Wan video, SonAuto music) ---
    FAL_API_KEY: str = ""
    FAL_BASE_URL: str = "https://fal.run"

    # --- HTTP ---
    HTTP_TIMEOUT: float = 15.0
    FAL_TIMEOUT: float = 600.0
    DOWNLOAD_TIMEOUT: float = 120.0

    # --- FFmpeg assembly ---
    FFMPEG_BIN: str = "ffmpeg"
    FFPROBE_BIN: str = "ffprobe"
    ASSEMBLY_FPS: int = 24
    ASSEMBLY_TIMEOUT: int = 600

    @property
    def kie_api_key(self) -> str | None:
        return _real_key(self.KIE_API_KEY)

    @property
    def fal_api_key(self) -> str | None:
        return _real_key(self.FAL_API_KEY)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def _real_key(value: str) -> str | None:
    """Treat empty and sample-file placeholder keys as unset."""
    if not value or value in _PLACEHOLDER_KEYS:
        return None
    return value


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
