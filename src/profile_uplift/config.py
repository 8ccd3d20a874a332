"""Application configuration."""

import os

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

PROVIDERS = ("gemini", "openai")


class BudgetConfig(BaseModel):
    """Tunables for the inline payload budgeter and JPEG search.

    Defaults target a 4.5 MB serverless request ceiling with some headroom.
    """

    ceiling_bytes: int = 4_200_000
    structural_overhead_bytes: int = 16_000
    per_image_overhead_bytes: int = 600
    floor_bytes: int = 40_000
    cap_bytes: int = 700_000
    # (max photo count, starting long-side pixels); the last step applies above.
    dimension_steps: list[tuple[int, int]] = [(4, 1600), (8, 1280), (16, 1024)]
    dimension_fallback: int = 896
    min_dimension: int = 384
    max_retries: int = 4
    target_shrink: float = 0.7
    dimension_shrink: float = 0.75
    initial_quality: float = 0.85
    min_quality: float = 0.45
    quality_step: float = 0.07
    dimension_ratio: float = 0.85
    max_concurrency: int = 4


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str | None = None
    openai_model: str = "gpt-5-mini"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    default_provider: str = "openai"
    gateway_url: str | None = None

    cloudinary_cloud_name: str | None = None
    cloudinary_api_key: str | None = None
    cloudinary_api_secret: str | None = None
    cloudinary_upload_preset: str | None = None
    cloudinary_signature_url: str | None = None

    llm_timeout_seconds: float = 90.0
    decode_timeout_seconds: float = 15.0
    upload_timeout_seconds: float = 60.0
    image_fetch_timeout_seconds: float = 20.0
    analysis_watchdog_seconds: float = 180.0

    photos_to_select: int = 5
    max_upload_photos: int = 30
    min_upload_photos: int = 1
    max_chat_refinements: int = 2
    session_ttl_seconds: int = 6 * 3600

    budget: BudgetConfig = BudgetConfig()
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        env_nested_delimiter="__",
        extra="ignore",
    )

    @property
    def cloudinary_configured(self) -> bool:
        """Whether server-side signing credentials are complete."""
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )


def parse_provider(raw: str | None, fallback: str = "openai") -> str:
    """Normalize a provider name from env or request input."""
    if raw is None:
        return fallback
    cleaned = raw.strip().lower()
    if cleaned in PROVIDERS:
        return cleaned
    return fallback
