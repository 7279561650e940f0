from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_IMAGE_COUNT = 4


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "DEBUG"

    # Credentials; empty = provider not configured
    google_api_key: str = ""
    stability_api_key: str = ""
    together_api_key: str = ""
    openai_api_key: str = ""
    pollinations_enabled: bool = True  # the keyless tier's stand-in for a credential

    image_provider: str = ""  # Empty = pick by credential priority
    vision_provider: str = ""

    image_count: int = 2
    image_size: str = "1024x1024"
    image_quality: str = "standard"
    provider_timeout: float = 8.0
    terminal_fallback: Literal["unavailable", "substitute"] = "unavailable"

    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    gemini_vision_model: str = "gemini-2.0-flash"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("image_count")
    @classmethod
    def _clamp_image_count(cls, value: int) -> int:
        return min(max(1, value), MAX_IMAGE_COUNT)

    @field_validator("image_provider", "vision_provider")
    @classmethod
    def _normalize_override(cls, value: str) -> str:
        return value.strip().lower()


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process settings snapshot."""
    return settings
