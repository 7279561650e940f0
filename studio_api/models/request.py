import re
from typing import Self
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from studio_api.imaging import is_internal_host

MAX_PROMPT_LENGTH = 4000
MAX_ENHANCE_LENGTH = 5000

# ~20MB of decoded image data is ~27MB of base64 text
MAX_BASE64_LENGTH = 27 * 1024 * 1024

DATA_URL_PATTERN = re.compile(r"^data:image/(png|jpeg|jpg|gif|webp);base64,")


def _stripped_non_empty(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{field} cannot be empty")
    return value


class GenerateRequest(BaseModel):
    prompt: str = Field(max_length=MAX_PROMPT_LENGTH)
    style: str | None = None

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        return _stripped_non_empty(value, "Prompt")

    @field_validator("style")
    @classmethod
    def _blank_style_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class AnalyzeRequest(BaseModel):
    """Exactly one of imageUrl / imageBase64."""

    imageUrl: str | None = None
    imageBase64: str | None = Field(default=None, max_length=MAX_BASE64_LENGTH)

    @field_validator("imageUrl")
    @classmethod
    def _http_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid imageUrl. Must be a valid HTTP/HTTPS URL.")
        if is_internal_host(parsed.hostname or ""):
            raise ValueError("Invalid imageUrl. Must point to a publicly reachable host.")
        return value

    @field_validator("imageBase64")
    @classmethod
    def _image_data_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not DATA_URL_PATTERN.match(value):
            raise ValueError(
                "Invalid imageBase64. Must be a valid data URL (e.g., data:image/png;base64,...)"
            )
        return value

    @model_validator(mode="after")
    def _exactly_one_source(self) -> Self:
        if self.imageUrl is None and self.imageBase64 is None:
            raise ValueError("Missing required field: provide either imageUrl or imageBase64")
        if self.imageUrl is not None and self.imageBase64 is not None:
            raise ValueError("Provide only one of imageUrl or imageBase64, not both.")
        return self


class EnhanceRequest(BaseModel):
    prompt: str = Field(max_length=MAX_ENHANCE_LENGTH)

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        return _stripped_non_empty(value, "Prompt")
