import asyncio
import base64
import json

import pytest

from studio_api.config import Settings
from studio_api.providers.base import ImageProvider, ImageSource, VisionProvider

# Minimal valid 1x1 PNG as base64
TINY_PNG = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
TINY_PNG_DATA_URL = f"data:image/png;base64,{TINY_PNG}"
TINY_PNG_BYTES = base64.b64decode(TINY_PNG)

MOCK_ANALYSIS = {
    "analysis": {
        "objects": ["cat", "windowsill", "plant"],
        "style": "Photorealistic",
        "mood": "Calm and cozy",
        "lighting": "Soft afternoon sunlight",
    },
    "suggestedPrompt": "A tabby cat resting on a sunlit windowsill beside a potted plant, photorealistic",
}


class FakeImageProvider(ImageProvider):
    """In-memory provider that records every prompt it was asked to render."""

    credential = "fake"

    def __init__(self, name: str, configured: bool = True, error: Exception | None = None, delay: float = 0.0):
        self.name = name
        self.configured = configured
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    def is_configured(self, settings: Settings) -> bool:
        return self.configured

    async def generate(self, client, prompt: str, count: int, settings: Settings) -> list[str]:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [f"https://img.test/{self.name}/{i}.png" for i in range(count)]


class FakeVisionProvider(VisionProvider):
    credential = "fake"

    def __init__(self, name: str, configured: bool = True, payload: dict | None = None, error: Exception | None = None):
        self.name = name
        self.configured = configured
        self.payload = MOCK_ANALYSIS if payload is None else payload
        self.error = error
        self.sources: list[ImageSource] = []

    def is_configured(self, settings: Settings) -> bool:
        return self.configured

    async def analyze(self, client, image: ImageSource, settings: Settings) -> str:
        self.sources.append(image)
        if self.error is not None:
            raise self.error
        return json.dumps(self.payload)


@pytest.fixture(autouse=True)
def app_settings(monkeypatch):
    """Start every test from a clean, credential-free configuration."""
    from studio_api.config import settings

    for field in (
        "google_api_key",
        "stability_api_key",
        "together_api_key",
        "openai_api_key",
        "image_provider",
        "vision_provider",
    ):
        monkeypatch.setattr(settings, field, "")
    monkeypatch.setattr(settings, "pollinations_enabled", False)
    monkeypatch.setattr(settings, "terminal_fallback", "unavailable")
    monkeypatch.setattr(settings, "image_count", 2)
    monkeypatch.setattr(settings, "provider_timeout", 8.0)
    monkeypatch.setattr(settings, "openai_base_url", "https://api.openai.com/v1")
    monkeypatch.setattr(settings, "gemini_vision_model", "gemini-2.0-flash")
    return settings


@pytest.fixture
def fake_image_chain(monkeypatch):
    """Replace the image registry with fakes; returns a setter taking the providers."""

    def install(*providers: FakeImageProvider) -> tuple[FakeImageProvider, ...]:
        monkeypatch.setattr("studio_api.services.generation.IMAGE_PROVIDERS", providers)
        return providers

    return install


@pytest.fixture
def fake_vision_chain(monkeypatch):
    def install(*providers: FakeVisionProvider) -> tuple[FakeVisionProvider, ...]:
        monkeypatch.setattr("studio_api.services.analysis.VISION_PROVIDERS", providers)
        return providers

    return install


@pytest.fixture
def public_dns(monkeypatch):
    """Resolve every hostname to a public address offline; returns the hosts looked up."""
    looked_up: list[str] = []

    async def resolve(host: str) -> list[str]:
        looked_up.append(host)
        return ["93.184.215.14"]

    monkeypatch.setattr("studio_api.providers.vision._resolve_host", resolve)
    return looked_up
