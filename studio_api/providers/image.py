import logging
import random
from urllib.parse import quote, urlencode

import httpx

from studio_api.config import Settings
from studio_api.providers.base import (
    ContentPolicyError,
    ImageProvider,
    MalformedResponseError,
    fan_out,
)

logger = logging.getLogger(__name__)


def _data_url(b64: str, mime_type: str = "image/png") -> str:
    if not isinstance(b64, str) or not b64:
        raise TypeError(f"image payload must be a base64 string, got {type(b64).__name__}")
    return f"data:{mime_type};base64,{b64}"


class GeminiImageProvider(ImageProvider):
    """Google Imagen 3 via the Generative Language API. Batches natively."""

    name = "gemini"
    credential = "google_api_key"
    model = "imagen-3.0-generate-002"
    max_samples = 4

    async def generate(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        api_key = self.require_key(settings)
        response = await client.post(
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:predict",
            headers={"x-goog-api-key": api_key},
            json={
                "instances": [{"prompt": prompt}],
                "parameters": {
                    "sampleCount": min(count, self.max_samples),
                    "aspectRatio": "1:1",
                },
            },
        )
        self.check_response(response)
        predictions = response.json().get("predictions") or []
        images = [
            _data_url(p["bytesBase64Encoded"], p.get("mimeType", "image/png"))
            for p in predictions
            if p.get("bytesBase64Encoded")
        ]
        if not images and any(p.get("raiFilteredReason") for p in predictions):
            raise ContentPolicyError(self.name, predictions[0]["raiFilteredReason"])
        if not images:
            raise MalformedResponseError(self.name, "returned no predictions")
        return images


class StabilityImageProvider(ImageProvider):
    """Stability AI SDXL text-to-image. ``samples`` gives the count in one call."""

    name = "stability"
    credential = "stability_api_key"
    engine = "stable-diffusion-xl-1024-v1-0"

    async def generate(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        api_key = self.require_key(settings)
        response = await client.post(
            f"https://api.stability.ai/v1/generation/{self.engine}/text-to-image",
            headers={"Authorization": f"Bearer {api_key}", "Accept": "application/json"},
            json={
                "text_prompts": [{"text": prompt}],
                "samples": count,
                "width": 1024,
                "height": 1024,
                "steps": 30,
                "cfg_scale": 7,
            },
        )
        self.check_response(response)
        artifacts = response.json()["artifacts"]
        if any(a.get("finishReason") == "CONTENT_FILTERED" for a in artifacts):
            raise ContentPolicyError(self.name, "Prompt was blocked by the safety filter")
        return [_data_url(a["base64"]) for a in artifacts]


class TogetherImageProvider(ImageProvider):
    """Together.ai hosted FLUX.1 [schnell]."""

    name = "together"
    credential = "together_api_key"
    model = "black-forest-labs/FLUX.1-schnell"

    async def generate(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        api_key = self.require_key(settings)
        response = await client.post(
            "https://api.together.xyz/v1/images/generations",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": self.model,
                "prompt": prompt,
                "n": count,
                "width": 1024,
                "height": 1024,
                "steps": 4,
                "response_format": "base64",
            },
        )
        self.check_response(response)
        return [_data_url(item["b64_json"], "image/jpeg") for item in response.json()["data"]]


class OpenAIImageProvider(ImageProvider):
    """DALL-E 3. Only accepts n=1, so the requested count is fanned out in parallel."""

    name = "openai"
    credential = "openai_api_key"
    model = "dall-e-3"

    async def generate(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        api_key = self.require_key(settings)
        return await fan_out(
            [self._generate_one(client, prompt, api_key, settings) for _ in range(count)]
        )

    async def _generate_one(
        self, client: httpx.AsyncClient, prompt: str, api_key: str, settings: Settings
    ) -> str:
        response = await client.post(
            f"{settings.openai_base_url.rstrip('/')}/images/generations",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": self.model,
                "prompt": prompt,
                "n": 1,
                "size": settings.image_size,
                "quality": settings.image_quality,
                "response_format": "url",
            },
        )
        self.check_response(response)
        return response.json()["data"][0]["url"]


class PollinationsImageProvider(ImageProvider):
    """Keyless FLUX via image.pollinations.ai.

    The image is rendered when the browser fetches the URL, so this provider only
    builds one URL per image with a random seed for variation.
    """

    name = "pollinations"
    credential = "pollinations_enabled"
    base_url = "https://image.pollinations.ai/prompt/"

    def is_configured(self, settings: Settings) -> bool:
        return settings.pollinations_enabled

    def require_key(self, settings: Settings) -> str:
        return ""

    async def generate(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        encoded = quote(prompt, safe="")
        images = []
        for _ in range(count):
            params = {
                "width": 1024,
                "height": 1024,
                "seed": random.randint(0, 10_000_000),
                "nologo": "true",
                "model": "flux",
                "private": "true",
                "enhance": "true",
            }
            images.append(f"{self.base_url}{encoded}?{urlencode(params)}")
        logger.debug("Built %d pollinations URLs", len(images))
        return images


# Fixed priority: most capable first, legacy paid next-to-last, keyless last
IMAGE_PROVIDERS: tuple[ImageProvider, ...] = (
    GeminiImageProvider(),
    StabilityImageProvider(),
    TogetherImageProvider(),
    OpenAIImageProvider(),
    PollinationsImageProvider(),
)
