import asyncio
import base64
import logging
import socket

import httpx

from studio_api.config import Settings
from studio_api.imaging import InvalidImageError, is_internal_host, normalize_image
from studio_api.models.request import MAX_BASE64_LENGTH
from studio_api.prompts import ANALYZE_USER_PROMPT, VISION_SYSTEM_PROMPT
from studio_api.providers.base import (
    ContentPolicyError,
    ImageSource,
    MalformedResponseError,
    UpstreamError,
    VisionProvider,
)

logger = logging.getLogger(__name__)

# Same ceiling as an inline upload, measured in decoded bytes
MAX_REMOTE_IMAGE_BYTES = MAX_BASE64_LENGTH * 3 // 4
MAX_REDIRECTS = 3


def _split_data_url(data_url: str) -> tuple[str, str]:
    """Return (mime_type, base64 payload) for a ``data:<mime>;base64,<payload>`` URL."""
    header, _, payload = data_url.partition(",")
    mime_type = header.removeprefix("data:").split(";", 1)[0]
    return mime_type, payload


async def _resolve_host(host: str) -> list[str]:
    """Every address ``host`` resolves to."""
    infos = await asyncio.get_running_loop().getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


class GeminiVisionProvider(VisionProvider):
    """Gemini multimodal generateContent with a JSON response MIME type."""

    name = "gemini"
    credential = "google_api_key"

    async def analyze(
        self, client: httpx.AsyncClient, image: ImageSource, settings: Settings
    ) -> str:
        api_key = self.require_key(settings)
        mime_type, payload = await self._inline_image(client, image)
        response = await client.post(
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{settings.gemini_vision_model}:generateContent",
            headers={"x-goog-api-key": api_key},
            json={
                "systemInstruction": {"parts": [{"text": VISION_SYSTEM_PROMPT}]},
                "contents": [
                    {
                        "role": "user",
                        "parts": [
                            {"text": ANALYZE_USER_PROMPT},
                            {"inline_data": {"mime_type": mime_type, "data": payload}},
                        ],
                    }
                ],
                "generationConfig": {
                    "temperature": 0.7,
                    "maxOutputTokens": 1000,
                    "responseMimeType": "application/json",
                },
            },
        )
        self.check_response(response)
        data = response.json()
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentPolicyError(self.name, f"image blocked ({block_reason})")
        candidates = data.get("candidates") or []
        if not candidates:
            raise MalformedResponseError(self.name, "no candidates returned")
        if candidates[0].get("finishReason") == "SAFETY":
            raise ContentPolicyError(self.name, "response blocked by the safety filter")
        parts = candidates[0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)

    async def _inline_image(self, client: httpx.AsyncClient, image: ImageSource) -> tuple[str, str]:
        # generateContent cannot fetch arbitrary URLs, so remote images are downloaded first
        if image.is_inline:
            return _split_data_url(image.url)
        raw = await self._download(client, image.url)
        try:
            jpeg = normalize_image(raw)
        except InvalidImageError as e:
            raise UpstreamError(self.name, "imageUrl did not return a decodable image") from e
        return "image/jpeg", base64.b64encode(jpeg).decode("ascii")

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        """GET a public image, following at most ``MAX_REDIRECTS`` checked redirects."""
        for _ in range(MAX_REDIRECTS + 1):
            await self._check_public(url)
            async with client.stream("GET", url, follow_redirects=False) as response:
                if response.is_redirect:
                    url = str(response.url.join(response.headers["location"]))
                    continue
                if not response.is_success:
                    raise UpstreamError(
                        self.name, f"could not fetch image ({response.status_code})", response.status_code
                    )
                mime_type = response.headers.get("content-type", "image/jpeg").split(";", 1)[0]
                if not mime_type.startswith("image/"):
                    raise UpstreamError(self.name, f"imageUrl did not return an image ({mime_type})")
                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > MAX_REMOTE_IMAGE_BYTES:
                    raise UpstreamError(self.name, f"image too large ({declared} bytes)")
                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > MAX_REMOTE_IMAGE_BYTES:
                        raise UpstreamError(
                            self.name, f"image exceeds {MAX_REMOTE_IMAGE_BYTES} bytes"
                        )
            logger.debug("Fetched %d bytes of %s for inline analysis", len(body), mime_type)
            return bytes(body)
        raise UpstreamError(self.name, f"too many redirects fetching image (>{MAX_REDIRECTS})")

    async def _check_public(self, url: str) -> None:
        parsed = httpx.URL(url)
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise UpstreamError(self.name, "imageUrl must be an HTTP/HTTPS URL")
        if is_internal_host(parsed.host):
            raise UpstreamError(self.name, f"refusing to fetch internal address {parsed.host}")
        try:
            addresses = await _resolve_host(parsed.host)
        except OSError as e:
            raise UpstreamError(self.name, f"could not resolve {parsed.host}") from e
        if any(is_internal_host(address) for address in addresses):
            raise UpstreamError(self.name, f"refusing to fetch internal address {parsed.host}")


class OpenAIVisionProvider(VisionProvider):
    """OpenAI-compatible chat completions with image_url content."""

    name = "openai"
    credential = "openai_api_key"

    async def analyze(
        self, client: httpx.AsyncClient, image: ImageSource, settings: Settings
    ) -> str:
        api_key = self.require_key(settings)
        response = await client.post(
            f"{settings.openai_base_url.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": settings.vision_model,
                "messages": [
                    {"role": "system", "content": VISION_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": ANALYZE_USER_PROMPT},
                            {"type": "image_url", "image_url": {"url": image.url, "detail": "high"}},
                        ],
                    },
                ],
                "temperature": 0.7,
                "max_tokens": 1000,
                "response_format": {"type": "json_object"},
            },
        )
        self.check_response(response)
        content = response.json()["choices"][0]["message"].get("content")
        if not content:
            raise MalformedResponseError(self.name, "no response content")
        return content


VISION_PROVIDERS: tuple[VisionProvider, ...] = (
    GeminiVisionProvider(),
    OpenAIVisionProvider(),
)
