"""Provider interfaces and the failure taxonomy shared by every backend.

A provider wraps exactly one external HTTP API. ``invoke``/``analyze`` perform
one attempt and either return a complete result or raise a ``ProviderError``
subclass; they never return partial results.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Coroutine, Sequence
from dataclasses import dataclass
from typing import ClassVar, TypeVar

import httpx

from studio_api.config import Settings
from studio_api.models.response import AnalyzeResponse

T = TypeVar("T")

# Documented rejection codes; matched exactly against error.code / error.status / name
_POLICY_CODES = frozenset(
    {
        "content_policy_violation",
        "moderation_blocked",
        "content_filter",
        "invalid_prompts",
        "safety",
    }
)


class ProviderError(Exception):
    """One provider attempt failed."""

    kind: ClassVar[str] = "error"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class MissingCredentialError(ProviderError):
    kind = "credential"


class UpstreamError(ProviderError):
    kind = "upstream"

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(provider, message)
        self.status_code = status_code


class MalformedResponseError(ProviderError):
    kind = "malformed"


class ProviderTimeoutError(ProviderError):
    kind = "timeout"


class ContentPolicyError(ProviderError):
    """The prompt or image was rejected by the provider's safety filter."""

    kind = "content_policy"


@dataclass(frozen=True)
class ImageSource:
    """Image handed to a vision provider: a remote URL or an inline data URL."""

    url: str

    @property
    def is_inline(self) -> bool:
        return self.url.startswith("data:")


class Provider(ABC):
    """Common registry entry: a name and the setting that gates it."""

    name: ClassVar[str]
    credential: ClassVar[str]

    def api_key(self, settings: Settings) -> str:
        return getattr(settings, self.credential)

    def is_configured(self, settings: Settings) -> bool:
        return bool(self.api_key(settings))

    def require_key(self, settings: Settings) -> str:
        key = self.api_key(settings)
        if not key:
            raise MissingCredentialError(self.name, f"{self.credential.upper()} not set")
        return key

    def check_response(self, response: httpx.Response) -> None:
        """Raise the matching ProviderError for a non-2xx upstream response."""
        if response.is_success:
            return
        message = ""
        code = ""
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error_obj = payload.get("error")
            if isinstance(error_obj, dict):
                message = str(error_obj.get("message") or "")
                code = str(error_obj.get("code") or error_obj.get("status") or "")
            elif isinstance(error_obj, str):
                message = error_obj
            message = message or str(payload.get("message") or "")
            code = code or str(payload.get("name") or "")
        if code.lower() in _POLICY_CODES:
            raise ContentPolicyError(self.name, message or "Prompt was blocked by the safety filter")
        raise UpstreamError(
            self.name,
            message or f"API error {response.status_code}",
            status_code=response.status_code,
        )

    async def _guard(self, call: Awaitable[T]) -> T:
        """Map transport and parsing failures onto the ProviderError taxonomy."""
        try:
            return await call
        except ProviderError:
            raise
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, "request timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(self.name, f"transport error: {e.__class__.__name__}") from e
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponseError(self.name, f"unexpected response shape: {e}") from e


class ImageProvider(Provider):
    """Text-to-image backend."""

    async def invoke(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        images = await self._guard(self.generate(client, prompt, count, settings))
        if len(images) != count or not all(images):
            raise MalformedResponseError(
                self.name, f"expected {count} images, received {len(images)}"
            )
        return images

    @abstractmethod
    async def generate(
        self, client: httpx.AsyncClient, prompt: str, count: int, settings: Settings
    ) -> list[str]:
        """Return ``count`` image references (data URIs or remote URLs)."""


class VisionProvider(Provider):
    """Image-analysis backend."""

    async def invoke(
        self, client: httpx.AsyncClient, image: ImageSource, settings: Settings
    ) -> AnalyzeResponse:
        return await self._guard(self._analyze_validated(client, image, settings))

    async def _analyze_validated(
        self, client: httpx.AsyncClient, image: ImageSource, settings: Settings
    ) -> AnalyzeResponse:
        raw = await self.analyze(client, image, settings)
        # ValidationError is a ValueError, so _guard reports it as malformed
        return AnalyzeResponse.model_validate_json(raw)

    @abstractmethod
    async def analyze(
        self, client: httpx.AsyncClient, image: ImageSource, settings: Settings
    ) -> str:
        """Return the model's raw JSON text describing the image."""


async def fan_out(calls: Sequence[Coroutine[object, object, T]]) -> list[T]:
    """Run calls concurrently; the first failure cancels the rest and is re-raised."""
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(call) for call in calls]
    except ExceptionGroup as eg:
        first = eg.exceptions[0]
        while isinstance(first, ExceptionGroup):
            first = first.exceptions[0]
        raise first from eg
    return [task.result() for task in tasks]
