import httpx

from studio_api.chain import run_cascade
from studio_api.config import Settings
from studio_api.models.response import EnhanceResponse
from studio_api.providers.text import TEXT_PROVIDERS


async def enhance_prompt(prompt: str, settings: Settings) -> EnhanceResponse:
    async with httpx.AsyncClient(timeout=settings.provider_timeout) as client:
        _, result = await run_cascade(
            TEXT_PROVIDERS, settings, lambda p: p.invoke(client, prompt, settings)
        )
    return result
