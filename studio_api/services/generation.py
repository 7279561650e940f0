import logging

import httpx

from studio_api.chain import CascadeExhausted, run_cascade
from studio_api.config import Settings
from studio_api.models.response import GenerateResponse
from studio_api.prompts import build_prompt, stock_images
from studio_api.providers.image import IMAGE_PROVIDERS

logger = logging.getLogger(__name__)

STOCK_PROVIDER = "stock"


async def generate_images(prompt: str, style: str | None, settings: Settings) -> GenerateResponse:
    """Generate ``settings.image_count`` images through the provider cascade.

    The style suffix is applied once, so every attempt sees the same prompt. When
    the cascade is exhausted, ``settings.terminal_fallback`` decides the outcome:
    ``"unavailable"`` re-raises (the browser then runs its own keyless generator),
    ``"substitute"`` returns keyword-matched stock photos labelled ``"stock"``.
    """
    final_prompt = build_prompt(prompt, style)
    count = settings.image_count
    logger.debug("Generating %d images, style=%s", count, style)

    async with httpx.AsyncClient(timeout=settings.provider_timeout) as client:
        try:
            provider, images = await run_cascade(
                IMAGE_PROVIDERS,
                settings,
                lambda p: p.invoke(client, final_prompt, count, settings),
                override=settings.image_provider,
            )
        except CascadeExhausted as e:
            if settings.terminal_fallback != "substitute":
                raise
            logger.warning("Image cascade exhausted, substituting stock photos: %s", e)
            return GenerateResponse(images=stock_images(prompt, count), provider=STOCK_PROVIDER)

    return GenerateResponse(images=images, provider=provider.name)
