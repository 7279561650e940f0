import logging

import httpx

from studio_api.chain import run_cascade
from studio_api.config import Settings
from studio_api.imaging import optimize_image
from studio_api.models.request import AnalyzeRequest
from studio_api.models.response import AnalyzeResponse
from studio_api.providers.base import ImageSource
from studio_api.providers.vision import VISION_PROVIDERS

logger = logging.getLogger(__name__)


async def analyze_image(request: AnalyzeRequest, settings: Settings) -> AnalyzeResponse:
    """Run the vision cascade for a URL or an inline upload."""
    if request.imageBase64 is not None:
        source = ImageSource(optimize_image(request.imageBase64))
    else:
        source = ImageSource(request.imageUrl)

    async with httpx.AsyncClient(timeout=settings.provider_timeout) as client:
        provider, result = await run_cascade(
            VISION_PROVIDERS,
            settings,
            lambda p: p.invoke(client, source, settings),
            override=settings.vision_provider,
        )
    logger.debug("Analysis by '%s' found %d objects", provider.name, len(result.analysis.objects))
    return result
