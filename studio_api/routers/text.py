from fastapi import APIRouter, Depends
from loguru import logger

from studio_api.chain import CascadeExhausted, NoProviderConfigured
from studio_api.config import Settings, get_settings
from studio_api.errors import StudioError
from studio_api.models.request import EnhanceRequest
from studio_api.models.response import EnhanceResponse, ErrorResponse
from studio_api.providers.base import ContentPolicyError
from studio_api.services.enhancement import enhance_prompt

router = APIRouter()


@router.post(
    "/api/enhance-text",
    response_model=EnhanceResponse,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def enhance_text(
    request: EnhanceRequest, settings: Settings = Depends(get_settings)
) -> EnhanceResponse:
    logger.info("Enhance request: {length} chars", length=len(request.prompt))
    try:
        return await enhance_prompt(request.prompt, settings)
    except ContentPolicyError as e:
        raise StudioError(422, "Your prompt was blocked by the safety filter.") from e
    except NoProviderConfigured as e:
        raise StudioError(500, "Server configuration error. API key not configured.") from e
    except CascadeExhausted as e:
        logger.error("Text enhancement failed: {error}", error=str(e))
        raise StudioError(502, "Failed to connect to AI service. Please try again.") from e
