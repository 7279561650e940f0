from fastapi import APIRouter, Depends
from loguru import logger

from studio_api.chain import CascadeExhausted, NoProviderConfigured
from studio_api.config import Settings, get_settings
from studio_api.errors import StudioError
from studio_api.imaging import InvalidImageError
from studio_api.models.request import AnalyzeRequest, GenerateRequest
from studio_api.models.response import AnalyzeResponse, ErrorResponse, GenerateResponse
from studio_api.providers.base import ContentPolicyError
from studio_api.services.analysis import analyze_image
from studio_api.services.generation import generate_images

router = APIRouter()

CONTENT_POLICY_MESSAGE = "Your prompt was blocked by the safety filter. Try rephrasing your description."

GENERATE_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid request body"},
    422: {"model": ErrorResponse, "description": "Prompt rejected by a content filter"},
    503: {"model": ErrorResponse, "description": "No provider configured, or all providers failed"},
}
ANALYZE_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid request body or image data"},
    422: {"model": ErrorResponse, "description": "Image rejected by a content filter"},
    500: {"model": ErrorResponse, "description": "No vision provider configured"},
    502: {"model": ErrorResponse, "description": "All vision providers failed"},
}


@router.post("/api/generate-image", response_model=GenerateResponse, responses=GENERATE_ERRORS)
async def generate_image(
    request: GenerateRequest, settings: Settings = Depends(get_settings)
) -> GenerateResponse:
    logger.info(
        "Generate request: {length} chars, style={style}",
        length=len(request.prompt),
        style=request.style,
    )
    try:
        result = await generate_images(request.prompt, request.style, settings)
    except ContentPolicyError as e:
        raise StudioError(422, f"{e.provider}: {CONTENT_POLICY_MESSAGE}") from e
    except NoProviderConfigured as e:
        # 503 tells the browser to switch to its own keyless generator
        logger.error("No image provider configured")
        raise StudioError(
            503, "No AI image provider is configured on the server. Use the in-browser generator."
        ) from e
    except CascadeExhausted as e:
        logger.error("Image generation exhausted: {error}", error=str(e))
        raise StudioError(
            503, "AI Generation Service Unavailable. Please try again later or check API keys."
        ) from e

    logger.info(
        "Generated {count} images via {provider}", count=len(result.images), provider=result.provider
    )
    return result


@router.post("/api/analyze-image", response_model=AnalyzeResponse, responses=ANALYZE_ERRORS)
async def analyze(
    request: AnalyzeRequest, settings: Settings = Depends(get_settings)
) -> AnalyzeResponse:
    logger.info("Analyze request: source={source}", source="url" if request.imageUrl else "base64")
    try:
        return await analyze_image(request, settings)
    except InvalidImageError as e:
        raise StudioError(400, str(e)) from e
    except ContentPolicyError as e:
        raise StudioError(422, "The image was blocked by the provider's safety filter.") from e
    except NoProviderConfigured as e:
        logger.error("No vision provider configured")
        raise StudioError(500, "Server configuration error. API key not configured.") from e
    except CascadeExhausted as e:
        logger.error("Image analysis exhausted: {error}", error=str(e))
        raise StudioError(502, "Failed to analyze the image with the Vision API. Please try again.") from e
