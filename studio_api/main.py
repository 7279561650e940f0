from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from studio_api.config import settings
from studio_api.errors import register_error_handlers
from studio_api.logging import RequestLoggingMiddleware, setup_logging
from studio_api.providers.image import IMAGE_PROVIDERS
from studio_api.providers.vision import VISION_PROVIDERS
from studio_api.routers.images import router as images_router
from studio_api.routers.text import router as text_router

setup_logging(settings.log_level)

app = FastAPI(title="Prompt Studio API")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the static security headers to every response, errors included."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response


app.add_middleware(
    CORSMiddleware,  # ty: ignore[invalid-argument-type]  # Starlette ParamSpec typing limitation
    allow_origins=["*"],
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)  # ty: ignore[invalid-argument-type]  # same Starlette issue
app.add_middleware(RequestLoggingMiddleware)  # ty: ignore[invalid-argument-type]  # same Starlette issue

register_error_handlers(app)
app.include_router(images_router)
app.include_router(text_router)


@app.get("/health")
async def health() -> dict:
    """Report which providers are configured, by name only."""
    return {
        "status": "ok",
        "image_providers": [p.name for p in IMAGE_PROVIDERS if p.is_configured(settings)],
        "vision_providers": [p.name for p in VISION_PROVIDERS if p.is_configured(settings)],
        "terminal_fallback": settings.terminal_fallback,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("studio_api.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
