from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse


class StudioError(Exception):
    """Error surfaced to the caller as ``{"error": message}`` with ``status_code``."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def describe_validation_error(error: dict) -> str:
    """Turn one pydantic error entry into a sentence fit for the UI."""
    message = str(error.get("msg", "Invalid request body.")).removeprefix("Value error, ")
    loc = [str(part) for part in error.get("loc", ()) if part != "body"]
    if error.get("type") == "value_error" or not loc:
        return message
    return f"{'.'.join(loc)}: {message}"


async def _studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Routing errors (404, 405) use the same body shape as everything else
    return JSONResponse(
        status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = describe_validation_error(errors[0]) if errors else "Invalid request body."
    logger.info("Rejected {path}: {message}", path=request.url.path, message=message)
    return JSONResponse(status_code=400, content={"error": message})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on {path}", path=request.url.path)
    return JSONResponse(
        status_code=500, content={"error": "Internal server error. Please try again later."}
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StudioError, _studio_error_handler)  # ty: ignore[invalid-argument-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # ty: ignore[invalid-argument-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # ty: ignore[invalid-argument-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
