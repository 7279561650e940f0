import logging
import sys
import time
import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# request_id is bound per HTTP request, provider per cascade attempt
_LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "{extra[request_id]} | {extra[provider]: <11} | <level>{message}</level>"
)

_DEFAULT_EXTRA = {"request_id": "-", "provider": "-"}

# httpx logs full request URLs at INFO, and Gemini/Pollinations URLs can carry prompts
_NOISY_LOGGERS = ("httpcore", "httpx", "PIL")


class _InterceptHandler(logging.Handler):
    """Forward stdlib records (providers, services, httpx) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_level: str = "DEBUG") -> None:
    """Make loguru the only sink.

    Every line carries the request ID and, inside the cascade, the provider
    being attempted. Records from stdlib loggers pick up the same context
    because they are re-emitted through loguru.
    """
    logger.remove()
    logger.configure(extra=_DEFAULT_EXTRA)
    logger.add(sys.stderr, format=_LOG_FORMAT, level=log_level.upper(), colorize=None)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a short ID, echo it as ``X-Request-ID`` and log the outcome.

    Server-side failures (5xx) are logged at WARNING so that exhausted cascades
    stand out from ordinary traffic.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = uuid.uuid4().hex[:8]
        method = request.method
        path = request.url.path

        with logger.contextualize(request_id=rid):
            logger.info("{method} {path}", method=method, path=path)
            start = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception:
                logger.error(
                    "{method} {path} -> UNHANDLED ({duration_ms:.0f}ms)",
                    method=method,
                    path=path,
                    duration_ms=(time.perf_counter() - start) * 1000,
                )
                raise
            level = "WARNING" if response.status_code >= 500 else "INFO"
            logger.log(
                level,
                "{method} {path} -> {status} ({duration_ms:.0f}ms)",
                method=method,
                path=path,
                status=response.status_code,
                duration_ms=(time.perf_counter() - start) * 1000,
            )
            response.headers["X-Request-ID"] = rid

        return response
