from app.core.config import get_settings
from app.core.errors import EngineError
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware
from app.api.v1.router import v1_router

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request failed",
            extra={"path": request.url.path, "error": exc.code, "detail": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.detail},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )
    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    app.add_exception_handler(EngineError, engine_error_handler)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
