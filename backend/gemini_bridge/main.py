"""
Gemini Bridge Application Entry Point

FastAPI application main entry, including router registration and application configuration.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gemini_bridge.api import openai_router
from gemini_bridge.common.errors import AppError
from gemini_bridge.config import get_settings
from gemini_bridge.logging_config import setup_logging
from gemini_bridge.middleware.cors import ALLOW_ORIGIN_HEADER, PermissiveCORSMiddleware

logger = logging.getLogger(__name__)

# Initialize logging configuration
setup_logging()

settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    description="OpenAI-compatible API backed by Google Gemini",
    version="0.1.0",
)

app.add_middleware(PermissiveCORSMiddleware)


# Global Exception Handler
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Handle application custom exceptions

    In production mode, error details are hidden to prevent information leakage.
    """
    if exc.status_code >= 500:
        logger.error("%s: %s (path=%s)", type(exc).__name__, exc.message, request.url.path)
    else:
        logger.info("Rejected request: %s (path=%s)", exc.message, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=get_settings().DEBUG or exc.status_code < 500),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle uncaught exceptions

    Stack traces are logged but not returned to clients outside debug mode.
    This handler runs outside the CORS middleware, so it sets the origin header itself.
    """
    settings = get_settings()
    logger.error(
        "Uncaught exception: %s\nPath: %s\nTraceback:\n%s",
        str(exc),
        request.url.path,
        traceback.format_exc(),
    )

    if settings.DEBUG:
        content = {
            "error": {
                "message": str(exc),
                "type": type(exc).__name__,
                "code": "internal_error",
                "traceback": traceback.format_exc().split("\n"),
            }
        }
    else:
        content = {
            "error": {
                "message": "Internal server error",
                "type": "internal_error",
                "code": "internal_error",
            }
        }
    return JSONResponse(status_code=500, content=content, headers={ALLOW_ORIGIN_HEADER: "*"})


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health Check

    Used for service liveness probe.
    """
    return {"status": "healthy"}


# OpenAI clients use either ".../v1/<endpoint>" or a bare "/<endpoint>" base URL.
app.include_router(openai_router, prefix="/v1")
app.include_router(openai_router)


def run():
    import uvicorn

    uvicorn.run(
        "gemini_bridge.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
