from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from core.config import settings
from core.exceptions import PipelineError, RenameFailed, ValidationFailed
from core.logging_config import configure_logging
from routers import upload_router

logger = logging.getLogger(__name__)


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """
    Maps pipeline errors to responses. Only a short error code reaches the
    client, the details are in the server logs.
    """
    logger.error("%s failed: %s (%s)", request.url.path, exc.message, exc.code)
    body = {"detail": "Upload processing failed", "code": exc.code}
    if isinstance(exc, RenameFailed) and exc.url is not None:
        body["partial"] = {"url": exc.url, "caption": exc.caption}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing form fields are reported like any other failed upload step."""
    return await pipeline_error_handler(request, ValidationFailed(str(exc.errors())))


def create_application() -> FastAPI:
    """
    Creates and configures the FastAPI application instance.
    """
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME)

    # 1. CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "PUT", "POST", "DELETE"],
        allow_headers=["Origin", "Content-Type", "Accept"],
    )

    # 2. Error handling
    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # 3. Include Routers
    app.include_router(upload_router.router)

    # 4. Root & Health Check Endpoint
    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {"message": "Hello, World!", "status": "healthy"}

    logger.info("%s configured for bucket %s", settings.PROJECT_NAME, settings.BUCKET_NAME)
    return app
