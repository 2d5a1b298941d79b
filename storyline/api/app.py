"""
FastAPI application for storyline.

This module provides the HTTP API layer for the story lifecycle. It follows
clean architecture principles: routers translate HTTP into use-case calls
and classified ``StoryError``s are mapped onto JSON error bodies here, in
one place.

The API provides endpoints for:
- Stories (list, get, create, partial update, soft/permanent delete)
- Story attachment links (assign, remove)
- Health checks and cache statistics
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storyline import __version__
from storyline.api.dependencies import get_container
from storyline.api.responses import ErrorBody, ErrorResponse
from storyline.api.routers import stories, story_attachments, system
from storyline.errors import InvalidArgument, StoryError

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 409)
}


def setup_logging() -> None:
    """Configure logging for the application from LOG_LEVEL/LOG_FORMAT."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format=os.environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        handlers=[
            logging.StreamHandler(),
        ],
    )

    # Set specific log levels
    logging.getLogger("storyline").setLevel(level)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("uvicorn").setLevel(logging.INFO)


def error_response(error: StoryError) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody.model_validate(error.to_dict()))
    return JSONResponse(
        status_code=error.status_code, content=body.model_dump(mode="json")
    )


async def story_error_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    assert isinstance(exc, StoryError)
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_kind": exc.kind,
            "error_code": exc.code,
        },
    )
    return error_response(exc)


async def request_validation_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return error_response(
        InvalidArgument(
            "Invalid request payload",
            code="VALIDATION_FAILED",
            details=errors,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await get_container().close()
    logger.info("Released storyline resources")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storyline API",
        description="Story lifecycle backend",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoryError, story_error_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_handler
    )

    app.include_router(system.router, tags=["System"])
    app.include_router(
        stories.router,
        prefix="/stories",
        tags=["Stories"],
        responses=ERROR_RESPONSES,
    )
    app.include_router(
        story_attachments.router,
        prefix="/stories",
        tags=["Attachments"],
        responses=ERROR_RESPONSES,
    )
    return app


# Setup logging
setup_logging()

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storyline.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
