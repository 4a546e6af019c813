"""Main entry point for the Threadline application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from threadline.api.endpoints import (
    auth_router,
    bookmarks_router,
    communities_router,
    connections_router,
    events_router,
    invitations_router,
    notifications_router,
    posts_router,
    search_router,
    suggestions_router,
    users_router,
)
from threadline.core.logging import configure_logging
from threadline.core.settings import settings
from threadline.db.session import create_tables
from threadline.errors import ThreadlineError

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Threadline API",
    description="Posts, threads, follows, connections and communities",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(connections_router, prefix="/api")
app.include_router(suggestions_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(communities_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(invitations_router, prefix="/api")
app.include_router(bookmarks_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(search_router, prefix="/api")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(ThreadlineError)
async def handle_domain_error(request: Request, exc: ThreadlineError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, "Internal server error")
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = exc.errors()
    if not problems:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request data")
    first = problems[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request data")
    return _error(
        status.HTTP_400_BAD_REQUEST, f"{location}: {message}" if location else message
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level, settings.log_format)
    if settings.auto_create_tables:
        create_tables()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Posts, threads, follows, connections and communities",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("threadline.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
