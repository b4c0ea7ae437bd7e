"""
Main FastAPI application entry point.
Configures the application, middleware, error handlers and routes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import auth, books, health, users
from app.core.config import settings
from app.core.exceptions import CatalogError
from app.core.logging import get_logger, setup_logging
from app.db.session import init_db

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Runs startup and shutdown logic.
    """
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")

    logger.info("Creating database tables...")
    init_db()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Render application errors as ``{"error", "message", "details"}``.

        CatalogError subclasses → their own status code
        RequestValidationError  → 400 validation_error
    """

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(request: Request, exc: CatalogError):
        if exc.status_code >= 500:
            logger.error(
                f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
                extra={"catalog_error": exc},
            )
        else:
            logger.info(
                f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
                extra={"catalog_error": exc},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": exc.message,
                "details": jsonable_encoder(exc.context),
            },
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.info(f"Invalid request on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": {"errors": jsonable_encoder(exc.errors())},
            },
        )


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "content-type", "accept"],
    )

app.include_router(health.router, prefix=settings.API_V1_PREFIX)
app.include_router(auth.router, prefix=settings.API_V1_PREFIX)
app.include_router(users.router, prefix=settings.API_V1_PREFIX)
app.include_router(books.router, prefix=settings.API_V1_PREFIX)


@app.get(f"{settings.API_V1_PREFIX}/")
def api_root() -> dict:
    """API root endpoint."""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME} API",
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
