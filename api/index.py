"""
Urban Art Storefront - Main FastAPI Application

Single entry point for the checkout API, the Stripe webhook and the
static entry page.
"""
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv()

from storefront.config import Settings, get_settings  # noqa: E402
from storefront.errors import ERROR_INTERNAL, ERROR_NOT_FOUND, StorefrontError  # noqa: E402
from storefront.logging import get_logger  # noqa: E402
from storefront.middleware.rate_limit import RateLimitMiddleware  # noqa: E402
from storefront.routers import checkout_router, pages_router, webhooks_router  # noqa: E402
from storefront.routers.deps import get_app_settings  # noqa: E402

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    settings = app.state.settings
    logger.info(f"Storefront starting, redirect base {settings.base_url}")
    if not settings.stripe_publishable_key:
        logger.warning("Publishable key MISSING: /api/config will answer 500")
    yield


async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.reason}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse({"error": ERROR_NOT_FOUND}, status_code=404)
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse({"error": ERROR_INTERNAL}, status_code=500)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Passing settings pins them for every route."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Urban Art Storefront",
        description="Cart checkout and payment confirmation API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.dependency_overrides[get_app_settings] = lambda: settings

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    # Added last so 429 responses carry CORS headers too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(checkout_router)
    app.include_router(webhooks_router)
    app.include_router(pages_router)
    return app


app = create_app()
