"""
Media Gateway Service
Stores media on Google Cloud Storage and DigitalOcean Spaces and hands out
pre-signed upload URLs for client-direct uploads
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from media_gateway.core.config import settings
from media_gateway.core.exceptions import InvalidFilenameError, UnknownStorageHostError
from media_gateway.core.logging import configure_logging
from media_gateway.core.rate_limit import limiter
from media_gateway.routes.media import router as media_router

configure_logging(settings.LOG_LEVEL)

# Logger for this module
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.state.limiter = limiter


# Custom rate limit exceeded handler
@app.exception_handler(RateLimitExceeded)
async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler for rate limit exceeded responses"""
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": "Too many requests. Please try again later.",
            "retry_after": getattr(exc, "detail", "30 seconds"),
        },
    )


@app.exception_handler(InvalidFilenameError)
async def invalid_filename_handler(request: Request, exc: InvalidFilenameError):
    return JSONResponse(status_code=400, content={"error": "Invalid filename", "message": str(exc)})


@app.exception_handler(UnknownStorageHostError)
async def unknown_host_handler(request: Request, exc: UnknownStorageHostError):
    return JSONResponse(status_code=400, content={"error": "Unknown storage host", "message": str(exc)})


app.include_router(media_router)

# CORS for frontend - origins configured via CORS_ORIGINS environment variable
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "media-gateway",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "secondary_storage": bool(settings.SPACES_BUCKET),
        "delegation_enabled": settings.delegation_enabled,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
