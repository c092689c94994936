"""FastAPI application entry point."""

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from mediahost.core.config import settings
from mediahost.core.logging import setup_logging
from mediahost.core.metrics import get_content_type, get_metrics, set_app_info
from mediahost.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from mediahost.modules.conversion.router import router as conversion_router
from mediahost.modules.folder.router import router as folder_router

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Media Host Orchestrator API

Manages account content folders on streaming hosts and converts stored
videos to plan-bounded bitrates with FFmpeg on the host.

### Caller identity

Authentication happens at the gateway, which forwards the account in the
`X-Account-Id` header.
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check and metrics endpoints",
        },
        {
            "name": "folders",
            "description": "Folder management - create, rename, delete, sync, usage",
        },
        {
            "name": "conversion",
            "description": "Video conversion - quality tiers, conversion requests, status",
        },
    ],
)

setup_logging(
    level=settings.LOG_LEVEL if not settings.DEBUG else "DEBUG",
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

# Set application info for metrics
set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware, log_request_body=False)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        dict: Health status with "healthy" or "unhealthy" value.
    """
    return {"status": "healthy"}


@app.get("/metrics", tags=["health"], include_in_schema=False)
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type=get_content_type())


# Include routers
app.include_router(folder_router, prefix=settings.API_V1_PREFIX)
app.include_router(conversion_router, prefix=settings.API_V1_PREFIX)
