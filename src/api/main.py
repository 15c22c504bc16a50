"""FastAPI application main module.

This module defines the FastAPI application for the CraftRec recommendation
service: health and metrics endpoints, the recommendation routers, request
logging and error rendering.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src import __version__
from src.api.exceptions import CraftRecException
from src.api.logging_config import RequestLoggingMiddleware, setup_logging
from src.api.metrics import metrics_service
from src.api.routes import recommend
from src.config import get_settings

logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title="CraftRec API",
    description="Product recommendations for the storefront",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(recommend.router)
app.include_router(recommend.preferences_router)


@app.exception_handler(CraftRecException)
async def craftrec_exception_handler(request: Request, exc: CraftRecException) -> JSONResponse:
    """Render CraftRec errors as JSON with a stable shape."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        exc.message,
        extra={
            "path": str(request.url.path),
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Returns:
        Dictionary with status key set to "ok".

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Dict[str, Any]:
    """Return recommendation request counters and latency."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
    )
