"""
FastAPI application entry point.

Wires logging, CORS, request timing, the error descriptor handlers and the
retrospective analytics routers.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers import analytics, insights
from core.config import settings
from core.database import check_db_connection
from core.logging import setup_logging
from core.exceptions import APIException, ValidationError
from services.analytics_context import InvalidRangeError
from datetime import datetime, timezone
import logging
import time

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="KPT Retrospective Analytics API",
    description="Streaks, trends, patterns and recommendations derived from a Keep/Problem/Try journal",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)


def _allowed_origins():
    # DEBUG opens CORS completely; otherwise CORS_ORIGINS is comma-separated
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    return ["http://localhost:3000", "http://127.0.0.1:3000"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _request_fields(request: Request, **fields) -> dict:
    return {"extra_fields": {"method": request.method, "path": request.url.path, **fields}}


@app.middleware("http")
async def time_requests(request: Request, call_next):
    """One log line per request with status and duration."""
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"{request.method} {request.url.path} failed",
            exc_info=True,
            extra=_request_fields(request, error=str(e)),
        )
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms} ms)",
        extra=_request_fields(request, status_code=response.status_code, process_time_ms=elapsed_ms),
    )
    response.headers["X-Process-Time"] = str(elapsed_ms)
    return response


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Error descriptor: detail plus a stable error code."""
    if exc.status_code >= 500:
        logger.error(f"API error: {exc.detail}", extra=_request_fields(request, error_code=exc.error_code))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
        headers=exc.headers,
    )


@app.exception_handler(InvalidRangeError)
async def invalid_range_handler(request: Request, exc: InvalidRangeError):
    """Ranges rejected inside the services surface as 422, never 500."""
    return await api_exception_handler(request, ValidationError(str(exc), field="date_range"))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True, extra=_request_fields(request))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )


@app.get("/health")
async def health():
    """200 when the journal database answers, 503 otherwise."""
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {
        "status": "healthy",
        "database": "available",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(analytics.router)
app.include_router(insights.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_RELOAD,
    )
