"""
Main FastAPI Application Entry Point
"""

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import traceback

from labflow.config import settings
from labflow.database import init_db, health_check as database_health_check
from labflow.exceptions import LifecycleError
from labflow.routers import orders, results
from labflow.utils.timezone import get_timezone_info

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")

    # Create missing tables; alembic owns schema changes beyond that
    try:
        init_db()
        logger.info("Database tables verified/created")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Clinical lab order result entry, approval and print dispatch",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    """Render lifecycle errors with their stable code so screens can tell them apart."""
    logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, **exc.extra()}
    )


# Global exception handler to catch and log all unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and return proper JSON response with logging."""
    error_trace = traceback.format_exc()
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    logger.error(f"Stack trace:\n{error_trace}")

    # Don't catch HTTPException, let FastAPI handle those
    if isinstance(exc, HTTPException):
        raise exc

    error_message = "An unexpected error occurred"
    if settings.DEBUG:
        error_message = str(exc)

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_type": type(exc).__name__,
            "message": error_message,
            "path": str(request.url.path),
        }
    )


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# API Routers
app.include_router(results.router, prefix="/api/results", tags=["Results"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])


@app.get("/health")
async def health_check():
    """Simple health check for load balancers."""
    database_ok = database_health_check()
    return {
        "status": "healthy" if database_ok else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "connected" if database_ok else "unavailable",
        "timezone": get_timezone_info(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("labflow.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
