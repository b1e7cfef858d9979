"""
Menu Upload Service

FastAPI entry point. Wires logging, CORS, the health endpoints and the
menu routers.

Run locally:
    uvicorn main:app --reload
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, check_connection
from routes import menu_import_router, menu_upload_router, menus_router

API_VERSION = "0.1.0"

logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=getattr(logging, settings.log_level),
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration and database reachability on startup."""
    logger.info(
        "service_starting",
        environment=settings.environment,
        log_level=settings.log_level,
        extraction_configured=settings.extraction_configured,
        async_import_threshold=settings.async_import_threshold
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info("database_ready", **{k: v for k, v in db_status.items() if k != "status"})
    else:
        # Keep serving; preview editing works without the database
        logger.error("database_unreachable", error=db_status.get("error"))

    yield

    logger.info("service_stopped")


app = FastAPI(
    title="Menu Upload Service",
    description="Upload a menu PDF, review the extracted items, check them against the stored menu and import",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Service status plus menu table counts."""
    db_status = check_connection()
    healthy = db_status["status"] == "healthy"

    return {
        "status": "healthy" if healthy else "degraded",
        "checked_at": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "menu_extraction": "configured" if settings.extraction_configured else "missing ANTHROPIC_API_KEY",
        "database": db_status
    }


@app.get("/")
async def root():
    return {
        "name": "Menu Upload Service API",
        "version": API_VERSION,
        "docs": "/docs" if settings.debug else None,
        "health": "/health",
        "workflow": [
            "POST /api/menus/upload/preview",
            "POST /api/menus/upload/conflicts/process",
            "POST /api/menus/upload/import/finalize",
            "GET /api/menus/upload/import/job/{job_id}",
        ]
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything a router did not turn into an AppError response ends up here."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


app.include_router(menus_router, prefix="/api/menus", tags=["Menus"])
# Upload and import routers carry their own /api/menus/upload prefix
app.include_router(menu_upload_router)
app.include_router(menu_import_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
