"""
Freight Quote Matcher - Main Application
FastAPI entry point: matching, price recommendation, feedback and configuration APIs
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import database
from app.actors import broker
from app.config import settings
from app.errors import QuoteMatcherError, StorageError, ValidationError
from app.middleware import CorrelationIdMiddleware
from app.routers import configuration_router, matches_router, quotes_router
from app.services.monitoring.logging import setup_logging

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer()
    ]
)
logger = structlog.get_logger()

API_VERSION = "0.2.0"

# Seconds a client should wait before retrying after a storage failure
STORAGE_RETRY_AFTER_SECONDS = 5

app = FastAPI(
    title="Freight Quote Matcher",
    description="Finds comparable historical freight quotes and recommends a price",
    version=API_VERSION,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

# X-Request-ID in, X-Request-ID out, available to every log line in between
app.add_middleware(CorrelationIdMiddleware)

for router in (matches_router, quotes_router, configuration_router):
    app.include_router(router)


@app.exception_handler(QuoteMatcherError)
async def quote_matcher_error_handler(request: Request, exc: QuoteMatcherError):
    """Translate domain errors into JSON responses with their status code"""
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    headers = None

    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field
    if isinstance(exc, StorageError):
        content["retryable"] = exc.retryable
        headers = {"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)}
        logger.error("storage_error", path=request.url.path, operation=exc.operation, error=str(exc))
    else:
        logger.info("request_rejected", path=request.url.path,
                    status_code=exc.status_code, error_type=type(exc).__name__)

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.on_event("startup")
async def startup_event():
    if settings.environment != "testing":
        setup_logging()
    database.init_db()
    logger.info("startup",
                environment=settings.environment,
                algorithm_version=settings.match_algorithm_version,
                database_configured=database.engine is not None)


@app.on_event("shutdown")
async def shutdown_event():
    if database.engine is not None:
        database.engine.dispose()
    logger.info("shutdown")


@app.get("/")
async def root():
    return {"message": "Freight Quote Matcher API", "version": API_VERSION, "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health Check Endpoint

    Pings the database when one is configured; an unreachable database
    reports "degraded" with status 503 so load balancers stop routing here.
    """
    services = {"api": "running", "broker": type(broker).__name__}
    status_code = 200

    if database.engine is None:
        services["database"] = "not_configured"
    else:
        try:
            with database.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            services["database"] = "connected"
        except SQLAlchemyError as e:
            logger.error("health_database_unreachable", error=str(e))
            services["database"] = "unreachable"
            status_code = 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "healthy" if status_code == 200 else "degraded",
            "environment": settings.environment,
            "algorithm_version": settings.match_algorithm_version,
            "services": services,
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development"
    )
