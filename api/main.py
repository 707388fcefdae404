"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import accounts, archive, health
from core.config import settings
from core.exceptions import RetirementException
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="School Account Retirement API",
    description="Archives and removes school accounts across a discovered schema",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)


# Include routers
app.include_router(health.router)
app.include_router(accounts.router)
app.include_router(archive.router)


@app.exception_handler(RetirementException)
async def retirement_exception_handler(request: Request, exc: RetirementException):
    """Structured error body; status and retryability come from the exception class"""
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error(f"[{request_id}] {exc}", extra={"error_context": exc.to_dict()})
    else:
        logger.warning(f"[{request_id}] {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "error_code": exc.error_code,
            "retryable": exc.retryable,
        },
    )


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting School Account Retirement API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    logger.info(f"Schema drift policy: {settings.SCHEMA_DRIFT_POLICY}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down School Account Retirement API")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "School Account Retirement API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "archive_accounts": "/accounts/{role}/archive",
            "archive": "/archive",
            "archive_delete": "/archive/delete",
            "archive_restore": "/archive/restore"
        }
    }
