"""Enrollment Service Main Application"""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from services.enrollment_service.api import enrollments, instructors
from shared.config import settings
from shared.database import close_db, init_db
from shared.domain.exceptions import DomainException
from shared.logging import configure_logging

configure_logging(settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting Enrollment Service", version=app.version)
    try:
        await init_db()
        logger.info("Enrollment Service ready - database connected")
        yield
    finally:
        await close_db()
        logger.info("Enrollment Service shutdown complete")


app = FastAPI(
    title="Enrollment Service",
    description="Instructor assignment and section capacity engine for grades 1-6",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain exceptions with their own status code."""
    logger.warning(
        "Domain exception",
        path=request.url.path,
        method=request.method,
        error_code=exc.error_code.value,
        message=exc.message,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "INTERNAL_SERVER_ERROR",
            "message": str(exc) if settings.debug else "An unexpected error occurred",
            "type": type(exc).__name__,
        },
    )


# Include routers
app.include_router(instructors.router, prefix="/api/v1/instructors", tags=["Instructors"])
app.include_router(enrollments.router, prefix="/api/v1/enrollments", tags=["Enrollments"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "enrollment_service",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.enrollment_service.main:app",
        host=settings.service_host,
        port=settings.service_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
