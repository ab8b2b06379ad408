import os
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from skillforge.routers import jobs, recruiters

# Import logging and middleware
from skillforge.utils.logging_config import configure_for_environment, get_logger
from skillforge.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware
)
from skillforge.utils.exceptions import DatabaseError

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

SLOW_REQUEST_THRESHOLD = float(os.getenv("SLOW_REQUEST_THRESHOLD", "2.0"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    logger.info("SkillForge Hiring API starting up...")

    try:
        from skillforge.services.db import init_indexes
        await init_indexes()
        logger.info("Database indexes initialized successfully")
    except DatabaseError as e:
        logger.error(f"Startup aborted, round capacity locking is unavailable: {e.message}")
        raise
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue with the indexes that were created")

    yield

    logger.info("SkillForge Hiring API shutting down...")


app = FastAPI(title="SkillForge Hiring API", version="1.0.0", lifespan=lifespan)

# add_middleware is LIFO: the exception handler ends up innermost, next to the routes
app.add_middleware(ExceptionHandlerMiddleware)
app.add_middleware(PerformanceMiddleware, slow_request_threshold=SLOW_REQUEST_THRESHOLD)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the SkillForge Hiring API", "version": "1.0.0", "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(recruiters.router, prefix="/api/recruiters", tags=["recruiters"])

logger.info("SkillForge Hiring API initialized successfully")
