"""Main FastAPI application for Hifz progress tracking."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session
from hifz.routers import learners
from hifz.db.init_db import init_db
from hifz.db.database import get_db
from hifz.errors import DuplicateRecordError, HifzError, NotFoundError, ValidationError
from hifz.logging_config import setup_logging
from hifz.config import settings
from hifz.rate_limit import limiter

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup.

    This function runs once when the application starts, performing:
    - Database table creation
    - Schema migrations
    """
    logger.info("Application startup initiated")
    try:
        init_db()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title="Hifz Progress API",
    description="""
    Daily progress tracking for students memorizing the Quran.

    ## Features

    - **Daily Records**: One record per learner per day with lines, reviews and mistakes
    - **Para Tracking**: Completing a para at 100% advances the learner automatically
    - **Completion**: Line-based completion percentage with half credit for a half-done para
    - **Projection**: Estimated finish date with a 20% revision buffer
    - **Analytics**: Attendance, consistency score, performance trend and alerts
    - **Weekly Review**: Flags poor performance over the last Sunday-Saturday week

    ## Condition Rating

    - **Excellent**: no mistakes in any category
    - **Below Average**: 3+ new, 3+ recent review, or 4+ older review mistakes
    - **Medium**: any new mistake, or 2+ mistakes in either review
    - **Good**: everything else
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "learners",
            "description": "Enrollment, daily records, status and reports"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

# Rate limiting: default limit via middleware, stricter per-route limits via decorators
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

logger.info(
    f"Rate limiting enabled: default {settings.DEFAULT_RATE_LIMIT}, "
    f"record submission {settings.RECORD_SUBMISSION_RATE_LIMIT} per IP"
)


def _error_response(status_code: int, exc: HifzError) -> JSONResponse:
    content = {"error": type(exc).__name__, "detail": exc.message}
    field_name = getattr(exc, "field_name", None)
    if field_name:
        content["field"] = field_name
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validation failed on {request.url.path}: {exc.message}")
    return _error_response(422, exc)


@app.exception_handler(DuplicateRecordError)
async def duplicate_record_handler(request: Request, exc: DuplicateRecordError):
    logger.warning(f"Duplicate rejected on {request.url.path}: {exc.message}")
    return _error_response(409, exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.info(f"Not found on {request.url.path}: {exc.message}")
    return _error_response(404, exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "InternalError", "detail": "Internal server error"})


# Include routers
app.include_router(learners.router)


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed

    Example Response (Healthy):
        {
            "status": "healthy",
            "database": "connected",
            "timestamp": "2026-10-19T10:30:00.000000Z",
            "environment": "production"
        }
    """
    timestamp = datetime.utcnow().isoformat() + "Z"

    try:
        db.execute(text("SELECT 1"))
        logger.debug("Health check passed")

        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": timestamp,
            "environment": settings.ENVIRONMENT
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)

        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": timestamp
            }
        )


@app.get("/readiness", tags=["health"])
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness check for container orchestration.

    Returns:
        200 OK: Service is ready
        503 Service Unavailable: Service is not ready
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.utcnow().isoformat() + "Z"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
