import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from jobsearch.config import settings
from jobsearch.database import close_db, get_engine, init_db
from jobsearch.exceptions import (
    SearchTimeoutError,
    SearchValidationError,
    StoreUnavailableError,
)
from jobsearch.health import check_database
from jobsearch.routers import search

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the job store schema exists
    logger.info(f"Starting {settings.app_name}")
    await init_db()
    logger.info("Database tables verified")
    yield
    # Shutdown: Close connections
    logger.info(f"Shutting down {settings.app_name}")
    await close_db()
    logger.info("Database connections closed")

app = FastAPI(
    title=settings.app_name,
    description="Faceted job search and discovery engine",
    version="0.1.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_cors_origin],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include routers
app.include_router(search.router)


@app.exception_handler(SearchValidationError)
async def validation_error_handler(request: Request, exc: SearchValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid search parameters",
            "errors": [error.model_dump() for error in exc.errors],
        },
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Search failed, store unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Job store unavailable, try again later", "retryable": True},
    )


@app.exception_handler(SearchTimeoutError)
async def search_timeout_handler(request: Request, exc: SearchTimeoutError):
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={"detail": str(exc), "retryable": True},
    )


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "endpoints": {
            "GET /search": "Filtered, sorted, paginated job postings with optional facets",
            "GET /search/facets": "Facet counts and total for the current filters",
            "GET /health": "Job store connectivity",
        },
    }


@app.get("/health")
async def health_check(bind: AsyncEngine = Depends(get_engine)):
    """Report job store connectivity."""
    database = await check_database(bind)
    return {
        "status": "healthy" if database.status == "connected" else "degraded",
        "dependencies": {
            "database": database.status,
        },
        "latency_ms": database.latency_ms,
    }
