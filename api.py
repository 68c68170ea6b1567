"""
Exterior CRM FastAPI Application

Main entry point for the multi-tenant CRM API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

# Common library imports
from common.database import MongoDB
from common.utils import success_response, error_response

# App-specific imports
from crm.config import settings
from crm.database import ensure_indexes

# Import routers
from crm.routers import (
    auth_router,
    user_router,
    organization_router,
    contacts_router,
    leads_router,
    jobs_router,
    estimates_router,
)

# Import service initialization
from crm.dependencies import init_all_services

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


# =============================================================================
# Database Instance
# =============================================================================
main_db = MongoDB()


# =============================================================================
# Application Lifespan
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown tasks like database connections,
    index creation and service initialization.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    settings.validate_required()

    await main_db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
    )

    await ensure_indexes(main_db.db)

    init_all_services(db=main_db.db, settings=settings)
    logger.info("All services initialized successfully")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await main_db.disconnect()


# =============================================================================
# FastAPI Application
# =============================================================================
app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-tenant CRM for exterior finishing contractors",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
)

# =============================================================================
# CORS Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================
@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    """Unique index violations that slipped past service checks."""
    logger.warning(f"Duplicate key on {request.method} {request.url.path}: {exc.details}")
    return JSONResponse(
        status_code=409,
        content=error_response("Resource already exists", code="DUPLICATE_KEY"),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_response("Internal server error", code="INTERNAL_ERROR"),
    )


# =============================================================================
# Include Routers (all under /api prefix)
# =============================================================================
API_PREFIX = "/api"

app.include_router(auth_router, prefix=API_PREFIX, tags=["Authentication"])
app.include_router(user_router, prefix=API_PREFIX, tags=["User"])
app.include_router(organization_router, prefix=API_PREFIX, tags=["Organizations"])
app.include_router(contacts_router, prefix=API_PREFIX, tags=["Contacts"])
app.include_router(leads_router, prefix=API_PREFIX, tags=["Leads"])
app.include_router(jobs_router, prefix=API_PREFIX, tags=["Jobs"])
app.include_router(estimates_router, prefix=API_PREFIX, tags=["Estimates"])


# =============================================================================
# Health Check Endpoint
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    """
    Health check endpoint.

    Returns the status of the API and database connection.
    """
    return success_response({
        "status": "ok",
        "version": APP_VERSION,
        "database": await main_db.ping(),
    })


# =============================================================================
# Run with Uvicorn
# =============================================================================
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )
