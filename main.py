import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from shortlink_app.config import settings
from shortlink_app.database.connection import dispose_engine, get_db, init_db, ping
from shortlink_app.exceptions import StorageUnavailableError
from shortlink_app.api.v1 import links, redirect

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Connection pool is created at import; tables on startup, pool closed on shutdown
    init_db()
    logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    dispose_engine()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Short link service: code allocation, redirects and click analytics",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    """Transient datastore failures are retryable"""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage temporarily unavailable, retry later"},
        headers={"Retry-After": "1"},
    )


@app.get("/")
def read_root():
    """Landing page: where unknown short codes end up"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Liveness check: one trivial round trip to the datastore"""
    checked_at = datetime.now(timezone.utc).isoformat()
    if ping(db):
        return {"status": "healthy", "database": "connected", "timestamp": checked_at}
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "degraded", "database": "disconnected", "timestamp": checked_at},
    )


@app.get(settings.frozen_path)
def link_frozen():
    """Where frozen links redirect to"""
    return {"message": "This link has been paused by its owner and is currently unavailable."}


######## Include routers
app.include_router(links.router, prefix="/api/v1")
app.include_router(links.stats_router, prefix="/api/v1")
# Redirect router last: its legacy /{code} route matches any single segment
app.include_router(redirect.router)
