import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import (
    analysis,
    app_settings,
    backup,
    food_entries,
    profiles,
    stats,
    symptoms,
)
from app.database import init_db
from app.services.backup_service import BackupImportError
from app.services.record_store import StoreWriteError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="AllergyCare", version="0.1.0", lifespan=lifespan)


# =============================================================================
# CSRF Origin Validation Middleware
# =============================================================================


class CSRFOriginMiddleware(BaseHTTPMiddleware):
    """
    Validate Origin/Referer headers on state-changing requests to prevent CSRF.

    - POST, PUT, PATCH, DELETE must include a matching Origin or Referer header
    - GET, HEAD, OPTIONS are always allowed (safe methods)
    - Health check endpoints are exempt
    """

    SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
    EXEMPT_PATHS = {"/health"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.SAFE_METHODS or request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        expected_host = request.headers.get("host", "")

        # Origin wins over Referer when both are present
        source = request.headers.get("origin") or request.headers.get("referer")
        if not source:
            logger.warning(
                "CSRF missing origin/referer: method=%s, path=%s",
                request.method,
                request.url.path,
            )
            return _origin_rejected()

        if urlparse(source).netloc != expected_host:
            logger.warning(
                "CSRF origin mismatch: source=%s, expected=%s, path=%s",
                source,
                expected_host,
                request.url.path,
            )
            return _origin_rejected()

        return await call_next(request)


def _origin_rejected() -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": "Origin validation failed"})


app.add_middleware(CSRFOriginMiddleware)


@app.exception_handler(BackupImportError)
async def backup_import_exception_handler(request: Request, exc: BackupImportError):
    """Rejected backup documents; the stored diary was not touched."""
    logger.warning("Backup import rejected (%s): %s", exc.kind, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": exc.kind})


@app.exception_handler(StoreWriteError)
async def store_write_exception_handler(request: Request, exc: StoreWriteError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# Include routers
app.include_router(profiles.router)
app.include_router(food_entries.router)
app.include_router(symptoms.router)
app.include_router(app_settings.router)
app.include_router(analysis.router)
app.include_router(backup.router)
app.include_router(stats.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
