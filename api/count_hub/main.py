# count_hub/main.py
# Count Hub - invoice vs. physical count reconciliation API
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from count_hub import __version__
from count_hub.database import check_db_health, close_db
from count_hub.deps import Backend, build_backend, configure, get_backend, is_configured
from count_hub.routers.catalog import router as catalog_router
from count_hub.routers.invoices import router as invoices_router
from count_hub.routers.scans import router as scans_router
from count_hub.settings import settings

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from count_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Lifespan: storage init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup (a backend configured beforehand, e.g. by tests, is kept)
    owned = not is_configured()
    if owned:
        backend = await build_backend()
        configure(backend)
        logger.info(f"Storage backend: {backend.name}")
    yield
    # Shutdown
    if owned:
        if get_backend().name == "sql":
            await close_db()
        configure(None)

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Count Hub API",
    version=__version__,
    description="Invoice vs. physical count reconciliation",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.include_router(catalog_router)
app.include_router(invoices_router)
app.include_router(scans_router)

# ---------------------------------------------------------
# Endpoints
# ---------------------------------------------------------
@app.get("/health")
async def health(backend: Backend = Depends(get_backend)):
    """Health check endpoint with storage status."""
    result = {
        "status": "ok",
        "version": __version__,
        "storage_backend": backend.name,
    }
    if backend.name == "sql":
        db_health = await check_db_health()
        result["database"] = db_health
        if db_health.get("status") != "healthy":
            result["status"] = "degraded"
    return result
