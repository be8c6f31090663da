"""
greenguardian.api.main — FastAPI application entry point
=========================================================

Run with::

    uvicorn greenguardian.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from greenguardian.api.deps import get_engine, service_error_handler  # noqa: E402
from greenguardian.api.routes.hub import router as hub_router  # noqa: E402
from greenguardian.api.routes.notifications import router as notifications_router  # noqa: E402
from greenguardian.api.routes.presence import router as presence_router  # noqa: E402
from greenguardian.api.routes.settings import router as settings_router  # noqa: E402
from greenguardian.api.routes.swap import router as swap_router  # noqa: E402
from greenguardian.database.engine import init_db  # noqa: E402
from greenguardian.errors import GreenGuardianError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine and seed settings."""
    engine = get_engine()
    init_db(engine)
    logger.info("GreenGuardian API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("GreenGuardian API shutting down")


app = FastAPI(
    title="GreenGuardian API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(GreenGuardianError, service_error_handler)

# Mount routers
app.include_router(swap_router, prefix="/api")
app.include_router(hub_router, prefix="/api")
app.include_router(presence_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(settings_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
