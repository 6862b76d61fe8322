from __future__ import annotations
"""MediaForge: FastAPI application entry point.

Mounts the API and WebSocket routes, serves the asset tree, and prepares
the database and catalog on startup.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from mediaforge import __version__
from mediaforge.api.router import api_router
from mediaforge.api.ws import router as ws_router
from mediaforge.config import get_settings
from mediaforge.database import close_db, init_db

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and catalog on startup; fail tasks orphaned by a restart."""
    from mediaforge.services.catalog import get_catalog
    from mediaforge.services.generation_service import get_generation_service
    from mediaforge.services.pubsub import get_progress_reporter
    from mediaforge.services.task_store import get_task_store

    logger.info("MediaForge starting up...")
    logger.info("Assets: %s", os.path.abspath(settings.ASSETS_DIR))

    await init_db()
    await get_catalog().init()

    # In-flight provider polls do not survive a restart
    await get_task_store().fail_interrupted()

    yield

    # Interrupted tasks are failed again by the next startup anyway
    generation = get_generation_service()
    generation.cancel_all()
    await generation.drain()
    await get_progress_reporter().drain()
    await close_db()
    logger.info("MediaForge shut down")


app = FastAPI(
    title="MediaForge API",
    description="Provider-backed video/music generation and story assembly",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,
)

_cors_origins = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(ws_router)

os.makedirs(settings.ASSETS_DIR, exist_ok=True)
app.mount("/assets", StaticFiles(directory=settings.ASSETS_DIR), name="assets")


@app.get("/health")
async def health():
    return {"service": settings.APP_NAME, "status": "healthy", "version": __version__}
